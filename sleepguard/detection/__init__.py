# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Feature extraction, classification and the timer-driven detection loop."""

from sleepguard.detection.classifier import RandomClassifier, RuleBasedClassifier, get_classifier
from sleepguard.detection.features import FeatureExtractor
from sleepguard.detection.loop import DetectionLoop
from sleepguard.detection.pipeline import DetectionPipeline
from sleepguard.detection.synthetic import SyntheticEventSource

__all__ = [
    "DetectionLoop",
    "DetectionPipeline",
    "FeatureExtractor",
    "RandomClassifier",
    "RuleBasedClassifier",
    "SyntheticEventSource",
    "get_classifier",
]
