# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Detection pipeline: feature extraction followed by classification.

The pipeline never raises. Failures in either stage are recorded on the
result and count as "no event" for that tick.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from sleepguard.detection.classifier import Classifier, get_classifier
from sleepguard.detection.features import FeatureExtractor
from sleepguard.models.detection import AudioSnapshot, Classification

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    classification: Optional[Classification] = None
    features: Optional[np.ndarray] = None
    inference_time_ms: float = 0.0
    error: Optional[str] = None


class DetectionPipeline:
    """Runs FeatureExtractor -> Classifier on audio snapshots.

    Both stages are injectable so a trained model can replace the
    classifier without touching the detection loop.
    """

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        extractor: Optional[FeatureExtractor] = None,
    ):
        self.classifier = classifier or get_classifier("rule")
        self.extractor = extractor or FeatureExtractor()

    def process(self, snapshot: AudioSnapshot, sensitivity: float) -> PipelineResult:
        """Process one snapshot.

        Args:
            snapshot: Latest audio window
            sensitivity: Sensitivity level (1-10)

        Returns:
            PipelineResult; classification is None when no event was produced
        """
        start_time = time.time()
        result = PipelineResult()

        try:
            result.features = self.extractor.extract(snapshot)
            classification = self.classifier.classify(result.features, sensitivity)
            if classification is not None and not isinstance(classification, Classification):
                result.error = f"Classifier returned {type(classification).__name__}"
            elif classification is not None and not 0.0 <= classification.confidence <= 1.0:
                result.error = f"Classifier confidence out of range: {classification.confidence}"
            else:
                result.classification = classification
        except Exception as e:
            logger.error(f"Detection pipeline error: {e}")
            result.error = str(e)

        if result.error and result.classification is None:
            logger.debug(f"No event this tick: {result.error}")

        result.inference_time_ms = (time.time() - start_time) * 1000
        return result
