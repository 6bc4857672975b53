# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Classifiers mapping feature vectors to normal/apnea labels.

Any object with a matching classify() method can be plugged into the
detection pipeline. classify() returns None instead of raising when it
cannot produce a result (malformed features or too little signal).

Sensitivity runs from 1 (least sensitive) to 10 (most sensitive); higher
sensitivity lowers the score needed to label a window as apnea.
"""

import logging
import random
from typing import Optional, Protocol

import numpy as np

from sleepguard.detection.features import FEATURE_SIZE, feature_index
from sleepguard.models.detection import Classification, EventLabel

logger = logging.getLogger(__name__)

# Rule-based score weights
SILENCE_WEIGHT = 0.5
ABRUPT_WEIGHT = 0.3
IRREGULAR_WEIGHT = 0.2

# Apnea score thresholds at sensitivity 1 and 10
THRESHOLD_LEAST_SENSITIVE = 0.6
THRESHOLD_MOST_SENSITIVE = 0.24


class Classifier(Protocol):
    """Interface for pluggable classifiers."""

    def classify(self, features: np.ndarray, sensitivity: float) -> Optional[Classification]:
        ...


def clamp_sensitivity(sensitivity: float) -> float:
    """Clamp a sensitivity level into 1-10."""
    return max(1.0, min(10.0, float(sensitivity)))


def sensitivity_multiplier(level: float) -> float:
    """Threshold multiplier reported for a sensitivity level.

    Level 1 maps to 7.0 and level 10 to 0.2.
    """
    return 7.0 - ((clamp_sensitivity(level) - 1) / 9) * 6.8


def apnea_threshold(sensitivity: float) -> float:
    """Apnea score threshold for a sensitivity level (monotonically decreasing)."""
    fraction = (clamp_sensitivity(sensitivity) - 1) / 9
    return THRESHOLD_LEAST_SENSITIVE - fraction * (THRESHOLD_LEAST_SENSITIVE - THRESHOLD_MOST_SENSITIVE)


def _valid_features(features) -> Optional[np.ndarray]:
    """Return features as a float vector, or None if malformed."""
    try:
        vector = np.asarray(features, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if vector.shape != (FEATURE_SIZE,):
        return None
    if not np.all(np.isfinite(vector)):
        return None
    return vector


class RuleBasedClassifier:
    """Scores silence, abrupt changes and irregularity in the window.

    Long silent stretches with abrupt, irregular bursts (gasps) score high.
    """

    def __init__(self, min_duration_seconds: float = 0.25):
        self.min_duration_seconds = min_duration_seconds

    def score(self, features: np.ndarray) -> float:
        """Weighted apnea score in [0, 1]."""
        silence = features[feature_index("silence_ratio")]
        abrupt = features[feature_index("abrupt_ratio")]
        irregular = features[feature_index("irregular_ratio")]
        raw = silence * SILENCE_WEIGHT + abrupt * ABRUPT_WEIGHT + irregular * IRREGULAR_WEIGHT
        return max(0.0, min(1.0, float(raw)))

    def classify(self, features, sensitivity: float) -> Optional[Classification]:
        vector = _valid_features(features)
        if vector is None:
            logger.debug("Malformed feature vector, skipping classification")
            return None
        if vector[feature_index("duration")] < self.min_duration_seconds:
            return None
        try:
            threshold = apnea_threshold(sensitivity)
        except (TypeError, ValueError):
            return None

        score = self.score(vector)
        if score > threshold:
            return Classification(EventLabel.APNEA, min(1.0, 0.5 + score * 0.5))
        return Classification(EventLabel.NORMAL, max(0.0, 1.0 - score))


class RandomClassifier:
    """Randomized stand-in for a trained model.

    Draws a uniform value per window; the draw is labeled apnea when it
    exceeds 1 - sensitivity / 10. Useful for exercising the pipeline end to
    end without a real model.
    """

    def __init__(self, seed: Optional[int] = None, min_duration_seconds: float = 0.25):
        self._rng = random.Random(seed)
        self.min_duration_seconds = min_duration_seconds

    def classify(self, features, sensitivity: float) -> Optional[Classification]:
        vector = _valid_features(features)
        if vector is None:
            return None
        if vector[feature_index("duration")] < self.min_duration_seconds:
            return None
        try:
            cutoff = 1.0 - clamp_sensitivity(sensitivity) / 10.0
        except (TypeError, ValueError):
            return None

        draw = self._rng.random()
        if draw > cutoff:
            return Classification(EventLabel.APNEA, draw)
        return Classification(EventLabel.NORMAL, 1.0 - draw)


def get_classifier(name: str = "rule", seed: Optional[int] = None,
                   min_duration_seconds: float = 0.25) -> Classifier:
    """Create a classifier by name ('rule' or 'random').

    Raises:
        ValueError: If the name is unknown
    """
    if name == "rule":
        return RuleBasedClassifier(min_duration_seconds=min_duration_seconds)
    if name == "random":
        return RandomClassifier(seed=seed, min_duration_seconds=min_duration_seconds)
    raise ValueError(f"Unknown classifier: {name}")
