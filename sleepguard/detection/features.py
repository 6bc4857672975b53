# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Signal features for breathing audio windows.

Each snapshot becomes a fixed-size vector of time-domain and spectral
features. Extraction is deterministic and never mutates the snapshot.

Feature layout (see FEATURE_NAMES):
    0  rms               Root-mean-square amplitude
    1  peak              Maximum absolute amplitude
    2  silence_ratio     Fraction of samples below SILENCE_THRESHOLD
    3  abrupt_ratio      Fraction of sample-to-sample jumps above ABRUPT_CHANGE_THRESHOLD
    4  irregular_ratio   Fraction of large direction reversals
    5  zero_crossing     Zero-crossing rate (crossings per sample)
    6  breathing_band    Energy share in the breathing band
    7  snoring_band      Energy share in the snoring band
    8  gasping_band      Energy share in the gasping band
    9  centroid          Spectral centroid normalized to Nyquist
    10 duration          Snapshot length in seconds
"""

import logging
from typing import Tuple

import numpy as np

from sleepguard.models.detection import AudioSnapshot

logger = logging.getLogger(__name__)

FEATURE_NAMES: Tuple[str, ...] = (
    "rms",
    "peak",
    "silence_ratio",
    "abrupt_ratio",
    "irregular_ratio",
    "zero_crossing",
    "breathing_band",
    "snoring_band",
    "gasping_band",
    "centroid",
    "duration",
)
FEATURE_SIZE = len(FEATURE_NAMES)

# Amplitude thresholds (samples normalized to [-1, 1])
SILENCE_THRESHOLD = 0.02
ABRUPT_CHANGE_THRESHOLD = 0.1
IRREGULAR_THRESHOLD = 0.05

# Frequency bands in Hz
BREATHING_BAND = (20.0, 600.0)
SNORING_BAND = (30.0, 500.0)
GASPING_BAND = (200.0, 2500.0)


def feature_index(name: str) -> int:
    """Position of a named feature in the vector."""
    return FEATURE_NAMES.index(name)


class FeatureExtractor:
    """Turns audio snapshots into feature vectors."""

    def extract(self, snapshot: AudioSnapshot) -> np.ndarray:
        """Compute the feature vector for one snapshot.

        Args:
            snapshot: Audio window to analyze

        Returns:
            float64 array of length FEATURE_SIZE
        """
        features = np.zeros(FEATURE_SIZE, dtype=np.float64)
        samples = np.asarray(snapshot.samples, dtype=np.float64).ravel()
        n = samples.size
        if n == 0:
            return features

        magnitude = np.abs(samples)
        features[0] = float(np.sqrt(np.mean(samples ** 2)))
        features[1] = float(magnitude.max())
        features[2] = float(np.count_nonzero(magnitude < SILENCE_THRESHOLD)) / n

        if n > 1:
            diffs = np.diff(samples)
            features[3] = float(np.count_nonzero(np.abs(diffs) > ABRUPT_CHANGE_THRESHOLD)) / (n - 1)
            features[5] = float(np.count_nonzero(np.signbit(samples[1:]) != np.signbit(samples[:-1]))) / (n - 1)
        if n > 2:
            # Direction reversal where both steps are large
            reversals = (diffs[1:] * diffs[:-1] < 0) & (np.abs(diffs[1:]) > IRREGULAR_THRESHOLD)
            features[4] = float(np.count_nonzero(reversals)) / (n - 2)

        band, centroid = self._spectral_features(samples, snapshot.sample_rate)
        features[6:9] = band
        features[9] = centroid
        features[10] = snapshot.duration_seconds
        return features

    def _spectral_features(self, samples: np.ndarray, sample_rate: int) -> Tuple[np.ndarray, float]:
        """Band energy shares and normalized spectral centroid."""
        bands = np.zeros(3, dtype=np.float64)
        if sample_rate <= 0 or samples.size < 2:
            return bands, 0.0

        window = np.hanning(samples.size)
        power = np.abs(np.fft.rfft(samples * window)) ** 2
        freqs = np.fft.rfftfreq(samples.size, d=1.0 / sample_rate)
        total = float(power.sum())
        if total <= 0.0:
            return bands, 0.0

        for i, (low, high) in enumerate((BREATHING_BAND, SNORING_BAND, GASPING_BAND)):
            mask = (freqs >= low) & (freqs <= high)
            bands[i] = float(power[mask].sum()) / total

        nyquist = sample_rate / 2.0
        centroid = float((freqs * power).sum()) / total / nyquist
        return bands, centroid
