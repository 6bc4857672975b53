# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Data models for audio snapshots, classifications and detection events."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np


class EventLabel(Enum):
    """Classification label for one audio window."""

    NORMAL = "normal"
    APNEA = "apnea"


class EventSource(Enum):
    """Where detection events come from."""

    AUDIO = "audio"  # Real microphone audio through the detection pipeline
    SYNTHETIC = "synthetic"  # Simulated generator (no microphone available)


class AlertLevel(Enum):
    """Live breathing status shown while tracking."""

    NORMAL = "normal"
    WARNING = "warning"  # Last event normal, confidence above 0.15
    DANGER = "danger"  # Last event was classified as apnea


@dataclass(frozen=True)
class AudioSnapshot:
    """Most recent window of mono audio samples.

    Samples are floats in [-1, 1].
    """

    samples: np.ndarray
    sample_rate: int
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def duration_seconds(self) -> float:
        """Length of the snapshot in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / float(self.sample_rate)

    @classmethod
    def empty(cls, sample_rate: int = 16000) -> "AudioSnapshot":
        """Snapshot with no samples (nothing captured yet)."""
        return cls(samples=np.zeros(0, dtype=np.float32), sample_rate=sample_rate)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one feature vector."""

    label: EventLabel
    confidence: float

    @property
    def is_apnea(self) -> bool:
        return self.label == EventLabel.APNEA


@dataclass(frozen=True)
class DetectionEvent:
    """One classified outcome produced from a single audio window."""

    timestamp: datetime
    label: EventLabel
    confidence: float
    duration_seconds: Optional[float] = None
    source: EventSource = EventSource.AUDIO

    def __post_init__(self):
        """Validate confidence range."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @property
    def is_apnea(self) -> bool:
        return self.label == EventLabel.APNEA

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "label": self.label.value,
            "confidence": self.confidence,
            "duration_seconds": self.duration_seconds,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionEvent":
        """Create from dictionary."""
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            label=EventLabel(data["label"]),
            confidence=float(data["confidence"]),
            duration_seconds=data.get("duration_seconds"),
            source=EventSource(data.get("source", "audio")),
        )
