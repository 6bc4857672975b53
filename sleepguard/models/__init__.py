# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Data models for SleepGuard."""

from sleepguard.models.detection import (
    AlertLevel,
    AudioSnapshot,
    Classification,
    DetectionEvent,
    EventLabel,
    EventSource,
)
from sleepguard.models.session import (
    ActiveSession,
    FinalizedSession,
    LoopState,
    RecordingBlob,
    SessionHandle,
    SessionStats,
    TrackingStatus,
)

__all__ = [
    "ActiveSession",
    "AlertLevel",
    "AudioSnapshot",
    "Classification",
    "DetectionEvent",
    "EventLabel",
    "EventSource",
    "FinalizedSession",
    "LoopState",
    "RecordingBlob",
    "SessionHandle",
    "SessionStats",
    "TrackingStatus",
]
