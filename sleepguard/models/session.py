# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Data models for tracking sessions and their statistics."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sleepguard.models.detection import AlertLevel, DetectionEvent, EventSource


class LoopState(Enum):
    """Detection loop states."""

    IDLE = "idle"
    LISTENING = "listening"


@dataclass(frozen=True)
class SessionStats:
    """Aggregated statistics for one session.

    Invariant: total_events == apnea_count + normal_count.
    """

    total_events: int = 0
    apnea_count: int = 0
    normal_count: int = 0
    apnea_percentage: float = 0.0
    average_confidence: float = 0.0
    severity_score: float = 0.0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "total_events": self.total_events,
            "apnea_count": self.apnea_count,
            "normal_count": self.normal_count,
            "apnea_percentage": round(self.apnea_percentage, 2),
            "average_confidence": round(self.average_confidence, 3),
            "severity_score": round(self.severity_score, 2),
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }


@dataclass(frozen=True)
class SessionHandle:
    """Reference to the active session held by the session store."""

    session_id: str


@dataclass
class ActiveSession:
    """In-progress session: start time plus the accumulated event log."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = field(default_factory=datetime.now)
    source: EventSource = EventSource.AUDIO
    events: List[DetectionEvent] = field(default_factory=list)

    # Last finalize() result and the event count it was built from
    _finalized: Optional["FinalizedSession"] = field(
        default=None, init=False, repr=False, compare=False
    )
    _finalized_count: int = field(default=-1, init=False, repr=False, compare=False)

    @property
    def handle(self) -> SessionHandle:
        return SessionHandle(self.id)

    def finalize(self, end_time: Optional[datetime] = None) -> "FinalizedSession":
        """Build the closed record for this session.

        Repeated calls with no append in between return the cached result.

        Args:
            end_time: End of the session (default: the cached end time, or now)
        """
        # Imported here: the aggregator depends on these models
        from sleepguard.session.aggregator import compute_stats

        cached = self._finalized
        if end_time is None:
            end_time = cached.end_time if cached else datetime.now()

        if (
            cached is not None
            and self._finalized_count == len(self.events)
            and cached.end_time == end_time
            and cached.source == self.source
        ):
            return cached

        duration_seconds = max(0.0, (end_time - self.start_time).total_seconds())
        finalized = FinalizedSession(
            id=self.id,
            start_time=self.start_time,
            end_time=end_time,
            duration_minutes=duration_seconds / 60.0,
            events=tuple(self.events),
            stats=compute_stats(self.events, elapsed_seconds=duration_seconds),
            source=self.source,
        )
        self._finalized = finalized
        self._finalized_count = len(self.events)
        return finalized

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "source": self.source.value,
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActiveSession":
        """Create from dictionary (for restoring from the state file)."""
        return cls(
            id=data["id"],
            start_time=datetime.fromisoformat(data["start_time"]),
            source=EventSource(data.get("source", "audio")),
            events=[DetectionEvent.from_dict(e) for e in data.get("events", [])],
        )


@dataclass(frozen=True)
class FinalizedSession:
    """Closed session, ready to be handed to persistence."""

    id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: float
    events: Tuple[DetectionEvent, ...]
    stats: SessionStats
    source: EventSource = EventSource.AUDIO

    @property
    def severity_score(self) -> float:
        return self.stats.severity_score

    @property
    def apnea_count(self) -> int:
        return self.stats.apnea_count

    @property
    def normal_count(self) -> int:
        return self.stats.normal_count

    def to_dict(self, include_events: bool = True) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        data = {
            "id": self.id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": round(self.duration_minutes, 2),
            "source": self.source.value,
            "apnea_count": self.apnea_count,
            "normal_count": self.normal_count,
            "severity_score": round(self.severity_score, 2),
            "stats": self.stats.to_dict(),
        }
        if include_events:
            data["events"] = [e.to_dict() for e in self.events]
        return data


@dataclass
class TrackingStatus:
    """Point-in-time view of the tracking controller for the API."""

    timestamp: datetime = field(default_factory=datetime.now)
    tracking: bool = False
    loop_state: LoopState = LoopState.IDLE
    source: Optional[EventSource] = None
    session_id: Optional[str] = None
    session_start: Optional[datetime] = None
    sensitivity: Optional[int] = None
    alert_level: AlertLevel = AlertLevel.NORMAL
    stats: SessionStats = field(default_factory=SessionStats)
    last_event: Optional[DetectionEvent] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "tracking": self.tracking,
            "loop_state": self.loop_state.value,
            "source": self.source.value if self.source else None,
            "session_id": self.session_id,
            "session_start": self.session_start.isoformat() if self.session_start else None,
            "sensitivity": self.sensitivity,
            "alert_level": self.alert_level.value,
            "stats": self.stats.to_dict(),
            "last_event": self.last_event.to_dict() if self.last_event else None,
        }


@dataclass(frozen=True)
class RecordingBlob:
    """Capture retained for upload after a session ends.

    The audio lives in a temporary file on disk; whoever holds the blob owns
    the file and must either move it into place or call discard().
    """

    path: Path
    duration_seconds: float
    content_type: str = "audio/wav"
    extension: str = "wav"

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def discard(self) -> None:
        """Delete the backing file if it still exists."""
        self.path.unlink(missing_ok=True)
