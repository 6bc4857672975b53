# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Live session statistics.

Statistics are a fold over the event log: apply_event() is the single step
used both for incremental updates and for recomputing from scratch, so the
two always agree exactly.

Severity (live view):
    min(100, apnea_percentage * 0.7 + average_confidence * 100 * 0.3)

Summary severity (session results view, a separate metric):
    min(100, apnea_percentage * average_confidence * 1.5)
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sleepguard.models.detection import DetectionEvent, EventLabel
from sleepguard.models.session import SessionStats

logger = logging.getLogger(__name__)

MAX_SEVERITY = 100.0
PERCENTAGE_WEIGHT = 0.7
CONFIDENCE_WEIGHT = 0.3
SUMMARY_SEVERITY_FACTOR = 1.5


def severity_score(apnea_percentage: float, average_confidence: float) -> float:
    """Live severity score, bounded to [0, 100]."""
    raw = apnea_percentage * PERCENTAGE_WEIGHT + average_confidence * 100 * CONFIDENCE_WEIGHT
    return max(0.0, min(MAX_SEVERITY, raw))


def summary_severity_score(apnea_percentage: float, average_confidence: float) -> float:
    """Severity shown on session results, bounded to [0, 100]."""
    raw = apnea_percentage * average_confidence * SUMMARY_SEVERITY_FACTOR
    return max(0.0, min(MAX_SEVERITY, raw))


def apply_event(stats: SessionStats, event: DetectionEvent) -> SessionStats:
    """Fold one event into the stats."""
    total = stats.total_events + 1
    apnea = stats.apnea_count + (1 if event.label == EventLabel.APNEA else 0)
    normal = stats.normal_count + (1 if event.label == EventLabel.NORMAL else 0)
    average = stats.average_confidence + (event.confidence - stats.average_confidence) / total
    percentage = apnea / total * 100

    return SessionStats(
        total_events=total,
        apnea_count=apnea,
        normal_count=normal,
        apnea_percentage=percentage,
        average_confidence=average,
        severity_score=severity_score(percentage, average),
        elapsed_seconds=stats.elapsed_seconds,
    )


def compute_stats(events: Iterable[DetectionEvent], elapsed_seconds: float = 0.0) -> SessionStats:
    """Recompute statistics from a full event log."""
    stats = SessionStats(elapsed_seconds=elapsed_seconds)
    for event in events:
        stats = apply_event(stats, event)
    return stats


class SessionAggregator:
    """Maintains running statistics for the active session.

    on_event() and on_tick() are expected to be called from a single
    producer (the tracking controller), in emission order.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._start_time: Optional[datetime] = None
        self._events: List[DetectionEvent] = []
        self._stats = SessionStats()

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def events(self) -> List[DetectionEvent]:
        """Copy of the event log."""
        return list(self._events)

    @property
    def start_time(self) -> Optional[datetime]:
        return self._start_time

    def reset(self, start_time: Optional[datetime] = None,
              events: Iterable[DetectionEvent] = ()) -> SessionStats:
        """Start over for a new session, optionally replaying existing events."""
        self._start_time = start_time or self.clock()
        self._events = list(events)
        self._stats = compute_stats(self._events, self._elapsed(self.clock()))
        return self._stats

    def on_event(self, event: DetectionEvent) -> SessionStats:
        """Add an event and return the updated stats."""
        self._events.append(event)
        self._stats = apply_event(self._stats, event)
        return self._stats

    def on_tick(self, now: Optional[datetime] = None) -> SessionStats:
        """Update elapsed time only."""
        self._stats = replace(self._stats, elapsed_seconds=self._elapsed(now or self.clock()))
        return self._stats

    def recompute(self) -> SessionStats:
        """Stats rebuilt from the full event log."""
        return compute_stats(self._events, self._stats.elapsed_seconds)

    def verify(self) -> bool:
        """Check the incremental stats against a full recompute."""
        recomputed = self.recompute()
        if recomputed != self._stats:
            logger.error(f"Session stats drifted: incremental={self._stats} recomputed={recomputed}")
            return False
        return True

    def _elapsed(self, now: datetime) -> float:
        if self._start_time is None:
            return 0.0
        return max(0.0, (now - self._start_time).total_seconds())


def events_per_hour(apnea_count: int, duration_seconds: float) -> float:
    """Apnea events per hour of tracking."""
    if duration_seconds <= 0:
        return 0.0
    return apnea_count / (duration_seconds / 3600.0)


def severity_category(rate_per_hour: float) -> str:
    """Bucket an apnea event rate: normal, mild, moderate or severe."""
    if rate_per_hour > 30:
        return "severe"
    if rate_per_hour > 15:
        return "moderate"
    if rate_per_hour > 5:
        return "mild"
    return "normal"
