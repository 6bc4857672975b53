# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Synthetic detection events for when no microphone is available.

Produces events with the same shape as the real detection loop so that the
aggregator and session store behave identically in either mode.

Event mix per tick:
    15%  apnea, confidence 0.85-1.00, duration 5-14 s
    25%  normal with elevated confidence 0.55-0.85
    60%  normal, confidence 0.00-0.25
"""

import logging
import random
from datetime import datetime
from typing import Callable, Optional

from sleepguard.detection.loop import PeriodicEventSource
from sleepguard.models.detection import DetectionEvent, EventLabel, EventSource

logger = logging.getLogger(__name__)

APNEA_PROBABILITY = 0.15
ELEVATED_PROBABILITY = 0.40


class SyntheticEventSource(PeriodicEventSource):
    """Fallback event generator with the detection loop's contract."""

    source = EventSource.SYNTHETIC

    def __init__(
        self,
        interval_seconds: float = 1.5,
        seed: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(interval_seconds, clock=clock)
        self._rng = random.Random(seed)

    async def start(self, sensitivity: Optional[float] = None) -> None:
        """Begin generating events. Sensitivity is accepted but unused."""
        if self.is_running:
            return
        self._begin()
        logger.info(f"SyntheticEventSource started (interval: {self.interval_seconds}s)")

    def generate_event(self) -> DetectionEvent:
        """Create one simulated detection event."""
        roll = self._rng.random()
        if roll < APNEA_PROBABILITY:
            return DetectionEvent(
                timestamp=self.clock(),
                label=EventLabel.APNEA,
                confidence=min(1.0, 0.85 + self._rng.random() * 0.15),
                duration_seconds=float(self._rng.randint(5, 14)),
                source=self.source,
            )
        if roll < ELEVATED_PROBABILITY:
            confidence = 0.55 + self._rng.random() * 0.3
        else:
            confidence = self._rng.random() * 0.25
        return DetectionEvent(
            timestamp=self.clock(),
            label=EventLabel.NORMAL,
            confidence=confidence,
            source=self.source,
        )

    async def _tick(self, generation: int) -> None:
        self._emit(generation, self.generate_event())
