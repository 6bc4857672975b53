# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Timer-driven detection loop.

State flow:
    IDLE -> LISTENING   start() acquired the audio input
    LISTENING -> IDLE   stop() (idempotent)

Each tick grabs the latest audio snapshot, runs it through the detection
pipeline off the event loop, and emits a DetectionEvent to subscribers.

Every start() opens a new generation. A tick only delivers its event if its
generation is still current, so a tick that is in flight when stop() is
called finishes and is dropped without touching downstream state.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sleepguard.detection.pipeline import DetectionPipeline
from sleepguard.models.detection import DetectionEvent, EventLabel, EventSource
from sleepguard.models.session import LoopState

logger = logging.getLogger(__name__)

EventCallback = Callable[[DetectionEvent], None]


class PeriodicEventSource:
    """Base class for event producers that fire on a fixed period.

    Subclasses implement _tick() and call _emit() with their events.
    """

    source = EventSource.AUDIO

    def __init__(self, interval_seconds: float, clock: Callable[[], datetime] = datetime.now):
        self.interval_seconds = interval_seconds
        self.clock = clock

        self._state = LoopState.IDLE
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._subscribers: List[EventCallback] = []

        # Counters
        self.tick_count = 0
        self.events_emitted = 0

    # ==================== Properties ====================

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == LoopState.LISTENING

    @property
    def generation(self) -> int:
        return self._generation

    # ==================== Subscribers ====================

    def subscribe(self, callback: EventCallback) -> None:
        """Register a callback invoked with every emitted event."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # ==================== Lifecycle ====================

    def _begin(self) -> None:
        """Open a new generation and schedule the periodic task."""
        self._generation += 1
        self._state = LoopState.LISTENING
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(self._generation, self._stop_event),
            name=f"{type(self).__name__}-gen{self._generation}",
        )

    async def stop(self) -> None:
        """Stop ticking. Calling stop() while idle is a no-op."""
        if self._state == LoopState.IDLE:
            return

        # Retire the generation first so in-flight ticks are dropped
        self._generation += 1
        self._state = LoopState.IDLE
        if self._stop_event is not None:
            self._stop_event.set()

        await self._on_stopped()
        logger.info(f"{type(self).__name__} stopped")

    async def wait_closed(self) -> None:
        """Wait for the last periodic task to finish (including an in-flight tick)."""
        task = self._task
        if task is not None and not task.done():
            await task

    async def _on_stopped(self) -> None:
        """Hook for releasing resources after stop()."""

    async def _run(self, generation: int, stop_event: asyncio.Event) -> None:
        """Periodic task body for one generation."""
        while generation == self._generation:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            if generation != self._generation:
                break

            self.tick_count += 1
            try:
                await self._tick(generation)
            except Exception as e:
                logger.error(f"{type(self).__name__} tick failed: {e}")

    async def _tick(self, generation: int) -> None:
        raise NotImplementedError

    def _emit(self, generation: int, event: DetectionEvent) -> bool:
        """Deliver an event if its generation is still current.

        Returns:
            True if the event was delivered
        """
        if generation != self._generation:
            logger.debug(f"Dropping event from retired generation {generation}")
            return False

        self.events_emitted += 1
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber error: {e}")
        return True


class DetectionLoop(PeriodicEventSource):
    """Classifies live audio on a fixed cadence.

    Attributes:
        audio_input: Audio input collaborator (acquire/release/snapshot)
        pipeline: Feature extraction + classification pipeline
        tick_timeout_seconds: Ticks slower than this are skipped
    """

    source = EventSource.AUDIO

    def __init__(
        self,
        audio_input,
        pipeline: Optional[DetectionPipeline] = None,
        interval_seconds: float = 1.0,
        tick_timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(interval_seconds, clock=clock)
        self.audio_input = audio_input
        self.pipeline = pipeline or DetectionPipeline()
        self.tick_timeout_seconds = tick_timeout_seconds or interval_seconds

        self._sensitivity: float = 5
        self._consecutive_apnea = 0
        self.skipped_ticks = 0

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    async def start(self, sensitivity: float) -> None:
        """Acquire the audio input and begin ticking.

        Args:
            sensitivity: Sensitivity level (1-10) used for this run

        Raises:
            AudioAcquisitionError: If the audio input cannot be acquired;
                the loop stays IDLE
        """
        if self.is_running:
            logger.warning("DetectionLoop already listening, ignoring start()")
            return

        await self.audio_input.acquire()

        self._sensitivity = sensitivity
        self._consecutive_apnea = 0
        self._begin()
        logger.info(
            f"DetectionLoop listening (interval: {self.interval_seconds}s, "
            f"sensitivity: {sensitivity})"
        )

    async def _on_stopped(self) -> None:
        try:
            await self.audio_input.release()
        except Exception as e:
            logger.error(f"Error releasing audio input: {e}")

    async def _tick(self, generation: int) -> None:
        snapshot = self.audio_input.snapshot()

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.pipeline.process, snapshot, self._sensitivity),
                timeout=self.tick_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.skipped_ticks += 1
            logger.warning(
                f"Detection tick exceeded {self.tick_timeout_seconds}s, skipping"
            )
            return

        if generation != self._generation:
            logger.debug("Detection loop stopped during tick, dropping result")
            return

        classification = result.classification
        if classification is None:
            return

        duration = None
        if classification.label == EventLabel.APNEA:
            self._consecutive_apnea += 1
            duration = self._consecutive_apnea * self.interval_seconds
        else:
            self._consecutive_apnea = 0

        event = DetectionEvent(
            timestamp=self.clock(),
            label=classification.label,
            confidence=classification.confidence,
            duration_seconds=duration,
            source=self.source,
        )
        self._emit(generation, event)
