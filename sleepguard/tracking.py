# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tracking controller.

Coordinates one tracking interval from start to stop:
- Opens a session in the session store
- Starts the detection loop, or the synthetic generator if the microphone
  cannot be acquired
- Feeds every event into the aggregator and the session's event log
- Keeps elapsed time current with a one second clock
- On stop, finalizes the session and hands it (plus the recording) to the
  persistence sink without waiting for it

Usage:
    controller = build_controller(settings, database)
    await controller.start_tracking()
    ...
    finalized = await controller.stop_tracking()
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sleepguard.capture.audio_input import get_audio_input
from sleepguard.detection.classifier import get_classifier
from sleepguard.detection.loop import DetectionLoop, EventCallback, PeriodicEventSource
from sleepguard.detection.pipeline import DetectionPipeline
from sleepguard.detection.synthetic import SyntheticEventSource
from sleepguard.errors import (
    AudioAcquisitionError,
    NoActiveSessionError,
    PermissionDeniedError,
    SessionAlreadyActiveError,
)
from sleepguard.models.detection import AlertLevel, DetectionEvent, EventLabel
from sleepguard.models.session import FinalizedSession, LoopState, SessionHandle, TrackingStatus
from sleepguard.notifications import NotificationCenter
from sleepguard.persistence.sink import PersistenceSink
from sleepguard.session.aggregator import SessionAggregator
from sleepguard.session.store import SessionStore
from sleepguard.user_settings import UserSettingsStore

logger = logging.getLogger(__name__)


class TrackingController:
    """Runs tracking sessions end to end.

    Attributes:
        detection_loop: Real-audio event source
        synthetic: Fallback event source
        aggregator: Live statistics for the current session
        store: Active-session slot
    """

    # A normal event above this confidence raises the WARNING alert level
    WARNING_CONFIDENCE = 0.15

    def __init__(
        self,
        detection_loop: DetectionLoop,
        synthetic: SyntheticEventSource,
        store: SessionStore,
        sink: PersistenceSink,
        notifier: NotificationCenter,
        user_settings: UserSettingsStore,
        owner_id: str = "local",
        clock_interval_seconds: float = 1.0,
        database=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.detection_loop = detection_loop
        self.synthetic = synthetic
        self.store = store
        self.sink = sink
        self.notifier = notifier
        self.user_settings = user_settings
        self.owner_id = owner_id
        self.clock_interval_seconds = clock_interval_seconds
        self.database = database
        self.clock = clock

        self.aggregator = SessionAggregator(clock=clock)

        # Session state
        self._handle: Optional[SessionHandle] = None
        self._source: Optional[PeriodicEventSource] = None
        self._session_owner = owner_id
        self._sensitivity: Optional[int] = None
        self._last_event: Optional[DetectionEvent] = None

        # Elapsed-time clock
        self._clock_task: Optional[asyncio.Task] = None
        self._clock_stop: Optional[asyncio.Event] = None

        self._callbacks: List[EventCallback] = []
        self._lock = asyncio.Lock()

        self.detection_loop.subscribe(self._on_event)
        self.synthetic.subscribe(self._on_event)

    # ==================== Properties ====================

    @property
    def is_tracking(self) -> bool:
        return self._handle is not None

    @property
    def active_source(self) -> Optional[PeriodicEventSource]:
        return self._source

    @property
    def alert_level(self) -> AlertLevel:
        event = self._last_event
        if event is None:
            return AlertLevel.NORMAL
        if event.label == EventLabel.APNEA:
            return AlertLevel.DANGER
        if event.confidence > self.WARNING_CONFIDENCE:
            return AlertLevel.WARNING
        return AlertLevel.NORMAL

    def add_event_callback(self, callback: EventCallback) -> None:
        """Register a callback for every event of the active session."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove_event_callback(self, callback: EventCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # ==================== Start / Stop ====================

    async def start_tracking(self, owner_id: Optional[str] = None) -> SessionHandle:
        """Start a new tracking session.

        Args:
            owner_id: Owner recorded on the persisted session

        Returns:
            Handle of the new session

        Raises:
            SessionAlreadyActiveError: If a session is already running
        """
        async with self._lock:
            if self.is_tracking:
                raise SessionAlreadyActiveError("Tracking is already running")

            handle = self.store.start_session(start_time=self.clock())
            self._session_owner = owner_id or self.owner_id
            try:
                await self._start_sources(handle)
            except Exception:
                self.store.end_session(handle)
                self._reset_state()
                raise

        await self._log_system_event(
            "tracking_start",
            f"Tracking started ({self._source.source.value})",
            {"session_id": handle.session_id, "sensitivity": self._sensitivity},
        )
        return handle

    async def resume(self) -> Optional[SessionHandle]:
        """Continue a session restored from the store's state file.

        Returns:
            Handle of the resumed session, or None if there was nothing to resume
        """
        async with self._lock:
            if self.is_tracking:
                return self._handle

            handle = self.store.restore()
            if handle is None:
                return None

            await self._start_sources(handle)

        self.notifier.info(
            "Session resumed",
            f"Continuing the session started at {self.store.active.start_time:%H:%M}.",
        )
        return handle

    async def _start_sources(self, handle: SessionHandle) -> None:
        session = self.store.active
        self._handle = handle
        self._sensitivity = self.user_settings.get_sensitivity()
        self._last_event = None
        self.aggregator.reset(session.start_time, session.events)

        try:
            await self.detection_loop.start(self._sensitivity)
            self._source = self.detection_loop
        except AudioAcquisitionError as e:
            reason = "access was denied" if isinstance(e, PermissionDeniedError) else "is unavailable"
            logger.warning(f"Audio acquisition failed, falling back to simulation: {e}")
            self.notifier.info(
                "Simulation mode",
                f"Microphone {reason}. Using simulated detection events instead.",
            )
            await self.synthetic.start(self._sensitivity)
            self._source = self.synthetic

        self.store.set_source(handle, self._source.source)
        self._start_clock()
        logger.info(
            f"Tracking session {handle.session_id} "
            f"(source: {self._source.source.value}, sensitivity: {self._sensitivity})"
        )

    async def stop_tracking(self) -> Optional[FinalizedSession]:
        """Stop tracking and hand the session to persistence.

        Calling this while not tracking is a no-op.

        Returns:
            The finalized session, or None if nothing was running
        """
        async with self._lock:
            if not self.is_tracking:
                return None

            source = self._source
            handle = self._handle
            self._handle = None
            self._source = None

            if source is not None:
                await source.stop()
            await self._stop_clock()
            self.aggregator.on_tick()

            recording = None
            if source is self.detection_loop:
                try:
                    recording = await asyncio.to_thread(self.detection_loop.audio_input.recording)
                except Exception as e:
                    logger.error(f"Could not collect recording: {e}")

            finalized = self.store.end_session(handle, end_time=self.clock())
            if finalized is not None:
                self.sink.submit(finalized, self._session_owner, recording)
            elif recording is not None:
                recording.discard()

        if finalized is not None:
            await self._log_system_event(
                "tracking_stop",
                "Tracking stopped",
                {
                    "session_id": finalized.id,
                    "duration_minutes": round(finalized.duration_minutes, 2),
                    "apnea_count": finalized.apnea_count,
                },
            )
        return finalized

    async def shutdown(self) -> None:
        """Stop any running session and wait for pending hand-offs."""
        await self.stop_tracking()
        await self.sink.drain()

    def _reset_state(self) -> None:
        self._handle = None
        self._source = None

    # ==================== Event Handling ====================

    def _on_event(self, event: DetectionEvent) -> None:
        """Receive an event from whichever source is active."""
        handle = self._handle
        if handle is None:
            logger.debug("Event received while not tracking, ignoring")
            return

        try:
            self.store.append_event(handle, event)
        except NoActiveSessionError as e:
            logger.error(f"Dropping event: {e}")
            return

        self.aggregator.on_event(event)
        self._last_event = event

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event callback error: {e}")

    # ==================== Elapsed Clock ====================

    def _start_clock(self) -> None:
        self._clock_stop = asyncio.Event()
        self._clock_task = asyncio.create_task(self._clock_loop(self._clock_stop))

    async def _stop_clock(self) -> None:
        if self._clock_stop is not None:
            self._clock_stop.set()
        if self._clock_task is not None:
            await self._clock_task
        self._clock_task = None
        self._clock_stop = None

    async def _clock_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.clock_interval_seconds)
            except asyncio.TimeoutError:
                self.aggregator.on_tick()

    # ==================== Status ====================

    def get_status(self) -> TrackingStatus:
        """Get a snapshot of the current tracking state."""
        session = self.store.active if self.is_tracking else None
        source = self._source
        return TrackingStatus(
            timestamp=self.clock(),
            tracking=self.is_tracking,
            loop_state=source.state if source else LoopState.IDLE,
            source=source.source if source else None,
            session_id=session.id if session else None,
            session_start=session.start_time if session else None,
            sensitivity=self._sensitivity if self.is_tracking else None,
            alert_level=self.alert_level,
            stats=self.aggregator.stats,
            last_event=self._last_event,
        )

    def get_events(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Events of the current (or last) session, newest first."""
        events = list(reversed(self.aggregator.events))
        if limit:
            events = events[:limit]
        return [e.to_dict() for e in events]

    async def _log_system_event(self, event_type: str, message: str,
                                metadata: Optional[Dict[str, Any]] = None) -> None:
        if self.database is None:
            return
        try:
            await self.database.log_event(event_type, message, metadata)
        except Exception as e:
            logger.error(f"Failed to log system event: {e}")


def build_controller(settings, database, notifier: Optional[NotificationCenter] = None,
                     audio_input=None) -> TrackingController:
    """Create a TrackingController wired from settings.

    Args:
        settings: Root Settings object
        database: Initialized Database (persistence backend)
        notifier: Notification center (default: new one)
        audio_input: Audio input override (default: from settings)
    """
    notifier = notifier or NotificationCenter(settings.tracking.max_notifications)
    detection = settings.detection

    pipeline = DetectionPipeline(
        classifier=get_classifier(
            detection.classifier,
            seed=detection.random_seed,
            min_duration_seconds=detection.min_snapshot_seconds,
        )
    )
    detection_loop = DetectionLoop(
        audio_input or get_audio_input(settings),
        pipeline,
        interval_seconds=detection.tick_interval_seconds,
        tick_timeout_seconds=settings.tick_timeout_seconds,
    )
    synthetic = SyntheticEventSource(
        interval_seconds=detection.synthetic_interval_seconds,
        seed=detection.random_seed,
    )

    return TrackingController(
        detection_loop=detection_loop,
        synthetic=synthetic,
        store=SessionStore(settings.session_state_file),
        sink=PersistenceSink(database, notifier),
        notifier=notifier,
        user_settings=UserSettingsStore(settings.user_settings_file),
        owner_id=settings.tracking.owner_id,
        clock_interval_seconds=settings.tracking.clock_interval_seconds,
        database=database,
    )
