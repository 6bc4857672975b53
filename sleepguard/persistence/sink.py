# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Fire-and-forget hand-off of finished sessions to persistence.

submit() schedules the writes as a background task and returns at once, so
stopping a session never waits on storage. Failures are reported to the
user through the notification center; they are not retried and never touch
in-memory session state.
"""

import asyncio
import logging
from typing import Optional, Protocol, Set

from sleepguard.models.detection import DetectionEvent
from sleepguard.models.session import FinalizedSession, RecordingBlob, SessionStats
from sleepguard.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Persistence operations used by the sink (implemented by Database)."""

    async def create_session(self, owner_id: str, start_time=None, source: str = "audio",
                             session_id: Optional[str] = None) -> str:
        ...

    async def append_event(self, session_id: str, event: DetectionEvent) -> int:
        ...

    async def finalize_session(self, session_id: str, stats: SessionStats,
                               end_time=None, duration_minutes: Optional[float] = None) -> bool:
        ...

    async def upload_audio(self, owner_id: str, blob: RecordingBlob,
                           duration_seconds: Optional[float] = None,
                           session_id: Optional[str] = None) -> str:
        ...


class PersistenceSink:
    """Hands finalized sessions and recordings to a backend in the background."""

    def __init__(self, backend: SessionBackend, notifier: NotificationCenter):
        self.backend = backend
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(
        self,
        session: FinalizedSession,
        owner_id: str,
        recording: Optional[RecordingBlob] = None,
    ) -> asyncio.Task:
        """Schedule persistence of a finalized session; does not wait for it."""
        task = asyncio.create_task(
            self._persist(session, owner_id, recording),
            name=f"persist-{session.id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for outstanding hand-offs to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _persist(
        self,
        session: FinalizedSession,
        owner_id: str,
        recording: Optional[RecordingBlob],
    ) -> bool:
        saved = await self._persist_session(session, owner_id)
        if recording is not None:
            saved = await self._persist_recording(session, owner_id, recording) and saved
        return saved

    async def _persist_session(self, session: FinalizedSession, owner_id: str) -> bool:
        try:
            session_id = await self.backend.create_session(
                owner_id,
                start_time=session.start_time,
                source=session.source.value,
                session_id=session.id,
            )
            for event in session.events:
                await self.backend.append_event(session_id, event)
            await self.backend.finalize_session(
                session_id,
                session.stats,
                end_time=session.end_time,
                duration_minutes=session.duration_minutes,
            )
        except Exception as e:
            logger.error(f"Failed to persist session {session.id}: {e}")
            self.notifier.error(
                "Session not saved",
                "Your session data may not be saved. The results shown are kept "
                "for this run only.",
            )
            return False

        logger.info(f"Session {session.id} persisted ({len(session.events)} events)")
        return True

    async def _persist_recording(
        self,
        session: FinalizedSession,
        owner_id: str,
        recording: RecordingBlob,
    ) -> bool:
        try:
            recording_id = await self.backend.upload_audio(
                owner_id,
                recording,
                duration_seconds=recording.duration_seconds,
                session_id=session.id,
            )
        except Exception as e:
            logger.error(f"Failed to upload recording for session {session.id}: {e}")
            try:
                recording.discard()
            except OSError as discard_error:
                logger.error(f"Failed to delete capture file {recording.path}: {discard_error}")
            self.notifier.warning(
                "Recording not saved",
                "The audio recording for this session could not be uploaded.",
            )
            return False

        self.notifier.info(
            "Recording saved",
            f"Recording saved ({recording.duration_seconds:.0f} seconds).",
        )
        logger.info(f"Recording {recording_id} uploaded for session {session.id}")
        return True
