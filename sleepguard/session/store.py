# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Session store: the single active-session slot.

At most one session is active at a time. The slot is an explicit Optional
owned by the store; starting a second session while one is active is an
error the caller can check for.

The slot is mirrored to a JSON state file under CURRENT_SESSION_KEY so an
interrupted session can be restored after a restart. Ending a session
clears both the slot and the file before the finalized record is handed
to persistence.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from sleepguard.errors import NoActiveSessionError, SessionAlreadyActiveError
from sleepguard.models.detection import DetectionEvent, EventSource
from sleepguard.models.session import ActiveSession, FinalizedSession, SessionHandle

logger = logging.getLogger(__name__)

CURRENT_SESSION_KEY = "sleepguard-current-session"


def finalize_session(session: ActiveSession, end_time: datetime) -> FinalizedSession:
    """Build the closed record for a session.

    Pure: the same session and end time always produce an equal result.
    """
    return session.finalize(end_time)


class SessionStore:
    """Owns the active session slot.

    Attributes:
        state_file: Optional JSON file mirroring the slot
    """

    def __init__(self, state_file: Optional[Path] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.state_file = Path(state_file) if state_file else None
        self.clock = clock
        self._active: Optional[ActiveSession] = None

    @property
    def active(self) -> Optional[ActiveSession]:
        return self._active

    @property
    def active_handle(self) -> Optional[SessionHandle]:
        return self._active.handle if self._active else None

    @property
    def has_active_session(self) -> bool:
        return self._active is not None

    def start_session(self, start_time: Optional[datetime] = None,
                      source: EventSource = EventSource.AUDIO) -> SessionHandle:
        """Open a new session.

        Raises:
            SessionAlreadyActiveError: If a session is already active
        """
        if self._active is not None:
            raise SessionAlreadyActiveError(f"Session {self._active.id} is already active")

        self._active = ActiveSession(start_time=start_time or self.clock(), source=source)
        self._save()
        logger.info(f"Session {self._active.id} started")
        return self._active.handle

    def set_source(self, handle: SessionHandle, source: EventSource) -> None:
        """Record where the session's events come from."""
        session = self._require(handle)
        session.source = source
        self._save()

    def append_event(self, handle: SessionHandle, event: DetectionEvent) -> None:
        """Append an event to the active session's log.

        Raises:
            NoActiveSessionError: If `handle` is not the active session
        """
        session = self._require(handle)
        session.events.append(event)
        self._save()

    def end_session(self, handle: Optional[SessionHandle] = None,
                    end_time: Optional[datetime] = None) -> Optional[FinalizedSession]:
        """Close the active session and clear the slot.

        Args:
            handle: Session to end (None ends whichever is active)
            end_time: Defaults to now

        Returns:
            FinalizedSession, or None (with no side effects) when there is
            no matching active session
        """
        session = self._active
        if session is None or (handle is not None and handle.session_id != session.id):
            logger.warning("end_session called with no matching active session")
            return None

        finalized = finalize_session(session, end_time or self.clock())
        self._active = None
        self._clear()
        logger.info(
            f"Session {finalized.id} ended ({finalized.duration_minutes:.1f} min, "
            f"{finalized.stats.total_events} events)"
        )
        return finalized

    def restore(self) -> Optional[SessionHandle]:
        """Reload an active session left in the state file.

        Returns:
            Handle of the restored session, or None
        """
        if self._active is not None:
            return self._active.handle
        if self.state_file is None or not self.state_file.exists():
            return None

        try:
            with open(self.state_file) as f:
                data = json.load(f)
            record = data.get(CURRENT_SESSION_KEY)
            if not record:
                return None
            self._active = ActiveSession.from_dict(record)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to restore session from {self.state_file}: {e}")
            return None

        logger.info(
            f"Restored session {self._active.id} "
            f"({len(self._active.events)} events, started {self._active.start_time})"
        )
        return self._active.handle

    def _require(self, handle: SessionHandle) -> ActiveSession:
        if self._active is None or handle.session_id != self._active.id:
            raise NoActiveSessionError(f"Session {handle.session_id} is not active")
        return self._active

    def _save(self) -> None:
        if self.state_file is None or self._active is None:
            return
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.state_file, "w") as f:
                json.dump({CURRENT_SESSION_KEY: self._active.to_dict()}, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save session state: {e}")

    def _clear(self) -> None:
        if self.state_file is None:
            return
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to clear session state: {e}")
