# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Automatic tracking on a schedule.

When the user selects auto detection mode, tracking is started inside the
schedule window and stopped outside it. The window is checked once per
`check_interval_seconds`.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sleepguard.errors import SessionAlreadyActiveError
from sleepguard.tracking import TrackingController
from sleepguard.user_settings import DetectionMode, UserSettingsStore

logger = logging.getLogger(__name__)


class AutoScheduler:
    """Starts and stops tracking according to the user's schedule."""

    def __init__(
        self,
        controller: TrackingController,
        user_settings: UserSettingsStore,
        check_interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.controller = controller
        self.user_settings = user_settings
        self.check_interval_seconds = check_interval_seconds
        self.clock = clock

        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def check(self, now: Optional[datetime] = None) -> Optional[str]:
        """Apply the schedule once.

        Returns:
            "started", "stopped", or None if nothing changed
        """
        settings = self.user_settings.settings
        if settings.detection_mode != DetectionMode.AUTO:
            return None

        now = now or self.clock()
        in_window = settings.schedule.is_active(now)

        if in_window and not self.controller.is_tracking:
            try:
                await self.controller.start_tracking()
            except SessionAlreadyActiveError:
                return None
            logger.info(f"Scheduled tracking started at {now:%H:%M}")
            return "started"

        if not in_window and self.controller.is_tracking:
            await self.controller.stop_tracking()
            logger.info(f"Scheduled tracking stopped at {now:%H:%M}")
            return "stopped"

        return None

    async def run(self) -> None:
        """Check the schedule periodically until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info(f"Auto scheduler running (every {self.check_interval_seconds}s)")

        while self._running:
            try:
                await self.check()
            except Exception as e:
                logger.error(f"Error in schedule check: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.check_interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Auto scheduler stopped")

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()
