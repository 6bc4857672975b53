# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""User-visible notices.

Components post short messages here (fallback to simulation, failed
uploads, ...) and the API serves the most recent ones. Every notice is also
written to the log at a matching level.
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    """Notice severity."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


@dataclass
class Notice:
    """One user-visible message."""

    id: int
    level: NoticeLevel
    title: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


class NotificationCenter:
    """Keeps the most recent notices in memory."""

    def __init__(self, max_notices: int = 50):
        self._notices: Deque[Notice] = deque(maxlen=max_notices)
        self._ids = itertools.count(1)

    def notify(self, level: NoticeLevel, title: str, message: str) -> Notice:
        notice = Notice(id=next(self._ids), level=level, title=title, message=message)
        self._notices.append(notice)
        logger.log(_LOG_LEVELS[level], f"{title}: {message}")
        return notice

    def info(self, title: str, message: str) -> Notice:
        return self.notify(NoticeLevel.INFO, title, message)

    def warning(self, title: str, message: str) -> Notice:
        return self.notify(NoticeLevel.WARNING, title, message)

    def error(self, title: str, message: str) -> Notice:
        return self.notify(NoticeLevel.ERROR, title, message)

    def recent(self, limit: Optional[int] = None, since_id: int = 0) -> List[Notice]:
        """Newest-first notices with id greater than `since_id`."""
        notices = [n for n in reversed(self._notices) if n.id > since_id]
        return notices[:limit] if limit else notices

    def clear(self) -> None:
        self._notices.clear()
