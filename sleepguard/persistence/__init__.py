# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Session persistence: SQLite storage and the background hand-off."""

from sleepguard.persistence.database import Database
from sleepguard.persistence.sink import PersistenceSink

__all__ = ["Database", "PersistenceSink"]
