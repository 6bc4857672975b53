# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""API route handlers for SleepGuard."""

from sleepguard.api.routes import (
    health,
    notifications,
    recordings,
    sessions,
    settings_routes,
    status,
    tracking,
)

__all__ = [
    "health", "status", "tracking", "sessions", "recordings", "settings_routes", "notifications",
]
