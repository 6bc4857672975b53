# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Session statistics and the active-session store."""

from sleepguard.session.aggregator import SessionAggregator, compute_stats, summary_severity_score
from sleepguard.session.store import SessionStore, finalize_session

__all__ = [
    "SessionAggregator",
    "SessionStore",
    "compute_stats",
    "finalize_session",
    "summary_severity_score",
]
