# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""SleepGuard - breathing audio monitoring for sleep apnea-like events.

Captures microphone audio, classifies short windows as normal or apnea-like
events, aggregates live session statistics, and persists finished sessions.
"""

__version__ = "0.1.0"
