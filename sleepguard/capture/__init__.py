# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Audio capture."""

from sleepguard.capture.audio_input import ArecordAudioInput, get_audio_input

__all__ = ["ArecordAudioInput", "get_audio_input"]
