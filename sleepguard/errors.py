# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Exception types shared across SleepGuard components."""


class SleepGuardError(Exception):
    """Base class for SleepGuard errors."""


class AudioAcquisitionError(SleepGuardError):
    """The audio input could not be acquired."""


class PermissionDeniedError(AudioAcquisitionError):
    """Access to the audio device was refused."""


class DeviceUnavailableError(AudioAcquisitionError):
    """The audio device is missing, busy, or otherwise unusable."""


class SessionAlreadyActiveError(SleepGuardError):
    """A tracking session is already in progress."""


class NoActiveSessionError(SleepGuardError):
    """The referenced session is not the active session."""
