# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Mock hardware implementations for testing without a microphone.

MockAudioInput synthesizes breathing audio and feeds it through the same
buffers as the real arecord input, so the full detection pipeline runs
unchanged.

Enable mock mode by:
- Setting MOCK_HARDWARE=true environment variable, OR
- Setting mock_mode: true in config.yaml, OR
- Passing --mock on the command line
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Optional

import numpy as np

from sleepguard.capture.audio_input import INT16_FULL_SCALE, BufferedAudioInput
from sleepguard.errors import DeviceUnavailableError, PermissionDeniedError

logger = logging.getLogger(__name__)


class MockAudioInput(BufferedAudioInput):
    """Simulated microphone producing breathing sounds.

    Breathing is band-limited noise under a slow inhale/exhale envelope.
    Every `pause_every_seconds` the breathing stops for `pause_seconds`,
    with a short gasp at the end of the pause.

    The mock can be controlled to:
    - Refuse acquisition with a permission error
    - Refuse acquisition because the device is busy
    - Hold a breathing pause until released
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        snapshot_seconds: float = 2.0,
        retain_recording: bool = True,
        recording_dir: Optional[Path] = None,
        breaths_per_minute: float = 15.0,
        pause_every_seconds: float = 60.0,
        pause_seconds: float = 15.0,
        feed_interval_seconds: float = 0.1,
        seed: Optional[int] = None,
    ):
        super().__init__(sample_rate, snapshot_seconds, retain_recording, recording_dir)
        self.breaths_per_minute = breaths_per_minute
        self.pause_every_seconds = pause_every_seconds
        self.pause_seconds = pause_seconds
        self.feed_interval_seconds = feed_interval_seconds

        self._rng = np.random.default_rng(seed)
        self._position = 0  # Samples generated since acquire
        self._feeder_task: Optional[asyncio.Task] = None

        # Simulation controls
        self._simulate_permission_denied = False
        self._simulate_device_busy = False
        self._simulate_apnea = False

        logger.info(f"MockAudioInput initialized (rate: {sample_rate})")

    # ==================== Simulation Controls ====================

    def simulate_permission_denied(self, enabled: bool = True) -> None:
        self._simulate_permission_denied = enabled
        logger.info(f"MockAudioInput: Permission denied simulation {'on' if enabled else 'off'}")

    def simulate_device_busy(self, enabled: bool = True) -> None:
        self._simulate_device_busy = enabled
        logger.info(f"MockAudioInput: Device busy simulation {'on' if enabled else 'off'}")

    def simulate_apnea(self, enabled: bool = True) -> None:
        """Hold (or release) a breathing pause."""
        self._simulate_apnea = enabled
        logger.info(f"MockAudioInput: Apnea simulation {'on' if enabled else 'off'}")

    # ==================== Audio Input Interface ====================

    async def acquire(self) -> None:
        """Start the simulated capture.

        Raises:
            PermissionDeniedError: When simulating a refused permission
            DeviceUnavailableError: When simulating a busy device
        """
        if self._simulate_permission_denied:
            raise PermissionDeniedError("Permission denied (simulated)")
        if self._simulate_device_busy:
            raise DeviceUnavailableError("Device or resource busy (simulated)")
        if self._active:
            return

        self._reset_buffers()
        self._position = 0
        self._active = True
        # Prime one snapshot's worth so the first tick has data
        self._ingest_pcm(self.generate(int(self.sample_rate * self.snapshot_seconds)))
        self._feeder_task = asyncio.create_task(self._feed_loop())
        logger.info("MockAudioInput: Capture started (simulated)")

    async def release(self) -> None:
        self._active = False
        if self._feeder_task is not None:
            self._feeder_task.cancel()
            try:
                await self._feeder_task
            except asyncio.CancelledError:
                pass
            self._feeder_task = None
        logger.info("MockAudioInput: Capture stopped")

    async def _feed_loop(self) -> None:
        chunk = max(1, int(self.sample_rate * self.feed_interval_seconds))
        while self._active:
            await asyncio.sleep(self.feed_interval_seconds)
            self._ingest_pcm(self.generate(chunk))

    # ==================== Signal Generation ====================

    def _in_pause(self, t: np.ndarray) -> np.ndarray:
        if self._simulate_apnea:
            return np.ones_like(t, dtype=bool)
        if self.pause_every_seconds <= 0:
            return np.zeros_like(t, dtype=bool)
        phase = np.mod(t, self.pause_every_seconds)
        return phase >= (self.pause_every_seconds - self.pause_seconds)

    def generate(self, num_samples: int) -> bytes:
        """Generate the next `num_samples` of int16 PCM."""
        t = (self._position + np.arange(num_samples)) / float(self.sample_rate)
        self._position += num_samples

        breath_hz = self.breaths_per_minute / 60.0
        envelope = np.clip(np.sin(2 * math.pi * breath_hz * t), 0.0, None)
        noise = self._rng.normal(0.0, 1.0, num_samples)
        # Smooth the noise a little so energy sits in the breathing band
        noise = np.convolve(noise, np.ones(8) / 8.0, mode="same")
        signal = 0.25 * envelope * noise

        pause = self._in_pause(t)
        signal[pause] = self._rng.normal(0.0, 0.002, int(pause.sum()))

        if not self._simulate_apnea and self.pause_every_seconds > 0:
            # Gasp in the first half second after a pause ends
            phase = np.mod(t, self.pause_every_seconds)
            gasp = phase < 0.5
            signal[gasp] += self._rng.normal(0.0, 0.4, int(gasp.sum()))

        pcm = np.clip(signal * INT16_FULL_SCALE, -INT16_FULL_SCALE, INT16_FULL_SCALE - 1)
        return pcm.astype("<i2").tobytes()
