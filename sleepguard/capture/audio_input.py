# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Microphone capture through ALSA's arecord.

arecord streams raw 16-bit mono PCM to stdout. A reader task keeps the most
recent window of samples in a ring buffer (served by snapshot()) and,
optionally, streams the whole capture to a temporary WAV file for upload
once tracking stops.

Acquisition errors are split so the caller can decide how to react:
    PermissionDeniedError    - the user lacks access to the device
    DeviceUnavailableError   - device busy, missing, or arecord not installed
"""

import asyncio
import logging
import os
import tempfile
import wave
from pathlib import Path
from typing import Optional

import numpy as np

from sleepguard.errors import DeviceUnavailableError, PermissionDeniedError
from sleepguard.models.detection import AudioSnapshot
from sleepguard.models.session import RecordingBlob

logger = logging.getLogger(__name__)

INT16_FULL_SCALE = 32768.0  # 2^15, maps int16 to roughly [-1.0, 1.0)
SAMPLE_WIDTH_BYTES = 2

# Under recordings_dir, so finished captures move into place without a copy
PARTIAL_RECORDINGS_DIR = ".partial"

# stderr fragments from arecord and what they mean
DEVICE_ERROR_HINTS = {
    "Device or resource busy": "Audio device is in use by another process",
    "No such file or directory": "Audio device not found. Check with 'arecord -l'",
    "No such device": "Audio device not found. Check with 'arecord -l'",
}
PERMISSION_ERROR_HINT = (
    "No permission to access audio device. Add user to audio group: "
    "'sudo usermod -a -G audio $USER'"
)


class BufferedAudioInput:
    """Ring buffer and capture retention shared by audio inputs.

    The retained capture is streamed to a temporary WAV file as it arrives,
    so memory use does not grow with session length.

    Attributes:
        sample_rate: Samples per second
        snapshot_seconds: Length of the window returned by snapshot()
        retain_recording: Keep the full capture for recording()
        recording_dir: Where temporary capture files are written (default: system temp)
    """

    def __init__(self, sample_rate: int = 16000, snapshot_seconds: float = 2.0,
                 retain_recording: bool = True, recording_dir: Optional[Path] = None):
        self.sample_rate = sample_rate
        self.snapshot_seconds = snapshot_seconds
        self.retain_recording = retain_recording
        self.recording_dir = Path(recording_dir) if recording_dir else None

        self._max_samples = max(1, int(sample_rate * snapshot_seconds))
        self._buffer = np.zeros(0, dtype=np.float32)
        self._wav: Optional[wave.Wave_write] = None
        self._wav_path: Optional[Path] = None
        self._recorded_frames = 0
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def _reset_buffers(self) -> None:
        self._buffer = np.zeros(0, dtype=np.float32)
        self._discard_recording()

    def _discard_recording(self) -> None:
        """Drop an uncollected capture file."""
        self._close_recording()
        if self._wav_path is not None:
            self._wav_path.unlink(missing_ok=True)
            self._wav_path = None
        self._recorded_frames = 0

    def _open_recording(self) -> None:
        if self.recording_dir is not None:
            self.recording_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="capture-", suffix=".wav", dir=self.recording_dir)
        os.close(fd)
        self._wav_path = Path(name)
        self._wav = wave.open(name, "wb")
        self._wav.setnchannels(1)
        self._wav.setsampwidth(SAMPLE_WIDTH_BYTES)
        self._wav.setframerate(self.sample_rate)

    def _close_recording(self) -> None:
        if self._wav is not None:
            self._wav.close()
            self._wav = None

    def _ingest_pcm(self, pcm: bytes) -> None:
        """Add little-endian int16 PCM to the ring buffer (and recording)."""
        samples = np.frombuffer(pcm, dtype="<i2").astype(np.float32) / INT16_FULL_SCALE
        self._buffer = np.concatenate((self._buffer, samples))[-self._max_samples:]
        if not self.retain_recording:
            return
        try:
            if self._wav is None:
                self._open_recording()
            self._wav.writeframesraw(pcm)
            self._recorded_frames += len(pcm) // SAMPLE_WIDTH_BYTES
        except OSError as e:
            logger.error(f"Failed to write capture to disk, recording disabled: {e}")
            self.retain_recording = False
            self._discard_recording()

    def snapshot(self) -> AudioSnapshot:
        """Copy of the most recent audio window."""
        return AudioSnapshot(samples=self._buffer.copy(), sample_rate=self.sample_rate)

    def recording(self) -> Optional[RecordingBlob]:
        """Hand over the retained capture, or None if nothing was kept.

        Closes the capture file and transfers it to the returned blob; a
        second call returns None. Blocking, so call it off the event loop.
        """
        self._close_recording()
        path, frames = self._wav_path, self._recorded_frames
        self._wav_path = None
        self._recorded_frames = 0
        if path is None:
            return None
        if frames == 0:
            path.unlink(missing_ok=True)
            return None
        return RecordingBlob(path=path, duration_seconds=frames / float(self.sample_rate))


class ArecordAudioInput(BufferedAudioInput):
    """Captures audio from an ALSA device via an arecord subprocess."""

    def __init__(
        self,
        device: str = "default",
        sample_rate: int = 16000,
        snapshot_seconds: float = 2.0,
        retain_recording: bool = True,
        recording_dir: Optional[Path] = None,
        chunk_bytes: int = 4096,
        acquire_attempts: int = 5,
        acquire_retry_seconds: float = 0.5,
        startup_grace_seconds: float = 0.3,
    ):
        super().__init__(sample_rate, snapshot_seconds, retain_recording, recording_dir)
        self.device = device
        self.chunk_bytes = chunk_bytes
        self.acquire_attempts = max(1, acquire_attempts)
        self.acquire_retry_seconds = acquire_retry_seconds
        self.startup_grace_seconds = startup_grace_seconds

        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._leftover = b""

        logger.info(f"ArecordAudioInput initialized (device: {device}, rate: {sample_rate})")

    def _command(self):
        return [
            "arecord",
            "-D", self.device,
            "-f", "S16_LE",
            "-c", "1",
            "-r", str(self.sample_rate),
            "-t", "raw",
            "-q",
        ]

    async def acquire(self) -> None:
        """Start capturing.

        A busy or missing device is retried; a permission error is not.

        Raises:
            PermissionDeniedError: If access to the device is refused
            DeviceUnavailableError: If the device stays unavailable
        """
        if self._active:
            return

        last_error: Optional[DeviceUnavailableError] = None
        for attempt in range(1, self.acquire_attempts + 1):
            try:
                await self._start_process()
                return
            except DeviceUnavailableError as e:
                last_error = e
                logger.warning(
                    f"Audio device unavailable (attempt {attempt}/{self.acquire_attempts}): {e}"
                )
                if attempt < self.acquire_attempts:
                    await asyncio.sleep(self.acquire_retry_seconds)

        raise last_error

    async def _start_process(self) -> None:
        cmd = self._command()
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise DeviceUnavailableError(
                "arecord command not found. Install alsa-utils: sudo apt-get install alsa-utils"
            )
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot run arecord: {e}")

        try:
            await asyncio.wait_for(proc.wait(), timeout=self.startup_grace_seconds)
        except asyncio.TimeoutError:
            # Still running after the grace period: device is ours
            self._process = proc
            self._leftover = b""
            self._reset_buffers()
            self._active = True
            self._reader_task = asyncio.create_task(self._read_loop(proc))
            logger.info(f"Audio capture started on {self.device}")
            return

        stderr_msg = ""
        if proc.stderr:
            stderr_msg = (await proc.stderr.read()).decode(errors="ignore").strip()
        raise self._classify_failure(proc.returncode, stderr_msg)

    def _classify_failure(self, returncode: Optional[int], stderr_msg: str) -> Exception:
        """Map an arecord startup failure to an acquisition error."""
        if "Permission denied" in stderr_msg:
            return PermissionDeniedError(f"{PERMISSION_ERROR_HINT} ({stderr_msg})")

        hint = ""
        for key, message in DEVICE_ERROR_HINTS.items():
            if key in stderr_msg:
                hint = f" {message}."
                break
        return DeviceUnavailableError(
            f"arecord exited with code {returncode}. Device: {self.device}. "
            f"Error: {stderr_msg or 'none'}.{hint}"
        )

    async def _read_loop(self, proc: asyncio.subprocess.Process) -> None:
        """Pump PCM from arecord into the buffers until EOF."""
        while True:
            chunk = await proc.stdout.read(self.chunk_bytes)
            if not chunk:
                break
            data = self._leftover + chunk
            usable = len(data) - (len(data) % SAMPLE_WIDTH_BYTES)
            self._leftover = data[usable:]
            if usable:
                self._ingest_pcm(data[:usable])

        if self._process is proc:
            logger.warning("arecord stream ended unexpectedly")

    async def release(self) -> None:
        """Stop capturing. Safe to call when not capturing."""
        proc = self._process
        self._process = None
        self._active = False
        if proc is None:
            return

        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("arecord did not exit, killing it")
                proc.kill()
                await proc.wait()

        if self._reader_task is not None:
            try:
                await asyncio.wait_for(self._reader_task, timeout=2.0)
            except asyncio.TimeoutError:
                self._reader_task.cancel()
            self._reader_task = None

        logger.info("Audio capture stopped")


def get_audio_input(settings):
    """Create the audio input for the configured mode.

    Args:
        settings: Root Settings object
    """
    audio = settings.audio
    recording_dir = Path(settings.recordings_dir) / PARTIAL_RECORDINGS_DIR
    if settings.mock_mode:
        from sleepguard.mocks import MockAudioInput
        logger.info("Using mock audio input")
        return MockAudioInput(
            sample_rate=audio.sample_rate,
            snapshot_seconds=audio.snapshot_seconds,
            retain_recording=audio.retain_recording,
            recording_dir=recording_dir,
        )

    return ArecordAudioInput(
        device=audio.device,
        sample_rate=audio.sample_rate,
        snapshot_seconds=audio.snapshot_seconds,
        retain_recording=audio.retain_recording,
        recording_dir=recording_dir,
        chunk_bytes=audio.chunk_bytes,
        acquire_attempts=audio.acquire_attempts,
        acquire_retry_seconds=audio.acquire_retry_seconds,
        startup_grace_seconds=audio.startup_grace_seconds,
    )
