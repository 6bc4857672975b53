# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Configuration management for SleepGuard.

Uses Pydantic Settings for environment variable and .env file support.
An optional YAML config file can supply the same values; ${VAR} references
inside it are substituted from the environment.

Example environment variables:
    SLEEPGUARD_SERVER__PORT=8200
    SLEEPGUARD_DETECTION__TICK_INTERVAL_SECONDS=1.0
    SLEEPGUARD_AUDIO__DEVICE=hw:1,0
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default config file locations (in order of priority)
CONFIG_PATHS = [
    "config.local.yaml",  # Local overrides (not in git)
    "config.yaml",        # Default config
]

# Fastest tick the detection loop may run at
MIN_TICK_INTERVAL_SECONDS = 0.2

# Owner IDs name a directory under the recordings dir
OWNER_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class AudioSettings(BaseSettings):
    """Microphone capture settings."""

    model_config = SettingsConfigDict(env_prefix="SLEEPGUARD_AUDIO_")

    device: str = Field(
        default="default",
        description="ALSA capture device passed to arecord (-D)"
    )
    sample_rate: int = Field(
        default=16000,
        description="Capture sample rate in Hz"
    )
    snapshot_seconds: float = Field(
        default=2.0,
        description="Length of the audio window handed to each detection tick"
    )
    chunk_bytes: int = Field(
        default=4096,
        description="Bytes read from arecord per read call"
    )
    retain_recording: bool = Field(
        default=True,
        description="Keep the full capture for upload when tracking stops"
    )
    acquire_attempts: int = Field(
        default=5,
        description="Attempts to open a busy/unavailable device before giving up"
    )
    acquire_retry_seconds: float = Field(
        default=0.5,
        description="Delay between acquisition attempts"
    )
    startup_grace_seconds: float = Field(
        default=0.3,
        description="Time arecord must survive before the device counts as acquired"
    )


class DetectionSettings(BaseSettings):
    """Detection loop and classifier settings."""

    model_config = SettingsConfigDict(env_prefix="SLEEPGUARD_DETECTION_")

    classifier: str = Field(
        default="rule",
        description="Classifier implementation: 'rule' or 'random'"
    )
    random_seed: Optional[int] = Field(
        default=None,
        description="Seed for the random classifier and synthetic generator"
    )
    tick_interval_seconds: float = Field(
        default=1.0,
        description="Seconds between detection ticks"
    )
    tick_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Skip a tick whose processing exceeds this (default: tick interval)"
    )
    min_snapshot_seconds: float = Field(
        default=0.25,
        description="Shortest snapshot the classifier will judge"
    )
    synthetic_interval_seconds: float = Field(
        default=1.5,
        description="Seconds between simulated events when no microphone is available"
    )


class TrackingSettings(BaseSettings):
    """Tracking session settings."""

    model_config = SettingsConfigDict(env_prefix="SLEEPGUARD_TRACKING_")

    owner_id: str = Field(
        default="local",
        description="Owner recorded on persisted sessions and recordings"
    )
    clock_interval_seconds: float = Field(
        default=1.0,
        description="Elapsed-time update interval"
    )
    schedule_check_seconds: float = Field(
        default=60.0,
        description="How often the auto scheduler checks the schedule window"
    )
    max_notifications: int = Field(
        default=50,
        description="Number of user notifications kept in memory"
    )


class ServerSettings(BaseSettings):
    """FastAPI server settings."""

    model_config = SettingsConfigDict(env_prefix="SLEEPGUARD_SERVER_")

    host: str = Field(
        default="0.0.0.0",
        description="Host to bind to"
    )
    port: int = Field(
        default=8200,
        description="Port to listen on"
    )
    log_level: str = Field(
        default="info",
        description="Uvicorn logging level"
    )


class LoggingSettings(BaseSettings):
    """Application logging settings."""

    model_config = SettingsConfigDict(env_prefix="SLEEPGUARD_LOGGING_")

    level: str = "INFO"
    file: str = "logs/sleepguard.log"
    max_size_mb: int = 10
    backup_count: int = 5


class Settings(BaseSettings):
    """Root settings for SleepGuard.

    Settings are loaded from environment variables with SLEEPGUARD_ prefix,
    from a .env file, or from a YAML config file via load_settings().
    """

    model_config = SettingsConfigDict(
        env_prefix="SLEEPGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    mock_mode: bool = Field(
        default=False,
        description="Use the simulated microphone instead of arecord"
    )

    # Nested settings
    audio: AudioSettings = Field(default_factory=AudioSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for runtime data (database, recordings, state)"
    )

    @property
    def database_path(self) -> Path:
        """Path to the SQLite history database."""
        return self.data_dir / "sleepguard.db"

    @property
    def recordings_dir(self) -> Path:
        """Directory for uploaded session recordings."""
        return self.data_dir / "recordings"

    @property
    def session_state_file(self) -> Path:
        """JSON file mirroring the active session slot."""
        return self.data_dir / "current_session.json"

    @property
    def user_settings_file(self) -> Path:
        """YAML file holding user-editable settings."""
        return self.data_dir / "user_settings.yaml"

    @property
    def tick_timeout_seconds(self) -> float:
        """Effective per-tick timeout."""
        return self.detection.tick_timeout_seconds or self.detection.tick_interval_seconds

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.recordings_dir.mkdir(parents=True, exist_ok=True)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables.

    Args:
        value: Value to process (can be str, dict, list, or other)

    Returns:
        Value with environment variables substituted
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace_env(match):
            var_name = match.group(1)
            env_value = os.environ.get(var_name, "")
            if not env_value:
                logger.warning(f"Environment variable {var_name} not set")
            return env_value

        return re.sub(pattern, replace_env, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def _find_config_file(config_path: Optional[str], base: Path) -> Optional[Path]:
    """Locate the YAML config file, if any."""
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return config_file

    for path in CONFIG_PATHS:
        candidate = base / path
        if candidate.exists():
            return candidate
    return None


def load_settings(config_path: Optional[str] = None, base_path: Optional[Path] = None) -> Settings:
    """Load settings from the environment and an optional YAML file.

    Values from the YAML file take priority over environment variables.
    The loaded settings become the global instance returned by get_settings().

    Args:
        config_path: Path to config file. If None, searches default locations.
        base_path: Base path for .env and config lookup. Defaults to cwd.

    Returns:
        Settings object

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        yaml.YAMLError: If the config file is invalid YAML
    """
    global _settings

    base = Path(base_path or Path.cwd())

    # Load .env file if present so ${VAR} references resolve
    env_path = base / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded environment from {env_path}")

    config_data = {}
    config_file = _find_config_file(config_path, base)
    if config_file is not None:
        logger.info(f"Loading config from {config_file}")
        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}
        config_data = _substitute_env_vars(raw_config)
    else:
        logger.info("No config file found, using environment and defaults")

    # MOCK_HARDWARE env var forces the simulated microphone
    if os.environ.get("MOCK_HARDWARE", "").lower() in ("true", "1", "yes"):
        logger.info("MOCK_HARDWARE environment variable set - enabling mock mode")
        config_data["mock_mode"] = True

    settings = Settings(**config_data)
    _validate_settings(settings)

    _settings = settings
    return settings


def _validate_settings(settings: Settings) -> None:
    """Clamp out-of-range values, logging a warning for each."""
    detection = settings.detection

    if detection.tick_interval_seconds < MIN_TICK_INTERVAL_SECONDS:
        logger.warning(
            f"detection.tick_interval_seconds must be at least {MIN_TICK_INTERVAL_SECONDS}, "
            f"using {MIN_TICK_INTERVAL_SECONDS}"
        )
        detection.tick_interval_seconds = MIN_TICK_INTERVAL_SECONDS

    if detection.tick_timeout_seconds is not None and detection.tick_timeout_seconds <= 0:
        logger.warning("detection.tick_timeout_seconds must be positive, using tick interval")
        detection.tick_timeout_seconds = None

    if detection.classifier not in ("rule", "random"):
        logger.warning(f"Unknown classifier '{detection.classifier}', using 'rule'")
        detection.classifier = "rule"

    if settings.audio.snapshot_seconds <= 0:
        logger.warning("audio.snapshot_seconds must be positive, using 2.0")
        settings.audio.snapshot_seconds = 2.0

    if settings.audio.acquire_attempts < 1:
        logger.warning("audio.acquire_attempts must be at least 1, using 1")
        settings.audio.acquire_attempts = 1

    if not re.fullmatch(OWNER_ID_PATTERN, settings.tracking.owner_id):
        logger.warning(
            f"tracking.owner_id '{settings.tracking.owner_id}' may only use letters, digits, "
            f"underscore and hyphen, using 'local'"
        )
        settings.tracking.owner_id = "local"


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _validate_settings(_settings)
    return _settings
