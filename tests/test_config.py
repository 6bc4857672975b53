# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for configuration loading."""

import logging

import pytest

from sleepguard import config
from sleepguard.config import (
    MIN_TICK_INTERVAL_SECONDS,
    Settings,
    get_settings,
    load_settings,
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run each test from an empty directory with no global settings."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_settings", None)
    monkeypatch.delenv("MOCK_HARDWARE", raising=False)


def _write(path, text):
    path.write_text(text)
    return path


@pytest.mark.unit
class TestLoadSettings:
    def test_defaults_without_config_file(self, tmp_path):
        settings = load_settings(base_path=tmp_path)

        assert settings.mock_mode is False
        assert settings.audio.sample_rate == 16000
        assert settings.detection.tick_interval_seconds == 1.0
        assert settings.server.port == 8200
        assert settings.tick_timeout_seconds == settings.detection.tick_interval_seconds
        assert get_settings() is settings

    def test_yaml_values(self, tmp_path):
        _write(tmp_path / "config.yaml", (
            "audio:\n"
            "  device: hw:1,0\n"
            "detection:\n"
            "  classifier: random\n"
            "  tick_interval_seconds: 0.5\n"
            "  tick_timeout_seconds: 2.0\n"
            "data_dir: /var/lib/sleepguard\n"
        ))

        settings = load_settings(base_path=tmp_path)

        assert settings.audio.device == "hw:1,0"
        assert settings.detection.classifier == "random"
        assert settings.tick_timeout_seconds == 2.0
        assert str(settings.database_path) == "/var/lib/sleepguard/sleepguard.db"

    def test_local_config_takes_priority(self, tmp_path):
        _write(tmp_path / "config.yaml", "server:\n  port: 9000\n")
        _write(tmp_path / "config.local.yaml", "server:\n  port: 9100\n")

        assert load_settings(base_path=tmp_path).server.port == 9100

    def test_explicit_path_must_exist(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "missing.yaml"), base_path=tmp_path)

    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SLEEPGUARD_TEST_OWNER", "night-owl")
        config_file = _write(tmp_path / "custom.yaml", "tracking:\n  owner_id: ${SLEEPGUARD_TEST_OWNER}\n")

        settings = load_settings(str(config_file), base_path=tmp_path)

        assert settings.tracking.owner_id == "night-owl"

    def test_dotenv_file_feeds_substitution(self, tmp_path, monkeypatch):
        # Recorded so the variable is removed again after the test
        monkeypatch.setenv("SLEEPGUARD_DOTENV_DEVICE", "unused")
        monkeypatch.delenv("SLEEPGUARD_DOTENV_DEVICE")
        _write(tmp_path / ".env", "SLEEPGUARD_DOTENV_DEVICE=plughw:2,0\n")
        _write(tmp_path / "config.yaml", "audio:\n  device: ${SLEEPGUARD_DOTENV_DEVICE}\n")

        assert load_settings(base_path=tmp_path).audio.device == "plughw:2,0"

    def test_missing_env_var_becomes_empty(self, tmp_path, monkeypatch, caplog):
        monkeypatch.delenv("SLEEPGUARD_NOT_SET", raising=False)
        _write(tmp_path / "config.yaml", "tracking:\n  owner_id: \"${SLEEPGUARD_NOT_SET}\"\n")

        with caplog.at_level(logging.WARNING):
            settings = load_settings(base_path=tmp_path)

        assert settings.tracking.owner_id == ""
        assert "SLEEPGUARD_NOT_SET" in caplog.text

    @pytest.mark.parametrize("value", ["true", "1", "yes"])
    def test_mock_hardware_override(self, tmp_path, monkeypatch, value):
        monkeypatch.setenv("MOCK_HARDWARE", value)
        _write(tmp_path / "config.yaml", "mock_mode: false\n")

        assert load_settings(base_path=tmp_path).mock_mode is True


@pytest.mark.unit
class TestValidation:
    def test_tick_interval_clamped(self, tmp_path):
        _write(tmp_path / "config.yaml", "detection:\n  tick_interval_seconds: 0.01\n")

        settings = load_settings(base_path=tmp_path)

        assert settings.detection.tick_interval_seconds == MIN_TICK_INTERVAL_SECONDS

    def test_bad_values_replaced(self, tmp_path):
        _write(tmp_path / "config.yaml", (
            "audio:\n"
            "  snapshot_seconds: 0\n"
            "  acquire_attempts: 0\n"
            "detection:\n"
            "  classifier: neural\n"
            "  tick_timeout_seconds: -1\n"
            "tracking:\n"
            "  owner_id: ../shared\n"
        ))

        settings = load_settings(base_path=tmp_path)

        assert settings.audio.snapshot_seconds == 2.0
        assert settings.audio.acquire_attempts == 1
        assert settings.detection.classifier == "rule"
        assert settings.detection.tick_timeout_seconds is None
        assert settings.tracking.owner_id == "local"

    def test_ensure_directories(self, tmp_path):
        settings = Settings(data_dir=tmp_path / "data")
        settings.ensure_directories()

        assert settings.data_dir.is_dir()
        assert settings.recordings_dir.is_dir()
