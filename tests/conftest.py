# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Pytest configuration and fixtures for SleepGuard tests."""

import pytest

from sleepguard.detection.classifier import RuleBasedClassifier
from sleepguard.detection.loop import DetectionLoop
from sleepguard.detection.pipeline import DetectionPipeline
from sleepguard.detection.synthetic import SyntheticEventSource
from sleepguard.notifications import NotificationCenter
from sleepguard.persistence.sink import PersistenceSink
from sleepguard.session.store import SessionStore
from sleepguard.tracking import TrackingController
from sleepguard.user_settings import UserSettingsStore
from tests.fakes import FakeAudioInput, FakeClock, InMemoryBackend

# Short periods so timer-driven tests finish quickly
TEST_TICK_SECONDS = 0.02


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line("markers", "unit: Unit tests for a single component")
    config.addinivalue_line(
        "markers", "integration: Tests combining the loop, aggregator, store and sink"
    )
    config.addinivalue_line("markers", "api: HTTP API tests")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return NotificationCenter(max_notices=20)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def user_settings(tmp_path):
    return UserSettingsStore(tmp_path / "user_settings.yaml")


@pytest.fixture
def audio_input():
    return FakeAudioInput()


@pytest.fixture
def make_controller(tmp_path, notifier, backend, user_settings):
    """Factory for controllers with fast timers and in-memory persistence."""

    def _make(audio=None, persistence=None, seed=7):
        audio = audio or FakeAudioInput()
        loop = DetectionLoop(
            audio,
            DetectionPipeline(classifier=RuleBasedClassifier()),
            interval_seconds=TEST_TICK_SECONDS,
            tick_timeout_seconds=1.0,
        )
        synthetic = SyntheticEventSource(interval_seconds=TEST_TICK_SECONDS, seed=seed)
        return TrackingController(
            detection_loop=loop,
            synthetic=synthetic,
            store=SessionStore(tmp_path / "current_session.json"),
            sink=PersistenceSink(persistence or backend, notifier),
            notifier=notifier,
            user_settings=user_settings,
            owner_id="tester",
            clock_interval_seconds=TEST_TICK_SECONDS,
            database=persistence or backend,
        )

    return _make
