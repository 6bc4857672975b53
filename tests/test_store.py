# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the session store."""

import json

import pytest

from sleepguard.errors import NoActiveSessionError, SessionAlreadyActiveError
from sleepguard.models.detection import EventSource
from sleepguard.models.session import ActiveSession, SessionHandle
from sleepguard.session.store import CURRENT_SESSION_KEY, SessionStore, finalize_session
from tests.fakes import FakeClock, make_event


@pytest.fixture
def store(tmp_path, clock):
    return SessionStore(tmp_path / "current_session.json", clock=clock)


@pytest.mark.unit
class TestSessionStore:
    def test_start_session_returns_handle(self, store):
        handle = store.start_session()

        assert store.has_active_session
        assert store.active_handle == handle

    def test_second_start_is_refused(self, store):
        store.start_session()

        with pytest.raises(SessionAlreadyActiveError):
            store.start_session()

    def test_append_event_requires_active_handle(self, store):
        with pytest.raises(NoActiveSessionError):
            store.append_event(SessionHandle("missing"), make_event())

        store.start_session()
        with pytest.raises(NoActiveSessionError):
            store.append_event(SessionHandle("other"), make_event())

    def test_end_session_computes_duration_and_clears_slot(self, store, clock):
        handle = store.start_session()
        store.append_event(handle, make_event("apnea", 0.8))
        store.append_event(handle, make_event("normal", 0.2))
        clock.advance(90 * 60)

        finalized = store.end_session(handle)

        assert finalized.duration_minutes == pytest.approx(90.0)
        assert finalized.apnea_count == 1
        assert finalized.normal_count == 1
        assert len(finalized.events) == 2
        assert not store.has_active_session
        assert not store.state_file.exists()

    def test_end_session_without_active_session(self, store, tmp_path):
        assert store.end_session() is None
        assert store.end_session(SessionHandle("nope")) is None
        assert not store.state_file.exists()

    def test_end_session_with_stale_handle_leaves_state(self, store):
        handle = store.start_session()
        store.append_event(handle, make_event())
        before = store.state_file.read_text()

        assert store.end_session(SessionHandle("stale")) is None
        assert store.active_handle == handle
        assert store.state_file.read_text() == before

    def test_end_twice_only_finalizes_once(self, store):
        handle = store.start_session()

        assert store.end_session(handle) is not None
        assert store.end_session(handle) is None

    def test_finalized_events_are_frozen(self, store):
        handle = store.start_session()
        store.append_event(handle, make_event())
        finalized = store.end_session(handle)

        assert isinstance(finalized.events, tuple)
        # A new session does not touch the finalized record
        new_handle = store.start_session()
        store.append_event(new_handle, make_event())
        assert len(finalized.events) == 1

    def test_finalize_is_idempotent(self, store, clock):
        handle = store.start_session()
        store.append_event(handle, make_event("apnea", 0.7))
        end_time = clock.advance(60)

        first = finalize_session(store.active, end_time)
        second = finalize_session(store.active, end_time)

        assert first == second

    def test_session_finalize_is_cached_until_next_append(self, clock):
        session = ActiveSession(start_time=clock())
        session.events.append(make_event("apnea", 0.7))
        end_time = clock.advance(120)

        first = session.finalize(end_time)

        assert session.finalize(end_time) is first
        # No end time reuses the cached one
        assert session.finalize() is first
        assert finalize_session(session, end_time) is first

        session.events.append(make_event("normal", 0.3))
        after_append = session.finalize()

        assert after_append is not first
        assert after_append.end_time == end_time
        assert len(after_append.events) == 2
        assert after_append.stats.total_events == 2
        assert first.stats.total_events == 1

    def test_session_finalize_with_new_end_time(self, clock):
        session = ActiveSession(start_time=clock())
        first = session.finalize(clock.advance(60))

        later = session.finalize(clock.advance(60))

        assert later is not first
        assert later.duration_minutes == pytest.approx(2.0)

    def test_state_file_mirrors_active_session(self, store):
        handle = store.start_session(source=EventSource.SYNTHETIC)
        store.append_event(handle, make_event("apnea", 0.9))

        data = json.loads(store.state_file.read_text())
        record = data[CURRENT_SESSION_KEY]
        assert record["id"] == handle.session_id
        assert record["source"] == "synthetic"
        assert len(record["events"]) == 1

    def test_restore_after_restart(self, store, tmp_path, clock):
        handle = store.start_session()
        store.append_event(handle, make_event("apnea", 0.9))

        reopened = SessionStore(store.state_file, clock=clock)
        restored = reopened.restore()

        assert restored == handle
        assert len(reopened.active.events) == 1
        assert reopened.active.start_time == store.active.start_time

    def test_restore_ignores_corrupt_state(self, tmp_path):
        path = tmp_path / "current_session.json"
        path.write_text("{not json")

        store = SessionStore(path, clock=FakeClock())
        assert store.restore() is None
        assert not store.has_active_session

    def test_memory_only_store(self, clock):
        store = SessionStore(clock=clock)
        handle = store.start_session()
        store.append_event(handle, make_event())

        assert store.end_session(handle) is not None
        assert store.restore() is None
