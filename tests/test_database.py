# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the aiosqlite persistence backend."""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from sleepguard.models.detection import EventSource
from sleepguard.persistence.database import Database
from sleepguard.session.aggregator import compute_stats
from tests.fakes import make_blob, make_event

START = datetime(2024, 3, 1, 22, 0, 0)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(str(tmp_path / "db" / "sleepguard.db"))
    await db.initialize()
    yield db
    await db.close()


async def _store_session(db, owner="alice", start=START, labels=("apnea", "normal", "apnea")):
    session_id = await db.create_session(owner, start_time=start, source="audio")
    events = [
        make_event(label, 0.8, timestamp=start + timedelta(seconds=i))
        for i, label in enumerate(labels)
    ]
    for event in events:
        await db.append_event(session_id, event)
    stats = compute_stats(events, elapsed_seconds=3600)
    await db.finalize_session(session_id, stats, end_time=start + timedelta(hours=1),
                              duration_minutes=60.0)
    return session_id


@pytest.mark.unit
class TestDatabase:
    @pytest.mark.asyncio
    async def test_uninitialized_connection_raises(self, tmp_path):
        db = Database(str(tmp_path / "x.db"))
        with pytest.raises(RuntimeError):
            db.connection

    @pytest.mark.asyncio
    async def test_session_lifecycle(self, database):
        session_id = await _store_session(database)

        session = await database.get_session(session_id)
        assert session["owner_id"] == "alice"
        assert session["total_events"] == 3
        assert session["apnea_count"] == 2
        assert session["duration_minutes"] == 60.0
        assert session["end_time"] == (START + timedelta(hours=1)).isoformat()

        events = await database.get_session_events(session_id)
        assert [e["label"] for e in events] == ["apnea", "normal", "apnea"]
        assert all(e["source"] == EventSource.AUDIO.value for e in events)

    @pytest.mark.asyncio
    async def test_explicit_session_id_is_kept(self, database):
        session_id = await database.create_session("alice", session_id="fixed-id")
        assert session_id == "fixed-id"
        assert await database.get_session("fixed-id") is not None

    @pytest.mark.asyncio
    async def test_get_sessions_filters_and_orders(self, database):
        older = await _store_session(database, start=START - timedelta(days=1))
        newer = await _store_session(database)
        await _store_session(database, owner="bob")

        sessions = await database.get_sessions(owner_id="alice")
        assert [s["id"] for s in sessions] == [newer, older]

        recent = await database.get_sessions(owner_id="alice", start_time=START)
        assert [s["id"] for s in recent] == [newer]

        assert len(await database.get_sessions(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_session_summary(self, database):
        session_id = await _store_session(database, labels=("apnea",) * 6 + ("normal",) * 4)

        summary = await database.get_session_summary(session_id)

        assert summary["stats"]["apnea_count"] == 6
        assert summary["stats"]["apnea_percentage"] == pytest.approx(60.0)
        # 60 * 0.8 * 1.5
        assert summary["summary_severity_score"] == pytest.approx(72.0)
        assert summary["events_per_hour"] == pytest.approx(6.0)
        assert summary["severity_category"] == "mild"

    @pytest.mark.asyncio
    async def test_missing_session_summary(self, database):
        assert await database.get_session_summary("nope") is None

    @pytest.mark.asyncio
    async def test_delete_sessions_for_owner(self, database):
        alice = await _store_session(database)
        bob = await _store_session(database, owner="bob")

        deleted = await database.delete_sessions(owner_id="alice")

        assert deleted == 1
        assert await database.get_session(alice) is None
        assert await database.get_session_events(alice) == []
        assert await database.get_session(bob) is not None

    @pytest.mark.asyncio
    async def test_get_sessions_hides_unfinished(self, database):
        finished = await _store_session(database)
        unfinished = await database.create_session("alice", start_time=START + timedelta(hours=2))

        assert [s["id"] for s in await database.get_sessions()] == [finished]
        everything = await database.get_sessions(include_unfinished=True)
        assert {s["id"] for s in everything} == {finished, unfinished}

    @pytest.mark.asyncio
    async def test_upload_audio_moves_file(self, database, tmp_path):
        blob = make_blob(tmp_path, b"RIFF0000WAVE", duration_seconds=4.0)

        recording_id = await database.upload_audio("alice", blob, session_id="s1")

        recordings = await database.get_recordings(owner_id="alice")
        assert [r["id"] for r in recordings] == [recording_id]
        record = recordings[0]
        assert record["file_path"].startswith("alice/live-recording-")
        assert record["file_path"].endswith(".wav")
        assert record["file_size"] == 12
        assert record["duration_seconds"] == 4.0
        assert (database.recordings_dir / record["file_path"]).read_bytes() == b"RIFF0000WAVE"
        assert not blob.path.exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner_id", ["../../outside", "..", "", "alice/../.."])
    async def test_upload_audio_rejects_owner_outside_recordings_dir(
        self, database, tmp_path, owner_id
    ):
        blob = make_blob(tmp_path, b"RIFF")

        with pytest.raises(ValueError):
            await database.upload_audio(owner_id, blob)

        assert blob.path.exists()
        assert await database.get_recordings() == []
        assert not (tmp_path / "outside").exists()

    @pytest.mark.asyncio
    async def test_upload_audio_rejects_absolute_owner(self, database, tmp_path):
        target = tmp_path / "elsewhere"
        blob = make_blob(tmp_path, b"RIFF")

        with pytest.raises(ValueError):
            await database.upload_audio(str(target), blob)

        assert not target.exists()
        assert await database.get_recordings() == []

    @pytest.mark.asyncio
    async def test_delete_recording(self, database, tmp_path):
        recording_id = await database.upload_audio("alice", make_blob(tmp_path))
        record = await database.get_recording(recording_id)
        path = database.recordings_dir / record["file_path"]
        assert path.exists()

        assert await database.delete_recording(recording_id) is True

        assert not path.exists()
        assert await database.get_recording(recording_id) is None
        assert await database.delete_recording(recording_id) is False

    @pytest.mark.asyncio
    async def test_delete_sessions_removes_recordings(self, database, tmp_path):
        await _store_session(database)
        alice = await database.upload_audio("alice", make_blob(tmp_path, name="a.wav"))
        bob = await database.upload_audio("bob", make_blob(tmp_path, name="b.wav"))
        alice_path = database.recordings_dir / (await database.get_recording(alice))["file_path"]

        await database.delete_sessions(owner_id="alice")

        assert not alice_path.exists()
        assert await database.get_recording(alice) is None
        assert await database.get_recording(bob) is not None

        await database.delete_sessions()
        assert await database.get_recordings() == []

    @pytest.mark.asyncio
    async def test_system_events(self, database):
        await database.log_event("tracking_start", "started", {"session_id": "s1"})
        await database.log_event("error", "boom")

        events = await database.get_system_events(event_type="tracking_start")
        assert len(events) == 1
        assert events[0]["metadata"] == {"session_id": "s1"}

    @pytest.mark.asyncio
    async def test_cleanup_old_data(self, database):
        old = await _store_session(database, start=datetime.now() - timedelta(days=45))
        fresh = await _store_session(database, start=datetime.now())

        deleted = await database.cleanup_old_data(sessions_days=30)

        assert deleted["detection_sessions"] == 1
        assert deleted["detection_events"] == 3
        assert await database.get_session(old) is None
        assert await database.get_session(fresh) is not None

    @pytest.mark.asyncio
    async def test_cleanup_removes_old_recordings(self, database, tmp_path):
        old = await database.upload_audio("alice", make_blob(tmp_path, name="old.wav"))
        fresh = await database.upload_audio("alice", make_blob(tmp_path, name="fresh.wav"))
        old_path = database.recordings_dir / (await database.get_recording(old))["file_path"]
        await database.connection.execute(
            "UPDATE recordings SET recorded_at = ? WHERE id = ?",
            ((datetime.now() - timedelta(days=45)).isoformat(), old),
        )
        await database.connection.commit()

        deleted = await database.cleanup_old_data(sessions_days=30)

        assert deleted["recordings"] == 1
        assert not old_path.exists()
        assert await database.get_recording(old) is None
        assert await database.get_recording(fresh) is not None
