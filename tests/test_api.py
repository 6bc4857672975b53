# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""HTTP API tests."""

import time

import pytest
from fastapi.testclient import TestClient

from sleepguard.api.server import create_app
from sleepguard.errors import PermissionDeniedError
from tests.fakes import FakeAudioInput, make_blob, silent_samples


@pytest.fixture
def controller(make_controller):
    return make_controller(audio=FakeAudioInput(samples=silent_samples()))


@pytest.fixture
def client(controller, backend):
    with TestClient(create_app(controller=controller, database=backend)) as client:
        yield client
        client.portal.call(controller.shutdown)


def _wait_for_events(client, count, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.get("/status").json()["stats"]["total_events"] >= count:
            return True
        time.sleep(0.02)
    return False


@pytest.mark.api
class TestHealthAndStatus:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "sleepguard"}

    def test_idle_status(self, client):
        data = client.get("/status").json()
        assert data["tracking"] is False
        assert data["loop_state"] == "idle"
        assert data["source"] is None
        assert data["alert_level"] == "normal"
        assert data["stats"]["total_events"] == 0


@pytest.mark.api
class TestTrackingRoutes:
    def test_start_and_stop(self, client, controller, backend):
        response = client.post("/tracking/start", json={"owner_id": "alice"})
        assert response.status_code == 200
        started = response.json()
        assert started["tracking"] is True
        assert started["source"] == "audio"
        assert started["session_id"]

        assert _wait_for_events(client, 2)
        events = client.get("/tracking/events", params={"limit": 1}).json()["events"]
        assert len(events) == 1
        assert events[0]["label"] == "apnea"

        stopped = client.post("/tracking/stop").json()
        assert stopped["stopped"] is True
        assert stopped["session"]["id"] == started["session_id"]
        assert "events" not in stopped["session"]

        client.portal.call(controller.sink.drain)
        assert backend.sessions[started["session_id"]]["owner_id"] == "alice"

    @pytest.mark.parametrize("owner_id", ["../../outside", "/tmp/elsewhere", "a/b", "", "x" * 65])
    def test_start_rejects_unsafe_owner_id(self, client, owner_id):
        response = client.post("/tracking/start", json={"owner_id": owner_id})
        assert response.status_code == 422
        assert client.get("/status").json()["tracking"] is False

    def test_start_without_body(self, client):
        response = client.post("/tracking/start")
        assert response.status_code == 200
        assert response.json()["tracking"] is True

    def test_double_start_conflicts(self, client):
        assert client.post("/tracking/start").status_code == 200
        assert client.post("/tracking/start").status_code == 409

    def test_stop_when_idle(self, client):
        response = client.post("/tracking/stop")
        assert response.status_code == 200
        assert response.json() == {"stopped": False, "session": None}

    def test_simulation_fallback_is_reported(self, make_controller, backend):
        controller = make_controller(audio=FakeAudioInput(fail_with=PermissionDeniedError("denied")))
        with TestClient(create_app(controller=controller, database=backend)) as client:
            started = client.post("/tracking/start").json()
            assert started["source"] == "synthetic"

            notices = client.get("/notifications").json()["notifications"]
            assert notices[0]["title"] == "Simulation mode"

            client.post("/tracking/stop")
            client.portal.call(controller.sink.drain)


@pytest.mark.api
class TestSessionRoutes:
    def _record_session(self, client, controller):
        session_id = client.post("/tracking/start").json()["session_id"]
        assert _wait_for_events(client, 2)
        client.post("/tracking/stop")
        client.portal.call(controller.sink.drain)
        return session_id

    def test_list_and_get(self, client, controller):
        session_id = self._record_session(client, controller)

        listing = client.get("/sessions").json()
        assert listing["count"] == 1
        assert listing["sessions"][0]["id"] == session_id

        summary = client.get(f"/sessions/{session_id}").json()
        assert summary["stats"]["apnea_count"] >= 2
        assert 0 <= summary["summary_severity_score"] <= 100

        events = client.get(f"/sessions/{session_id}/events").json()["events"]
        assert len(events) == summary["stats"]["total_events"]

    def test_missing_session(self, client):
        assert client.get("/sessions/unknown").status_code == 404
        assert client.get("/sessions/unknown/events").status_code == 404

    def test_delete(self, client, controller):
        self._record_session(client, controller)

        response = client.delete("/sessions")
        assert response.json() == {"status": "deleted", "count": 1}
        assert client.get("/sessions").json()["count"] == 0

    def test_unfinished_session_not_listed(self, client, backend):
        client.portal.call(backend.create_session, "alice")

        assert client.get("/sessions").json()["count"] == 0


@pytest.mark.api
class TestSettingsRoutes:
    def test_get_defaults(self, client):
        data = client.get("/settings").json()
        assert data["sensitivity"] == 5
        assert data["detection_mode"] == "manual"
        assert data["schedule"]["weekdays"] == [True] * 7

    def test_update_persists(self, client, user_settings):
        response = client.put("/settings", json={
            "sensitivity": 8,
            "detection_mode": "auto",
            "schedule": {"start_time": "23:30"},
        })
        assert response.status_code == 200
        data = response.json()
        assert data["sensitivity"] == 8
        assert data["schedule"]["start_time"] == "23:30"
        assert data["schedule"]["end_time"] == "07:00"
        assert user_settings.path.exists()

    @pytest.mark.parametrize("body", [
        {"sensitivity": 0},
        {"sensitivity": 11},
        {"detection_mode": "sometimes"},
        {"schedule": {"weekdays": [True] * 6}},
        {"schedule": {"start_time": "late"}},
    ])
    def test_rejects_invalid(self, client, body):
        assert client.put("/settings", json=body).status_code == 422

    def test_rejects_out_of_range_time(self, client):
        response = client.put("/settings", json={"schedule": {"end_time": "25:00"}})
        assert response.status_code == 400


@pytest.mark.api
class TestNotificationRoutes:
    def test_since_id_and_clear(self, client, notifier):
        first = notifier.info("One", "first")
        notifier.warning("Two", "second")

        data = client.get("/notifications", params={"since_id": first.id}).json()
        assert [n["title"] for n in data["notifications"]] == ["Two"]

        assert client.delete("/notifications").json() == {"status": "cleared"}
        assert client.get("/notifications").json()["notifications"] == []


@pytest.mark.api
class TestRecordingRoutes:
    def _upload(self, client, backend, tmp_path, owner_id="alice", name="capture.wav"):
        return client.portal.call(backend.upload_audio, owner_id, make_blob(tmp_path, name=name))

    def test_list_by_owner(self, client, backend, tmp_path):
        alice = self._upload(client, backend, tmp_path)
        self._upload(client, backend, tmp_path, owner_id="bob", name="bob.wav")

        listing = client.get("/recordings", params={"owner_id": "alice"}).json()
        assert listing["count"] == 1
        assert listing["recordings"][0]["id"] == alice
        assert client.get("/recordings").json()["count"] == 2

    def test_delete(self, client, backend, tmp_path):
        recording_id = self._upload(client, backend, tmp_path)

        assert client.delete(f"/recordings/{recording_id}").json() == {"status": "deleted"}
        assert client.get("/recordings").json()["count"] == 0
        assert client.delete(f"/recordings/{recording_id}").status_code == 404

    def test_deleting_sessions_deletes_recordings(self, client, backend, tmp_path):
        self._upload(client, backend, tmp_path)

        client.delete("/sessions", params={"owner_id": "alice"})

        assert client.get("/recordings").json()["count"] == 0
