from __future__ import annotations

import pytest

from src.site_attendance.site_attendance.geolocation.source import ReportedPositionSource
from src.site_attendance.site_attendance.main import create_app, get_container
from tests.fakes import FakeCamera, FakePositionSource, sample_north_of_site, site_sample


def _make_app(monkeypatch, **overrides):
    monkeypatch.setenv("APP_ENV", "testing")
    overrides.setdefault("camera", FakeCamera())
    return create_app(**overrides)


@pytest.fixture()
def app(monkeypatch):
    app = _make_app(monkeypatch, position_source=FakePositionSource(site_sample(accuracy=15)))
    yield app
    get_container(app).shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, username="johndoe", password="password"):
    return client.post("/login", json={"username": username, "password": password})


def test_login_and_logout(client):
    resp = login(client)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["user"]["id"] == "user001"
    assert body["user"]["role"] == "employee"

    assert client.post("/logout").get_json()["success"] is True
    assert client.get("/attendance/today").status_code == 401


def test_login_wrong_password(client):
    resp = login(client, password="nope")
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_check_in_flow_over_http(client):
    login(client)

    opened = client.post("/attendance/session", json={"action": "check-in"})
    assert opened.status_code == 201

    state = client.get("/attendance/session?wait=3").get_json()["session"]
    assert state["status"] == "previewing"
    assert state["withinFence"] is True
    assert state["canConfirm"] is False

    captured = client.post("/attendance/session/capture").get_json()["session"]
    assert captured["canConfirm"] is True

    done = client.post("/attendance/session/confirm")
    assert done.status_code == 200
    body = done.get_json()
    assert body["outcome"] == "stored"
    assert body["status"] == "checked-in"
    assert body["message"] == "Checked in successfully"

    assert client.get("/attendance/session").status_code == 404
    today = client.get("/attendance/today").get_json()
    assert today["status"] == "checked-in"
    assert today["record"]["checkInLocation"]["accuracy"] == 15

    again = client.post("/attendance/session", json={"action": "check-in"})
    assert again.status_code == 400
    assert again.get_json()["message"] == "You have already checked in today"


def test_confirm_outside_fence_is_rejected(monkeypatch):
    app = _make_app(monkeypatch, position_source=FakePositionSource(sample_north_of_site(300)))
    client = app.test_client()
    try:
        login(client)
        client.post("/attendance/session", json={"action": "check-in"})
        client.get("/attendance/session?wait=3")
        client.post("/attendance/session/capture")

        resp = client.post("/attendance/session/confirm")

        assert resp.status_code == 400
        assert "outside" in resp.get_json()["message"]
    finally:
        get_container(app).shutdown()


def test_invalid_action_is_rejected(client):
    login(client)
    resp = client.post("/attendance/session", json={"action": "lunch"})
    assert resp.status_code == 400


def test_switch_camera_and_close_session(client, app):
    login(client)
    client.post("/attendance/session", json={"action": "check-in"})
    client.get("/attendance/session?wait=3")

    state = client.post("/attendance/session/switch-camera", json={}).get_json()["session"]
    assert state["selectedCameraFacing"] == "back"

    assert client.delete("/attendance/session").get_json()["closed"] is True
    assert get_container(app).camera.live_streams == []


def test_offline_confirm_queues_then_syncs_on_reconnect(client, app):
    login(client)
    assert client.post("/device/connectivity", json={"online": False}).get_json()["online"] is False

    client.post("/attendance/session", json={"action": "check-in"})
    client.get("/attendance/session?wait=3")
    client.post("/attendance/session/capture")
    body = client.post("/attendance/session/confirm").get_json()
    assert body["outcome"] == "queued"
    assert body["pendingSync"] == 1
    assert body["status"] == "checked-in"

    today = client.get("/attendance/today").get_json()
    assert today["online"] is False
    assert today["record"] is None
    assert today["status"] == "checked-in"

    resp = client.post("/device/connectivity", json={"online": True}).get_json()
    assert resp["sync"]["ok"] is True
    assert resp["sync"]["replayed"] == 1
    assert resp["pendingSync"] == 0
    assert client.get("/attendance/today").get_json()["record"]["userId"] == "user001"


def test_history_visibility(client):
    login(client)
    assert client.get("/attendance/history").status_code == 200
    assert client.get("/attendance/history?user_id=user002").status_code == 403

    client.post("/logout")
    login(client, "janesmith")
    assert client.get("/attendance/history?user_id=user002").status_code == 200
    assert client.get("/attendance/history?user_id=user003").status_code == 403


def test_admin_attendance_requires_manager_or_admin(client):
    login(client)
    assert client.get("/admin/attendance").status_code == 403

    client.post("/logout")
    login(client, "alexjohnson")
    resp = client.get("/admin/attendance?date=2024-07-29")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["data"] == []
    assert [d["name"] for d in body["departments"]] == ["Construction", "Logistics", "Surveying"]
    assert client.get("/admin/attendance?date=29/07/2024").status_code == 400


def test_manager_sees_own_department_attendance_summary(client):
    login(client)
    client.post("/attendance/session", json={"action": "check-in"})
    client.get("/attendance/session?wait=3")
    client.post("/attendance/session/capture")
    client.post("/attendance/session/confirm")
    client.post("/logout")

    login(client, "janesmith")
    body = client.get("/admin/attendance").get_json()

    assert [row["userId"] for row in body["data"]] == ["user001"]
    assert body["departments"] == [
        {"id": "dept01", "name": "Construction", "managerId": "mgr001", "headcount": 3, "present": 1}
    ]


def test_settings_read_and_admin_update(client):
    login(client)
    assert client.get("/settings").get_json()["settings"]["radiusInMeters"] == 200
    assert client.put("/admin/settings", json={"radiusInMeters": 300}).status_code == 403

    client.post("/logout")
    login(client, "alexjohnson")
    resp = client.put("/admin/settings", json={"radiusInMeters": 300, "workingHoursStart": "07:00"})
    assert resp.status_code == 200
    assert resp.get_json()["settings"]["radiusInMeters"] == 300

    bad = client.put("/admin/settings", json={"workingHoursEnd": "05:00"})
    assert bad.status_code == 400


def test_employee_location_view_can_be_disabled(client):
    login(client, "alexjohnson")
    client.put("/admin/settings", json={"allowEmployeeLocationView": False})
    client.post("/logout")

    login(client)
    assert client.get("/map").status_code == 403


def test_map_tracks_reported_device_location(monkeypatch):
    app = _make_app(monkeypatch, position_source=ReportedPositionSource())
    client = app.test_client()
    try:
        login(client)
        assert client.post("/map/start").get_json()["tracking"] is True

        loc = site_sample(accuracy=9)
        resp = client.post(
            "/device/location",
            json={"latitude": loc.latitude, "longitude": loc.longitude, "accuracy": loc.accuracy_meters},
        )
        assert resp.status_code == 200

        view = client.get("/map").get_json()
        assert view["position"]["accuracy"] == 9
        assert view["distanceFromSite"] == 0.0
        assert view["withinFence"] is True

        assert client.post("/device/location", json={"latitude": 123, "longitude": 0}).status_code == 400
        assert client.post("/device/location", json={"error": "cancelled"}).status_code == 400
        assert client.post("/device/location", json={"error": "permissionDenied"}).status_code == 200
        assert client.get("/map").get_json()["error"] == "Location permission was denied"

        assert client.post("/map/stop").get_json()["tracking"] is False
    finally:
        get_container(app).shutdown()


def test_device_location_requires_reporting_source(client):
    resp = client.post("/device/location", json={"latitude": 1, "longitude": 2, "accuracy": 3})
    assert resp.status_code == 409
