"""
Integration Tests: Dashboard API and session websocket
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from labyrinth.api import create_app
from labyrinth.app import HostRuntime
from labyrinth.config import SessionConfig, Settings
from labyrinth.services.serial import SerialTransport
from tests.fakes import ARDUINO_PORT, FakePortLister, FakeSerialFactory, wait_until


@pytest.fixture
def host(tmp_path):
    settings = Settings(data_dir=tmp_path, session=SessionConfig(tick_interval_seconds=60))
    factory = FakeSerialFactory(ARDUINO_PORT.device)
    transport = SerialTransport(
        settings.serial, serial_factory=factory, port_lister=FakePortLister([ARDUINO_PORT])
    )
    runtime = HostRuntime(settings, transport=transport)
    with TestClient(create_app(runtime)) as client:
        yield client, factory, runtime


def test_health_reports_serial_connection(host):
    client, _, _ = host

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["serial"] == {"connected": True, "port": ARDUINO_PORT.device}
    assert body["session_active"] is False
    assert body["websocket_clients"] == 0


def test_startup_creates_empty_leaderboard(host):
    client, _, runtime = host

    body = client.get("/api/leaderboard").json()

    assert runtime.settings.leaderboard_path.exists()
    assert body["entries"] == []
    assert body["stats"]["total_players"] == 0
    assert body["stats"]["record_time"] == "N/A"


def test_begin_sends_start_and_rejects_second_run(host):
    client, factory, _ = host

    response = client.post("/api/session/begin", json={"player_id": "p1", "display_name": "Amy"})
    assert response.status_code == 200
    assert response.json()["active"] is True
    assert factory.handles[ARDUINO_PORT.device].written == [b"START\n"]

    response = client.post("/api/session/begin", json={"player_id": "p2", "display_name": "Bo"})
    assert response.status_code == 409
    assert client.get("/api/session").json()["player_id"] == "p1"


def test_begin_requires_both_fields(host):
    client, _, _ = host

    response = client.post("/api/session/begin", json={"player_id": "p1", "display_name": " "})

    assert response.status_code == 422


def test_concede_records_defeat(host):
    client, _, _ = host
    assert client.post("/api/session/concede").status_code == 409

    client.post("/api/session/begin", json={"player_id": "p2", "display_name": "Bo"})
    response = client.post("/api/session/concede")

    body = response.json()
    assert response.status_code == 200
    assert body["result"] == "defeat"
    assert body["message"] == "Trial marked as defeat."
    assert body["record"]["defeats"] == 1
    assert body["record"]["best_time_ms"] is None

    leaderboard = client.get("/api/leaderboard").json()
    assert leaderboard["entries"] == []
    assert leaderboard["stats"]["total_players"] == 1
    assert leaderboard["stats"]["success_rate"] == 0


def test_finish_from_device_updates_leaderboard(host):
    client, factory, _ = host
    client.post("/api/session/begin", json={"player_id": "p1", "display_name": "Amy"})

    factory.handles[ARDUINO_PORT.device].feed(b"FINISH\n")

    assert wait_until(lambda: client.get("/api/session").json()["active"] is False)
    entries = client.get("/api/leaderboard").json()["entries"]
    assert [e["player_id"] for e in entries] == ["p1"]
    assert entries[0]["has_improved"] is True


def test_concede_reports_unsaved_result(host, monkeypatch):
    client, _, runtime = host

    def broken_save(records, path):
        raise OSError("read-only file system")

    monkeypatch.setattr("labyrinth.leaderboard.reducer.save_records", broken_save)
    client.post("/api/session/begin", json={"player_id": "p1", "display_name": "Amy"})

    response = client.post("/api/session/concede")

    assert response.status_code == 503
    assert "read-only" in response.json()["detail"]
    assert runtime.relay.is_active is False


def test_websocket_streams_session_events(host):
    client, factory, _ = host

    with client.websocket_connect("/ws/session") as websocket:
        status = websocket.receive_json()
        assert status["type"] == "session_status"
        assert status["active"] is False

        client.post("/api/session/begin", json={"player_id": "p1", "display_name": "Amy"})
        started = websocket.receive_json()
        assert started["type"] == "run_started"
        assert started["command_sent"] is True

        client.post("/api/session/concede")
        finished = websocket.receive_json()
        assert finished["type"] == "run_finished"
        assert finished["result"] == "defeat"
