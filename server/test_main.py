"""
End-to-end tests for the FastAPI app: health routes and the /ws endpoint.

Run with: pytest test_main.py -v
"""

import pytest
from fastapi.testclient import TestClient

import main

PASSWORD = "5Crown"


@pytest.fixture
def client():
    main.room_manager.rooms.clear()
    with TestClient(main.app) as c:
        yield c
    main.room_manager.rooms.clear()


def receive_until(ws, msg_type):
    """Read messages until one of msg_type arrives."""
    while True:
        message = ws.receive_json()
        if message["type"] == msg_type:
            return message


class TestHealthRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200

    def test_metrics_counts_rooms(self, client):
        main.room_manager.create_room("TBL1", PASSWORD, "p1", "Alice")
        data = client.get("/metrics").json()
        assert data["active_rooms"] == 1
        assert data["total_players"] == 1
        assert data["games_in_progress"] == 0


class TestWebSocketFlow:

    def test_create_join_and_start(self, client):
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            alice.send_json({"type": "create-room", "room_code": "tbl1", "name": "Alice", "password": PASSWORD})
            joined = receive_until(alice, "join-success")
            assert joined["room_code"] == "TBL1"
            receive_until(alice, "room-state")

            bob.send_json({"type": "join", "room_code": "TBL1", "name": "Bob", "password": PASSWORD})
            receive_until(bob, "join-success")
            state = receive_until(bob, "room-state")["state"]
            assert [p["name"] for p in state["players"]] == ["Alice", "Bob"]

            alice.send_json({"type": "toggle-ready"})
            bob.send_json({"type": "toggle-ready"})
            state = receive_until(bob, "room-state")["state"]
            while state["status"] != "playing":
                state = receive_until(bob, "room-state")["state"]

            assert state["round"] == 1
            assert len(state["hand"]) == 3
            assert state["draw_count"] == 109

    def test_wrong_password(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "create-room", "room_code": "TBL1", "name": "Alice", "password": "x"})
            assert ws.receive_json() == {"type": "create-error", "message": "Incorrect password."}

    def test_malformed_message_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            ws.send_text("[1, 2, 3]")
            ws.send_json({"type": "no-such-message"})
            ws.send_json({"type": "create-room", "room_code": "TBL1", "name": "Alice", "password": PASSWORD})
            assert ws.receive_json()["type"] == "join-success"
