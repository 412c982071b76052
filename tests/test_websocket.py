"""Tests for the WebSocket endpoint wiring."""
from fastapi.testclient import TestClient

from app.main import app


def test_websocket_session():
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as websocket:
            greeting = websocket.receive_json()
            assert greeting["type"] == "connected"
            assert greeting["data"]["heartbeat_interval"] == 30

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong", "data": {}}

            websocket.send_text("{not json")
            assert websocket.receive_json() == {"type": "error", "data": {"message": "Malformed JSON"}}

            websocket.send_json({"type": "join", "data": {"userId": "u1", "projectId": "nope"}})
            assert websocket.receive_json() == {"type": "error", "data": {"message": "Project not found"}}
