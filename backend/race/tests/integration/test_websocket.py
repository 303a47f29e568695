"""Integration tests for the WebSocket and HTTP endpoints.

These run the real Starlette app through the test client, covering the
transport layer (MessagePack frames, flood limiting, disconnect cleanup) on
top of the session flows.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from race.messaging.types import ErrorCode, ServerMessageType
from race.server.app import create_app
from race.server.settings import RaceServerSettings
from race.server.websocket import CLOSE_MALFORMED_FRAMES
from race.tests.helpers.websocket import create_room, join_room, recv_until, recv_ws, send_ws


@pytest.fixture
def race_app():
    return create_app(settings=RaceServerSettings(countdown_tick_seconds=0, game_timeout_seconds=0))


@pytest.fixture
def client(race_app):
    with TestClient(race_app) as client:
        yield client


class TestHttpEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_status_counts_rooms_and_connections(self, client):
        with client.websocket_connect("/ws") as ws:
            create_room(ws)
            response = client.get("/status")

        body = response.json()
        assert body["rooms"] == 1
        assert body["connections"] == 1
        assert body["players"] == 1
        assert body["max_rooms"] == 500
        assert body["rooms_by_state"] == {"waiting": 1}

    def test_status_after_disconnect(self, client):
        with client.websocket_connect("/ws") as ws:
            create_room(ws)
        body = client.get("/status").json()
        assert body["rooms"] == 0
        assert body["connections"] == 0


class TestWebSocketFlow:
    def test_full_race(self, client, race_app):
        registry = race_app.state.session_manager.registry
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
            code = create_room(host)
            joined = join_room(guest, code)
            assert joined["slot"] == 1
            recv_until(host, ServerMessageType.PLAYER_JOINED)

            send_ws(host, {"type": "toggle_ready", "ready": True})
            send_ws(guest, {"type": "toggle_ready", "ready": True})
            recv_until(host, ServerMessageType.PLAYER_READY_CHANGED)
            recv_until(host, ServerMessageType.PLAYER_READY_CHANGED)
            recv_until(host, ServerMessageType.ROOM_UPDATED)

            send_ws(host, {"type": "start_game"})
            messages = recv_until(guest, ServerMessageType.GAME_STARTED)
            ticks = [m["value"] for m in messages if m["type"] == ServerMessageType.COUNTDOWN_TICK]
            assert ticks == [3, 2, 1, 0]
            recv_until(host, ServerMessageType.GAME_STARTED)

            registry.get_room(code).taps_to_win = 1
            send_ws(guest, {"type": "tap"})

            ended = recv_until(host, ServerMessageType.GAME_ENDED)[-1]
            assert ended["forced"] is False
            assert len(ended["winners"]) == 1
            assert ended["winners"][0]["name"] == "Bob"

            send_ws(host, {"type": "play_again"})
            updated = recv_until(guest, ServerMessageType.ROOM_UPDATED)[-1]
            while updated["room"]["state"] != "waiting":
                updated = recv_until(guest, ServerMessageType.ROOM_UPDATED)[-1]
            assert all(p["taps"] == 0 for p in updated["room"]["players"])

    def test_join_unknown_room(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "join_room", "room_code": "ZZZZZZ", "player_name": "Bob"})
            response = recv_ws(ws)
            assert response["type"] == ServerMessageType.ERROR
            assert response["code"] == ErrorCode.ROOM_NOT_JOINABLE

    def test_disconnect_notifies_room(self, client):
        with client.websocket_connect("/ws") as host:
            code = create_room(host)
            with client.websocket_connect("/ws") as guest:
                join_room(guest, code)
                recv_until(host, ServerMessageType.PLAYER_JOINED)

            left = recv_until(host, ServerMessageType.PLAYER_LEFT)[-1]
            assert left["type"] == ServerMessageType.PLAYER_LEFT


class TestWebSocketTransport:
    def test_invalid_msgpack_returns_error_and_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\xc1")
            response = recv_ws(ws)
            assert response["code"] == ErrorCode.INVALID_MESSAGE

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws)["type"] == ServerMessageType.PONG

    def test_invalid_payload_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "create_room", "player_name": ""})
            response = recv_ws(ws)
            assert response["code"] == ErrorCode.INVALID_MESSAGE

    def test_repeated_decode_errors_close_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(5):
                ws.send_bytes(b"\xc1")
                assert recv_ws(ws)["code"] == ErrorCode.INVALID_MESSAGE
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_bytes()
            assert exc_info.value.code == CLOSE_MALFORMED_FRAMES

    def test_message_flood_is_rate_limited(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(200):
                send_ws(ws, {"type": "ping"})
            responses = [recv_ws(ws) for _ in range(200)]

        limited = [r for r in responses if r["type"] == ServerMessageType.ERROR]
        assert limited
        assert all(r["code"] == ErrorCode.RATE_LIMITED for r in limited)
