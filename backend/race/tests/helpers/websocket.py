"""Shared WebSocket test helpers for race integration tests."""

from race.messaging.encoder import decode, encode


def send_ws(ws, data: dict) -> None:
    """Send a MessagePack-encoded message over a test WebSocket."""
    ws.send_bytes(encode(data))


def recv_ws(ws) -> dict:
    """Receive and decode a MessagePack message from a test WebSocket."""
    return decode(ws.receive_bytes())


def recv_until(ws, message_type: str) -> list[dict]:
    """Receive messages up to and including the first one of ``message_type``."""
    messages = []
    while True:
        msg = recv_ws(ws)
        messages.append(msg)
        if msg["type"] == message_type:
            return messages


def create_room(ws, player_name: str = "Alice", max_players: int = 4) -> str:
    """Create a room over the socket and return its code."""
    send_ws(ws, {"type": "create_room", "player_name": player_name, "max_players": max_players})
    created = recv_until(ws, "room_created")[-1]
    recv_until(ws, "room_updated")
    return created["room_code"]


def join_room(ws, room_code: str, player_name: str = "Bob") -> dict:
    """Join a room over the socket and return the room_joined message."""
    send_ws(ws, {"type": "join_room", "room_code": room_code, "player_name": player_name})
    joined = recv_until(ws, "room_joined")[-1]
    recv_until(ws, "room_updated")
    return joined
