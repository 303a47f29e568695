from race.logic.enums import GameState
from race.logic.exceptions import RoomCodeGenerationError
from race.messaging.types import ErrorCode, ServerMessageType
from race.tests.mocks import MockConnection


class TestMessageRouter:
    async def test_create_room_dispatch(self, message_router, mock_connection, session_manager):
        await message_router.handle_connect(mock_connection)
        await message_router.handle_message(mock_connection, {"type": "create_room", "player_name": "Alice"})

        created = mock_connection.messages_of_type(ServerMessageType.ROOM_CREATED)
        assert len(created) == 1
        room = session_manager.registry.get_room(created[0]["room_code"])
        assert room.max_players == 4

    async def test_join_and_ready_dispatch(self, message_router, session_manager, mock_connection):
        host = MockConnection()
        await message_router.handle_connect(host)
        await message_router.handle_connect(mock_connection)
        await message_router.handle_message(host, {"type": "create_room", "player_name": "Alice", "max_players": 2})
        code = host.messages_of_type(ServerMessageType.ROOM_CREATED)[0]["room_code"]

        await message_router.handle_message(
            mock_connection,
            {"type": "join_room", "room_code": code.lower(), "player_name": "Bob"},
        )
        await message_router.handle_message(mock_connection, {"type": "toggle_ready", "ready": True})

        room = session_manager.registry.get_room(code)
        assert room.player_count == 2
        assert room.players[1].ready is True

    async def test_invalid_message_reports_error(self, message_router, mock_connection):
        await message_router.handle_message(mock_connection, {"type": "join_room", "room_code": "??"})
        [error] = mock_connection.sent_messages
        assert error["type"] == ServerMessageType.ERROR
        assert error["code"] == ErrorCode.INVALID_MESSAGE

    async def test_unknown_type_reports_error(self, message_router, mock_connection):
        await message_router.handle_message(mock_connection, {"type": "fly"})
        assert mock_connection.sent_messages[0]["code"] == ErrorCode.INVALID_MESSAGE

    async def test_ping(self, message_router, mock_connection):
        await message_router.handle_message(mock_connection, {"type": "ping"})
        assert mock_connection.sent_messages == [{"type": ServerMessageType.PONG}]

    async def test_race_error_becomes_action_failed(self, message_router, mock_connection, monkeypatch):
        def fail(*_args):
            raise RoomCodeGenerationError(100)

        monkeypatch.setattr("race.logic.registry.RoomRegistry.create_room", fail)
        await message_router.handle_message(mock_connection, {"type": "create_room", "player_name": "Alice"})

        [error] = mock_connection.sent_messages
        assert error["code"] == ErrorCode.ACTION_FAILED
        assert "100 attempts" in error["message"]

    async def test_leave_room_dispatch(self, message_router, mock_connection, session_manager):
        await message_router.handle_message(mock_connection, {"type": "create_room", "player_name": "Alice"})
        mock_connection.clear()

        await message_router.handle_message(mock_connection, {"type": "leave_room"})

        assert mock_connection.messages_of_type(ServerMessageType.ROOM_LEFT)
        assert session_manager.room_count == 0

    async def test_disconnect_leaves_room_without_reply(self, message_router, session_manager):
        host, guest = MockConnection(), MockConnection()
        for conn in (host, guest):
            await message_router.handle_connect(conn)
        await message_router.handle_message(host, {"type": "create_room", "player_name": "Alice"})
        code = host.messages_of_type(ServerMessageType.ROOM_CREATED)[0]["room_code"]
        await message_router.handle_message(guest, {"type": "join_room", "room_code": code, "player_name": "Bob"})
        host.clear()
        guest.clear()

        await message_router.handle_disconnect(guest)

        assert guest.sent_messages == []
        assert host.messages_of_type(ServerMessageType.PLAYER_LEFT)
        assert session_manager.connection_count == 1
        assert session_manager.registry.get_room(code).state == GameState.WAITING

    async def test_unexpected_error_keeps_connection_usable(self, message_router, mock_connection, monkeypatch):
        def fail(*_args, **_kwargs):
            raise LookupError("corrupt")

        monkeypatch.setattr("race.logic.engine.MatchEngine.handle_tap", fail)
        await message_router.handle_message(mock_connection, {"type": "tap"})
        await message_router.handle_message(mock_connection, {"type": "ping"})

        error, pong = mock_connection.sent_messages
        assert error["code"] == ErrorCode.ACTION_FAILED
        assert error["message"] == "Internal error"
        assert pong["type"] == ServerMessageType.PONG
