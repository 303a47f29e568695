from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from race.logic.exceptions import RaceError
from race.messaging.types import (
    CreateRoomMessage,
    ErrorCode,
    ErrorMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    PingMessage,
    PlayAgainMessage,
    StartGameMessage,
    TapMessage,
    ToggleReadyMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from race.messaging.protocol import ConnectionProtocol
    from race.messaging.types import ClientMessage
    from race.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Route parsed client messages to the SessionManager.

    Contains no transport code, so it can be driven directly in tests
    with a mock connection.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await connection.send_message(
                ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            await self._dispatch(connection, message)
        except RaceError as e:
            logger.warning("action failed", connection_id=connection.connection_id, error=str(e))
            await connection.send_message(
                ErrorMessage(code=ErrorCode.ACTION_FAILED, message=str(e)).model_dump(),
            )
        except Exception:
            logger.exception("unexpected error handling message", message_type=message.type)
            await connection.send_message(
                ErrorMessage(code=ErrorCode.ACTION_FAILED, message="Internal error").model_dump(),
            )

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        manager = self._session_manager
        if isinstance(message, TapMessage):
            await manager.handle_tap(connection)
        elif isinstance(message, CreateRoomMessage):
            await manager.create_room(connection, message.player_name, message.max_players)
        elif isinstance(message, JoinRoomMessage):
            await manager.join_room(connection, message.room_code, message.player_name)
        elif isinstance(message, LeaveRoomMessage):
            await manager.leave_room(connection)
        elif isinstance(message, ToggleReadyMessage):
            await manager.toggle_ready(connection, ready=message.ready)
        elif isinstance(message, StartGameMessage):
            await manager.start_game(connection)
        elif isinstance(message, PlayAgainMessage):
            await manager.play_again(connection)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.leave_room(connection, notify_player=False)
        self._session_manager.unregister_connection(connection)
