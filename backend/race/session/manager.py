from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from race.logic.constants import DEFAULT_GAME_TIMEOUT_SECONDS
from race.logic.engine import MatchEngine, epoch_millis, monotonic_millis
from race.logic.enums import GameState
from race.logic.registry import RoomRegistry
from race.messaging.types import (
    CountdownTickMessage,
    ErrorCode,
    ErrorMessage,
    GameEndedMessage,
    GameStartedMessage,
    PlayerFinishedMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerProgressMessage,
    PlayerReadyChangedMessage,
    PongMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    RoomLeftMessage,
    RoomUpdatedMessage,
)
from race.session.broadcast import broadcast_to_connections
from race.session.timer_manager import TimerManager

if TYPE_CHECKING:
    from race.logic.engine import Clock
    from race.logic.models import Room
    from race.logic.types import GameEndResult, RoomInfo
    from race.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


class SessionManager:
    """Bridge connections to the race core.

    Each public coroutine handles one connection-scoped request: it resolves
    the room through the RoomRegistry, applies the change through the
    MatchEngine, and only then awaits to deliver messages. All state
    decisions happen before the first await, so two requests can never end
    the same race twice.
    """

    def __init__(
        self,
        registry: RoomRegistry | None = None,
        *,
        clock: Clock = epoch_millis,
        tap_clock: Clock = monotonic_millis,
        countdown_tick_seconds: float = 1.0,
        race_timeout_seconds: float = DEFAULT_GAME_TIMEOUT_SECONDS,
        max_rooms: int = 0,
    ) -> None:
        self._registry = registry if registry is not None else RoomRegistry()
        self._engine = MatchEngine(self._registry, clock=clock, tap_clock=tap_clock)
        self._max_rooms = max_rooms
        self._connections: dict[str, ConnectionProtocol] = {}
        self._timer_manager = TimerManager(
            on_countdown_tick=self._handle_countdown_tick,
            on_race_timeout=self._handle_race_timeout,
            countdown_tick_seconds=countdown_tick_seconds,
            race_timeout_seconds=race_timeout_seconds,
        )

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def timer_manager(self) -> TimerManager:
        return self._timer_manager

    @property
    def room_count(self) -> int:
        return self._registry.room_count

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_rooms_info(self) -> list[RoomInfo]:
        return self._registry.get_rooms_info()

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)

    def cancel_all_timers(self) -> None:
        self._timer_manager.cancel_all()

    # --- Room membership ---

    async def create_room(self, connection: ConnectionProtocol, player_name: str, max_players: int) -> None:
        if self._registry.is_in_room(connection.connection_id):
            await self._send_error(connection, ErrorCode.ALREADY_IN_ROOM, "You must leave your current room first")
            return
        if self._max_rooms and self._registry.room_count >= self._max_rooms:
            await self._send_error(connection, ErrorCode.SERVER_AT_CAPACITY, "Server is at capacity")
            return

        room = self._registry.create_room(connection.connection_id, player_name, max_players)
        structlog.contextvars.bind_contextvars(room_code=room.room_code)
        host = room.players[0]

        await connection.send_message(
            RoomCreatedMessage(room_code=room.room_code, player_id=host.player_id).model_dump(),
        )
        await connection.send_message(RoomUpdatedMessage(room=room.to_snapshot()).model_dump())

    async def join_room(self, connection: ConnectionProtocol, room_code: str, player_name: str) -> None:
        if self._registry.is_in_room(connection.connection_id):
            await self._send_error(connection, ErrorCode.ALREADY_IN_ROOM, "You must leave your current room first")
            return

        result = self._registry.join_room(room_code, connection.connection_id, player_name)
        if result is None:
            await self._send_error(
                connection,
                ErrorCode.ROOM_NOT_JOINABLE,
                "Room not found, full, or game already started",
            )
            return

        room, player = result.room, result.player
        structlog.contextvars.bind_contextvars(room_code=room.room_code)

        await connection.send_message(
            RoomJoinedMessage(room_code=room.room_code, player_id=player.player_id, slot=player.slot).model_dump(),
        )
        await self._broadcast_room_update(room)
        await self._broadcast_to_room(
            room,
            PlayerJoinedMessage(player=player.to_info()).model_dump(),
            exclude_connection_id=connection.connection_id,
        )

    async def leave_room(self, connection: ConnectionProtocol, *, notify_player: bool = True) -> None:
        """Remove the connection from its room. Safe to call when it has none."""
        result = self._registry.leave_room(connection.connection_id)
        if result is None:
            return

        room = result.room
        structlog.contextvars.bind_contextvars(room_code=room.room_code)

        if result.room_closed:
            self._timer_manager.cleanup_room(room.room_code)
        # A departure can leave every remaining racer finished.
        end = None
        if not result.room_closed and room.state == GameState.PLAYING:
            end = self._engine.check_game_end(room.room_code)

        if notify_player:
            with contextlib.suppress(RuntimeError, OSError):
                await connection.send_message(RoomLeftMessage().model_dump())

        if result.room_closed:
            return

        await self._broadcast_to_room(room, PlayerLeftMessage(player_id=result.player_id).model_dump())
        if end is not None and end.ended:
            await self._announce_race_end(room, end)
        else:
            await self._broadcast_room_update(room)

    async def toggle_ready(self, connection: ConnectionProtocol, *, ready: bool) -> None:
        player = self._registry.toggle_ready(connection.connection_id, ready=ready)
        if player is None:
            await self._send_error(connection, ErrorCode.CANNOT_TOGGLE_READY, "Failed to toggle ready state")
            return

        room = self._registry.get_room_by_connection(connection.connection_id)
        if room is None:
            return
        await self._broadcast_to_room(
            room,
            PlayerReadyChangedMessage(player_id=player.player_id, ready=ready).model_dump(),
        )
        await self._broadcast_room_update(room)

    # --- Race flow ---

    async def start_game(self, connection: ConnectionProtocol) -> None:
        """Start the countdown if the host asks and everyone is ready."""
        room = self._engine.can_start(connection.connection_id)
        if room is None:
            await self._send_error(connection, ErrorCode.CANNOT_START, "Cannot start game")
            return

        structlog.contextvars.bind_contextvars(room_code=room.room_code)
        self._engine.start_countdown(room.room_code)
        self._timer_manager.start_countdown(room.room_code)
        await self._broadcast_room_update(room)

    async def handle_tap(self, connection: ConnectionProtocol) -> None:
        """Score a tap. Dropped taps produce no message at all."""
        result = self._engine.handle_tap(connection.connection_id)
        if result is None:
            return

        room, player = result.room, result.player
        end = self._engine.check_game_end(room.room_code) if result.finished else None
        if end is not None and end.ended:
            self._timer_manager.cancel_race_timeout(room.room_code)

        await self._broadcast_to_room(
            room,
            PlayerProgressMessage(player_id=player.player_id, progress=player.progress, taps=player.taps).model_dump(),
        )
        if result.finished:
            await self._broadcast_to_room(
                room,
                PlayerFinishedMessage(
                    player_id=player.player_id,
                    position=player.finish_position,
                    finish_time=player.finished_at,
                ).model_dump(),
            )
        if end is not None and end.ended:
            await self._announce_race_end(room, end)

    async def play_again(self, connection: ConnectionProtocol) -> None:
        """Reset a finished room for another race.

        Every player tends to press "play again", so a request against a room
        that is already waiting is ignored.
        """
        room = self._registry.get_room_by_connection(connection.connection_id)
        if room is None:
            await self._send_error(connection, ErrorCode.NOT_IN_ROOM, "You must join a room first")
            return
        if room.state == GameState.WAITING:
            return

        if self._engine.reset_room(room.room_code) is None:
            await self._send_error(connection, ErrorCode.CANNOT_RESET, "The race is still running")
            return

        structlog.contextvars.bind_contextvars(room_code=room.room_code)
        self._timer_manager.cleanup_room(room.room_code)
        await self._broadcast_room_update(room)

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage().model_dump())

    # --- Timer callbacks ---

    async def _handle_countdown_tick(self, room_code: str, value: int) -> None:
        room = self._registry.get_room(room_code)
        if room is None or room.state != GameState.COUNTDOWN:
            return

        started = value == 0 and self._engine.start_playing(room_code) is not None
        if started:
            self._timer_manager.start_race_timeout(room_code)

        await self._broadcast_to_room(room, CountdownTickMessage(value=value).model_dump())
        if started:
            await self._broadcast_to_room(room, GameStartedMessage().model_dump())
            await self._broadcast_room_update(room)

    async def _handle_race_timeout(self, room_code: str) -> None:
        room = self._registry.get_room(room_code)
        if room is None:
            return
        end = self._engine.check_game_end(room_code, force_end=True)
        if end is None or not end.ended:
            return
        logger.info("race timed out", room_code=room_code)
        await self._announce_race_end(room, end)

    # --- Internal helpers ---

    async def _announce_race_end(self, room: Room, end: GameEndResult) -> None:
        self._timer_manager.cancel_race_timeout(room.room_code)
        await self._broadcast_to_room(
            room,
            GameEndedMessage(
                winners=[p.to_info() for p in end.winners],
                players=[p.to_info() for p in end.players],
                duration_ms=end.duration_ms,
                forced=end.forced,
            ).model_dump(),
        )
        await self._broadcast_room_update(room)

    def _room_connections(self, room: Room) -> list[ConnectionProtocol]:
        return [
            self._connections[player.connection_id]
            for player in room.players
            if player.connection_id in self._connections
        ]

    async def _broadcast_to_room(
        self,
        room: Room,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> None:
        await broadcast_to_connections(self._room_connections(room), message, exclude_connection_id)

    async def _broadcast_room_update(self, room: Room) -> None:
        await self._broadcast_to_room(room, RoomUpdatedMessage(room=room.to_snapshot()).model_dump())

    async def _send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        await connection.send_message(ErrorMessage(code=code, message=message).model_dump())
