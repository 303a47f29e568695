"""Room and membership registry: room codes, joins, leaves, and readiness."""

import secrets
from uuid import uuid4

import structlog

from race.logic.constants import (
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    ROOM_CODE_MAX_ATTEMPTS,
    clamp_max_players,
    color_for_slot,
)
from race.logic.enums import GameState
from race.logic.exceptions import RoomCodeGenerationError
from race.logic.models import Player, Room
from race.logic.types import JoinResult, LeaveResult, RoomInfo

logger = structlog.get_logger()


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(room_code: str) -> str:
    return room_code.strip().upper()


class RoomRegistry:
    """Own every active room and the connection -> room mapping.

    The registry knows nothing about race timing or scoring. The MatchEngine
    reads and mutates the Room/Player objects it hands out, so there is a
    single copy of every room.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}  # room_code -> Room
        self._connection_rooms: dict[str, str] = {}  # connection_id -> room_code

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def player_count(self) -> int:
        return len(self._connection_rooms)

    @property
    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def get_rooms_info(self) -> list[RoomInfo]:
        return [
            RoomInfo(
                state=room.state,
                player_count=room.player_count,
                max_players=room.max_players,
            )
            for room in self._rooms.values()
        ]

    def get_room(self, room_code: str) -> Room | None:
        return self._rooms.get(normalize_room_code(room_code))

    def get_room_by_connection(self, connection_id: str) -> Room | None:
        room_code = self._connection_rooms.get(connection_id)
        if room_code is None:
            return None
        return self._rooms.get(room_code)

    def get_player_by_connection(self, connection_id: str) -> Player | None:
        room = self.get_room_by_connection(connection_id)
        if room is None:
            return None
        return room.get_player_by_connection(connection_id)

    def is_in_room(self, connection_id: str) -> bool:
        return connection_id in self._connection_rooms

    def create_room(self, connection_id: str, player_name: str, max_players: int) -> Room:
        """Create a room with the requester as host in slot 0."""
        room_code = self._generate_unique_code()
        host = self._new_player(connection_id, player_name, slot=0)
        room = Room(
            room_code=room_code,
            host_player_id=host.player_id,
            max_players=clamp_max_players(max_players),
            players=[host],
        )
        self._rooms[room_code] = room
        self._connection_rooms[connection_id] = room_code
        logger.info("room created", room_code=room_code, max_players=room.max_players)
        return room

    def join_room(self, room_code: str, connection_id: str, player_name: str) -> JoinResult | None:
        """Append a player to a waiting room. Return None if the room is not joinable."""
        room = self.get_room(room_code)
        if room is None or room.state != GameState.WAITING or room.is_full:
            return None

        player = self._new_player(connection_id, player_name, slot=room.player_count)
        room.players.append(player)
        self._connection_rooms[connection_id] = room.room_code
        logger.info("player joined room", room_code=room.room_code, slot=player.slot)
        return JoinResult(room=room, player=player)

    def leave_room(self, connection_id: str) -> LeaveResult | None:
        """Remove the connection's player. Return None if it was not in a room.

        An emptied room is deleted on the spot; otherwise host ownership moves
        to the first remaining player when the host left.
        """
        room_code = self._connection_rooms.pop(connection_id, None)
        if room_code is None:
            return None
        room = self._rooms.get(room_code)
        if room is None:
            return None
        player = room.get_player_by_connection(connection_id)
        if player is None:
            return None

        room.players.remove(player)
        if room.is_empty:
            del self._rooms[room_code]
            logger.info("room closed", room_code=room_code)
            return LeaveResult(room=room, player_id=player.player_id, room_closed=True)

        if room.host_player_id == player.player_id:
            room.host_player_id = room.players[0].player_id
            logger.info("host reassigned", room_code=room_code, slot=room.players[0].slot)

        logger.info("player left room", room_code=room_code, slot=player.slot)
        return LeaveResult(room=room, player_id=player.player_id)

    def toggle_ready(self, connection_id: str, *, ready: bool) -> Player | None:
        """Set a player's ready flag. Only allowed while the room is waiting."""
        room = self.get_room_by_connection(connection_id)
        if room is None or room.state != GameState.WAITING:
            return None
        player = room.get_player_by_connection(connection_id)
        if player is None:
            return None
        player.ready = ready
        return player

    def _generate_unique_code(self) -> str:
        for _ in range(ROOM_CODE_MAX_ATTEMPTS):
            code = generate_room_code()
            if code not in self._rooms:
                return code
        raise RoomCodeGenerationError(ROOM_CODE_MAX_ATTEMPTS)

    @staticmethod
    def _new_player(connection_id: str, player_name: str, slot: int) -> Player:
        return Player(
            player_id=str(uuid4()),
            connection_id=connection_id,
            slot=slot,
            name=player_name,
            color=color_for_slot(slot),
        )
