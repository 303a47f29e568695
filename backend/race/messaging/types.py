from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from race.logic.constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from race.logic.types import PlayerInfo, RoomSnapshot

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

_MAX_NAME_LENGTH = 20


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    TOGGLE_READY = "toggle_ready"
    START_GAME = "start_game"
    TAP = "tap"
    PLAY_AGAIN = "play_again"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    ROOM_UPDATED = "room_updated"
    ROOM_LEFT = "room_left"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_READY_CHANGED = "player_ready_changed"
    COUNTDOWN_TICK = "countdown_tick"
    GAME_STARTED = "game_started"
    PLAYER_PROGRESS = "player_progress"
    PLAYER_FINISHED = "player_finished"
    GAME_ENDED = "game_ended"
    ERROR = "error"
    PONG = "pong"


class ErrorCode(StrEnum):
    ROOM_NOT_JOINABLE = "room_not_joinable"
    ALREADY_IN_ROOM = "already_in_room"
    NOT_IN_ROOM = "not_in_room"
    CANNOT_TOGGLE_READY = "cannot_toggle_ready"
    CANNOT_START = "cannot_start"
    CANNOT_RESET = "cannot_reset"
    SERVER_AT_CAPACITY = "server_at_capacity"
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    ACTION_FAILED = "action_failed"


def _validate_player_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("player_name must not be blank")
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError("player_name must not contain control characters")
    return value


_PLAYER_NAME_FIELD = Field(min_length=1, max_length=_MAX_NAME_LENGTH)


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    player_name: str = _PLAYER_NAME_FIELD
    # Out-of-range capacities are clamped by the registry rather than rejected.
    max_players: int = Field(default=4, strict=True)

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _validate_player_name(v)


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_code: str = Field(min_length=ROOM_CODE_LENGTH, max_length=ROOM_CODE_LENGTH)
    player_name: str = _PLAYER_NAME_FIELD

    @field_validator("room_code")
    @classmethod
    def _validate_room_code(cls, v: str) -> str:
        code = v.upper()
        if any(c not in ROOM_CODE_ALPHABET for c in code):
            raise ValueError("room_code contains invalid characters")
        return code

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _validate_player_name(v)


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class ToggleReadyMessage(BaseModel):
    type: Literal[ClientMessageType.TOGGLE_READY] = ClientMessageType.TOGGLE_READY
    ready: bool = Field(strict=True)


class StartGameMessage(BaseModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME


class TapMessage(BaseModel):
    type: Literal[ClientMessageType.TAP] = ClientMessageType.TAP


class PlayAgainMessage(BaseModel):
    type: Literal[ClientMessageType.PLAY_AGAIN] = ClientMessageType.PLAY_AGAIN


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage
    | JoinRoomMessage
    | LeaveRoomMessage
    | ToggleReadyMessage
    | StartGameMessage
    | TapMessage
    | PlayAgainMessage
    | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage."""
    return _client_message_adapter.validate_python(data)


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    room_code: str
    player_id: str


class RoomJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    room_code: str
    player_id: str
    slot: int


class RoomUpdatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_UPDATED] = ServerMessageType.ROOM_UPDATED
    room: RoomSnapshot


class RoomLeftMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_LEFT] = ServerMessageType.ROOM_LEFT


class PlayerJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    player: PlayerInfo


class PlayerLeftMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    player_id: str


class PlayerReadyChangedMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_READY_CHANGED] = ServerMessageType.PLAYER_READY_CHANGED
    player_id: str
    ready: bool


class CountdownTickMessage(BaseModel):
    type: Literal[ServerMessageType.COUNTDOWN_TICK] = ServerMessageType.COUNTDOWN_TICK
    value: int


class GameStartedMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED


class PlayerProgressMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_PROGRESS] = ServerMessageType.PLAYER_PROGRESS
    player_id: str
    progress: float
    taps: int


class PlayerFinishedMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_FINISHED] = ServerMessageType.PLAYER_FINISHED
    player_id: str
    position: int
    finish_time: int  # epoch milliseconds


class GameEndedMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_ENDED] = ServerMessageType.GAME_ENDED
    winners: list[PlayerInfo]
    players: list[PlayerInfo]
    duration_ms: int
    forced: bool


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG
