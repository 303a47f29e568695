"""
Snapshot models and result records for the race core.

Snapshots are the serialisable views sent to clients. Results are returned
by the registry and the engine so the session layer can decide what to
broadcast without re-reading state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel

from race.logic.enums import GameState

if TYPE_CHECKING:
    from race.logic.models import Player, Room


class PlayerInfo(BaseModel):
    """Player view for room snapshots and race results."""

    player_id: str
    slot: int
    name: str
    color: str
    ready: bool
    taps: int
    progress: float
    finished: bool
    finish_position: int | None
    finish_time: int | None  # epoch milliseconds


class RoomSnapshot(BaseModel):
    """Full room view broadcast on every membership or state change."""

    room_code: str
    host_player_id: str
    max_players: int
    state: GameState
    taps_to_win: int
    finished_count: int
    started_at: int | None  # epoch milliseconds
    players: list[PlayerInfo]


class RoomInfo(BaseModel):
    """Room summary for the status endpoint. Codes stay private."""

    state: GameState
    player_count: int
    max_players: int


@dataclass
class JoinResult:
    room: Room
    player: Player


@dataclass
class LeaveResult:
    """Outcome of removing a player.

    ``room_closed`` is True when the leaver was the last player and the room
    has been deleted; nothing should be broadcast in that case.
    """

    room: Room
    player_id: str
    room_closed: bool = False


@dataclass
class TapResult:
    room: Room
    player: Player
    finished: bool  # this tap took the player to 100%


@dataclass
class GameEndResult:
    ended: bool
    winners: list[Player] = field(default_factory=list)
    players: list[Player] = field(default_factory=list)
    duration_ms: int = 0
    forced: bool = False
