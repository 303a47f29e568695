"""Mutable room and player records owned by the RoomRegistry."""

from dataclasses import dataclass, field

from race.logic.constants import TAPS_TO_WIN
from race.logic.enums import GameState
from race.logic.types import PlayerInfo, RoomSnapshot


@dataclass
class Player:
    """Represent a racer inside a room.

    One Player exists per connection. ``player_id`` and ``slot`` are fixed at
    join time; everything below ``ready`` is per-race state that the engine
    resets when a countdown begins or the room is reset.
    """

    player_id: str
    connection_id: str
    slot: int
    name: str
    color: str
    ready: bool = False
    taps: int = 0
    progress: float = 0
    finished: bool = False
    finish_position: int | None = None
    finished_at: int | None = None  # epoch ms
    last_tap_at: int | None = None  # monotonic ms; None: next tap is always accepted

    def reset_race_state(self) -> None:
        self.taps = 0
        self.progress = 0
        self.finished = False
        self.finish_position = None
        self.finished_at = None
        self.last_tap_at = None

    def to_info(self) -> PlayerInfo:
        return PlayerInfo(
            player_id=self.player_id,
            slot=self.slot,
            name=self.name,
            color=self.color,
            ready=self.ready,
            taps=self.taps,
            progress=self.progress,
            finished=self.finished,
            finish_position=self.finish_position,
            finish_time=self.finished_at,
        )


@dataclass
class Room:
    """One isolated race session identified by a six-character code.

    ``players`` keeps join order, which is also slot order and the order
    used for host reassignment and for stable tie-breaks on forced end.
    """

    room_code: str
    host_player_id: str
    max_players: int
    players: list[Player] = field(default_factory=list)
    state: GameState = GameState.WAITING
    started_at: int | None = None  # epoch ms
    taps_to_win: int = TAPS_TO_WIN
    finished_count: int = 0

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    @property
    def all_ready(self) -> bool:
        return all(p.ready for p in self.players)

    @property
    def finished_players(self) -> list[Player]:
        return [p for p in self.players if p.finished]

    def get_player_by_connection(self, connection_id: str) -> Player | None:
        return next((p for p in self.players if p.connection_id == connection_id), None)

    def to_snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(
            room_code=self.room_code,
            host_player_id=self.host_player_id,
            max_players=self.max_players,
            state=self.state,
            taps_to_win=self.taps_to_win,
            finished_count=self.finished_count,
            started_at=self.started_at,
            players=[p.to_info() for p in self.players],
        )
