"""
Race state machine and tap scoring.

The engine drives each room through waiting -> countdown -> playing ->
finished and back to waiting on reset. Every method is synchronous: a state
transition is decided and applied in a single call, so the caller can
broadcast the result without another request slipping in between.
"""

import time
from collections.abc import Callable

import structlog

from race.logic.constants import (
    MAX_PROGRESS,
    MIN_PLAYERS,
    PODIUM_SIZE,
    TAP_COOLDOWN_MS,
    TWO_PLAYER_FINISHERS,
)
from race.logic.enums import GameState
from race.logic.models import Player, Room
from race.logic.registry import RoomRegistry
from race.logic.types import GameEndResult, TapResult

logger = structlog.get_logger()

Clock = Callable[[], int]


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def monotonic_millis() -> int:
    return time.monotonic_ns() // 1_000_000


def compute_progress(taps: int, taps_to_win: int) -> float:
    """Return race progress as a percentage, clamped to [0, 100]."""
    return min(MAX_PROGRESS, MAX_PROGRESS * taps / taps_to_win)


def finishers_needed(player_count: int) -> int:
    """Number of finishers that ends a race with the given player count."""
    if player_count == MIN_PLAYERS:
        return TWO_PLAYER_FINISHERS
    return min(PODIUM_SIZE, player_count)


def podium(players: list[Player]) -> list[Player]:
    """Players with a finish position inside the podium, best first."""
    placed = [p for p in players if p.finish_position is not None and p.finish_position <= PODIUM_SIZE]
    return sorted(placed, key=lambda p: p.finish_position)


class MatchEngine:
    """Apply race rules to rooms owned by a RoomRegistry.

    ``clock`` returns wall-clock epoch milliseconds and stamps start and
    finish times. ``tap_clock`` is monotonic and only measures tap spacing,
    so a wall-clock step cannot stall tapping. Tests inject fake clocks.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        clock: Clock = epoch_millis,
        tap_clock: Clock = monotonic_millis,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._tap_clock = tap_clock

    def can_start(self, connection_id: str) -> Room | None:
        """Return the room if the requester may start the race now."""
        room = self._registry.get_room_by_connection(connection_id)
        if room is None or room.state != GameState.WAITING:
            return None
        player = room.get_player_by_connection(connection_id)
        if player is None or room.host_player_id != player.player_id:
            return None
        if room.player_count < MIN_PLAYERS or not room.all_ready:
            return None
        return room

    def start_countdown(self, room_code: str) -> Room | None:
        """Move a waiting room into countdown, clearing the previous race."""
        room = self._registry.get_room(room_code)
        if room is None or room.state != GameState.WAITING:
            return None
        room.state = GameState.COUNTDOWN
        room.finished_count = 0
        room.started_at = None
        for player in room.players:
            player.reset_race_state()
        logger.info("countdown started", room_code=room.room_code, players=room.player_count)
        return room

    def start_playing(self, room_code: str) -> Room | None:
        """Move a room from countdown to playing and stamp the start time."""
        room = self._registry.get_room(room_code)
        if room is None or room.state != GameState.COUNTDOWN:
            return None
        room.state = GameState.PLAYING
        room.started_at = self._clock()
        logger.info("race started", room_code=room.room_code)
        return room

    def handle_tap(self, connection_id: str) -> TapResult | None:
        """Score one tap. Return None when the tap is dropped."""
        room = self._registry.get_room_by_connection(connection_id)
        if room is None or room.state != GameState.PLAYING:
            return None
        player = room.get_player_by_connection(connection_id)
        if player is None or player.finished:
            return None

        tapped_at = self._tap_clock()
        if player.last_tap_at is not None and tapped_at - player.last_tap_at < TAP_COOLDOWN_MS:
            return None
        player.last_tap_at = tapped_at

        player.taps += 1
        player.progress = compute_progress(player.taps, room.taps_to_win)

        finished = False
        if player.progress >= MAX_PROGRESS:
            room.finished_count += 1
            player.finished = True
            player.finish_position = room.finished_count
            player.finished_at = self._clock()
            finished = True
            logger.info(
                "player finished",
                room_code=room.room_code,
                slot=player.slot,
                position=player.finish_position,
            )

        return TapResult(room=room, player=player, finished=finished)

    def check_game_end(self, room_code: str, *, force_end: bool = False) -> GameEndResult | None:
        """Finish a playing room if its end condition holds (or when forced).

        Return None for an unknown room and ``ended=False`` when the room is
        not playing or the condition does not hold yet.
        """
        room = self._registry.get_room(room_code)
        if room is None:
            return None
        if room.state != GameState.PLAYING:
            return GameEndResult(ended=False, players=list(room.players))

        finisher_count = len(room.finished_players)
        if not force_end and not (
            finisher_count >= room.player_count or finisher_count >= finishers_needed(room.player_count)
        ):
            return GameEndResult(ended=False, players=list(room.players))

        room.state = GameState.FINISHED
        if force_end:
            self._rank_unfinished_by_taps(room)

        duration_ms = max(0, self._clock() - room.started_at) if room.started_at is not None else 0
        winners = podium(room.players)
        logger.info(
            "race ended",
            room_code=room.room_code,
            forced=force_end,
            duration_ms=duration_ms,
            winners=[w.slot for w in winners],
        )
        return GameEndResult(
            ended=True,
            winners=winners,
            players=list(room.players),
            duration_ms=duration_ms,
            forced=force_end,
        )

    def reset_room(self, room_code: str) -> Room | None:
        """Return a finished room to waiting for another race."""
        room = self._registry.get_room(room_code)
        if room is None or room.state != GameState.FINISHED:
            return None
        room.state = GameState.WAITING
        room.finished_count = 0
        room.started_at = None
        for player in room.players:
            player.reset_race_state()
            player.ready = False
        logger.info("room reset", room_code=room.room_code)
        return room

    @staticmethod
    def _rank_unfinished_by_taps(room: Room) -> None:
        """Place everyone still racing after the finishers present, most taps first.

        sorted() is stable, so equal tap counts keep join order.
        """
        unfinished = sorted((p for p in room.players if not p.finished), key=lambda p: p.taps, reverse=True)
        # Finishers who already left hold no position in the room.
        next_position = max((p.finish_position for p in room.players if p.finished), default=0) + 1
        for player in unfinished:
            player.finish_position = next_position
            player.finished = True
            next_position += 1
        room.finished_count = next_position - 1
