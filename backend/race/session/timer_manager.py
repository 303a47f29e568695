"""Manage per-room countdown and race-timeout tasks."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from race.logic.constants import COUNTDOWN_VALUES

logger = structlog.get_logger()

# (room_code, tick_value) -> Awaitable[None]
CountdownTickCallback = Callable[[str, int], Awaitable[None]]
# (room_code) -> Awaitable[None]
RaceTimeoutCallback = Callable[[str], Awaitable[None]]


class TimerManager:
    """Own the asyncio tasks that drive timed room transitions.

    Each room has at most one countdown task and one race-timeout task.
    The manager only schedules and cancels; the callbacks (supplied by the
    SessionManager) re-check room state before acting, so a callback that
    fires after the room moved on is harmless.
    """

    def __init__(
        self,
        *,
        on_countdown_tick: CountdownTickCallback,
        on_race_timeout: RaceTimeoutCallback,
        countdown_tick_seconds: float = 1.0,
        race_timeout_seconds: float = 0,
    ) -> None:
        self._on_countdown_tick = on_countdown_tick
        self._on_race_timeout = on_race_timeout
        self._countdown_tick_seconds = countdown_tick_seconds
        self._race_timeout_seconds = race_timeout_seconds
        self._countdowns: dict[str, asyncio.Task[None]] = {}
        self._race_timeouts: dict[str, asyncio.Task[None]] = {}

    @property
    def race_timeout_enabled(self) -> bool:
        return self._race_timeout_seconds > 0

    def has_countdown(self, room_code: str) -> bool:
        task = self._countdowns.get(room_code)
        return task is not None and not task.done()

    def has_race_timeout(self, room_code: str) -> bool:
        task = self._race_timeouts.get(room_code)
        return task is not None and not task.done()

    def start_countdown(self, room_code: str) -> None:
        """Start ticking 3, 2, 1, 0 for a room, replacing any running countdown."""
        self.cancel_countdown(room_code)
        self._countdowns[room_code] = asyncio.create_task(self._run_countdown(room_code))

    def start_race_timeout(self, room_code: str) -> None:
        """Schedule the forced end of a race. No-op when the timeout is disabled."""
        self.cancel_race_timeout(room_code)
        if not self.race_timeout_enabled:
            return
        self._race_timeouts[room_code] = asyncio.create_task(self._run_race_timeout(room_code))

    def cancel_countdown(self, room_code: str) -> None:
        _cancel(self._countdowns.pop(room_code, None))

    def cancel_race_timeout(self, room_code: str) -> None:
        _cancel(self._race_timeouts.pop(room_code, None))

    def cleanup_room(self, room_code: str) -> None:
        """Cancel every timer belonging to a room."""
        self.cancel_countdown(room_code)
        self.cancel_race_timeout(room_code)

    def cancel_all(self) -> None:
        for room_code in list(self._countdowns):
            self.cancel_countdown(room_code)
        for room_code in list(self._race_timeouts):
            self.cancel_race_timeout(room_code)

    async def _run_countdown(self, room_code: str) -> None:
        try:
            for value in COUNTDOWN_VALUES:
                await asyncio.sleep(self._countdown_tick_seconds)
                await self._on_countdown_tick(room_code, value)
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
            logger.exception("countdown callback failed", room_code=room_code)
        finally:
            if self._countdowns.get(room_code) is asyncio.current_task():
                del self._countdowns[room_code]

    async def _run_race_timeout(self, room_code: str) -> None:
        try:
            await asyncio.sleep(self._race_timeout_seconds)
            await self._on_race_timeout(room_code)
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
            logger.exception("race timeout callback failed", room_code=room_code)
        finally:
            if self._race_timeouts.get(room_code) is asyncio.current_task():
                del self._race_timeouts[room_code]


def _cancel(task: asyncio.Task[None] | None) -> None:
    """Cancel a timer task unless it is the task currently running.

    A timeout callback may end the race and ask for its own timer to be
    cancelled; cancelling the running task would abort the callback halfway.
    """
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()
