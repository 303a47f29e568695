"""
String enum definitions for race concepts.
"""

from enum import StrEnum


class GameState(StrEnum):
    """Lifecycle of a race inside a room.

    waiting -> countdown -> playing -> finished, and finished -> waiting on reset.
    """

    WAITING = "waiting"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    FINISHED = "finished"
