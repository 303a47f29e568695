"""Typed domain exceptions for the race core.

Ordinary refusals (room full, wrong state, not host) are not exceptions: the
registry and the engine return None and the session layer turns that into an
error message. Exceptions are reserved for failures the caller cannot
express as a refusal.
"""


class RaceError(Exception):
    """Base exception for race domain failures.

    Caught by the MessageRouter and reported to the requester as an
    ``action_failed`` error.
    """


class RoomCodeGenerationError(RaceError):
    """No unused room code was found within the allowed number of attempts."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"could not generate a unique room code after {attempts} attempts")
