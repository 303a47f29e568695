"""Fixed race rules shared by the registry, the engine, and the session layer."""

TAPS_TO_WIN = 100
MAX_PROGRESS = 100

MIN_PLAYERS = 2
MAX_PLAYERS = 10

MAX_TAPS_PER_SECOND = 20
TAP_COOLDOWN_MS = 1000 // MAX_TAPS_PER_SECOND

# Countdown ticks broadcast before the race starts; 0 means "go".
COUNTDOWN_VALUES = (3, 2, 1, 0)

# Finishers needed to end a two-player race, and the podium size otherwise.
TWO_PLAYER_FINISHERS = 1
PODIUM_SIZE = 3

DEFAULT_GAME_TIMEOUT_SECONDS = 90

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
ROOM_CODE_MAX_ATTEMPTS = 100

PLAYER_COLORS = (
    "#EF4444",
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#8B5CF6",
    "#F97316",
    "#EC4899",
    "#06B6D4",
    "#84CC16",
    "#6366F1",
)


def clamp_max_players(max_players: int) -> int:
    """Clamp a requested room capacity into [MIN_PLAYERS, MAX_PLAYERS]."""
    return min(max(max_players, MIN_PLAYERS), MAX_PLAYERS)


def color_for_slot(slot: int) -> str:
    return PLAYER_COLORS[slot % len(PLAYER_COLORS)]
