"""
MessagePack codec for WebSocket frames.

Every frame is a single MessagePack map. Outbound frames come from a plain
``model_dump()``: StrEnum members pack as ordinary strings, so no JSON-mode
dump is needed.
"""

from typing import Any

import msgpack

# Client frames are tiny (a tap is a one-key map). The limits leave room for
# the largest server frame, a game_ended result for a full room.
MAX_FRAME_LEN = 16 * 1024
MAX_STR_LEN = 4 * 1024
MAX_ARRAY_LEN = 32
MAX_MAP_LEN = 32
MAX_BIN_LEN = 64
MAX_EXT_LEN = 64


class DecodeError(Exception):
    """Raised when an inbound frame cannot be decoded into a message map."""


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one inbound frame.

    Raises DecodeError if the frame is oversized, malformed, or not a map.
    """
    if len(data) > MAX_FRAME_LEN:
        raise DecodeError(f"frame too large: {len(data)} bytes (max {MAX_FRAME_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack frame: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
