"""
Tests for the MessagePack frame codec.
"""

import msgpack
import pytest

from race.messaging.encoder import MAX_ARRAY_LEN, MAX_FRAME_LEN, MAX_STR_LEN, DecodeError, decode, encode
from race.messaging.types import ErrorCode, ErrorMessage, PlayerProgressMessage


class TestRoundTrip:
    def test_round_trip_server_message(self) -> None:
        data = PlayerProgressMessage(player_id="p1", progress=42.0, taps=42).model_dump(mode="json")

        assert decode(encode(data)) == data

    def test_plain_dump_packs_enums_as_strings(self) -> None:
        data = ErrorMessage(code=ErrorCode.CANNOT_START, message="Cannot start game").model_dump()

        assert decode(encode(data)) == {"type": "error", "code": "cannot_start", "message": "Cannot start game"}

    def test_round_trip_with_none_and_bool(self) -> None:
        data = {"finish_position": None, "ready": True}

        assert decode(encode(data)) == data


class TestDecodeErrors:
    def test_malformed_bytes(self) -> None:
        with pytest.raises(DecodeError, match="failed to decode"):
            decode(b"\xc1")

    def test_non_map_frame(self) -> None:
        with pytest.raises(DecodeError, match="expected map"):
            decode(msgpack.packb([1, 2, 3]))

    def test_oversized_frame(self) -> None:
        with pytest.raises(DecodeError, match="frame too large"):
            decode(b"\x00" * (MAX_FRAME_LEN + 1))

    def test_oversized_string(self) -> None:
        with pytest.raises(DecodeError):
            decode(msgpack.packb({"type": "x" * (MAX_STR_LEN + 1)}))

    def test_oversized_array(self) -> None:
        with pytest.raises(DecodeError):
            decode(msgpack.packb({"items": list(range(MAX_ARRAY_LEN + 1))}))

    def test_empty_frame(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"")
