"""
WebSocket transport for race clients.

Every inbound frame passes an InboundGate before it reaches the router: the
gate decodes it, counts consecutive malformed frames, and applies the
per-connection flood limit.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from race.messaging.encoder import DecodeError, decode
from race.messaging.protocol import ConnectionProtocol
from race.messaging.types import ErrorCode, ErrorMessage
from race.server.rate_limit import TokenBucket

logger = structlog.get_logger()

if TYPE_CHECKING:
    from race.messaging.router import MessageRouter

# 50 frames/sec sustained, burst of 80: a player tapping at the 20/sec race
# cap plus ready toggles and pings stays well inside it.
FLOOD_RATE = 50.0
FLOOD_BURST = 80

MAX_DECODE_ERRORS = 5

# Application close codes (4000-4999 range)
CLOSE_MALFORMED_FRAMES = 4004


class FrameRejectedError(Exception):
    """An inbound frame was refused; ``code`` is reported back to the client."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


class InboundGate:
    """Admit or refuse the inbound frames of one connection."""

    def __init__(
        self,
        *,
        rate: float = FLOOD_RATE,
        burst: int = FLOOD_BURST,
        max_decode_errors: int = MAX_DECODE_ERRORS,
    ) -> None:
        self._bucket = TokenBucket(rate=rate, burst=burst)
        self._max_decode_errors = max_decode_errors
        self.decode_errors = 0

    @property
    def should_disconnect(self) -> bool:
        return self.decode_errors >= self._max_decode_errors

    def admit(self, raw: bytes) -> dict[str, Any]:
        """Return the decoded message map or raise FrameRejectedError.

        A well-formed frame resets the malformed-frame count even when the
        flood limit then refuses it.
        """
        try:
            data = decode(raw)
        except DecodeError as e:
            self.decode_errors += 1
            raise FrameRejectedError(ErrorCode.INVALID_MESSAGE, str(e)) from e
        self.decode_errors = 0

        if not self._bucket.consume():
            raise FrameRejectedError(ErrorCode.RATE_LIMITED, "Too many messages")
        return data


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("player socket already closed") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect:
            raise ConnectionError("player socket already closed") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("player socket opened")
    await router.handle_connect(connection)

    gate = InboundGate()
    try:
        while True:
            raw = await connection.receive_bytes()
            try:
                data = gate.admit(raw)
            except FrameRejectedError as e:
                if e.code == ErrorCode.INVALID_MESSAGE:
                    logger.warning("malformed frame", error=str(e), strikes=gate.decode_errors)
                await connection.send_message(ErrorMessage(code=e.code, message=str(e)).model_dump())
                if gate.should_disconnect:
                    logger.info("closing player socket after repeated malformed frames")
                    await connection.close(code=CLOSE_MALFORMED_FRAMES, reason="malformed_frames")
                    return
                continue

            await router.handle_message(connection, data)
    except (WebSocketDisconnect, ConnectionError, RuntimeError):  # fmt: skip
        pass
    finally:
        logger.info("player socket closed")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
