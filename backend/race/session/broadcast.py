"""Shared broadcast utility for sending one message to many connections."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from race.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Send a message to every connection, skipping one if excluded.

    Callers pass a snapshot list: a leave triggered while we yield on
    send_message must not mutate what we iterate. A failed send to one
    recipient does not stop delivery to the rest.
    """
    for connection in connections:
        if connection.connection_id != exclude_connection_id:
            with contextlib.suppress(RuntimeError, OSError):
                await connection.send_message(message)
