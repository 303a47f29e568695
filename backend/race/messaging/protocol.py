"""Transport-agnostic connection interface used by the session layer."""

from abc import ABC, abstractmethod
from typing import Any

from race.messaging.encoder import encode


class ConnectionProtocol(ABC):
    """
    One client connection.

    The session layer only talks to this interface, so race flows can be
    exercised in tests with an in-memory connection.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Transient identifier, unique for the life of the connection."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))
