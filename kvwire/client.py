"""
KV-Wire Clients

ProtocolClient is the asyncio client: every operation appends one frame to
the shared connection and returns nothing. Replies arrive through the
connection's on_data callback and cannot be matched to the call that caused
them, since the protocol carries no request identifiers.

BlockingClient speaks the same protocol over a plain socket and returns the
raw bytes of the reply read after each frame.
"""

import logging
from typing import Callable, Union

from .config.settings import settings
from .network.blocking import BlockingConnection
from .network.connection import Connection, RetryPolicy
from .protocol.codec import FrameCodec
from .protocol.commands import BytesLike, Command

logger = logging.getLogger(__name__)

TTL = Union[int, str, bytes]


class ProtocolClient:
    """
    Fire-and-forget async client.

    Usage:
        async with ProtocolClient(on_data=print) as client:
            await client.set("foo", "bar", 10)
            await client.get("foo")
            await client.delete("foo")
            await client.ral()
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            token: BytesLike = None,
            on_data: Callable[[bytes], None] = None,
            retry: RetryPolicy = None,
            reconnect: bool = True,
            handshake: bool = True,
            strict_ttl: bool = None,
    ):
        token = token if token is not None else settings.TOKEN
        self.codec = FrameCodec(
            token,
            strict_ttl=settings.STRICT_TTL if strict_ttl is None else strict_ttl,
        )
        self.connection = Connection(
            host=host,
            port=port,
            token=token,
            on_data=on_data,
            retry=retry,
            reconnect=reconnect,
            handshake=handshake,
        )

    async def connect(self) -> None:
        await self.connection.connect()

    async def close(self) -> None:
        await self.connection.close()

    async def _send(self, frame: bytes, command: str) -> None:
        logger.debug(f"-> {command}")
        await self.connection.send(frame)

    async def set(self, key: BytesLike, value: BytesLike, ttl: TTL = 0) -> None:
        """Store value under key, expiring after ttl seconds (0 = never)."""
        frame = self.codec.encode_set(key, value, ttl)
        await self._send(frame, "SET")

    async def get(self, key: BytesLike) -> None:
        """Ask for the value of key; the reply arrives via on_data."""
        await self._send(self.codec.encode_get(key), "GET")

    async def delete(self, key: BytesLike) -> None:
        """Remove key."""
        await self._send(self.codec.encode_del(key), "DEL")

    async def ral(self) -> None:
        await self._send(self.codec.encode_ral(), "RAL")

    async def execute(self, command: Command) -> None:
        """Send a prebuilt Command."""
        await self._send(self.codec.encode(command), command.type.name)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class BlockingClient:
    """
    Synchronous client returning the raw reply to each command.

    Usage:
        with BlockingClient() as client:
            client.set("foo", "bar", 10)   # b"OK"
            client.get("foo")              # b"bar"
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            token: BytesLike = None,
            timeout: float = None,
            handshake: bool = False,
            strict_ttl: bool = None,
    ):
        token = token if token is not None else settings.TOKEN
        self.codec = FrameCodec(
            token,
            strict_ttl=settings.STRICT_TTL if strict_ttl is None else strict_ttl,
        )
        self.connection = BlockingConnection(
            host=host,
            port=port,
            token=token,
            timeout=timeout,
            handshake=handshake,
        )

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    def connect(self) -> None:
        self.connection.connect()

    def close(self) -> None:
        self.connection.close()

    def set(self, key: BytesLike, value: BytesLike, ttl: TTL = 0) -> bytes:
        return self.connection.request(self.codec.encode_set(key, value, ttl))

    def get(self, key: BytesLike) -> bytes:
        return self.connection.request(self.codec.encode_get(key))

    def delete(self, key: BytesLike) -> bytes:
        return self.connection.request(self.codec.encode_del(key))

    def ral(self) -> bytes:
        return self.connection.request(self.codec.encode_ral())

    def execute(self, command: Command) -> bytes:
        return self.connection.request(self.codec.encode(command))

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
