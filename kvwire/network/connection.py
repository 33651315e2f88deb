"""
Async Connection Module

This module owns the single long-lived TCP stream a ProtocolClient writes
frames to.

Lifecycle:

    DISCONNECTED -> CONNECTING -> AUTHENTICATED -> ACTIVE -> CLOSED
                        |                            |
                        +-> FAILED (retries spent)   +-> DISCONNECTED (peer
                                                         went away, reconnect)

Inbound bytes are not correlated with any request: every chunk the peer
sends is passed to the on_data callback as it arrives.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config.settings import settings
from ..protocol.commands import BytesLike, to_bytes
from ..protocol.errors import (
    ConnectionClosedError,
    ConnectionFailedError,
    NotConnectedError,
)

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for connection attempts.

    Attributes:
        max_attempts: Total attempts per connect (at least 1)
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for any single delay
    """
    max_attempts: int = settings.MAX_RETRIES
    base_delay: float = settings.BACKOFF_BASE
    max_delay: float = settings.BACKOFF_MAX

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


def log_response(data: bytes) -> None:
    """Default on_data handler: log the raw reply."""
    logger.info(f"Response from server: {data.decode('utf-8', 'replace')}")


class Connection:
    """
    One authenticated, ordered byte stream to a cache server.

    Frames are written one at a time under a lock, so concurrent callers
    on the same event loop can never interleave their bytes.

    Usage:
        conn = Connection("127.0.0.1", 4000, b"penguins", on_data=print)
        await conn.connect()
        await conn.send(frame)
        await conn.close()
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
            connect_timeout: float = None,
            read_buffer_size: int = None,
            on_state_change: Callable[[ConnectionState], None] = None,
    ):
        """
        Initialize the connection (does not connect).

        Args:
            host: Server address (default from settings)
            port: Server port (default from settings)
            token: Session token sent as the handshake (default from settings)
            on_data: Called with every chunk of bytes the server sends
            retry: Backoff policy for connection attempts
            reconnect: Reconnect in the background when the peer goes away
            handshake: Send the bare token once right after connecting
            connect_timeout: Seconds allowed for each connection attempt
            read_buffer_size: Maximum bytes per on_data chunk
            on_state_change: Called after every lifecycle transition
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.token = to_bytes(token if token is not None else settings.TOKEN)
        self.on_data = on_data if on_data is not None else log_response
        self.retry = retry if retry is not None else RetryPolicy()
        self.reconnect = reconnect
        self.handshake = handshake
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        self.read_buffer_size = read_buffer_size or settings.READ_BUFFER_SIZE
        self.on_state_change = on_state_change

        self._state = ConnectionState.DISCONNECTED
        self._reader: Optional[StreamReader] = None
        self._writer: Optional[StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()
        self._closed = asyncio.Event()
        self._frames_sent = 0
        self._bytes_received = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_active(self) -> bool:
        """Check if frames can currently be sent."""
        return self._state is ConnectionState.ACTIVE

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug(f"{self.host}:{self.port} {self._state.value} -> {state.value}")
        self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)

    async def connect(self) -> None:
        """
        Connect, authenticate and start reading.

        Retries with exponential backoff on connection errors.

        Raises:
            ConnectionFailedError: if every attempt failed
        """
        if self._state is ConnectionState.ACTIVE:
            return
        self._closed.clear()
        await self._establish()

    async def _establish(self) -> None:
        attempts = max(1, self.retry.max_attempts)
        last_error = None

        for attempt in range(1, attempts + 1):
            self._set_state(ConnectionState.CONNECTING)
            writer = None
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.connect_timeout,
                )
                if self.handshake:
                    writer.write(self.token)
                    await writer.drain()
            except (OSError, asyncio.TimeoutError) as exc:
                last_error = exc
                if writer is not None:
                    await self._discard(writer)
                self._set_state(ConnectionState.DISCONNECTED)
                if attempt < attempts:
                    delay = self.retry.delay(attempt)
                    logger.warning(
                        f"Connection to {self.host}:{self.port} failed "
                        f"(attempt {attempt}/{attempts}): {exc!r}; retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                continue

            self._reader, self._writer = reader, writer
            self._set_state(ConnectionState.AUTHENTICATED)
            self._reader_task = asyncio.create_task(self._read_loop())
            self._set_state(ConnectionState.ACTIVE)
            logger.info(f"Connected to server on {self.host}:{self.port}")
            return

        self._set_state(ConnectionState.FAILED)
        logger.error(f"Connection error: giving up on {self.host}:{self.port} after {attempts} attempt(s)")
        self._closed.set()
        raise ConnectionFailedError(self.host, self.port, attempts, last_error)

    async def send(self, frame: bytes) -> None:
        """
        Write one complete frame.

        Returns once the frame is handed to the transport; there is no
        acknowledgement from the server.

        Raises:
            NotConnectedError: if the connection is not active
            ConnectionClosedError: if the write fails
        """
        if self._state is not ConnectionState.ACTIVE:
            raise NotConnectedError(f"cannot send while connection is {self._state.value}")

        async with self._write_lock:
            if self._state is not ConnectionState.ACTIVE or self._writer is None:
                raise NotConnectedError(f"cannot send while connection is {self._state.value}")
            try:
                self._writer.write(frame)
                await self._writer.drain()
            except OSError as exc:
                logger.error(f"Connection error while sending: {exc}")
                raise ConnectionClosedError(str(exc)) from exc
            self._frames_sent += 1
        logger.debug(f"Sent {len(frame)} byte frame")

    async def _read_loop(self) -> None:
        """Pass every inbound chunk to on_data until the stream ends."""
        try:
            while True:
                data = await self._reader.read(self.read_buffer_size)
                if not data:
                    logger.info("Disconnected from server")
                    break
                self._bytes_received += len(data)
                try:
                    self.on_data(data)
                except Exception:  # Keep reading even if the handler is broken
                    logger.exception("on_data handler failed")
        except ConnectionResetError:
            logger.info(f"Connection reset by server {self.host}:{self.port}")
        except OSError as exc:
            logger.error(f"Connection error: {exc}")

        await self._handle_disconnect()

    async def _handle_disconnect(self) -> None:
        if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            return

        # State leaves ACTIVE before the writer is torn down
        if self.reconnect:
            self._set_state(ConnectionState.DISCONNECTED)
            await self._close_writer()
            self._reconnect_task = asyncio.create_task(self._reconnect())
        else:
            self._set_state(ConnectionState.CLOSED)
            await self._close_writer()
            self._closed.set()

    async def _reconnect(self) -> None:
        logger.info(f"Reconnecting to {self.host}:{self.port}")
        try:
            await self._establish()
        except ConnectionFailedError:
            pass  # Already logged, state is FAILED

    async def _close_writer(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is not None:
            await self._discard(writer)

    @staticmethod
    async def _discard(writer: StreamWriter) -> None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    async def close(self) -> None:
        """
        Close the connection and stop background work.

        Frames already written are not recalled.
        """
        if self._state is ConnectionState.CLOSED:
            return

        self._set_state(ConnectionState.CLOSED)
        current = asyncio.current_task()
        for task in (self._reconnect_task, self._reader_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reader_task = None
        self._reconnect_task = None

        await self._close_writer()
        self._closed.set()
        logger.info(f"Closed connection to {self.host}:{self.port}")

    async def wait_closed(self) -> None:
        """Wait until the connection is CLOSED or FAILED."""
        await self._closed.wait()

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "state": self._state.value,
            "host": self.host,
            "port": self.port,
            "frames_sent": self._frames_sent,
            "bytes_received": self._bytes_received,
        }
