"""
Blocking Connection Module

A socket-based connection that reads one reply after every frame, for
scripts and interactive use where a synchronous request/reply flow is
easier to work with than callbacks.

The reply is whatever a single recv() returns; the protocol has no reply
framing, so a reply larger than the read buffer (or one split by the
network) may be returned in pieces.
"""

import logging
import socket
import threading
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import BytesLike, to_bytes
from ..protocol.errors import (
    ConnectionClosedError,
    ConnectionFailedError,
    ConnectionTimeoutError,
    NotConnectedError,
)

logger = logging.getLogger(__name__)


class BlockingConnection:
    """Synchronous TCP connection with one raw reply per frame."""

    def __init__(
            self,
            host: str = None,
            port: int = None,
            token: BytesLike = None,
            timeout: float = None,
            handshake: bool = False,
            read_buffer_size: int = None,
    ):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.token = to_bytes(token if token is not None else settings.TOKEN)
        self.timeout = timeout if timeout is not None else settings.CONNECT_TIMEOUT
        self.handshake = handshake
        self.read_buffer_size = read_buffer_size or settings.READ_BUFFER_SIZE
        self.sock: Optional[socket.socket] = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self.sock is not None

    def connect(self) -> None:
        """
        Connect to the server.

        Raises:
            ConnectionFailedError: if the server cannot be reached
        """
        if self.sock is not None:
            return
        sock = None
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
            if self.handshake:
                sock.sendall(self.token)
        except OSError as exc:
            if sock is not None:
                sock.close()
            logger.error(f"Connection error: {exc}")
            raise ConnectionFailedError(self.host, self.port, 1, exc) from exc
        self.sock = sock
        logger.info(f"Connected to server on {self.host}:{self.port}")

    def close(self) -> None:
        """Disconnect from the server."""
        if self.sock is None:
            return
        try:
            self.sock.close()
        except OSError:
            pass
        self.sock = None
        logger.info(f"Closed connection to {self.host}:{self.port}")

    def request(self, frame: bytes) -> bytes:
        """
        Send one frame and return the raw bytes of the next reply.

        Raises:
            NotConnectedError: if connect() was not called
            ConnectionTimeoutError: if no reply arrives within the timeout;
                the connection is closed and must be reopened
            ConnectionClosedError: if the server closed the connection
        """
        if self.sock is None:
            raise NotConnectedError("not connected")

        with self._lock:
            if self.sock is None:
                raise NotConnectedError("not connected")
            try:
                self.sock.sendall(frame)
                data = self.sock.recv(self.read_buffer_size)
            except socket.timeout as exc:
                # The late reply must never reach the next request
                self.close()
                raise ConnectionTimeoutError(f"no reply from {self.host}:{self.port}") from exc
            except OSError as exc:
                logger.error(f"Connection error: {exc}")
                self.close()
                raise ConnectionClosedError(str(exc)) from exc

        if not data:
            self.close()
            raise ConnectionClosedError("connection closed by server")
        logger.debug(f"Received {len(data)} byte reply")
        return data

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
