"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import socketserver
import threading
import time
from contextlib import closing
from typing import AsyncGenerator, Callable, Generator, List

import pytest
import pytest_asyncio

from kvwire.network.connection import Connection, RetryPolicy
from kvwire.protocol.codec import FrameCodec, FrameDecoder
from kvwire.protocol.commands import Command, CommandType
from kvwire.protocol.errors import AuthenticationError, UnknownCommandError

TOKEN = b"penguins"


def find_free_port() -> int:
    """Find a port with nothing listening on it."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('127.0.0.1', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Fake cache server
# ============================================================================

class _CacheHandler(socketserver.BaseRequestHandler):
    """Decode frames from one client and answer each like the real server."""

    def handle(self):
        server: FakeCacheServer = self.server
        decoder = FrameDecoder(server.token)
        if server.expect_handshake:
            decoder.skip_handshake()

        received = bytearray()
        with server.lock:
            server.clients.append(self.request)
            server.received.append(received)

        while True:
            try:
                data = self.request.recv(4096)
            except OSError:
                return
            if not data:
                return
            received.extend(data)

            try:
                commands = decoder.feed(data)
            except AuthenticationError:
                self.request.sendall(b"-ERR 1001 access denied")
                return
            except UnknownCommandError:
                self.request.sendall(b"-ERR unknown command\n")
                continue

            for command in commands:
                reply = server.execute(command)
                delay = server.reply_delays.get(command.key)
                if delay:
                    time.sleep(delay)
                with server.lock:
                    server.commands.append(command)
                try:
                    self.request.sendall(reply)
                except OSError:
                    return


class FakeCacheServer(socketserver.ThreadingTCPServer):
    """
    In-process stand-in for the cache server.

    Records every raw byte and every decoded Command it receives, keeps a
    plain dict as its store and replies with the same strings as the
    production server ("OK", the value, or "-ERR ...").
    """

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, token: bytes = TOKEN, expect_handshake: bool = True):
        super().__init__(('127.0.0.1', 0), _CacheHandler)
        self.token = token
        self.expect_handshake = expect_handshake
        self.lock = threading.Lock()
        self.store = {}
        self.reply_delays = {}  # key -> seconds to wait before replying
        self.commands: List[Command] = []
        self.received: List[bytearray] = []
        self.clients: List[socket.socket] = []
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)

    @property
    def host(self) -> str:
        return self.server_address[0]

    @property
    def port(self) -> int:
        return self.server_address[1]

    def execute(self, command: Command) -> bytes:
        with self.lock:
            if command.type is CommandType.SET:
                self.store[command.key] = command.value
                return b"OK"
            if command.type is CommandType.GET:
                if command.key not in self.store:
                    return b"-ERR 1004 Key not found"
                return self.store[command.key]
            if command.type is CommandType.DEL:
                self.store.pop(command.key, None)
                return b"OK"
            self.store.clear()
            return b"OK"

    def start(self) -> "FakeCacheServer":
        self._thread.start()
        return self

    def stop(self) -> None:
        self.drop_clients()
        self.shutdown()
        self.server_close()

    def drop_clients(self) -> None:
        """Close every client connection from the server side."""
        with self.lock:
            clients, self.clients = list(self.clients), []
        for sock in clients:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def raw(self, index: int = 0) -> bytes:
        """All bytes received on the index-th connection."""
        with self.lock:
            return bytes(self.received[index])

    def wait_until(self, predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        """Poll predicate from synchronous tests."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    async def until(self, predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        """Poll predicate without blocking the event loop."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            await asyncio.sleep(0.01)
        return predicate()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def token() -> bytes:
    return TOKEN


@pytest.fixture
def codec() -> FrameCodec:
    """Create a strict FrameCodec using the default token."""
    return FrameCodec(TOKEN)


@pytest.fixture
def decoder() -> FrameDecoder:
    return FrameDecoder(TOKEN)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def cache_server() -> Generator[FakeCacheServer, None, None]:
    """A fake server expecting the bare handshake token (async client default)."""
    srv = FakeCacheServer(expect_handshake=True).start()
    yield srv
    srv.stop()


@pytest.fixture
def blocking_server() -> Generator[FakeCacheServer, None, None]:
    """A fake server expecting frames only (blocking client default)."""
    srv = FakeCacheServer(expect_handshake=False).start()
    yield srv
    srv.stop()


@pytest_asyncio.fixture
async def connection(cache_server: FakeCacheServer) -> AsyncGenerator[Connection, None]:
    """
    An active Connection to the fake server that collects replies.

    Received chunks are appended to connection.replies.
    """
    replies = []
    conn = Connection(
        cache_server.host,
        cache_server.port,
        TOKEN,
        on_data=replies.append,
        retry=RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05),
        reconnect=False,
    )
    conn.replies = replies
    await conn.connect()

    yield conn

    await conn.close()


@pytest.fixture
def dead_port() -> int:
    """A port nobody is listening on."""
    return find_free_port()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
