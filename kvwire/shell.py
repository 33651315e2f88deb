#!/usr/bin/env python3
"""
Interactive Shell for KV-Wire

A simple command-line client for manually talking to a cache server.

Usage:
    kvwire-shell                  # Connect to 127.0.0.1:4000
    kvwire-shell --host 1.2.3.4   # Connect to specific host
    kvwire-shell --port 8080      # Connect to specific port

Commands:
    SET <key> <value> [ttl]   - Store a key-value pair
    GET <key>                 - Retrieve a value
    DEL <key>                 - Delete a key
    RAL                       - Send RAL (bulk operation)
    help                      - Show this help
    exit                      - Exit shell
"""

import argparse
import sys
from typing import Iterator, Optional

from .client import BlockingClient
from .config.settings import settings
from .protocol.errors import KVWireError, NotConnectedError

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


HELP = """
KV-Wire Commands:
-----------------
  SET <key> <value> [ttl]   Store a key-value pair (optional TTL in seconds)
  GET <key>                 Retrieve the value for a key
  DEL <key>                 Delete a key-value pair
  RAL                       Send RAL to the server

Shell Commands:
---------------
  help                      Show this help message
  exit                      Exit the shell
  reconnect                 Reconnect to the server
  status                    Show connection status

Examples:
---------
  SET mykey myvalue         Store "myvalue" under "mykey"
  SET tempkey tempval 60    Store with 60 second TTL
  GET mykey                 Get value for "mykey"
  DEL mykey                 Delete "mykey"
"""


def run_command(client: BlockingClient, line: str) -> str:
    """
    Execute one protocol command line and return the reply for display.

    Errors are returned as "ERROR: ..." strings so the shell keeps running.
    """
    parts = line.split()
    name = parts[0].upper()
    args = parts[1:]

    try:
        if name == "SET" and len(args) in (2, 3):
            reply = client.set(*args)
        elif name == "GET" and len(args) == 1:
            reply = client.get(args[0])
        elif name in ("DEL", "DELETE") and len(args) == 1:
            reply = client.delete(args[0])
        elif name == "RAL" and not args:
            reply = client.ral()
        else:
            return f"ERROR: invalid command {line!r} (type 'help')"
    except NotConnectedError:
        return "ERROR: Not connected (type 'reconnect')"
    except KVWireError as e:
        return f"ERROR: {e}"

    return reply.decode("utf-8", "replace")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kvwire-shell",
        description="Interactive shell for a binary key-value cache server",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help=f"Server host (default: {settings.HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help=f"Server port (default: {settings.PORT})"
    )
    parser.add_argument(
        "--token",
        type=str,
        default=settings.TOKEN,
        help="Shared secret sent in front of every frame"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )
    parser.add_argument(
        "--lenient-ttl",
        action="store_true",
        help="Send TTL 0 for non-numeric input instead of failing"
    )
    return parser.parse_args(argv)


def shell_command(client: BlockingClient, word: str) -> Optional[str]:
    """
    Run a client-side command (help, status, reconnect).

    Returns the text to print, or None if word is not a shell command.
    """
    if word == "help":
        return HELP
    if word == "status":
        conn = client.connection
        state = "Connected" if client.is_connected else "Disconnected"
        return f"Status: {state}\nServer: {conn.host}:{conn.port}"
    if word == "reconnect":
        client.close()
        try:
            client.connect()
        except KVWireError as e:
            return f"Reconnection failed: {e}"
        return "Reconnected!"
    return None


def read_lines(prompt: str = ">>> ") -> Iterator[str]:
    """Yield non-empty input lines until EOF or exit/quit."""
    while True:
        try:
            line = input(prompt).strip()
        except EOFError:
            print()
            return
        if line.lower() in ("exit", "quit"):
            return
        if line:
            yield line


def main(argv=None):
    args = parse_args(argv)
    print(f"KV-Wire shell, connecting to {args.host}:{args.port}...")

    client = BlockingClient(
        args.host,
        args.port,
        token=args.token,
        timeout=args.timeout,
        strict_ttl=not args.lenient_ttl,
    )
    try:
        client.connect()
    except KVWireError as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    print("Connected! Type 'help' for commands.\n")

    try:
        for line in read_lines():
            output = shell_command(client, line.lower())
            print(output if output is not None else run_command(client, line))
    except KeyboardInterrupt:
        print()
    finally:
        client.close()
    print("Goodbye!")


if __name__ == "__main__":
    main()
