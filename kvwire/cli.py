#!/usr/bin/env python3
"""
KV-Wire Command Line Entry Point

Opens one session, sends the requested commands in order, prints every
reply chunk as it arrives and disconnects after a fixed linger time.

Usage:
    kvwire                                   # Demo: set foo bar 10, get foo, del foo, ral
    kvwire set foo bar 10 get foo            # Chain commands in one session
    kvwire --host 10.0.0.5 --port 4000 ral   # Custom server
    kvwire --linger 1 get foo                # Disconnect after 1 second
    kvwire --lenient-ttl set k v 10s         # Legacy TTL parsing ("10s" -> 10)

Environment Variables:
    KVWIRE_HOST, KVWIRE_PORT, KVWIRE_TOKEN, KVWIRE_LINGER,
    KVWIRE_STRICT_TTL, KVWIRE_DEBUG
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Sequence, Tuple

from .client import ProtocolClient
from .config.settings import settings
from .network.connection import RetryPolicy
from .protocol.errors import KVWireError

logger = logging.getLogger(__name__)

# command word -> (client method, number of arguments)
COMMANDS = {
    "set": ("set", 3),
    "get": ("get", 1),
    "del": ("delete", 1),
    "delete": ("delete", 1),
    "ral": ("ral", 0),
}

DEMO = [
    ("set", ("foo", "bar", "10")),
    ("get", ("foo",)),
    ("delete", ("foo",)),
    ("ral", ()),
]


def parse_commands(words: Sequence[str]) -> List[Tuple[str, tuple]]:
    """
    Split positional words into (method, args) pairs.

    Raises:
        ValueError: on an unknown command or missing arguments
    """
    commands = []
    i = 0
    while i < len(words):
        name = words[i].lower()
        if name not in COMMANDS:
            raise ValueError(f"unknown command {words[i]!r}")
        method, nargs = COMMANDS[name]
        args = tuple(words[i + 1:i + 1 + nargs])
        if len(args) != nargs:
            raise ValueError(f"{name} expects {nargs} argument(s), got {len(args)}")
        commands.append((method, args))
        i += 1 + nargs
    return commands


def parse_args(argv: Sequence[str] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="kvwire",
        description="KV-Wire: send commands to a binary key-value cache server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "commands",
        nargs="*",
        metavar="COMMAND",
        help="set KEY VALUE TTL | get KEY | del KEY | ral (runs a demo if omitted)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Server host",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Server port",
    )

    parser.add_argument(
        "--token",
        type=str,
        default=settings.TOKEN,
        help="Shared secret sent in front of every frame",
    )

    parser.add_argument(
        "--linger",
        type=float,
        default=settings.LINGER,
        help="Seconds to wait for replies before disconnecting",
    )

    parser.add_argument(
        "--retries",
        type=int,
        default=settings.MAX_RETRIES,
        help="Connection attempts before giving up",
    )

    parser.add_argument(
        "--no-handshake",
        action="store_true",
        help="Do not send the bare token right after connecting",
    )

    parser.add_argument(
        "--lenient-ttl",
        action="store_true",
        default=not settings.STRICT_TTL,
        help="Send TTL 0 for non-numeric input instead of failing",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    try:
        args.commands = parse_commands(args.commands) if args.commands else list(DEMO)
    except ValueError as exc:
        parser.error(str(exc))
    return args


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def print_response(data: bytes) -> None:
    print(f"Response from server: {data.decode('utf-8', 'replace')}", flush=True)


async def run_session(args: argparse.Namespace) -> int:
    """
    Run one client session.

    Returns:
        Process exit code (0 on success)
    """
    client = ProtocolClient(
        host=args.host,
        port=args.port,
        token=args.token,
        on_data=print_response,
        retry=RetryPolicy(max_attempts=args.retries),
        reconnect=False,
        handshake=not args.no_handshake,
        strict_ttl=not args.lenient_ttl,
    )

    try:
        await client.connect()
    except KVWireError as e:
        logger.error(f"Connection error: {e}")
        return 1

    try:
        for method, method_args in args.commands:
            await getattr(client, method)(*method_args)

        # Replies are uncorrelated, so just wait for whatever arrives
        try:
            await asyncio.wait_for(client.connection.wait_closed(), timeout=args.linger)
            logger.info("Server closed the connection")
        except asyncio.TimeoutError:
            pass
    except KVWireError as e:
        logger.error(f"Command failed: {e}")
        return 1
    finally:
        await client.close()

    return 0


def main(argv: Sequence[str] = None) -> int:
    """Main entry point for the client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    logger.debug(f"Connecting to {args.host}:{args.port} with {len(args.commands)} command(s)")

    try:
        return asyncio.run(run_session(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130


if __name__ == "__main__":
    sys.exit(main())
