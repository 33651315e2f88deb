"""Protocol module for KV-Wire."""

from .codec import FrameCodec, FrameDecoder, decode_frames, pack_length, parse_ttl
from .commands import Command, CommandType
from .errors import (
    AuthenticationError,
    ConnectionClosedError,
    ConnectionFailedError,
    ConnectionTimeoutError,
    FieldTooLargeError,
    InvalidTTLError,
    KVConnectionError,
    KVWireError,
    NotConnectedError,
    ProtocolError,
    UnknownCommandError,
)

__all__ = [
    "Command",
    "CommandType",
    "FrameCodec",
    "FrameDecoder",
    "decode_frames",
    "pack_length",
    "parse_ttl",
    "KVWireError",
    "ProtocolError",
    "FieldTooLargeError",
    "InvalidTTLError",
    "AuthenticationError",
    "UnknownCommandError",
    "KVConnectionError",
    "NotConnectedError",
    "ConnectionClosedError",
    "ConnectionTimeoutError",
    "ConnectionFailedError",
]
