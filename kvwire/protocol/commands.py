"""
Protocol Command Definitions

This module defines the data structures for the frames a client sends.
The server's replies are free-form bytes and have no counterpart here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview, str]


class CommandType(Enum):
    """Enumeration of supported command types, valued by their wire tag."""
    SET = b"SET"
    GET = b"GET"
    DEL = b"DEL"
    RAL = b"RAL"

    @property
    def tag(self) -> bytes:
        """The 3 ASCII bytes that follow the session token on the wire."""
        return self.value

    @property
    def has_key(self) -> bool:
        return self is not CommandType.RAL

    @classmethod
    def from_tag(cls, tag: bytes) -> "CommandType":
        """Look up a command type by its wire tag (raises ValueError)."""
        return cls(bytes(tag))


def to_bytes(data: BytesLike) -> bytes:
    """Coerce a key or value to bytes; text is encoded as UTF-8."""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass(frozen=True)
class Command:
    """
    Represents one command frame.

    Attributes:
        type: The type of command (SET, GET, DEL, RAL)
        key: The key for the operation (empty for RAL)
        value: The value for SET operations (empty for other operations)
        ttl: Time-to-live in seconds for SET operations (0 = no expiration)
    """
    type: CommandType
    key: bytes = b""
    value: bytes = b""
    ttl: int = 0

    def __post_init__(self):
        """Normalize key and value to bytes."""
        object.__setattr__(self, "key", to_bytes(self.key))
        object.__setattr__(self, "value", to_bytes(self.value))

    @classmethod
    def set(cls, key: BytesLike, value: BytesLike, ttl: int = 0) -> "Command":
        """Create a SET command."""
        return cls(type=CommandType.SET, key=key, value=value, ttl=ttl)

    @classmethod
    def get(cls, key: BytesLike) -> "Command":
        """Create a GET command."""
        return cls(type=CommandType.GET, key=key)

    @classmethod
    def delete(cls, key: BytesLike) -> "Command":
        """Create a DEL command."""
        return cls(type=CommandType.DEL, key=key)

    @classmethod
    def ral(cls) -> "Command":
        """Create a RAL command."""
        return cls(type=CommandType.RAL)

    def __str__(self) -> str:
        if self.type is CommandType.SET:
            return f"SET {self.key!r} ({len(self.value)} bytes, ttl={self.ttl})"
        if self.type.has_key:
            return f"{self.type.name} {self.key!r}"
        return self.type.name
