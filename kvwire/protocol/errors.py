"""
Protocol and Connection Errors

All exceptions raised by KV-Wire derive from KVWireError so callers can
catch everything the client raises with a single except clause.
"""


class KVWireError(Exception):
    """Base class for all KV-Wire errors."""


# ============================================================================
# Protocol errors (raised by the codec, never touch the network)
# ============================================================================

class ProtocolError(KVWireError):
    """A frame could not be encoded or decoded."""


class FieldTooLargeError(ProtocolError, ValueError):
    """A key, value or length does not fit in a 4-byte unsigned field."""

    def __init__(self, field: str, length: int):
        self.field = field
        self.length = length
        super().__init__(
            f"{field} length {length} does not fit in a 4-byte unsigned length field"
        )


class InvalidTTLError(ProtocolError, ValueError):
    """A TTL could not be converted to a 32-bit unsigned number of seconds."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"invalid TTL {value!r}: expected a base-10 integer in 0..4294967295")


class AuthenticationError(ProtocolError):
    """A decoded frame did not start with the expected session token."""


class UnknownCommandError(ProtocolError):
    """A decoded frame carried a tag that is not SET, GET, DEL or RAL."""

    def __init__(self, tag: bytes):
        self.tag = tag
        super().__init__(f"unknown command tag {tag!r}")


# ============================================================================
# Connection errors
# ============================================================================

class KVConnectionError(KVWireError):
    """Base class for connection lifecycle failures."""


class NotConnectedError(KVConnectionError):
    """A frame was sent while the connection was not active."""


class ConnectionClosedError(KVConnectionError):
    """The peer closed the connection."""


class ConnectionTimeoutError(KVConnectionError):
    """The peer did not answer in time."""


class ConnectionFailedError(KVConnectionError):
    """Every connection attempt allowed by the retry policy failed."""

    def __init__(self, host: str, port: int, attempts: int, cause: Exception = None):
        self.host = host
        self.port = port
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"could not connect to {host}:{port} after {attempts} attempt(s): {cause}"
        )
