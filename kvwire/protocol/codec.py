"""
Protocol Codec Module

This module is the single source of truth for the KV-Wire byte layout.

Frame format (all integers are unsigned 32-bit big-endian, all strings are
raw bytes without terminators):

    SET:  <token> "SET" <keyLen> <key> <valLen> <value> <ttl>
    GET:  <token> "GET" <keyLen> <key>
    DEL:  <token> "DEL" <keyLen> <key>
    RAL:  <token> "RAL"

The session token is repeated in front of every frame. Right after the
connection opens the client also sends the token once on its own as an
implicit handshake.

Keys and values longer than 4,294,967,295 bytes cannot be represented and are
rejected with FieldTooLargeError instead of being truncated.
"""

import logging
import re
import struct
from typing import List, Optional, Tuple, Union

from .commands import BytesLike, Command, CommandType, to_bytes
from .errors import (
    AuthenticationError,
    FieldTooLargeError,
    InvalidTTLError,
    ProtocolError,
    UnknownCommandError,
)

logger = logging.getLogger(__name__)

U32 = struct.Struct("!I")
U32_MAX = 0xFFFFFFFF
TAG_SIZE = 3

_STRICT_TTL = re.compile(r"\s*\+?(\d+)\s*")
_LENIENT_TTL = re.compile(r"\s*([+-]?\d+)")


def pack_length(length: int, field: str = "field") -> bytes:
    """
    Encode a length (or TTL) as a 4-byte unsigned big-endian integer.

    Raises:
        FieldTooLargeError: if length is outside 0..U32_MAX
    """
    if length < 0 or length > U32_MAX:
        raise FieldTooLargeError(field, length)
    return U32.pack(length)


def pack_field(data: bytes, field: str = "field") -> bytes:
    """Encode a length-prefixed field: <u32 len><bytes>."""
    return pack_length(len(data), field) + data


def parse_ttl(value: Union[int, str, bytes, None], strict: bool = True) -> int:
    """
    Convert caller input to a TTL in seconds.

    Args:
        value: An int, or a base-10 integer as str/bytes
        strict: When False, mimic the legacy client: use the leading integer
            prefix ("10s" -> 10) and treat input without one as 0.

    Returns:
        TTL in the range 0..U32_MAX

    Raises:
        InvalidTTLError: for unparseable input in strict mode, and for
            negative or out-of-range values in either mode

    Examples:
        >>> parse_ttl("10")
        10
        >>> parse_ttl("abc", strict=False)
        0
    """
    if isinstance(value, bool):
        raise InvalidTTLError(value)

    if isinstance(value, int):
        ttl = value
    else:
        text = value.decode("ascii", "replace") if isinstance(value, (bytes, bytearray)) else value
        if text is None:
            text = ""
        elif not isinstance(text, str):
            if strict:
                raise InvalidTTLError(value)
            text = str(text)

        if strict:
            match = _STRICT_TTL.fullmatch(text)
            if match is None:
                raise InvalidTTLError(value)
            ttl = int(match.group(1))
        else:
            match = _LENIENT_TTL.match(text)
            if match is None:
                logger.debug(f"TTL {value!r} is not numeric, using 0")
                return 0
            ttl = int(match.group(1))

    if ttl < 0 or ttl > U32_MAX:
        raise InvalidTTLError(value)
    return ttl


class FrameCodec:
    """
    Encoder for KV-Wire command frames.

    Usage:
        codec = FrameCodec(b"penguins")
        frame = codec.encode_set("foo", "bar", 10)
        writer.write(frame)

    Every method returns one complete frame as a single bytes object, so a
    frame can be handed to a transport in one write and never interleaves
    with another frame.
    """

    def __init__(self, token: BytesLike, strict_ttl: bool = True):
        """
        Initialize the codec.

        Args:
            token: Shared secret prefixed to every frame
            strict_ttl: Reject non-numeric TTLs instead of sending 0
        """
        self.token = to_bytes(token)
        self.strict_ttl = strict_ttl

    def handshake(self) -> bytes:
        """The bare token sent once when a connection opens."""
        return self.token

    def encode(self, command: Command) -> bytes:
        """
        Encode a Command into a full frame.

        Raises:
            FieldTooLargeError: if the key or value is too long
            InvalidTTLError: if the TTL is invalid for the codec's TTL mode
        """
        parts = [self.token, command.type.tag]

        if command.type.has_key:
            parts.append(pack_field(command.key, "key"))

        if command.type is CommandType.SET:
            parts.append(pack_field(command.value, "value"))
            parts.append(U32.pack(parse_ttl(command.ttl, strict=self.strict_ttl)))

        return b"".join(parts)

    def encode_set(self, key: BytesLike, value: BytesLike, ttl=0) -> bytes:
        """Encode a SET frame, parsing ttl per the codec's TTL mode."""
        ttl = parse_ttl(ttl, strict=self.strict_ttl)
        return self.encode(Command.set(key, value, ttl))

    def encode_get(self, key: BytesLike) -> bytes:
        return self.encode(Command.get(key))

    def encode_del(self, key: BytesLike) -> bytes:
        return self.encode(Command.delete(key))

    def encode_ral(self) -> bytes:
        return self.encode(Command.ral())


class FrameDecoder:
    """
    Incremental decoder that splits a byte stream back into Commands.

    Bytes may arrive in arbitrary chunks; feed() buffers them and returns
    every frame completed so far, in stream order.

    After a ProtocolError the buffered bytes are discarded, since the frame
    boundary can no longer be trusted.
    """

    def __init__(self, token: BytesLike):
        self.token = to_bytes(token)
        self._buffer = bytearray()
        self._expect_handshake = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet decoded into a frame."""
        return len(self._buffer)

    def skip_handshake(self) -> None:
        """Expect one bare token at the start of the stream."""
        self._expect_handshake = True

    def feed(self, data: bytes) -> List[Command]:
        """
        Buffer data and decode all complete frames.

        Raises:
            AuthenticationError: if a frame does not start with the token
            UnknownCommandError: if a frame carries an unknown tag
        """
        self._buffer.extend(data)
        commands = []

        try:
            if self._expect_handshake:
                if not self._check_token(0):
                    return commands
                del self._buffer[:len(self.token)]
                self._expect_handshake = False

            while self._buffer:
                decoded = self._decode_one()
                if decoded is None:
                    break
                command, consumed = decoded
                del self._buffer[:consumed]
                commands.append(command)
        except ProtocolError:
            self._buffer.clear()
            raise

        return commands

    def _check_token(self, offset: int) -> bool:
        """True when a full token is buffered at offset; raise on mismatch."""
        available = bytes(self._buffer[offset:offset + len(self.token)])
        if available != self.token[:len(available)]:
            raise AuthenticationError("frame does not start with the session token")
        return len(available) == len(self.token)

    def _read_field(self, offset: int) -> Optional[Tuple[bytes, int]]:
        """Read a length-prefixed field; None if it is not fully buffered."""
        if len(self._buffer) < offset + U32.size:
            return None
        (length,) = U32.unpack_from(self._buffer, offset)
        start = offset + U32.size
        end = start + length
        if len(self._buffer) < end:
            return None
        return bytes(self._buffer[start:end]), end

    def _decode_one(self) -> Optional[Tuple[Command, int]]:
        """Decode the frame at the head of the buffer."""
        if not self._check_token(0):
            return None

        offset = len(self.token)
        if len(self._buffer) < offset + TAG_SIZE:
            return None

        tag = bytes(self._buffer[offset:offset + TAG_SIZE])
        try:
            command_type = CommandType.from_tag(tag)
        except ValueError:
            raise UnknownCommandError(tag) from None
        offset += TAG_SIZE

        if command_type is CommandType.RAL:
            return Command.ral(), offset

        field = self._read_field(offset)
        if field is None:
            return None
        key, offset = field

        if command_type is CommandType.GET:
            return Command.get(key), offset
        if command_type is CommandType.DEL:
            return Command.delete(key), offset

        field = self._read_field(offset)
        if field is None:
            return None
        value, offset = field

        if len(self._buffer) < offset + U32.size:
            return None
        (ttl,) = U32.unpack_from(self._buffer, offset)
        return Command.set(key, value, ttl), offset + U32.size


def decode_frames(data: bytes, token: BytesLike, handshake: bool = False) -> List[Command]:
    """
    Decode a complete byte stream into Commands.

    Raises:
        ProtocolError: if the stream ends in the middle of a frame
    """
    decoder = FrameDecoder(token)
    if handshake:
        decoder.skip_handshake()
    commands = decoder.feed(data)
    if decoder.pending:
        raise ProtocolError(f"stream ends with {decoder.pending} byte(s) of a partial frame")
    return commands
