"""
Tests for the Frame Decoder

These tests split encoded streams back into Commands using nothing but the
documented frame table, which checks the encoder from the other side.

Run with: python -m pytest tests/test_decoder.py -v
"""

import pytest

from kvwire.protocol.codec import FrameCodec, FrameDecoder, decode_frames
from kvwire.protocol.commands import Command, CommandType
from kvwire.protocol.errors import AuthenticationError, ProtocolError, UnknownCommandError


class TestDecodeFrames:
    """Test decoding whole frames."""

    def test_set_round_trip(self, codec: FrameCodec, token: bytes):
        """Key and value come back unchanged."""
        key, value = b"user:\x00:42", bytes(range(256))
        commands = decode_frames(codec.encode_set(key, value, 3600), token)

        assert commands == [Command.set(key, value, 3600)]

    def test_call_sequence_order(self, codec: FrameCodec, token: bytes):
        """set; get; del; ral decodes to exactly those four frames in order."""
        stream = (
            codec.encode_set("k1", "v1", 5)
            + codec.encode_get("k2")
            + codec.encode_del("k3")
            + codec.encode_ral()
        )

        commands = decode_frames(stream, token)

        assert [c.type for c in commands] == [
            CommandType.SET, CommandType.GET, CommandType.DEL, CommandType.RAL,
        ]
        assert commands[0] == Command.set("k1", "v1", 5)
        assert commands[1].key == b"k2"
        assert commands[2].key == b"k3"

    def test_zero_length_fields_keep_alignment(self, codec: FrameCodec, token: bytes):
        """Empty key/value do not shift the following frame."""
        stream = codec.encode_set("", "", 0) + codec.encode_get("after")

        commands = decode_frames(stream, token)

        assert commands == [Command.set(b"", b"", 0), Command.get(b"after")]

    def test_handshake_skipped(self, codec: FrameCodec, token: bytes):
        stream = codec.handshake() + codec.encode_ral()

        assert decode_frames(stream, token, handshake=True) == [Command.ral()]

    def test_partial_stream_raises(self, codec: FrameCodec, token: bytes):
        with pytest.raises(ProtocolError):
            decode_frames(codec.encode_get("abc")[:-1], token)


class TestIncrementalFeed:
    """Test the decoder with arbitrarily split input."""

    def test_byte_at_a_time(self, codec: FrameCodec, decoder: FrameDecoder):
        stream = codec.encode_set("foo", "bar", 10) + codec.encode_ral()
        decoded = []

        for i in range(len(stream)):
            decoded.extend(decoder.feed(stream[i:i + 1]))

        assert decoded == [Command.set("foo", "bar", 10), Command.ral()]
        assert decoder.pending == 0

    def test_partial_frame_is_buffered(self, codec: FrameCodec, decoder: FrameDecoder):
        frame = codec.encode_get("foo")

        assert decoder.feed(frame[:10]) == []
        assert decoder.pending == 10
        assert decoder.feed(frame[10:]) == [Command.get("foo")]

    def test_handshake_across_chunks(self, codec: FrameCodec, decoder: FrameDecoder):
        decoder.skip_handshake()
        stream = codec.handshake() + codec.encode_get("x")

        assert decoder.feed(stream[:5]) == []
        assert decoder.feed(stream[5:]) == [Command.get("x")]


class TestDecodeErrors:
    """Test malformed streams."""

    def test_wrong_token(self, decoder: FrameDecoder):
        other = FrameCodec(b"walruses")

        with pytest.raises(AuthenticationError):
            decoder.feed(other.encode_ral())

    def test_wrong_token_detected_early(self, decoder: FrameDecoder):
        """A mismatch in the first bytes fails before the full token arrives."""
        with pytest.raises(AuthenticationError):
            decoder.feed(b"pex")

    def test_unknown_tag(self, decoder: FrameDecoder, token: bytes):
        with pytest.raises(UnknownCommandError) as exc_info:
            decoder.feed(token + b"PUT")

        assert exc_info.value.tag == b"PUT"

    def test_buffer_cleared_after_error(self, decoder: FrameDecoder, token: bytes):
        with pytest.raises(ProtocolError):
            decoder.feed(token + b"XYZ\x00\x00")

        assert decoder.pending == 0
