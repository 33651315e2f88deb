"""
KV-Wire: Client for an Authenticated Binary Key-Value Cache Protocol

Encodes SET, GET, DEL and RAL commands into token-prefixed,
length-prefixed binary frames and writes them to one persistent TCP
connection.
"""

from .client import BlockingClient, ProtocolClient
from .protocol.codec import FrameCodec, FrameDecoder
from .protocol.commands import Command, CommandType

__version__ = "1.0.0"

__all__ = [
    "BlockingClient",
    "Command",
    "CommandType",
    "FrameCodec",
    "FrameDecoder",
    "ProtocolClient",
]
