"""Network module for KV-Wire."""

from .blocking import BlockingConnection
from .connection import Connection, ConnectionState, RetryPolicy

__all__ = ["BlockingConnection", "Connection", "ConnectionState", "RetryPolicy"]
