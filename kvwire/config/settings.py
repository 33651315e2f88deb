"""
KV-Wire Configuration Settings

This module contains all configuration constants for the KV-Wire client.
Every network-facing value can be overridden from the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    HOST: str = os.environ.get("KVWIRE_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("KVWIRE_PORT", "4000"))
    CONNECT_TIMEOUT: float = float(os.environ.get("KVWIRE_CONNECT_TIMEOUT", "5.0"))
    READ_BUFFER_SIZE: int = 1024

    # Authentication: shared secret prefixed to every frame
    TOKEN: str = os.environ.get("KVWIRE_TOKEN", "penguins")

    # Session settings
    LINGER: float = float(os.environ.get("KVWIRE_LINGER", "5.0"))  # Seconds before the CLI disconnects

    # Reconnect settings
    MAX_RETRIES: int = int(os.environ.get("KVWIRE_MAX_RETRIES", "5"))
    BACKOFF_BASE: float = 0.5
    BACKOFF_MAX: float = 30.0

    # Protocol settings
    STRICT_TTL: bool = os.environ.get("KVWIRE_STRICT_TTL", "true").lower() == "true"

    # Logging settings
    DEBUG: bool = os.environ.get("KVWIRE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KVWIRE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
