"""
StreamPulse - Core Module
"""
from streampulse.core.config import settings, get_settings
from streampulse.core.database import Base, AsyncSessionLocal, init_db, close_db
from streampulse.core.errors import (
    StreamPulseError,
    TransportError,
    SessionNotFound
)

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "AsyncSessionLocal",
    "init_db",
    "close_db",
    "StreamPulseError",
    "TransportError",
    "SessionNotFound"
]
