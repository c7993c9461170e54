"""Authentication layer: interface and session persistence."""

from swedbankjson.auth.interfaces import Authenticator
from swedbankjson.auth.storage import (
    FileBackend,
    MemoryBackend,
    SessionBackend,
    SessionRecord,
    SessionStore,
)

__all__ = [
    "Authenticator",
    "FileBackend",
    "MemoryBackend",
    "SessionBackend",
    "SessionRecord",
    "SessionStore",
]
