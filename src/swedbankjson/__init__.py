"""Client for Swedbank's mobile-app banking API."""

from swedbankjson.auth import FileBackend, MemoryBackend, SessionStore
from swedbankjson.config import ClientConfig, resolve_config
from swedbankjson.core.models import AppIdentity
from swedbankjson.providers.swedbank import (
    MobileBankID,
    PersonalCode,
    SwedbankClient,
)

__all__ = [
    "AppIdentity",
    "ClientConfig",
    "FileBackend",
    "MemoryBackend",
    "MobileBankID",
    "PersonalCode",
    "SessionStore",
    "SwedbankClient",
    "resolve_config",
]
