"""Persistence of authentication sessions between processes.

A Mobile BankID login spans several requests that may be served by
different processes (for example the web requests of an app that shows
the user a "waiting for BankID" page).  The session's identity and
challenge state are therefore written to a pluggable backend after every
state change and read back on the next request.

Only the fields of :class:`SessionRecord` are stored.  The cookie jar and
the HTTP transport are never persisted; they are rebuilt lazily.

Two backends are provided:

* :class:`MemoryBackend`: a dictionary living in the current process.
* :class:`FileBackend`: one JSON file per key under
  ``~/.config/swedbankjson/`` with permissions restricted to the owner
  (0o600).
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path

from swedbankjson.core.exceptions import PreconditionError
from swedbankjson.core.models import (
    ChallengeState,
    LoginState,
    ProfileType,
    Session,
)

logger = logging.getLogger(__name__)

SESSION_KEY = "swedbankjson_auth"

_CONFIG_DIR = Path.home() / ".config" / "swedbankjson"

# Valid values of SessionRecord.state, per strategy.
_VARIANT_STATES = {
    "personal_code": LoginState,
    "mobile_bankid": ChallengeState,
}


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class SessionBackend(ABC):
    """Key-value storage the :class:`SessionStore` writes records to."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend is ready to store records."""

    @abstractmethod
    def read(self, key: str) -> dict | None:
        """Return the record stored under *key*, or ``None``."""

    @abstractmethod
    def write(self, key: str, data: dict) -> None:
        """Store *data* under *key*, replacing any previous record."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the record under *key*.

        Returns:
            ``True`` if a record was removed, ``False`` if none existed.
        """


class MemoryBackend(SessionBackend):
    """Process-local backend.

    Args:
        active: Whether the backend accepts records.  An inactive backend
            behaves like a server-side session store that was never
            started.
    """

    def __init__(self, active: bool = True):
        self.active = active
        self._records: dict[str, dict] = {}

    def is_available(self) -> bool:
        return self.active

    def read(self, key: str) -> dict | None:
        record = self._records.get(key)
        return dict(record) if record is not None else None

    def write(self, key: str, data: dict) -> None:
        self._records[key] = dict(data)

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None


class FileBackend(SessionBackend):
    """Stores each record as a JSON file.

    Args:
        directory: Directory for the record files.  Defaults to
            ``~/.config/swedbankjson``.
    """

    def __init__(self, directory: Path | str | None = None):
        self._dir = Path(directory) if directory is not None else _CONFIG_DIR

    def path_for(self, key: str) -> Path:
        """Return the path of the file holding *key*."""
        return self._dir / f"{key}.json"

    def is_available(self) -> bool:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return self._dir.is_dir()

    def read(self, key: str) -> dict | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable session file %s", path)
            return None

    def write(self, key: str, data: dict) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        path.chmod(0o600)

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False


# ---------------------------------------------------------------------------
# Persisted record
# ---------------------------------------------------------------------------


@dataclass
class SessionRecord:
    """Versioned schema of a persisted session.

    Adding a field means bumping :attr:`SCHEMA_VERSION`; records of any
    other version are ignored on load.
    """

    SCHEMA_VERSION = 1

    variant: str
    """Name of the authentication strategy that owns the session."""

    app_id: str
    user_agent: str
    authorization: str
    profile_type: str
    debug: bool
    persistent: bool

    state: str | None = None
    """Strategy-specific state, e.g. the Mobile BankID challenge state."""

    version: int = SCHEMA_VERSION

    @classmethod
    def from_session(
        cls, session: Session, variant: str, state: str | None = None
    ) -> "SessionRecord":
        return cls(
            variant=variant,
            app_id=session.app_id,
            user_agent=session.user_agent,
            authorization=session.authorization,
            profile_type=session.profile_type.value,
            debug=session.debug,
            persistent=session.persistent,
            state=state,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord | None":
        """Parse a stored record.

        Returns:
            The record, or ``None`` if its version is not supported, a
            required field is missing, or its profile type or state is
            not one this package knows.
        """
        if data.get("version") != cls.SCHEMA_VERSION:
            logger.warning(
                "Ignoring session record with unsupported version %r",
                data.get("version"),
            )
            return None
        try:
            record = cls(
                variant=data["variant"],
                app_id=data["app_id"],
                user_agent=data["user_agent"],
                authorization=data["authorization"],
                profile_type=data["profile_type"],
                debug=bool(data["debug"]),
                persistent=bool(data["persistent"]),
                state=data.get("state"),
            )
        except KeyError as exc:
            logger.warning("Ignoring session record missing field %s", exc)
            return None

        try:
            ProfileType(record.profile_type)
            states = _VARIANT_STATES.get(record.variant)
            if states is not None and record.state is not None:
                states(record.state)
        except ValueError as exc:
            logger.warning("Ignoring session record: %s", exc)
            return None
        return record

    def to_dict(self) -> dict:
        return asdict(self)

    def to_session(self) -> Session:
        """Build a fresh :class:`Session` with an empty cookie jar."""
        return Session(
            app_id=self.app_id,
            user_agent=self.user_agent,
            authorization=self.authorization,
            profile_type=ProfileType(self.profile_type),
            debug=self.debug,
            persistent=self.persistent,
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SessionStore:
    """Saves and restores one session through a :class:`SessionBackend`.

    Args:
        backend: Where records are written.  A store without a backend can
            never enable persistence.
        key: Name of the record in the backend.
    """

    def __init__(
        self,
        backend: SessionBackend | None = None,
        key: str = SESSION_KEY,
    ):
        self.backend = backend
        self.key = key

    def enable_persistence(self, session: Session) -> None:
        """Mark *session* as persistent.

        Raises:
            PreconditionError: If no backend is configured or the backend
                is not available.
        """
        if self.backend is None or not self.backend.is_available():
            raise PreconditionError(
                "Cannot persist the session: no session storage backend "
                "is available."
            )
        session.persistent = True

    def save(
        self, session: Session, variant: str, state: str | None = None
    ) -> bool:
        """Write *session* to the backend.

        Args:
            session: The session to save.
            variant: Name of the owning authentication strategy.
            state: Strategy-specific state to store alongside.

        Returns:
            ``True`` if a record was written, ``False`` when the session is
            not persistent.
        """
        if not session.persistent or self.backend is None:
            return False
        record = SessionRecord.from_session(session, variant, state)
        self.backend.write(self.key, record.to_dict())
        logger.debug("Saved %s session state %s", variant, state)
        return True

    def load_record(self) -> SessionRecord | None:
        """Return the stored record, or ``None`` if there is none."""
        if self.backend is None or not self.backend.is_available():
            return None
        data = self.backend.read(self.key)
        if data is None:
            return None
        return SessionRecord.from_dict(data)

    def restore(self) -> Session | None:
        """Rebuild the stored session.

        Returns:
            A :class:`Session` without cookies or transport, or ``None``
            if nothing usable is stored.
        """
        record = self.load_record()
        return record.to_session() if record is not None else None

    def discard(self) -> bool:
        """Remove the stored record.

        Returns:
            ``True`` if a record was removed.
        """
        if self.backend is None:
            return False
        return self.backend.delete(self.key)
