"""Data model shared across the authentication and request layers."""

import base64
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

from requests.cookies import RequestsCookieJar

from swedbankjson.core.exceptions import PreconditionError


# ----------------------
# App identity
# ----------------------


@dataclass(frozen=True)
class AppIdentity:
    """Identifies the mobile app the API expects to talk to."""

    app_id: str
    """Application ID embedded in the bank's own apps."""

    user_agent: str
    """User-Agent string of the same app."""

    @classmethod
    def from_mapping(cls, data: Mapping) -> "AppIdentity":
        """Build an identity from a mapping of app data.

        Both the ``appID``/``useragent`` keys used by the app identity
        table and the ``app_id``/``user_agent`` spelling are accepted.

        Args:
            data: Mapping with the application ID and user agent.

        Returns:
            An :class:`AppIdentity` instance.

        Raises:
            PreconditionError: If either value is missing or empty.
        """
        app_id = data.get("appID") or data.get("app_id")
        user_agent = data.get("useragent") or data.get("user_agent")
        if not app_id or not user_agent:
            raise PreconditionError(
                "App data must contain a non-empty appID and useragent."
            )
        return cls(app_id=str(app_id), user_agent=str(user_agent))

    @classmethod
    def resolve(
        cls,
        bank_app: "AppIdentity | Mapping | str",
        lookup: Callable[[str], Mapping] | None = None,
    ) -> "AppIdentity":
        """Turn any accepted form of app data into an :class:`AppIdentity`.

        Args:
            bank_app: An identity, a mapping of app data, or a bank
                identifier to pass to *lookup*.
            lookup: Callable mapping a bank identifier to app data.
                Required when *bank_app* is a string.

        Returns:
            An :class:`AppIdentity` instance.

        Raises:
            PreconditionError: If the app data is malformed or a bank
                identifier is given without a lookup.
        """
        if isinstance(bank_app, AppIdentity):
            return bank_app
        if isinstance(bank_app, str):
            if lookup is None:
                raise PreconditionError(
                    f"No app identity lookup configured for bank {bank_app!r}."
                )
            bank_app = lookup(bank_app)
        if not isinstance(bank_app, Mapping):
            raise PreconditionError("App data must be a mapping.")
        return cls.from_mapping(bank_app)


# ----------------------
# Profile type
# ----------------------


class ProfileType(str, Enum):
    """Kind of profile the session belongs to."""

    PRIVATE = "privateProfile"
    CORPORATE = "corporateProfiles"

    @classmethod
    def from_user_agent(cls, user_agent: str) -> "ProfileType":
        """Derive the profile type from the app's user agent."""
        return cls.CORPORATE if "Corporate" in user_agent else cls.PRIVATE

    @property
    def path_segment(self) -> str:
        """Segment naming the profile in ``profile/<segment>/<bankId>``."""
        return "corporate" if self is ProfileType.CORPORATE else "private"


# ----------------------
# Authentication states
# ----------------------


class LoginState(str, Enum):
    """States of a personal-code login."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class ChallengeState(str, Enum):
    """States of a Mobile BankID challenge."""

    UNVERIFIED = "unverified"
    PENDING_CHALLENGE = "pending_challenge"
    VERIFIED = "verified"


# ----------------------
# Session
# ----------------------


def generate_authorization(app_id: str) -> str:
    """Generate an authorization token for *app_id*.

    The token is ``base64("<app_id>:<UUID4 in upper case>")``.
    """
    raw = f"{app_id}:{str(uuid.uuid4()).upper()}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


class Session:
    """The authenticated context of one user against the API.

    The authorization token is fixed for the lifetime of the session;
    tearing the session down and creating a new one is the only way to
    get a new token.  The cookie jar is owned by the session and shared
    with the HTTP transport built by the request pipeline.

    Attributes:
        app_id: Application ID sent as part of the authorization token.
        user_agent: User-Agent header value.
        profile_type: Private or corporate, derived from the user agent.
        debug: When ``True`` every HTTP exchange is logged at DEBUG level.
        persistent: Whether the session is saved between processes.
        cookies: Cookie jar used for every request of the session.
    """

    def __init__(
        self,
        app_id: str,
        user_agent: str,
        authorization: str | None = None,
        profile_type: ProfileType | None = None,
        debug: bool = False,
        persistent: bool = False,
    ):
        self.app_id = app_id
        self.user_agent = user_agent
        self._authorization = authorization or generate_authorization(app_id)
        self.profile_type = profile_type or ProfileType.from_user_agent(
            user_agent
        )
        self.debug = bool(debug)
        self.persistent = bool(persistent)
        self.cookies = RequestsCookieJar()

    @classmethod
    def create(
        cls,
        identity: AppIdentity,
        authorization: str | None = None,
        debug: bool = False,
    ) -> "Session":
        """Create a fresh session for *identity*.

        Args:
            identity: The app identity to authenticate as.
            authorization: A caller-supplied authorization token.  A new
                one is generated when omitted or empty.
            debug: Enable exchange logging.

        Returns:
            A new :class:`Session` with an empty cookie jar.
        """
        return cls(
            app_id=identity.app_id,
            user_agent=identity.user_agent,
            authorization=authorization,
            debug=debug,
        )

    @property
    def authorization(self) -> str:
        """The authorization token sent in the ``Authorization`` header."""
        return self._authorization

    def __repr__(self) -> str:
        return (
            f"Session(app_id={self.app_id!r}, "
            f"profile_type={self.profile_type.value!r}, "
            f"persistent={self.persistent})"
        )
