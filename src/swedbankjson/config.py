"""Client configuration.

Each setting is resolved in the following order (first match wins):

1. Values passed to :func:`resolve_config`.
2. ``SWEDBANKJSON_*`` environment variables.
3. The defaults defined on :class:`ClientConfig`.
"""

import os
from dataclasses import dataclass, fields

from swedbankjson.core.exceptions import PreconditionError

DEFAULT_BASE_URL = "https://auth.api.swedbank.se/TDE_DAP_Portal_REST_WEB/api/"
DEFAULT_API_VERSION = "v4"

_ENV_PREFIX = "SWEDBANKJSON_"


@dataclass(frozen=True)
class ClientConfig:
    """Settings for the request pipeline and the Mobile BankID poller."""

    base_url: str = DEFAULT_BASE_URL
    """API base URI, without the version segment."""

    api_version: str = DEFAULT_API_VERSION

    timeout: float | None = 30.0
    """Seconds to wait for a response.  ``None`` waits forever."""

    max_redirects: int = 10

    verify_tls: bool = False
    """Certificate validation toward the API host.

    Off by default: the closed API has historically been called without
    certificate checks by the bank's own apps.  Turn it on where the
    host's chain validates in your environment.
    """

    poll_interval: float = 2.0
    """Seconds between Mobile BankID verification polls."""

    max_polls: int = 60
    """Verification polls before giving up."""

    @property
    def api_root(self) -> str:
        """Base URI including the version segment, with a trailing slash."""
        return f"{self.base_url.rstrip('/')}/{self.api_version.strip('/')}/"

    def url_for(self, path: str) -> str:
        """Return the absolute URL of an API *path*."""
        return self.api_root + path.lstrip("/")


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _parse_optional_float(raw: str) -> float | None:
    if raw.strip().lower() in ("", "none"):
        return None
    return float(raw)


_PARSERS = {
    "base_url": str,
    "api_version": str,
    "timeout": _parse_optional_float,
    "max_redirects": int,
    "verify_tls": _parse_bool,
    "poll_interval": float,
    "max_polls": int,
}


def resolve_config(**overrides) -> ClientConfig:
    """Build a :class:`ClientConfig` from arguments and the environment.

    Args:
        **overrides: Explicit values for any :class:`ClientConfig` field.
            ``None`` means "not given" except for ``timeout``, where an
            explicit ``None`` disables the timeout.

    Returns:
        The resolved configuration.

    Raises:
        PreconditionError: If an unknown setting is passed or an
            environment variable cannot be parsed.
    """
    known = {f.name for f in fields(ClientConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise PreconditionError(
            f"Unknown configuration settings: {', '.join(sorted(unknown))}"
        )

    values = {}
    for name in known:
        if name in overrides and (
            overrides[name] is not None or name == "timeout"
        ):
            values[name] = overrides[name]
            continue
        env_name = _ENV_PREFIX + name.upper()
        raw = os.getenv(env_name)
        if raw is None:
            continue
        try:
            values[name] = _PARSERS[name](raw)
        except ValueError as exc:
            raise PreconditionError(
                f"Invalid value for {env_name}: {raw!r}"
            ) from exc
    return ClientConfig(**values)
