"""HTTP request pipeline for one Swedbank API session.

Every request goes through :meth:`RequestPipeline.execute`, which

* builds the HTTP transport on first use,
* tags the request with a fresh ``dsid`` nonce (cookie and query string),
* decodes the JSON response, and
* tears the session down when the API reports a failure.

Failure handling differs by status class:

+-------------------+-----------------------------+--------------------------+
| Failure           | Teardown                    | Raised                   |
+===================+=============================+==========================+
| HTTP 5xx          | cleanup only                | :class:`ApiError`        |
+-------------------+-----------------------------+--------------------------+
| HTTP 4xx          | logout attempt, cleanup     | :class:`ApiError`        |
+-------------------+-----------------------------+--------------------------+
| No HTTP response  | none                        | :class:`TransportError`  |
+-------------------+-----------------------------+--------------------------+

A 4xx usually means the token or session is no longer valid, so the
pipeline tries to release the server-side session before dropping its
own state.  A 5xx means the server is unhealthy and no further call is
made.  The asymmetry mirrors the behaviour of the bank's apps and is kept
for compatibility, even though logging out with a session the server just
rejected is questionable.
"""

import json
import logging
from collections.abc import Callable
from enum import Enum

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning

from swedbankjson.auth.storage import SessionStore
from swedbankjson.config import ClientConfig, resolve_config
from swedbankjson.core.exceptions import (
    ApiError,
    SwedbankJsonError,
    TransportError,
    UnexpectedResponseError,
)
from swedbankjson.core.models import Session
from swedbankjson.providers.swedbank.nonce import (
    NonceGenerator,
    generate_dsid,
)

logger = logging.getLogger(__name__)

LOGOUT_PATH = "identification/logout"

_JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


class TransportState(str, Enum):
    """Lifecycle of the pipeline's HTTP transport."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class RequestPipeline:
    """Builds, sends and classifies the requests of one session.

    The pipeline is not thread-safe: the cookie jar and the transport are
    shared mutable state.  Issue one request at a time per session.

    Args:
        session: The session whose token, user agent and cookie jar are
            used.  Must already carry an authorization token.
        store: Store whose persisted record is removed on cleanup.
        config: Connection settings.  Resolved from the environment when
            omitted.
        nonce: Generator for the ``dsid`` values.  Defaults to the
            process-wide generator behind :func:`generate_dsid`.
        on_cleanup: Called after every cleanup, so that the owner can
            reset its authentication state.
    """

    def __init__(
        self,
        session: Session,
        store: SessionStore | None = None,
        config: ClientConfig | None = None,
        nonce: NonceGenerator | None = None,
        on_cleanup: Callable[[], None] | None = None,
    ):
        self.session = session
        self.store = store
        self.config = config or resolve_config()
        self.nonce = nonce
        self.on_cleanup = on_cleanup
        self.state = TransportState.UNINITIALIZED
        self._http: requests.Session | None = None

    # -------------------------
    # Public API
    # -------------------------

    def get(self, path: str, query: dict | None = None):
        """Send a GET request and return the decoded response."""
        return self.execute("GET", path, query=query)

    def post(self, path: str, body=None):
        """Send a POST request with an optional JSON body."""
        return self.execute("POST", path, body=body)

    def put(self, path: str, body=None):
        """Send a PUT request with an optional JSON body."""
        return self.execute("PUT", path, body=body)

    def delete(self, path: str):
        """Send a DELETE request."""
        return self.execute("DELETE", path)

    def execute(
        self,
        method: str,
        path: str,
        headers: dict | None = None,
        body=None,
        query: dict | None = None,
    ):
        """Send a request and return its decoded JSON body.

        Args:
            method: HTTP method (``GET``, ``POST``, ``PUT`` or ``DELETE``).
            path: API path relative to the versioned base URI.
            headers: Extra headers for this request only.
            body: JSON-serialisable body, or a pre-encoded JSON string.
            query: Query parameters.  ``dsid`` is always overwritten.

        Returns:
            The decoded JSON value, or ``None`` for an empty body.

        Raises:
            ApiError: On HTTP 4xx and 5xx responses.
            TransportError: When no HTTP response was received.
            UnexpectedResponseError: When a successful response is not
                valid JSON.
        """
        return self._send(method, path, headers, body, query, teardown=True)

    def cleanup(self) -> None:
        """Drop all session-local state.

        Clears the cookie jar, closes the transport and, for persistent
        sessions, removes the stored record.  Safe to call repeatedly.
        """
        self.session.cookies.clear()
        if self._http is not None:
            self._http.close()
        self._http = None
        self.state = TransportState.UNINITIALIZED
        if self.session.persistent and self.store is not None:
            self.store.discard()
        if self.on_cleanup is not None:
            self.on_cleanup()
        logger.debug("Session cleaned up")

    def terminate(self):
        """Log out from the API, then clean up whatever the outcome.

        Returns:
            The decoded response of the logout call.

        Raises:
            ApiError: If the logout call fails.  Cleanup still happens.
            TransportError: If the logout call gets no response.
        """
        try:
            return self._send("PUT", LOGOUT_PATH, teardown=False)
        finally:
            self.cleanup()

    # -------------------------
    # Internal helpers
    # -------------------------

    def _ensure_transport(self) -> requests.Session:
        """Return the HTTP transport, building it on first use."""
        if self.state is TransportState.READY and self._http is not None:
            return self._http

        http = requests.Session()
        http.cookies = self.session.cookies
        http.verify = self.config.verify_tls
        if not self.config.verify_tls:
            urllib3.disable_warnings(InsecureRequestWarning)
        http.max_redirects = self.config.max_redirects
        http.headers.update({
            "Authorization": self.session.authorization,
            "Accept": "*/*",
            "Accept-Language": "sv-se",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Proxy-Connection": "keep-alive",
            "User-Agent": self.session.user_agent,
        })
        if self.session.debug:
            http.hooks["response"].append(_log_exchange)

        self._http = http
        self.state = TransportState.READY
        logger.debug("Transport initialised for %s", self.config.api_root)
        return http

    def _send(
        self,
        method: str,
        path: str,
        headers: dict | None = None,
        body=None,
        query: dict | None = None,
        teardown: bool = True,
    ):
        http = self._ensure_transport()

        if self.nonce is not None:
            dsid = self.nonce.generate()
        else:
            dsid = generate_dsid()
        self.session.cookies.set("dsid", dsid, path="/")
        params = dict(query or {})
        params["dsid"] = dsid

        request_headers = dict(headers or {})
        data = None
        if body is not None:
            data = body if isinstance(body, str) else json.dumps(body)
            request_headers["Content-Type"] = _JSON_CONTENT_TYPE

        url = self.config.url_for(path)
        try:
            response = http.request(
                method.upper(),
                url,
                params=params,
                data=data,
                headers=request_headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(
                f"{method.upper()} {path} failed: {exc}"
            ) from exc

        status = response.status_code
        if status >= 500:
            logger.warning(
                "%s %s returned HTTP %d", method.upper(), path, status
            )
            if teardown:
                self.cleanup()
            raise _api_error(response, path)
        if status >= 400:
            logger.warning(
                "%s %s returned HTTP %d", method.upper(), path, status
            )
            if teardown:
                self._logout_quietly()
                self.cleanup()
            raise _api_error(response, path)

        return _decode(response, path)

    def _logout_quietly(self) -> None:
        """Attempt a logout, suppressing its failure.

        Used after a 4xx so that the original :class:`ApiError` remains
        the one reported to the caller.
        """
        try:
            self._send("PUT", LOGOUT_PATH, teardown=False)
        except SwedbankJsonError as exc:
            logger.info("Logout after client error failed: %s", exc)


def _decode(response: requests.Response, path: str):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise UnexpectedResponseError(
            f"Response from {path} is not valid JSON."
        ) from exc


def _api_error(response: requests.Response, path: str) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return ApiError(
        f"{path} returned HTTP {response.status_code}",
        status_code=response.status_code,
        body=body,
        response=response,
    )


def _log_exchange(response: requests.Response, *args, **kwargs) -> None:
    """Response hook that logs a full request/response exchange."""
    request = response.request
    request_body = _redact_body(request.body)
    logger.debug(
        "%s %s\n%s\n\n%s\n\tHTTP %d\n%s\n\n%s",
        request.method,
        request.url,
        _format_headers(request.headers),
        request_body or "",
        response.status_code,
        _format_headers(response.headers),
        response.text,
    )


def _format_headers(headers) -> str:
    return "\n".join(
        f"{name}: {'<redacted>' if name.lower() == 'authorization' else value}"
        for name, value in headers.items()
    )


def _redact_body(body) -> str:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body:
        return ""
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and "password" in data:
        data["password"] = "<redacted>"
    return json.dumps(data)
