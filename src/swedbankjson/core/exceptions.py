"""Domain exceptions for the swedbankjson library."""


class SwedbankJsonError(Exception):
    """Base class for all swedbankjson library exceptions."""


class PreconditionError(SwedbankJsonError):
    """Raised when the library is used incorrectly.

    Examples are requesting session persistence without an available
    storage backend, or passing app data without an ``appID`` and
    ``useragent``.
    """


# ---------------------------------------------------------------------------
# Authentication state machine
# ---------------------------------------------------------------------------


class AuthenticationError(SwedbankJsonError):
    """Base class for failures of an authentication strategy."""


class LoginFailedError(AuthenticationError):
    """Raised when a personal-code login is rejected.

    The API answers without a continuation link, which usually means the
    user ID, the personal code or the authorization key is wrong.
    """


class CredentialChangeRequiredError(AuthenticationError):
    """Raised when the bank demands that the personal code is changed.

    The change has to be made by logging in to the internet bank; the API
    refuses further logins until then.
    """


class ChallengeInitiationError(AuthenticationError):
    """Raised when a Mobile BankID challenge could not be started."""


class VerificationError(AuthenticationError):
    """Raised when the Mobile BankID verification status is unusable."""


class NotAuthenticatedError(AuthenticationError):
    """Raised when a request is issued before authentication completed."""


class NotVerifiedError(NotAuthenticatedError):
    """Raised when Mobile BankID login is attempted before verification."""


# ---------------------------------------------------------------------------
# Request failures
# ---------------------------------------------------------------------------


class ApiError(SwedbankJsonError):
    """Raised when the API answers with an HTTP 4xx or 5xx status.

    Attributes:
        status_code: The HTTP status code of the failed response.
        body: The decoded JSON body when available, else the raw text.
        response: The underlying :class:`requests.Response`.
    """

    def __init__(
        self, message: str, status_code: int, body=None, response=None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.response = response


class TransportError(SwedbankJsonError):
    """Raised when a request fails without an HTTP response.

    Covers connection errors, timeouts and redirect loops.  No logout is
    attempted for these failures and the session is left intact.
    """


class UnexpectedResponseError(SwedbankJsonError):
    """Raised when a response lacks a field the caller depends on."""
