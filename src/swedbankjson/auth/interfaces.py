"""Abstract interface for the authentication layer.

Every authentication strategy exposes the same capabilities so that the
bank client never needs to know whether the user logged in with a
personal code or with Mobile BankID.  Strategies do not share a base
implementation: each one composes its own
:class:`~swedbankjson.providers.swedbank.pipeline.RequestPipeline` and
:class:`~swedbankjson.auth.storage.SessionStore`.
"""

from abc import ABC, abstractmethod


class Authenticator(ABC):
    """Capabilities of an authentication strategy.

    Attributes:
        session: The :class:`~swedbankjson.core.models.Session` the
            strategy authenticates.

    Example usage::

        auth = PersonalCode(identity, "198001011234", "1234")
        auth.authenticate()
        bank = SwedbankClient(auth)
        accounts = bank.list_accounts()
    """

    @abstractmethod
    def authenticate(self) -> bool:
        """Run the strategy's full login flow.

        Returns:
            ``True`` once the session is authenticated.

        Raises:
            AuthenticationError: If the login flow fails.
            ApiError: If the API rejects a login request.
            TransportError: If a login request gets no response.
        """

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Return ``True`` if business requests may be issued.

        This method must not raise or touch the network.
        """

    @abstractmethod
    def issue_request(
        self,
        method: str,
        path: str,
        *,
        query: dict | None = None,
        body=None,
        headers: dict | None = None,
    ):
        """Send an authenticated request through the session's pipeline.

        Returns:
            The decoded JSON response.

        Raises:
            NotAuthenticatedError: If called before authentication.
        """

    @abstractmethod
    def terminate(self):
        """Log out and tear the session down.

        Cleanup happens even when the logout call fails.
        """
