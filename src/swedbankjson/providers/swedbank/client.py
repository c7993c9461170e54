"""Swedbank provider for the mobile-app banking API."""

import logging

from swedbankjson.auth.interfaces import Authenticator
from swedbankjson.core.exceptions import UnexpectedResponseError
from swedbankjson.core.interfaces import BankProvider

logger = logging.getLogger(__name__)

# Page size that makes the API return every transaction in one response.
_ALL_TRANSACTIONS_PAGE_SIZE = 10000


class SwedbankClient(BankProvider):
    """Issues business calls on an authenticated session.

    The client does not own the session: it borrows the pipeline of the
    :class:`~swedbankjson.auth.interfaces.Authenticator` it is given,
    which must have completed its login flow before any call is made.

    Usage::

        auth = PersonalCode(identity, "198001011234", "1234")
        auth.authenticate()
        with SwedbankClient(auth) as bank:
            overview = bank.list_accounts()

    Leaving the ``with`` block logs out.
    """

    def __init__(self, auth: Authenticator):
        """Initialise the client.

        Args:
            auth: An authenticated strategy.
        """
        self.auth = auth

    def __enter__(self) -> "SwedbankClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.terminate()

    def list_accounts(self) -> dict:
        """Return an overview of the user's accounts.

        Raises:
            UnexpectedResponseError: If the overview has no
                ``transactionAccounts``.
            NotAuthenticatedError: If the strategy is not authenticated.
            ApiError: If the API answers with an HTTP error.
            TransportError: If the request gets no response.
        """
        output = self.auth.issue_request("GET", "engagement/overview")
        return _require(
            output, "transactionAccounts", "Accounts could not be listed."
        )

    def account_details(
        self, account_id: str, fetch_all: bool = False
    ) -> dict:
        """Return details and transactions for one account.

        Raises:
            UnexpectedResponseError: If the response has no
                ``transactions``, which usually means the account ID is
                wrong.
        """
        query = None
        if fetch_all:
            query = {
                "transactionsPerPage": _ALL_TRANSACTIONS_PAGE_SIZE,
                "page": 1,
            }
        output = self.auth.issue_request(
            "GET", f"engagement/transactions/{account_id}", query=query
        )
        return _require(
            output,
            "transactions",
            f"No transactions for account {account_id!r}.",
        )

    def list_portfolios(self) -> dict:
        """Return the user's investment savings accounts.

        Raises:
            UnexpectedResponseError: If the response has no
                ``savingsAccounts``.
        """
        output = self.auth.issue_request("GET", "portfolio/holdings")
        return _require(
            output, "savingsAccounts", "Portfolios could not be listed."
        )

    def profile(self) -> dict:
        """Return the user's profile.

        Raises:
            UnexpectedResponseError: If the profile lists no bank with a
                ``bankId``.
        """
        output = self.auth.issue_request("GET", "profile/")
        banks = output.get("banks") if isinstance(output, dict) else None
        first = banks[0] if isinstance(banks, list) and banks else None
        if not isinstance(first, dict) or "bankId" not in first:
            raise UnexpectedResponseError("The profile lists no bank.")
        return output

    def select_profile(self):
        """Activate the user's profile and return the app menus.

        The bank is the first one listed by :meth:`profile`; the profile
        kind (private or corporate) follows the session's profile type.

        Raises:
            UnexpectedResponseError: If the profile lists no bank.
        """
        bank_id = self.profile()["banks"][0]["bankId"]
        profile_type = self.auth.session.profile_type
        logger.debug("Activating %s profile", profile_type.path_segment)
        return self.auth.issue_request(
            "POST", f"profile/{profile_type.path_segment}/{bank_id}"
        )

    menus = select_profile

    def terminate(self):
        """Log out.  The session is cleaned up even if the logout fails."""
        logger.info("Logging out")
        return self.auth.terminate()

    logout = terminate


def _require(output, field: str, message: str) -> dict:
    if not isinstance(output, dict) or field not in output:
        raise UnexpectedResponseError(message)
    return output
