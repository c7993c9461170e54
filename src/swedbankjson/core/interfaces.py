"""Abstract interface for bank API providers."""

from abc import ABC, abstractmethod


class BankProvider(ABC):
    """Abstract base class for bank API providers.

    The methods return the decoded JSON of the bank's API.  Providers only
    validate that the response has the expected shape; interpreting its
    content is left to the caller.
    """

    @abstractmethod
    def list_accounts(self) -> dict:
        """Return an overview of the user's accounts.

        Returns:
            The decoded overview, containing ``transactionAccounts``.
        """

    @abstractmethod
    def account_details(
        self, account_id: str, fetch_all: bool = False
    ) -> dict:
        """Return details and transactions for one account.

        Args:
            account_id: The provider-specific account identifier, as
                listed by :meth:`list_accounts`.
            fetch_all: When ``True``, request every transaction instead
                of the first page only.

        Returns:
            The decoded account details, containing ``transactions``.
        """

    @abstractmethod
    def list_portfolios(self) -> dict:
        """Return the user's investment savings accounts.

        Returns:
            The decoded holdings, containing ``savingsAccounts``.
        """

    @abstractmethod
    def profile(self) -> dict:
        """Return the user's profile, listing the banks the user belongs to."""

    @abstractmethod
    def terminate(self):
        """Log out and release the session."""
