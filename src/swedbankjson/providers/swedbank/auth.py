"""Swedbank authentication strategies.

Two implementations are defined here:

* :class:`PersonalCode`: logs in with a personal identity number and a
  personal code in a single request.

* :class:`MobileBankID`: starts a Mobile BankID challenge on the user's
  phone and polls until the user has signed it.  Its state can be
  persisted between processes through a
  :class:`~swedbankjson.auth.storage.SessionStore`.

Both take the app identity of the bank brand to talk as, either as an
:class:`~swedbankjson.core.models.AppIdentity`, as a mapping with ``appID``
and ``useragent`` keys, or as a bank identifier together with an
``app_lookup`` callable that returns such a mapping.
"""

import logging
import time
from collections.abc import Callable, Mapping

from swedbankjson.auth.interfaces import Authenticator
from swedbankjson.auth.storage import SessionStore
from swedbankjson.config import ClientConfig, resolve_config
from swedbankjson.core.exceptions import (
    ChallengeInitiationError,
    CredentialChangeRequiredError,
    LoginFailedError,
    NotAuthenticatedError,
    NotVerifiedError,
    PreconditionError,
    SwedbankJsonError,
    VerificationError,
)
from swedbankjson.core.models import (
    AppIdentity,
    ChallengeState,
    LoginState,
    Session,
)
from swedbankjson.providers.swedbank.nonce import NonceGenerator
from swedbankjson.providers.swedbank.pipeline import RequestPipeline

logger = logging.getLogger(__name__)

_PERSONAL_CODE_PATH = "identification/personalcode"
_BANKID_PATH = "identification/bankid/mobile"
_BANKID_VERIFY_PATH = "identification/bankid/mobile/verify"

_STATUS_USER_SIGN = "USER_SIGN"
_STATUS_COMPLETE = "COMPLETE"


class PersonalCode(Authenticator):
    """Login with personal identity number and personal code.

    Args:
        bank_app: App identity, app data mapping, or bank identifier.
        user_id: Personal identity number of the user.
        personal_code: The user's personal code.
        debug: Log every HTTP exchange at DEBUG level.
        authorization: Use this authorization token instead of
            generating one.
        config: Connection settings.
        app_lookup: Resolves a bank identifier to app data.
        nonce: Generator for the ``dsid`` values.

    Raises:
        PreconditionError: If the app data is malformed.
    """

    variant = "personal_code"

    def __init__(
        self,
        bank_app: AppIdentity | Mapping | str,
        user_id: str,
        personal_code: str,
        *,
        debug: bool = False,
        authorization: str | None = None,
        config: ClientConfig | None = None,
        app_lookup: Callable[[str], Mapping] | None = None,
        nonce: NonceGenerator | None = None,
    ):
        identity = AppIdentity.resolve(bank_app, app_lookup)
        self.user_id = user_id
        self._personal_code = personal_code
        self.session = Session.create(identity, authorization, debug)
        self.store = SessionStore()
        self.pipeline = RequestPipeline(
            self.session,
            self.store,
            config or resolve_config(),
            nonce,
            on_cleanup=self._reset,
        )
        self.state = LoginState.UNAUTHENTICATED

    # -------------------------
    # Login flow
    # -------------------------

    def login(
        self,
        user_id: str | None = None,
        personal_code: str | None = None,
    ) -> bool:
        """Log in with a single request.

        Args:
            user_id: Overrides the user ID given at construction.
            personal_code: Overrides the personal code given at
                construction.

        Returns:
            ``True`` on success.

        Raises:
            CredentialChangeRequiredError: If the bank requires the
                personal code to be changed first.
            LoginFailedError: If the API does not accept the credentials.
            ApiError: If the API answers with an HTTP error.
            TransportError: If the request gets no response.
        """
        if user_id is not None:
            self.user_id = user_id
        if personal_code is not None:
            self._personal_code = personal_code

        try:
            output = self.pipeline.post(
                _PERSONAL_CODE_PATH,
                {
                    "useEasyLogin": False,
                    "password": self._personal_code,
                    "generateEasyLoginId": False,
                    "userId": self.user_id,
                },
            )
        except SwedbankJsonError:
            self.state = LoginState.FAILED
            raise

        output = output if isinstance(output, dict) else {}
        if output.get("personalCodeChangeRequired"):
            self.state = LoginState.FAILED
            raise CredentialChangeRequiredError(
                "The bank requires a new personal code. Log in to the "
                "internet bank to change it."
            )
        if not _next_link(output):
            self.state = LoginState.FAILED
            raise LoginFailedError(
                "Login failed. Check the user ID, personal code and "
                "authorization key."
            )

        self.state = LoginState.AUTHENTICATED
        logger.info("Logged in with personal code")
        return True

    def verify(self) -> bool:
        """Return ``True`` if the login succeeded.

        Personal-code logins complete in one step, so there is nothing to
        poll.
        """
        return self.is_authenticated()

    # -------------------------
    # Authenticator interface
    # -------------------------

    def authenticate(self) -> bool:
        return self.login()

    def is_authenticated(self) -> bool:
        return self.state is LoginState.AUTHENTICATED

    def issue_request(
        self,
        method: str,
        path: str,
        *,
        query: dict | None = None,
        body=None,
        headers: dict | None = None,
    ):
        if not self.is_authenticated():
            raise NotAuthenticatedError("Log in before issuing requests.")
        return self.pipeline.execute(
            method, path, headers=headers, body=body, query=query
        )

    def terminate(self):
        return self.pipeline.terminate()

    def _reset(self) -> None:
        self.state = LoginState.UNAUTHENTICATED


class MobileBankID(Authenticator):
    """Login with Mobile BankID.

    The flow is ``initiate_challenge()``, then ``poll_challenge()`` until
    it returns ``True``, then ``login()``.  :meth:`authenticate` runs all
    three steps.

    When a *store* is given the session is made persistent and saved
    after every state change, so that a later process can pick the flow
    up with :meth:`resume`.

    Args:
        bank_app: App identity, app data mapping, or bank identifier.
        user_id: Personal identity number of the user.
        store: Where the session is persisted.
        debug: Log every HTTP exchange at DEBUG level.
        authorization: Use this authorization token instead of
            generating one.
        config: Connection settings.
        app_lookup: Resolves a bank identifier to app data.
        nonce: Generator for the ``dsid`` values.

    Raises:
        PreconditionError: If the app data is malformed, or a store is
            given whose backend is not available.
    """

    variant = "mobile_bankid"

    def __init__(
        self,
        bank_app: AppIdentity | Mapping | str,
        user_id: str | None,
        *,
        store: SessionStore | None = None,
        debug: bool = False,
        authorization: str | None = None,
        config: ClientConfig | None = None,
        app_lookup: Callable[[str], Mapping] | None = None,
        nonce: NonceGenerator | None = None,
    ):
        identity = AppIdentity.resolve(bank_app, app_lookup)
        self.user_id = user_id
        self.session = Session.create(identity, authorization, debug)
        self.store = store or SessionStore()
        if store is not None:
            self.store.enable_persistence(self.session)
        self.config = config or resolve_config()
        self.pipeline = RequestPipeline(
            self.session,
            self.store,
            self.config,
            nonce,
            on_cleanup=self._reset,
        )
        self.state = ChallengeState.UNVERIFIED

    @classmethod
    def resume(
        cls,
        store: SessionStore,
        user_id: str | None = None,
        *,
        config: ClientConfig | None = None,
        nonce: NonceGenerator | None = None,
    ) -> "MobileBankID | None":
        """Rebuild a strategy from the session saved in *store*.

        Args:
            store: The store a previous instance saved to.
            user_id: Needed only if the challenge has to be started again.
            config: Connection settings.
            nonce: Generator for the ``dsid`` values.

        Returns:
            The restored strategy, or ``None`` if *store* holds no Mobile
            BankID session.
        """
        record = store.load_record()
        if record is None or record.variant != cls.variant:
            return None
        auth = cls(
            AppIdentity(record.app_id, record.user_agent),
            user_id,
            store=store,
            debug=record.debug,
            authorization=record.authorization,
            config=config,
            nonce=nonce,
        )
        if record.state:
            auth.state = ChallengeState(record.state)
        logger.debug("Resumed Mobile BankID session in state %s", auth.state)
        return auth

    # -------------------------
    # Login flow
    # -------------------------

    def initiate_challenge(self, user_id: str | None = None) -> bool:
        """Send a verification request to the user's Mobile BankID app.

        Args:
            user_id: Overrides the user ID given at construction.

        Returns:
            ``True`` once the challenge is pending, or immediately if the
            session is already verified.

        Raises:
            PreconditionError: If no user ID is known.
            ChallengeInitiationError: If the API does not ask the user
                to sign.
            ApiError: If the API answers with an HTTP error.
            TransportError: If the request gets no response.
        """
        if self.state is ChallengeState.VERIFIED:
            return True
        if user_id is not None:
            self.user_id = user_id
        if not self.user_id:
            raise PreconditionError(
                "A user ID is needed to start Mobile BankID."
            )

        output = self.pipeline.post(
            _BANKID_PATH,
            {
                "useEasyLogin": False,
                "generateEasyLoginId": False,
                "userId": self.user_id,
            },
        )
        status = output.get("status") if isinstance(output, dict) else None
        if status != _STATUS_USER_SIGN:
            raise ChallengeInitiationError(
                f"Could not start Mobile BankID (status {status!r})."
            )

        self.state = ChallengeState.PENDING_CHALLENGE
        self._save()
        logger.info("Mobile BankID challenge sent")
        return True

    def poll_challenge(self) -> bool:
        """Check whether the user has signed the challenge.

        Returns:
            ``True`` if the session is verified, ``False`` if the user has
            not signed yet and the caller should poll again.

        Raises:
            VerificationError: If the response carries no status.
            ApiError: If the API answers with an HTTP error.
            TransportError: If the request gets no response.
        """
        if self.state is ChallengeState.VERIFIED:
            return True

        output = self.pipeline.get(_BANKID_VERIFY_PATH)
        status = output.get("status") if isinstance(output, dict) else None
        if not status:
            raise VerificationError("Mobile BankID is not verified.")

        if status == _STATUS_COMPLETE:
            self.state = ChallengeState.VERIFIED
        else:
            self.state = ChallengeState.PENDING_CHALLENGE
        self._save()
        logger.debug("Mobile BankID status %s", status)
        return self.state is ChallengeState.VERIFIED

    verify = poll_challenge

    def wait_for_verification(
        self,
        interval: float | None = None,
        max_polls: int | None = None,
    ) -> bool:
        """Poll until the challenge is signed.

        Args:
            interval: Seconds between polls.  Defaults to the configured
                ``poll_interval``.
            max_polls: Polls before giving up.  Defaults to the
                configured ``max_polls``.

        Returns:
            ``True`` once verified.

        Raises:
            VerificationError: If the user has not signed after
                *max_polls* attempts, or a response carries no status.
        """
        interval = self.config.poll_interval if interval is None else interval
        max_polls = self.config.max_polls if max_polls is None else max_polls

        for attempt in range(max_polls):
            if self.poll_challenge():
                return True
            if attempt < max_polls - 1:
                time.sleep(interval)

        raise VerificationError(
            f"Mobile BankID was not signed after {max_polls} polls."
        )

    def login(self) -> bool:
        """Complete the login.

        The session is already live once verified, so no request is made.

        Returns:
            ``True``.

        Raises:
            NotVerifiedError: If the challenge has not been signed.
        """
        if self.state is not ChallengeState.VERIFIED:
            raise NotVerifiedError("Mobile BankID is not verified.")
        return True

    # -------------------------
    # Authenticator interface
    # -------------------------

    def authenticate(self) -> bool:
        if self.state is not ChallengeState.VERIFIED:
            self.initiate_challenge()
            self.wait_for_verification()
        return self.login()

    def is_authenticated(self) -> bool:
        return self.state is ChallengeState.VERIFIED

    def issue_request(
        self,
        method: str,
        path: str,
        *,
        query: dict | None = None,
        body=None,
        headers: dict | None = None,
    ):
        if not self.is_authenticated():
            raise NotVerifiedError("Mobile BankID is not verified.")
        return self.pipeline.execute(
            method, path, headers=headers, body=body, query=query
        )

    def terminate(self):
        return self.pipeline.terminate()

    # -------------------------
    # Internal helpers
    # -------------------------

    def _save(self) -> None:
        self.store.save(self.session, self.variant, self.state.value)

    def _reset(self) -> None:
        self.state = ChallengeState.UNVERIFIED


def _next_link(output: dict) -> str | None:
    links = output.get("links")
    if not isinstance(links, dict):
        return None
    next_link = links.get("next")
    if not isinstance(next_link, dict):
        return None
    return next_link.get("uri") or None
