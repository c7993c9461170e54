"""Unit tests for the personal-code and Mobile BankID strategies."""

import json
from unittest.mock import patch

import pytest

from swedbankjson.auth.storage import MemoryBackend, SessionStore
from swedbankjson.core.exceptions import (
    ApiError,
    ChallengeInitiationError,
    CredentialChangeRequiredError,
    LoginFailedError,
    NotAuthenticatedError,
    NotVerifiedError,
    PreconditionError,
    VerificationError,
)
from swedbankjson.core.models import ChallengeState, LoginState, Session
from swedbankjson.providers.swedbank.auth import MobileBankID, PersonalCode

_LOGIN_OK = {"links": {"next": {"uri": "/v4/profile/", "method": "GET"}}}


# ---------------------------------------------------------------------------
# PersonalCode
# ---------------------------------------------------------------------------


@pytest.fixture()
def personal(identity, config, server):
    return PersonalCode(identity, "198001011234", "1234", config=config)


class TestPersonalCode:
    def test_login_success(self, personal, server):
        server.reply(body=_LOGIN_OK)

        assert personal.login() is True
        assert personal.state is LoginState.AUTHENTICATED
        assert personal.is_authenticated()
        assert personal.verify() is True

        call = server.calls[0]
        assert server.paths() == ["identification/personalcode"]
        assert json.loads(call["data"]) == {
            "useEasyLogin": False,
            "password": "1234",
            "generateEasyLoginId": False,
            "userId": "198001011234",
        }

    def test_login_arguments_override(self, personal, server):
        server.reply(body=_LOGIN_OK)
        personal.login("197001019876", "9999")
        body = json.loads(server.calls[0]["data"])
        assert body["userId"] == "197001019876"
        assert body["password"] == "9999"

    def test_change_required(self, personal, server):
        server.reply(body={"personalCodeChangeRequired": True, **_LOGIN_OK})
        with pytest.raises(CredentialChangeRequiredError):
            personal.login()
        assert personal.state is LoginState.FAILED

    def test_missing_next_link(self, personal, server):
        server.reply(body={"links": {}})
        with pytest.raises(LoginFailedError):
            personal.login()
        assert personal.state is LoginState.FAILED

    def test_distinct_errors(self):
        assert not issubclass(CredentialChangeRequiredError, LoginFailedError)
        assert not issubclass(LoginFailedError, CredentialChangeRequiredError)

    def test_rejected_credentials(self, personal, server):
        server.reply(401, {"errorMessages": {}}).reply(body={})
        with pytest.raises(ApiError):
            personal.login()
        assert personal.state is LoginState.FAILED
        assert server.paths()[-1] == "identification/logout"

    def test_single_round_trip(self, personal, server):
        server.reply(body=_LOGIN_OK)
        personal.authenticate()
        assert len(server.calls) == 1

    def test_requests_need_login(self, personal, server):
        with pytest.raises(NotAuthenticatedError):
            personal.issue_request("GET", "engagement/overview")
        assert server.calls == []

    def test_requests_after_login(self, personal, server):
        server.reply(body=_LOGIN_OK).reply(body={"transactionAccounts": []})
        personal.login()
        assert personal.issue_request("GET", "engagement/overview") == {
            "transactionAccounts": []
        }

    def test_server_error_resets_state(self, personal, server):
        server.reply(body=_LOGIN_OK).reply(500)
        personal.login()
        with pytest.raises(ApiError):
            personal.issue_request("GET", "engagement/overview")
        assert not personal.is_authenticated()

    def test_terminate(self, personal, server):
        server.reply(body=_LOGIN_OK).reply(body={})
        personal.login()
        personal.terminate()
        assert server.paths()[-1] == "identification/logout"
        assert personal.state is LoginState.UNAUTHENTICATED

    def test_malformed_app_data(self, config):
        with pytest.raises(PreconditionError):
            PersonalCode({"appID": ""}, "1", "2", config=config)

    def test_bank_identifier_lookup(self, config):
        table = {"swedbank": {"appID": "abc", "useragent": "UA"}}
        auth = PersonalCode(
            "swedbank", "1", "2", config=config, app_lookup=table.__getitem__
        )
        assert auth.session.app_id == "abc"

    def test_supplied_authorization(self, identity, config):
        auth = PersonalCode(
            identity, "1", "2", config=config, authorization="custom"
        )
        assert auth.session.authorization == "custom"


# ---------------------------------------------------------------------------
# MobileBankID
# ---------------------------------------------------------------------------


@pytest.fixture()
def store():
    return SessionStore(MemoryBackend())


@pytest.fixture()
def bankid(identity, config, server, store):
    return MobileBankID(identity, "198001011234", store=store, config=config)


class TestMobileBankIDChallenge:
    def test_initiate(self, bankid, server, store):
        server.reply(body={"status": "USER_SIGN"})

        assert bankid.initiate_challenge() is True
        assert bankid.state is ChallengeState.PENDING_CHALLENGE
        assert store.load_record().state == "pending_challenge"
        assert json.loads(server.calls[0]["data"]) == {
            "useEasyLogin": False,
            "generateEasyLoginId": False,
            "userId": "198001011234",
        }

    def test_initiate_rejected(self, bankid, server, store):
        server.reply(body={"status": "ALREADY_IN_PROGRESS"})
        with pytest.raises(ChallengeInitiationError):
            bankid.initiate_challenge()
        assert bankid.state is ChallengeState.UNVERIFIED
        assert store.load_record() is None

    def test_poll_complete(self, bankid, server, store):
        server.reply(body={"status": "USER_SIGN"})
        server.reply(body={"status": "COMPLETE"})
        bankid.initiate_challenge()

        assert bankid.poll_challenge() is True
        assert bankid.state is ChallengeState.VERIFIED
        assert store.load_record().state == "verified"
        assert server.paths()[-1] == "identification/bankid/mobile/verify"
        assert server.calls[-1]["method"] == "GET"

    @pytest.mark.parametrize("status", ["PENDING", "USER_SIGN", "OUTSTANDING"])
    def test_poll_pending(self, bankid, server, store, status):
        server.reply(body={"status": "USER_SIGN"})
        server.reply(body={"status": status})
        bankid.initiate_challenge()

        assert bankid.poll_challenge() is False
        assert bankid.state is ChallengeState.PENDING_CHALLENGE
        assert store.load_record().state == "pending_challenge"

    @pytest.mark.parametrize("body", [{}, {"status": ""}, {"status": None}])
    def test_poll_without_status(self, bankid, server, body):
        server.reply(body=body)
        with pytest.raises(VerificationError):
            bankid.poll_challenge()

    def test_verify_is_poll(self, bankid, server):
        server.reply(body={"status": "COMPLETE"})
        assert bankid.verify() is True

    def test_initiate_with_user_id(self, bankid, server):
        server.reply(body={"status": "USER_SIGN"})
        bankid.initiate_challenge("197001019876")
        body = json.loads(server.calls[0]["data"])
        assert body["userId"] == "197001019876"
        assert bankid.user_id == "197001019876"

    def test_initiate_without_user_id(self, identity, config, server):
        auth = MobileBankID(identity, None, config=config)
        with pytest.raises(PreconditionError):
            auth.initiate_challenge()
        assert server.calls == []
        assert auth.state is ChallengeState.UNVERIFIED


class TestMobileBankIDLogin:
    def test_login_requires_verification(self, bankid, server):
        with pytest.raises(NotVerifiedError):
            bankid.login()
        assert server.calls == []

    def test_login_is_idempotent(self, bankid, server):
        server.reply(body={"status": "COMPLETE"})
        bankid.poll_challenge()
        calls = len(server.calls)

        assert bankid.login() is True
        assert bankid.login() is True
        assert len(server.calls) == calls

    def test_verified_short_circuits(self, bankid, server):
        server.reply(body={"status": "COMPLETE"})
        bankid.poll_challenge()

        assert bankid.initiate_challenge() is True
        assert bankid.poll_challenge() is True
        assert len(server.calls) == 1

    def test_requests_need_verification(self, bankid, server):
        with pytest.raises(NotVerifiedError):
            bankid.issue_request("GET", "engagement/overview")
        assert server.calls == []

    def test_wait_for_verification(self, bankid, server):
        server.reply(body={"status": "OUTSTANDING"})
        server.reply(body={"status": "COMPLETE"})
        with patch("swedbankjson.providers.swedbank.auth.time.sleep") as sleep:
            assert bankid.wait_for_verification(interval=1.5) is True
        sleep.assert_called_once_with(1.5)

    def test_wait_gives_up(self, bankid, server):
        for _ in range(3):
            server.reply(body={"status": "OUTSTANDING"})
        with patch("swedbankjson.providers.swedbank.auth.time.sleep") as sleep:
            with pytest.raises(VerificationError):
                bankid.wait_for_verification()
        assert sleep.call_count == 2
        assert bankid.state is ChallengeState.PENDING_CHALLENGE

    def test_authenticate_runs_the_flow(self, bankid, server):
        server.reply(body={"status": "USER_SIGN"})
        server.reply(body={"status": "OUTSTANDING"})
        server.reply(body={"status": "COMPLETE"})
        with patch("swedbankjson.providers.swedbank.auth.time.sleep"):
            assert bankid.authenticate() is True
        assert bankid.is_authenticated()
        assert server.paths() == [
            "identification/bankid/mobile",
            "identification/bankid/mobile/verify",
            "identification/bankid/mobile/verify",
        ]

    def test_client_error_discards_state(self, bankid, server, store):
        server.reply(body={"status": "USER_SIGN"})
        server.reply(401).reply(body={})
        bankid.initiate_challenge()

        with pytest.raises(ApiError):
            bankid.poll_challenge()

        assert bankid.state is ChallengeState.UNVERIFIED
        assert store.load_record() is None

    def test_terminate(self, bankid, server, store):
        server.reply(body={"status": "COMPLETE"}).reply(body={})
        bankid.poll_challenge()
        bankid.terminate()
        assert not bankid.is_authenticated()
        assert store.load_record() is None


class TestMobileBankIDPersistence:
    def test_persistence_requires_backend(self, identity, config):
        with pytest.raises(PreconditionError):
            MobileBankID(
                identity,
                "1",
                store=SessionStore(MemoryBackend(active=False)),
                config=config,
            )

    def test_without_store(self, identity, config, server):
        auth = MobileBankID(identity, "1", config=config)
        server.reply(body={"status": "USER_SIGN"})
        assert auth.initiate_challenge() is True
        assert auth.session.persistent is False

    def test_resume(self, bankid, server, store, config):
        server.reply(body={"status": "USER_SIGN"})
        bankid.initiate_challenge()

        resumed = MobileBankID.resume(store, config=config)

        assert resumed.state is ChallengeState.PENDING_CHALLENGE
        assert resumed.session.authorization == bankid.session.authorization
        assert resumed.session.app_id == bankid.session.app_id
        assert resumed.session.user_agent == bankid.session.user_agent
        assert resumed.session.profile_type is bankid.session.profile_type
        assert len(resumed.session.cookies) == 0

    def test_resume_verified(self, bankid, server, store, config):
        server.reply(body={"status": "COMPLETE"})
        bankid.poll_challenge()

        resumed = MobileBankID.resume(store, config=config)

        assert resumed.is_authenticated()
        assert resumed.login() is True

    def test_resume_empty_store(self, store, config):
        assert MobileBankID.resume(store, config=config) is None

    def test_resume_ignores_other_variants(self, store, identity, config):
        session = Session.create(identity)
        store.enable_persistence(session)
        store.save(session, "personal_code")
        assert MobileBankID.resume(store, config=config) is None

    def test_resume_then_restart_challenge(
        self, bankid, server, store, config
    ):
        server.reply(body={"status": "USER_SIGN"})
        bankid.initiate_challenge()
        resumed = MobileBankID.resume(store, config=config)

        with pytest.raises(PreconditionError):
            resumed.initiate_challenge()
        assert len(server.calls) == 1

        server.reply(body={"status": "USER_SIGN"})
        assert resumed.initiate_challenge("198001011234") is True
        assert json.loads(server.calls[-1]["data"])["userId"] == (
            "198001011234"
        )

    def test_resume_with_user_id(self, bankid, server, store, config):
        server.reply(body={"status": "USER_SIGN"})
        bankid.initiate_challenge()
        resumed = MobileBankID.resume(store, "198001011234", config=config)

        server.reply(body={"status": "USER_SIGN"})
        resumed.initiate_challenge()
        assert json.loads(server.calls[-1]["data"])["userId"] == (
            "198001011234"
        )

    def test_resume_ignores_unknown_state(self, bankid, server, store, config):
        server.reply(body={"status": "USER_SIGN"})
        bankid.initiate_challenge()
        data = store.backend.read(store.key)
        data["state"] = "nonsense"
        store.backend.write(store.key, data)

        assert MobileBankID.resume(store, config=config) is None
