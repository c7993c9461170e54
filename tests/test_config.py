"""Unit tests for configuration resolution."""

import pytest

from swedbankjson.config import ClientConfig, resolve_config
from swedbankjson.core.exceptions import PreconditionError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "BASE_URL",
        "API_VERSION",
        "TIMEOUT",
        "MAX_REDIRECTS",
        "VERIFY_TLS",
        "POLL_INTERVAL",
        "MAX_POLLS",
    ):
        monkeypatch.delenv(f"SWEDBANKJSON_{name}", raising=False)


def test_defaults():
    config = resolve_config()
    assert config == ClientConfig()
    assert config.verify_tls is False
    assert config.max_redirects == 10
    assert config.api_root == (
        "https://auth.api.swedbank.se/TDE_DAP_Portal_REST_WEB/api/v4/"
    )


def test_environment(monkeypatch):
    monkeypatch.setenv("SWEDBANKJSON_TIMEOUT", "12.5")
    monkeypatch.setenv("SWEDBANKJSON_VERIFY_TLS", "true")
    monkeypatch.setenv("SWEDBANKJSON_API_VERSION", "v5")
    config = resolve_config()
    assert config.timeout == 12.5
    assert config.verify_tls is True
    assert config.api_version == "v5"


def test_arguments_beat_environment(monkeypatch):
    monkeypatch.setenv("SWEDBANKJSON_TIMEOUT", "12.5")
    assert resolve_config(timeout=3.0).timeout == 3.0


def test_explicit_none_disables_timeout(monkeypatch):
    monkeypatch.setenv("SWEDBANKJSON_TIMEOUT", "12.5")
    assert resolve_config(timeout=None).timeout is None


def test_none_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("SWEDBANKJSON_TIMEOUT", "none")
    assert resolve_config().timeout is None


def test_invalid_environment(monkeypatch):
    monkeypatch.setenv("SWEDBANKJSON_MAX_POLLS", "many")
    with pytest.raises(PreconditionError):
        resolve_config()


def test_unknown_setting():
    with pytest.raises(PreconditionError):
        resolve_config(proxy="http://localhost:8080")


def test_url_for():
    config = ClientConfig(
        base_url="https://example.test/api/", api_version="v4"
    )
    assert config.url_for("/profile/") == (
        "https://example.test/api/v4/profile/"
    )
    assert config.url_for("engagement/overview") == (
        "https://example.test/api/v4/engagement/overview"
    )
