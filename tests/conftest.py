"""Shared fixtures.

``requests.Session`` inside the pipeline module is replaced by
:class:`FakeHttp`, which answers from a queue of canned responses and
records every request, so no test touches the network.
"""

import json
from unittest.mock import patch

import pytest
import requests

from swedbankjson.config import ClientConfig
from swedbankjson.core.models import AppIdentity


def make_response(status: int = 200, body=None, text: str | None = None):
    """Build a real :class:`requests.Response` with a canned body."""
    response = requests.Response()
    response.status_code = status
    if text is not None:
        response._content = text.encode("utf-8")
    elif body is not None:
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = b""
    response.encoding = "utf-8"
    return response


class FakeHttp:
    """Stand-in for :class:`requests.Session`."""

    def __init__(self, server):
        self.server = server
        self.headers = {}
        self.hooks = {"response": []}
        self.cookies = None
        self.verify = True
        self.max_redirects = 30
        self.closed = False

    def request(self, method, url, **kwargs):
        dsid_cookie = self.cookies.get("dsid") if self.cookies else None
        self.server.calls.append({
            "method": method,
            "url": url,
            "dsid_cookie": dsid_cookie,
            "session_headers": dict(self.headers),
            "transport": self,
            **kwargs,
        })
        if not self.server.replies:
            raise AssertionError(f"Unexpected request {method} {url}")
        reply = self.server.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self):
        self.closed = True


class FakeServer:
    """Queue of replies plus a log of the requests that consumed them."""

    def __init__(self):
        self.replies = []
        self.calls = []
        self.transports = []

    def reply(self, status: int = 200, body=None, text: str | None = None):
        self.replies.append(make_response(status, body, text))
        return self

    def fail(self, exc: Exception):
        self.replies.append(exc)
        return self

    def paths(self) -> list[str]:
        return [call["url"].split("/v4/", 1)[1] for call in self.calls]

    def _new_transport(self):
        http = FakeHttp(self)
        self.transports.append(http)
        return http


@pytest.fixture()
def server():
    fake = FakeServer()
    with patch(
        "swedbankjson.providers.swedbank.pipeline.requests.Session",
        side_effect=fake._new_transport,
    ):
        yield fake


@pytest.fixture()
def identity():
    return AppIdentity(
        app_id="AbCdEfGhIjKlMnOp",
        user_agent="SwedbankMOBPrivateIOS/4.9.0_(iOS;_9.0.2)_Apple/iPhone7,2",
    )


@pytest.fixture()
def config():
    return ClientConfig(timeout=5.0, poll_interval=0.0, max_polls=3)
