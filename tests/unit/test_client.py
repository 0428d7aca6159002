"""
Tests of episurv.client

The backend is replaced by a fake `requests` session that records every call
and answers from a queue of canned responses.
"""

from __future__ import annotations

import logging
from typing import Any, List, Tuple

import pytest
import requests

from episurv.client import BackendClient
from episurv.errors import BackendError, SessionExpiredError
from episurv.testing import BAB, make_record

_NO_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is _NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: List[Tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def make_client(*responses: Any, token: str = "tok") -> Tuple[BackendClient, FakeSession]:
    session = FakeSession(*responses)
    client = BackendClient(
        base_url="http://backend.test/api/v1/",
        user_id="u1",
        token=token,
        timeout=5,
        session=session,
    )
    return client, session


def test_request_url_and_headers():
    client, session = make_client(FakeResponse(body={"data": {}}))
    client.request("GET", "/config")
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "http://backend.test/api/v1/user/u1/config"
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["timeout"] == 5


def test_no_token_no_auth_header():
    client, _ = make_client(token="")
    assert "Authorization" not in client.headers()


def test_session_expired_clears_token():
    client, _ = make_client(FakeResponse(401, {"error": "expired"}))
    with pytest.raises(SessionExpiredError):
        client.request("GET", "/reports")
    assert client.token is None


@pytest.mark.parametrize(
    "response",
    (
        pytest.param(FakeResponse(200, {"error": "boom"}), id="error-body"),
        pytest.param(FakeResponse(500, {}), id="http-500"),
        pytest.param(FakeResponse(200, _NO_JSON), id="invalid-json"),
        pytest.param(requests.ConnectionError("refused"), id="connection-error"),
    ),
)
def test_request_failures(response):
    client, _ = make_client(response)
    with pytest.raises(BackendError):
        client.request("GET", "/config")


def test_login_is_not_user_scoped():
    client, session = make_client(
        FakeResponse(body={"success": True, "token": "new", "user_id": "u2"}), token=""
    )
    client.login("alice", "secret")
    _, url, kwargs = session.calls[0]
    assert url == "http://backend.test/api/v1/login"
    assert kwargs["json"] == {"username": "alice", "password": "secret"}
    assert (client.token, client.user_id) == ("new", "u2")


def test_logout_clears_token_even_on_failure():
    client, _ = make_client(FakeResponse(500, {}))
    with pytest.raises(BackendError):
        client.logout()
    assert client.token is None


def test_get_and_save_config(registry):
    client, session = make_client(
        FakeResponse(body={"data": registry.to_payload()}),
        FakeResponse(body={"success": True}),
        FakeResponse(body={"success": False}),
    )
    assert client.get_config() == registry

    client.save_config(registry)
    assert session.calls[1][2]["json"] == registry.to_payload()

    with pytest.raises(BackendError, match="config save"):
        client.save_config(registry)


def test_get_report():
    data = {BAB: {"M_0_1": 3}}
    client, session = make_client(
        FakeResponse(body={"exists": True, "data": data}),
        FakeResponse(body={"exists": False, "data": None}),
    )
    rec = client.get_report("Flu", "2025-01")
    assert session.calls[0][1].endswith("/user/u1/report/Flu/2025-01")
    assert rec.disease == "Flu"
    assert rec.data == data
    assert client.get_report("Flu", "2025-02") is None


def test_save_report():
    rec = make_record("2025-01", "Flu", {BAB: {"M_0_1": 3}})
    client, session = make_client(FakeResponse(body={"success": True}))
    client.save_report(rec)
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://backend.test/api/v1/user/u1/report")
    assert kwargs["json"]["monthId"] == "2025-01"


def test_fetch_store(store):
    client, _ = make_client(FakeResponse(body=store.to_payload()))
    fetched = client.fetch_store()
    assert len(fetched) == len(store)


def test_fetch_store_failure_gives_empty_store(caplog):
    client, _ = make_client(requests.Timeout("slow"))
    with caplog.at_level(logging.ERROR, logger="episurv.client"):
        fetched = client.fetch_store()
    assert len(fetched) == 0
    assert "Error fetching data for reports" in caplog.text
