"""Tests for the web-server's api-server client, using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from web_server import api_client
from web_server.errors import AuthError, NotFoundError, TransientNetworkError, ValidationError


def transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def test_fetch_events_passes_category() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["category"] = request.url.params.get("category")
        return httpx.Response(200, json={"events": [{"id": "e1"}]})

    events = api_client.fetch_events("sports", transport=transport(handler))

    assert events == [{"id": "e1"}]
    assert seen == {"path": "/events", "category": "sports"}


def test_server_error_is_transient() -> None:
    handler = lambda request: httpx.Response(500, json={"error": "Failed to fetch events"})  # noqa: E731
    with pytest.raises(TransientNetworkError):
        api_client.fetch_events(transport=transport(handler))


def test_connection_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientNetworkError):
        api_client.fetch_events(transport=transport(handler))


def test_balance_sends_bearer_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer tok"
        return httpx.Response(200, json={"balance": 12.5})

    assert api_client.get_balance("tok", transport=transport(handler)) == 12.5


@pytest.mark.parametrize(("status", "error"), [(401, AuthError), (404, NotFoundError)])
def test_balance_error_mapping(status: int, error: type) -> None:
    handler = lambda request: httpx.Response(status, json={"detail": "nope"})  # noqa: E731
    with pytest.raises(error):
        api_client.get_balance("tok", transport=transport(handler))


def test_signin_rejected_is_auth_error() -> None:
    handler = lambda request: httpx.Response(401, json={"detail": "Invalid email or password"})  # noqa: E731
    with pytest.raises(AuthError):
        api_client.signin("a@b.c", "pw", transport=transport(handler))


def test_signup_passes_client_errors_through() -> None:
    handler = lambda request: httpx.Response(400, json={"message": "User already exists"})  # noqa: E731
    status, body = api_client.signup("a@b.c", "pw", "A", transport=transport(handler))
    assert status == 400
    assert body == {"message": "User already exists"}


@pytest.mark.parametrize(
    ("status", "body", "message"),
    [
        (400, {"detail": "Email and password are required"}, "Email and password are required"),
        (422, {"detail": [{"loc": ["body", "password"], "msg": "too short"}]}, "too short"),
    ],
)
def test_signin_bad_input_is_validation_error(status: int, body: dict, message: str) -> None:
    handler = lambda request: httpx.Response(status, json=body)  # noqa: E731
    with pytest.raises(ValidationError) as exc:
        api_client.signin("", "", transport=transport(handler))
    assert exc.value.message == message


def test_signup_upstream_422_becomes_400() -> None:
    handler = lambda request: httpx.Response(422, json={"detail": [{"msg": "too short"}]})  # noqa: E731
    status, body = api_client.signup("", "pw", "A", transport=transport(handler))
    assert status == 400
    assert body == {"message": "too short"}
