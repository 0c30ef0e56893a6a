"""HTTP client for calling api-server.

Keeping the calls here keeps the route handlers small, and maps transport and
status failures onto domain errors in one place:

- connection failures, timeouts and 5xx -> TransientNetworkError
- 400 and 422 -> ValidationError
- 401 -> AuthError
- 404 -> NotFoundError

There is no automatic retry; the UI offers a manual one.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import API_SERVER_URL, API_TIMEOUT_SECONDS
from .errors import AuthError, NotFoundError, TransientNetworkError, ValidationError

logger = logging.getLogger(__name__)


def _client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    # A client per call keeps this module stateless; for high load you'd
    # create one at startup and reuse it.
    return httpx.Client(base_url=API_SERVER_URL, timeout=API_TIMEOUT_SECONDS, transport=transport)


def _request(
    method: str,
    path: str,
    *,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> httpx.Response:
    try:
        with _client(transport) as client:
            resp = client.request(method, path, **kwargs)
    except httpx.TransportError as e:
        logger.warning("api-server unreachable: %s %s: %s", method, path, e)
        raise TransientNetworkError(f"API server unreachable: {e}") from e

    if resp.status_code >= 500:
        logger.warning("api-server error: %s %s -> %s", method, path, resp.status_code)
        raise TransientNetworkError(f"API server error: HTTP {resp.status_code}")
    if resp.status_code in (400, 422):
        raise ValidationError(_detail(resp, "Invalid request"))
    if resp.status_code == 401:
        raise AuthError()
    if resp.status_code == 404:
        raise NotFoundError(_detail(resp, "Not found"))
    return resp


def _detail(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    detail = body.get("detail")
    # FastAPI request validation: a list of {loc, msg, type} entries.
    if isinstance(detail, list) and detail and isinstance(detail[0], dict):
        return str(detail[0].get("msg") or default)
    return str(detail or body.get("message") or body.get("error") or default)


def fetch_events(category: str | None = None, *, transport: httpx.BaseTransport | None = None) -> list[dict]:
    """Return catalog events, optionally for one category."""
    params = {"category": category} if category else None
    resp = _request("GET", "/events", params=params, transport=transport)
    resp.raise_for_status()
    return resp.json()["events"]


def get_balance(token: str, *, transport: httpx.BaseTransport | None = None) -> float:
    """Fresh balance for the session owning `token`."""
    resp = _request(
        "GET",
        "/user/balance",
        headers={"Authorization": f"Bearer {token}"},
        transport=transport,
    )
    resp.raise_for_status()
    return float(resp.json()["balance"])


def signin(email: str, password: str, *, transport: httpx.BaseTransport | None = None) -> dict:
    """Exchange credentials for `{token, expiresAt, user}`.

    Raises:
        ValidationError: credentials missing or malformed.
        AuthError: credentials rejected.
    """
    resp = _request(
        "POST",
        "/auth/signin",
        json={"email": email, "password": password},
        transport=transport,
    )
    resp.raise_for_status()
    return resp.json()


def signup(
    email: str,
    password: str,
    name: str,
    *,
    transport: httpx.BaseTransport | None = None,
) -> tuple[int, dict]:
    """Forward a signup. Returns (status code, body) so 400s pass straight through."""
    try:
        resp = _request(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password, "name": name},
            transport=transport,
        )
    except ValidationError as e:
        return 400, {"message": e.message}
    try:
        body = resp.json()
    except ValueError:
        body = {}
    return resp.status_code, body
