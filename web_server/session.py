"""Read the signed-in user from the session cookie.

api-server signs the token; the web-server only verifies it with the shared
secret, so resolving the current session costs no network round trip.
"""

from __future__ import annotations

import jwt
from fastapi import Request

from .config import SESSION_ALGORITHM, SESSION_COOKIE, SESSION_SECRET
from .models import SessionUser


def session_from_token(token: str | None) -> SessionUser | None:
    if not token:
        return None
    try:
        claims = jwt.decode(token, SESSION_SECRET, algorithms=[SESSION_ALGORITHM])
    except jwt.PyJWTError:
        return None

    if not claims.get("email"):
        return None
    balance = claims.get("balance")
    return SessionUser(
        id=str(claims.get("sub", "")),
        email=claims["email"],
        name=str(claims.get("name", "")),
        balance=balance if isinstance(balance, (int, float)) else 0,
    )


def current_session(request: Request) -> SessionUser | None:
    """Return the visitor's session, or None when signed out or expired."""
    return session_from_token(request.cookies.get(SESSION_COOKIE))
