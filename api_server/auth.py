"""Password hashing and session tokens.

Sessions are stateless: the signed JWT is the only record of a sign-in. The
token embeds the identity snapshot (id, email, name, balance) so reading the
current session never touches MongoDB.

Hashes use bcrypt, which keeps existing `$2a$`/`$2b$` hashes in the users
collection verifiable.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Request

from .config import BCRYPT_ROUNDS, SESSION_ALGORITHM, SESSION_COOKIE, SESSION_MAX_AGE, SESSION_SECRET
from .models import SessionUser


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    """Compare a plaintext password against a stored bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))
    except ValueError:
        return False


def issue_token(user: SessionUser, now: datetime | None = None) -> tuple[str, datetime]:
    """Sign a session token for `user`. Returns (token, expiry)."""
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=SESSION_MAX_AGE)
    claims = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "balance": user.balance,
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(claims, SESSION_SECRET, algorithm=SESSION_ALGORITHM)
    return token, expires_at


def decode_token(token: str) -> SessionUser | None:
    """Validate a session token. Bad signature, expiry or shape -> None."""
    try:
        claims = jwt.decode(token, SESSION_SECRET, algorithms=[SESSION_ALGORITHM])
    except jwt.PyJWTError:
        return None

    balance = claims.get("balance")
    return SessionUser(
        id=str(claims.get("sub", "")),
        email=str(claims.get("email", "")),
        name=str(claims.get("name", "")),
        balance=balance if isinstance(balance, (int, float)) else 0,
    )


def token_from_request(request: Request) -> str | None:
    """Read the session token from `Authorization: Bearer` or the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return request.cookies.get(SESSION_COOKIE)


def current_session(request: Request) -> SessionUser | None:
    """Return the signed-in user for this request, if any."""
    token = token_from_request(request)
    if not token:
        return None
    session = decode_token(token)
    if session is None or not session.email:
        return None
    return session
