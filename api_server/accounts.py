"""Account service: signup, credential checks and balance reads.

The service validates inputs, talks to the store helpers in `mongo` and raises
domain errors. It never builds HTTP responses.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pymongo.database import Database

from . import mongo
from .auth import hash_password, verify_password
from .errors import AuthError, AuthErrorKind, EmailTakenError, NotFoundError, ValidationError
from .models import SessionUser, UserAccount

logger = logging.getLogger(__name__)


class AccountService:
    """Service for user accounts and credential authentication."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_account(self, email: str, password: str, name: str) -> UserAccount:
        """Register a new user with a zero balance.

        Raises:
            ValidationError: A field is blank.
            EmailTakenError: The email is already registered.
        """
        email = email.strip().lower()
        if not email or not password or not name.strip():
            raise ValidationError("Email, password and name are required")

        if mongo.find_user_by_email(self._db, email) is not None:
            raise EmailTakenError(email)

        created_at = datetime.now(timezone.utc)
        user_id = mongo.insert_user(
            self._db,
            {
                "email": email,
                "password": hash_password(password),
                "name": name.strip(),
                "balance": 0,
                "createdAt": created_at,
            },
        )
        return UserAccount(id=user_id, email=email, name=name.strip(), balance=0, createdAt=created_at)

    def authenticate(self, email: str, password: str) -> SessionUser:
        """Check credentials and return the session snapshot.

        Raises:
            ValidationError: Missing email or password.
            AuthError: kind USER_NOT_FOUND or INVALID_CREDENTIALS.
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = mongo.find_user_by_email(self._db, email.strip().lower())
        if user is None:
            raise AuthError(AuthErrorKind.USER_NOT_FOUND)

        if not verify_password(password, user.get("password", "")):
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        return SessionUser(
            id=str(user["_id"]),
            email=user["email"],
            name=user.get("name", ""),
            balance=float(user.get("balance") or 0),
        )

    def get_balance(self, email: str) -> float:
        """Fresh balance for a signed-in user.

        Raises:
            NotFoundError: The account no longer exists.
        """
        balance = mongo.get_balance(self._db, email)
        if balance is None:
            raise NotFoundError("User not found")
        return balance
