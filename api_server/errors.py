"""Domain errors for the api-server.

Every error carries a code and a user-safe message. Route handlers map them to
HTTP responses; nothing below the handlers knows about status codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    AUTH = "AUTH"
    EMAIL_TAKEN = "EMAIL_TAKEN"


class AuthErrorKind(Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MISSING_SESSION = "MISSING_SESSION"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Bad input (missing credentials, malformed payload)."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.VALIDATION, message=message)


class NotFoundError(DomainError):
    """Raised when a user or event does not exist."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=message)


class AuthError(DomainError):
    """Authentication failed.

    `kind` tells "no such user" apart from "wrong password". Handlers log the
    kind but answer both with the same message.
    """

    def __init__(self, kind: AuthErrorKind) -> None:
        super().__init__(code=ErrorCode.AUTH, message="Invalid email or password")
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.code.value}: {self.kind.value}"


class EmailTakenError(DomainError):
    """Raised at signup when the email is already registered."""

    def __init__(self, email: str) -> None:
        super().__init__(code=ErrorCode.EMAIL_TAKEN, message="User already exists")
        self.email = email
