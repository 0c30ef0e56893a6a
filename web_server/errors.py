"""Domain errors for the web-server.

`main` maps each one to an HTTP status; the cart, checkout and API client
modules only raise them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    VALIDATION = "VALIDATION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    AUTH = "AUTH"
    UPSTREAM = "UPSTREAM"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Bad input, e.g. an unknown payment method or a blank reference."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.VALIDATION, message=message)


class InvalidTransitionError(DomainError):
    """A checkout command that the current state does not accept."""

    def __init__(self, state: str, command: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot {command} while {state}",
        )
        self.state = state
        self.command = command


class NotFoundError(DomainError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=message)


class AuthError(DomainError):
    """Missing, expired or rejected session."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(code=ErrorCode.AUTH, message=message)


class TransientNetworkError(DomainError):
    """api-server could not be reached or failed. The UI offers a manual retry."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.UPSTREAM, message=message)
