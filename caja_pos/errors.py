"""Error codes and exceptions raised by the till core."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Error codes surfaced to the operator."""

    VALIDATION = "VALIDATION"
    REGISTER_NOT_OPEN = "REGISTER_NOT_OPEN"
    REGISTER_ALREADY_OPEN = "REGISTER_ALREADY_OPEN"
    BACKEND_REJECTED = "BACKEND_REJECTED"


class PosError(Exception):
    """Base error with a code and an operator-facing message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(PosError):
    """Input rejected locally before any backend call."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.VALIDATION, message)


class RegisterNotOpenError(PosError):
    """The operation needs an open register session and there is none."""

    DEFAULT_MESSAGE = "No hay caja abierta."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.REGISTER_NOT_OPEN, message or self.DEFAULT_MESSAGE)


class RegisterAlreadyOpenError(PosError):
    """A register session is already open for this location."""

    DEFAULT_MESSAGE = "Ya hay una caja abierta."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.REGISTER_ALREADY_OPEN, message or self.DEFAULT_MESSAGE)


class CollaboratorError(PosError):
    """The backend rejected a call or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, from_backend: bool = False) -> None:
        super().__init__(ErrorCode.BACKEND_REJECTED, message)
        self.status_code = status_code
        # True when `message` is the backend's own wording rather than a local fallback.
        self.from_backend = from_backend

    @property
    def is_rejection(self) -> bool:
        """True when the backend answered with a 4xx (it refused the request)."""
        return self.status_code is not None and 400 <= self.status_code < 500
