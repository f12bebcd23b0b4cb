"""Typed failures shared by the service and HTTP layers."""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories, each bound to the HTTP status it is rendered with."""

    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND_OR_INVALID = "not_found_or_invalid"
    PERSISTENCE = "persistence"
    DELIVERY = "delivery"
    UNKNOWN = "unknown"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.NOT_FOUND_OR_INVALID: 400,
    ErrorKind.PERSISTENCE: 500,
    ErrorKind.DELIVERY: 500,
    ErrorKind.UNKNOWN: 500,
}


class ServiceError(Exception):
    """A domain failure carrying its kind, a client-safe message and optional extras.

    The routing layer never rewrites these; the exception handler in
    `email_verifier.main` renders them as `{"success": false, "error": message}`
    merged with `details`.
    """

    def __init__(self, kind: ErrorKind, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __repr__(self) -> str:
        return f"ServiceError(kind={self.kind.value!r}, message={self.message!r})"
