from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    BAD_REQUEST = "bad_request"
    PERSISTENCE_FAILURE = "persistence_failure"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def code(self) -> str:
        return self.value.upper()


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.PERSISTENCE_FAILURE: 500,
}

FORBIDDEN_MESSAGE = "you do not have permission to access this resource"
PERSISTENCE_FAILURE_MESSAGE = "internal server error"


class DataAccessError(Exception):
    """Raised by the data-access layer for every failure it reports.

    The ``kind`` tag is the only thing callers should branch on; ``message`` is
    safe to show to clients except for persistence failures, which the HTTP
    layer replaces with a generic message.
    """

    def __init__(self, kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def is_operational(self) -> bool:
        return self.kind is not ErrorKind.PERSISTENCE_FAILURE

    def __repr__(self) -> str:
        return f"DataAccessError(kind={self.kind.value!r}, message={self.message!r})"


def not_found(resource: str = "resource", details: dict[str, Any] | None = None) -> DataAccessError:
    return DataAccessError(ErrorKind.NOT_FOUND, f"{resource} not found", details)


def forbidden() -> DataAccessError:
    # One message for every denial so callers cannot probe for other owners' records.
    return DataAccessError(ErrorKind.FORBIDDEN, FORBIDDEN_MESSAGE)


def conflict(message: str = "resource already exists", details: dict[str, Any] | None = None) -> DataAccessError:
    return DataAccessError(ErrorKind.CONFLICT, message, details)


def bad_request(message: str = "bad request", details: dict[str, Any] | None = None) -> DataAccessError:
    return DataAccessError(ErrorKind.BAD_REQUEST, message, details)


def persistence_failure(
    message: str = "database error",
    details: dict[str, Any] | None = None,
) -> DataAccessError:
    return DataAccessError(ErrorKind.PERSISTENCE_FAILURE, message, details)
