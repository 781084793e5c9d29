"""Tagged error types shared by the orchestrator, store, clients and API.

Callers branch on ``kind`` (or the exception class), never on message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PAYMENT_REQUIRED = "payment_required"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    COLLABORATOR = "collaborator"
    CRITICAL = "critical"


class SageError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.COLLABORATOR

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def with_step(self, step: str) -> "SageError":
        self.step = step
        return self

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message


class ValidationError(SageError):
    kind = ErrorKind.VALIDATION


class InsufficientFundsError(SageError):
    """Debit rejected: balance is zero or the user does not exist."""

    kind = ErrorKind.PAYMENT_REQUIRED


class RequestNotFoundError(SageError):
    kind = ErrorKind.NOT_FOUND


class UserNotFoundError(SageError):
    kind = ErrorKind.NOT_FOUND


class AlreadyAcceptedError(SageError):
    """Accept lost the race, or the request never existed."""

    kind = ErrorKind.CONFLICT


class NotActiveError(SageError):
    kind = ErrorKind.CONFLICT


class DuplicateRatingError(SageError):
    kind = ErrorKind.CONFLICT


class ExpertMismatchError(SageError):
    kind = ErrorKind.FORBIDDEN


class NotRequesterError(SageError):
    """The caller is not the user who opened the request."""

    kind = ErrorKind.FORBIDDEN


class CollaboratorError(SageError):
    """A billing, summarization, chat or storage backend failed."""

    kind = ErrorKind.COLLABORATOR


class CriticalInconsistencyError(SageError):
    """The store says active but the expert could not join the chat."""

    kind = ErrorKind.CRITICAL
