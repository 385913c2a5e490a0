"""
Error types and message helpers.

Backend failures carry the human-readable message from the remote layer. There
are no structured error codes; callers surface the message as-is (bounded in
length) and decide whether a failure is fatal to the action.
"""
import logging
from typing import Any, Optional

from api.enums import SyncStage
from config import ERROR_DETAIL_MAX_LENGTH

logger = logging.getLogger(__name__)


def truncate_string(text: Optional[str], max_length: int) -> Optional[str]:
    """
    Truncate text to max_length characters, ending with "..." when cut.

    With max_length < 4 there is no room for the ellipsis and the text is cut as-is.
    """
    if text is None:
        return None
    if len(text) <= max_length:
        return text
    if max_length < 4:
        return text[:max_length]
    return text[: max_length - 3] + "..."


def truncate_error(message: Optional[str], max_length: int = ERROR_DETAIL_MAX_LENGTH) -> Optional[str]:
    """Truncate an error message for display or logging."""
    return truncate_string(message, max_length)


def backend_error_message(exc: BaseException) -> str:
    """
    Extract the message the backend attached to an exception.

    Falls back to the exception class name when the exception has no text.
    """
    message = str(exc).strip()
    if not message:
        message = type(exc).__name__
    return truncate_error(message)


class BackendError(Exception):
    """A remote table operation failed. ``message`` is the backend's text."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @classmethod
    def from_exception(cls, exc: BaseException, **kwargs: Any) -> "BackendError":
        return cls(backend_error_message(exc), **kwargs)


class RelationSyncError(BackendError):
    """
    A relation sync step failed.

    ``stage`` tells which step failed. A DELETE failure leaves the previous rows
    in place; an INSERT failure after a successful delete leaves the relation
    empty (or, for the diff strategy, with the removed values already gone).
    """

    def __init__(self, message: str, relation: str = "", stage: SyncStage = SyncStage.DELETE):
        self.relation = relation
        self.stage = stage
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.relation} sync failed during {self.stage.value}: {self.message}"


class FormStateError(RuntimeError):
    """The form was asked to do something its current state does not allow."""


class NotFoundError(LookupError):
    """A requested row does not exist."""
