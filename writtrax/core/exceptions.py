"""Custom exception hierarchy for the writ-tracking client.

Every error the workflows raise inherits from WritTraxError, giving callers
a single base class to catch and render as a form-level message. Subclasses
carry domain-specific context (violations for validation failures,
status_code for failed requests, details dict for debugging).
"""

from __future__ import annotations

from typing import Any

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class WritTraxError(Exception):
    """Base exception for all writ-tracking errors."""

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)


class FormValidationError(WritTraxError):
    """Raised when form input fails a local rule. No request is dispatched."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        violations: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.field = field
        self.violations: list[str] = violations or [message]


class WritTypeLockedError(FormValidationError):
    """Raised when a case with a filed ARGUMENT proceeding leaves QUASHING."""


class AttachmentRejectedError(FormValidationError):
    """Raised when a selected file's content type is not in the allow-set."""


class AuthenticationError(WritTraxError):
    """Raised on 401/403 (or an embedded status equivalent).

    By the time this propagates the auth-failure hook has already run.
    """


class RequestFailedError(WritTraxError):
    """Raised when the case-record service rejects a request or is unreachable."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        server_message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code
        self.server_message = server_message


class NotFoundError(WritTraxError):
    """Raised when a requested case, proceeding, or draft does not exist."""


class WorkflowStateError(WritTraxError):
    """Raised when an operation is not legal in the workflow's current state."""


class StaleSessionError(WritTraxError):
    """Raised when a response arrives for a session that was torn down."""


def message_for_status(status_code: int | None) -> str | None:
    """Map an HTTP status to a friendly message, or None when unmapped."""
    if not status_code:
        return None
    if status_code == 400:
        return "Please check your input and try again."
    if status_code == 401:
        return "Your session has expired. Please login again."
    if status_code == 403:
        return "You do not have permission to do that."
    if status_code == 404:
        return "Not found."
    if status_code == 409:
        return "Conflict. Please refresh and try again."
    if status_code >= 500:
        return "Server error. Please try again in a moment."
    return None


def user_message(exc: BaseException | None, fallback: str = GENERIC_FAILURE_MESSAGE) -> str:
    """Render any exception as the message shown at form level.

    Server messages are surfaced verbatim; otherwise the HTTP status is
    mapped to a friendly message.
    """
    if exc is None:
        return fallback
    if isinstance(exc, RequestFailedError):
        if exc.server_message:
            return exc.server_message
        return message_for_status(exc.status_code) or exc.message or fallback
    if isinstance(exc, WritTraxError):
        return exc.message or fallback
    return str(exc) or fallback
