"""Maps failed backend interactions to user-facing recovery messages."""

from __future__ import annotations

from typing import Any, Callable, Optional

from audit_engine.core.exceptions import (
    BackendResponseError,
    MissingCredentialsError,
    MissingJobIdError,
)
from audit_engine.core.interfaces.session import NavigatorPort, SessionPort
from audit_engine.core.models.action import ClassifiedError, ErrorKind
from audit_engine.core.settings import logger

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."
FORBIDDEN_MESSAGE = "You are not authorized to perform this action."
UNSUPPORTED_MESSAGE = "The {operation} operation is not available on the current backend version."

# operations for which a 404 means "endpoint not implemented" rather than "job not found"
UNSUPPORTED_ON_404 = frozenset({"reprocess", "cancel"})


def extract_backend_message(body: Any) -> Optional[str]:
    """Return the backend `message` (string, or list of strings joined by spaces)."""
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message
    if isinstance(message, list):
        parts = [str(part) for part in message if part is not None]
        if parts:
            return " ".join(parts)
    return None


class ErrorClassifier:
    """Classifies failures into `ErrorKind` and applies the session side effect.

    Only `AuthExpired` reaches outside the engine: the stored credential is
    cleared, the navigator is asked to send the user back to sign in and
    `on_session_expired` (the owning session) is told to stop polling.
    """

    def __init__(
        self,
        session: Optional[SessionPort] = None,
        navigator: Optional[NavigatorPort] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self._session = session
        self._navigator = navigator
        self._on_session_expired = on_session_expired

    def classify(
        self,
        error: BaseException,
        fallback_message: str,
        operation: Optional[str] = None,
    ) -> ClassifiedError:
        if isinstance(error, MissingJobIdError):
            return ClassifiedError(kind=ErrorKind.missing_job_id, message=fallback_message)

        if isinstance(error, MissingCredentialsError):
            self._expire_session()
            return ClassifiedError(kind=ErrorKind.auth_expired, message=SESSION_EXPIRED_MESSAGE)

        if not isinstance(error, BackendResponseError):
            # no response received (connection error, timeout) or unexpected failure
            return ClassifiedError(kind=ErrorKind.generic, message=fallback_message)

        status = error.status
        if status == 401:
            self._expire_session()
            return ClassifiedError(kind=ErrorKind.auth_expired, message=SESSION_EXPIRED_MESSAGE, status=status)
        if status == 403:
            return ClassifiedError(kind=ErrorKind.forbidden, message=FORBIDDEN_MESSAGE, status=status)
        if status == 404 and operation in UNSUPPORTED_ON_404:
            return ClassifiedError(
                kind=ErrorKind.unsupported,
                message=UNSUPPORTED_MESSAGE.format(operation=operation),
                status=status,
            )

        message = extract_backend_message(error.body) or fallback_message
        return ClassifiedError(kind=ErrorKind.generic, message=message, status=status)

    def _expire_session(self) -> None:
        logger.warning("[audit:auth] session expired; clearing credential and requesting sign-in")
        if self._session is not None:
            self._session.clear_token()
        if self._navigator is not None:
            self._navigator.redirect_to_login()
        if self._on_session_expired is not None:
            self._on_session_expired()
