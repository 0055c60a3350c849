from typing import Any, Optional


class AuditEngineError(Exception):
    """Base exception for the audit job engine."""


class MissingJobIdError(AuditEngineError):
    """Raised when a backend payload cannot be resolved to a job identifier.

    This is the only hard failure of the normalization pipeline; it aborts
    the upsert of that single payload.
    """

    def __init__(self, message: str = "Audit response without a job identifier"):
        self.message = message
        super().__init__(message)


class MissingCredentialsError(AuditEngineError):
    """Raised when no bearer credential is available for a backend call."""


# Backend transport exceptions

class BackendRequestError(AuditEngineError):
    """Base exception for failed backend requests.

    Attributes:
        url: Requested URL
        method: HTTP method
    """

    def __init__(self, message: str, url: Optional[str] = None, method: Optional[str] = None):
        self.message = message
        self.url = url
        self.method = method
        super().__init__(message)


class BackendResponseError(BackendRequestError):
    """The backend answered with a non-success HTTP status.

    Attributes:
        status: HTTP status code returned by the backend
        body: Parsed JSON body (dict/list) or raw text, if any
    """

    def __init__(
        self,
        status: int,
        body: Any = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ):
        self.status = status
        self.body = body
        super().__init__(
            f"Backend returned HTTP {status} for {method or 'request'} {url or ''}".rstrip(),
            url=url,
            method=method,
        )


class BackendConnectionError(BackendRequestError):
    """No response was received (connection failure or timeout)."""
