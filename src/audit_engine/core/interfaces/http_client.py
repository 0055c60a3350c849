# audit_engine/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict


class HttpClientPort(ABC):
    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def get(self, url: str, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Any:
        """Make a GET request and return the parsed response body.

        Raises BackendResponseError for non-success statuses and
        BackendConnectionError when no response was received.
        """
        pass

    @abstractmethod
    async def post(
        self,
        url: str,
        json: Dict[str, Any] | None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Make a POST request and return the parsed response body.

        Same error contract as `get`.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
