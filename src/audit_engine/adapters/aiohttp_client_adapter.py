# audit_engine/adapters/aiohttp_client_adapter.py
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from audit_engine.core.exceptions import BackendConnectionError, BackendResponseError
from audit_engine.core.interfaces.http_client import HttpClientPort
from audit_engine.core.settings import logger


class AioHttpClientAdapter(HttpClientPort):
    """aiohttp implementation of the backend HTTP port.

    Translates HTTP/network failures into domain exceptions:
    - non-success status -> BackendResponseError (status + parsed body)
    - timeout / connection failure -> BackendConnectionError

    When neither the adapter nor the caller sets a timeout, aiohttp's own
    ClientSession default applies.
    """

    def __init__(self, default_timeout: float | None = None):
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_timeout = default_timeout

    async def __aenter__(self):
        """Async context manager entry"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get(self, url: str, headers: Dict[str, str] | None = None, timeout: float | None = None) -> Any:
        return await self._request("GET", url, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        json: Dict[str, Any] | None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        return await self._request("POST", url, json=json, headers=headers, timeout=timeout)

    def _client_timeout(self, timeout: float | None) -> Optional[aiohttp.ClientTimeout]:
        total = timeout if timeout is not None else self._default_timeout
        if total is None:
            return None
        return aiohttp.ClientTimeout(total=total)

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        # Empty bodies parse to None; non-JSON bodies are returned as text.
        # Undecodable bytes are replaced so a broken body still reaches the
        # status check instead of escaping as UnicodeDecodeError.
        raw = await response.read()
        if not raw.strip():
            return None
        try:
            text = raw.decode(response.charset or "utf-8", errors="replace")
        except LookupError:
            text = raw.decode("utf-8", errors="replace")
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _request(
        self,
        method: str,
        url: str,
        json: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        kwargs: Dict[str, Any] = {"headers": headers}
        if json is not None:
            kwargs["json"] = json
        client_timeout = self._client_timeout(timeout)
        if client_timeout is not None:
            kwargs["timeout"] = client_timeout

        try:
            async with self._session.request(method, url, **kwargs) as response:
                body = await self._read_body(response)
                if response.status >= 400:
                    logger.warning(
                        "HTTP error from backend. Method: %s, URL: %s, Status: %s",
                        method,
                        url,
                        response.status,
                    )
                    raise BackendResponseError(response.status, body, url=url, method=method)
                return body

        except asyncio.TimeoutError as timeout_error:
            logger.error("Timeout when requesting backend. Method: %s, URL: %s", method, url)
            raise BackendConnectionError(
                "The request to the backend timed out.", url=url, method=method
            ) from timeout_error

        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when requesting backend. Method: %s, URL: %s, Error: %s",
                method,
                url,
                str(client_error),
            )
            raise BackendConnectionError(
                "There was a connection error with the backend.", url=url, method=method
            ) from client_error
