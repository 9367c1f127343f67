import asyncio
from typing import Any

import httpx
from loguru import logger


class BaseClient:
    """
    Base asynchronous HTTP client with built-in retry logic and logging.
    """

    def __init__(
        self, base_url: str = "", timeout: float = 10.0, max_retries: int = 3, headers: dict[str, str] | None = None
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx.AsyncClient instance."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, headers=self.headers, follow_redirects=True
            )
        return self._client

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, max_tries: int | None = None, **kwargs) -> httpx.Response:
        """Internal request handler with retry logic.

        Client errors (4xx) are not retried; they will not change on a second attempt.
        """
        client = await self.get_client()
        tries = max_tries or self.max_retries
        last_exception = None

        for attempt in range(1, tries + 1):
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                last_exception = e
                if e.response.status_code < 500:
                    break
                if attempt < tries:
                    await self._backoff(method, url, e, attempt, tries)
            except httpx.RequestError as e:
                last_exception = e
                if attempt < tries:
                    await self._backoff(method, url, e, attempt, tries)

        if last_exception:
            logger.error(f"Request failed ({method} {url}): {str(last_exception)}")
            raise last_exception
        raise httpx.RequestError("Request failed for unknown reasons")

    @staticmethod
    async def _backoff(method: str, url: str, error: Exception, attempt: int, tries: int) -> None:
        wait_time = 0.5 * (2 ** (attempt - 1))  # Exponential backoff
        logger.warning(
            f"Request failed ({method} {url}): {str(error)}. Retrying in {wait_time}s... (Attempt {attempt}/{tries})"
        )
        await asyncio.sleep(wait_time)

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    async def get(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> Any:
        """Perform a GET request and return the JSON response."""
        response = await self._request("GET", url, params=params, **kwargs)
        return response.json()

    async def post(self, url: str, json: Any = None, **kwargs) -> Any:
        """Perform a POST request and return the JSON response (None for an empty body)."""
        response = await self._request("POST", url, json=json, **kwargs)
        return self._json_or_none(response)

    async def patch(self, url: str, json: Any = None, **kwargs) -> Any:
        response = await self._request("PATCH", url, json=json, **kwargs)
        return self._json_or_none(response)

    async def delete(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> Any:
        response = await self._request("DELETE", url, params=params, **kwargs)
        return self._json_or_none(response)
