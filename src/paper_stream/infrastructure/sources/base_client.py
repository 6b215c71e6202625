"""
Base API Client - Common HTTP request pattern with retry, rate limiting, and circuit breaker.

Shared by the HTTP-backed source adapters:
- Automatic retry on 429 (rate limit) with Retry-After support
- Retry with exponential backoff on transport errors
- Rate limiting (configurable interval between requests)
- Circuit breaker for fault tolerance
- Every terminal failure raised as SourceUnavailableError
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from paper_stream.shared.async_utils import CircuitBreaker
from paper_stream.shared.exceptions import RateLimitError, SourceUnavailableError, get_retry_delay

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for external API clients.

    Provides common infrastructure:
    - httpx.AsyncClient management
    - Rate limiting with configurable interval
    - Retry on 429 with exponential backoff
    - Circuit breaker for fault tolerance

    Subclasses set `_service_name` and may override `_parse_response()`.

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "MyAPI"

            def __init__(self):
                super().__init__(min_interval=0.1)

            async def get_item(self, item_id: str) -> dict:
                return await self._make_request(f"https://api.example.com/items/{item_id}")
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 3

    def __init__(
        self,
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker for fault tolerance.
                             If None, a default one is created (threshold=10, recovery=60s).
        """
        self._timeout = timeout
        self._min_interval = min_interval
        self._last_request_time = 0.0
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name=self._service_name,
            failure_threshold=10,
            recovery_timeout=60.0,
        )

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        Make a GET request with retry on 429 and circuit breaker protection.

        Args:
            url: Full request URL
            params: Query string parameters
            headers: Additional headers for this request
            expect_json: If True, parse response as JSON; otherwise return text

        Returns:
            Parsed JSON or response text

        Raises:
            RateLimitError: still rate limited after retries, or circuit open
            SourceUnavailableError: HTTP error, transport error, or bad body
        """
        for attempt in range(self._MAX_RETRIES + 1):
            await self._rate_limit()
            try:
                async with self._circuit_breaker:
                    response = await self._execute_request(url, params=params, headers=headers)

                    if response.status_code == 429:
                        if attempt < self._MAX_RETRIES:
                            retry_after = self._get_retry_after(response, attempt)
                            logger.warning(
                                f"{self._service_name}: Rate limited (429), "
                                f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                            )
                            await asyncio.sleep(retry_after)
                            continue
                        logger.warning(f"{self._service_name}: Rate limit exceeded after retries")
                        raise RateLimitError(
                            self._service_name,
                            retry_after=self._get_retry_after(response, attempt),
                        )

                    response.raise_for_status()
                    return self._parse_response(response, expect_json)

            except RateLimitError:
                raise
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"{self._service_name} HTTP error {e.response.status_code}: {e.response.reason_phrase}"
                )
                raise SourceUnavailableError(
                    self._service_name, f"HTTP {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                if attempt < self._MAX_RETRIES:
                    logger.warning(f"{self._service_name} request error (attempt {attempt + 1}): {e}")
                    await asyncio.sleep(get_retry_delay(e, attempt))
                    continue
                logger.error(f"{self._service_name} request failed: {e}")
                raise SourceUnavailableError(self._service_name, f"request failed: {e}") from e
            except ValueError as e:
                logger.error(f"{self._service_name} returned a malformed body: {e}")
                raise SourceUnavailableError(self._service_name, "malformed response") from e

        raise SourceUnavailableError(self._service_name, "retries exhausted")

    async def _execute_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        return await self._client.get(url, params=params, headers=headers or {})

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    @staticmethod
    def _get_retry_after(response: httpx.Response, attempt: int) -> float:
        """Extract Retry-After from response headers, with exponential backoff fallback."""
        try:
            return float(response.headers.get("Retry-After", 2 ** (attempt + 1)))
        except (ValueError, TypeError):
            return float(2 ** (attempt + 1))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
