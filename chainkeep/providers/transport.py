"""Shared async HTTP transport for chain endpoints and the price oracle."""

import asyncio
from typing import Any

import aiohttp
from loguru import logger

from chainkeep.exceptions import ProviderError


class HttpTransport:
    """Async HTTP client with timeouts and exponential backoff.

    One transport (and one aiohttp session) is shared by every account
    handle and the price oracle of a wallet process.

    Features:
    - Lazy session creation
    - Retries on 429, 5xx and connection errors with exponential backoff
    - No retry on other 4xx responses

    Usage:
        async with HttpTransport(timeout=10.0) as transport:
            data = await transport.get_json("https://blockstream.info/api/address/bc1...")
    """

    # Backoff Configuration
    INITIAL_BACKOFF: float = 0.5
    MAX_BACKOFF: float = 8.0
    BACKOFF_MULTIPLIER: float = 2.0
    MAX_RETRIES: int = 3

    # Timeouts
    DEFAULT_TIMEOUT: float = 10.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Total per-request timeout in seconds.
            max_retries: Maximum attempts for transient errors.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max(1, max_retries)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HttpTransport":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists, creating if needed."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        return min(
            self.INITIAL_BACKOFF * (self.BACKOFF_MULTIPLIER**attempt),
            self.MAX_BACKOFF,
        )

    async def get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """GET a JSON document."""
        return await self._request_with_retry("GET", url, params=params)

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        """POST a JSON payload and return the JSON response."""
        return await self._request_with_retry("POST", url, json=payload)

    async def _request_with_retry(self, method: str, url: str, **kwargs: Any) -> Any:
        """Make HTTP request with exponential backoff retry.

        Raises:
            ProviderError: When all attempts fail or the endpoint rejects
                the request.
        """
        session = await self._ensure_session()
        last_exception: ProviderError | None = None

        for attempt in range(self._max_retries):
            try:
                async with session.request(method, url, **kwargs) as response:
                    if response.status == 200:
                        try:
                            return await response.json(content_type=None)
                        except ValueError as e:
                            # Body is not JSON (e.g. an HTML challenge page)
                            raise ProviderError(
                                f"Invalid JSON from {url}: {e}", status_code=200
                            ) from e

                    elif response.status == 429:
                        retry_after_header = response.headers.get("Retry-After")
                        retry_seconds = (
                            float(retry_after_header)
                            if retry_after_header
                            else self._calculate_backoff(attempt)
                        )
                        retry_seconds = min(retry_seconds, self.MAX_BACKOFF)
                        logger.warning(
                            "Rate limited (429) by {}, retry {} after {:.1f}s",
                            url,
                            attempt + 1,
                            retry_seconds,
                        )
                        last_exception = ProviderError("Rate limit exceeded", status_code=429)
                        await asyncio.sleep(retry_seconds)

                    elif response.status >= 500:
                        backoff = self._calculate_backoff(attempt)
                        logger.warning(
                            "Server error ({}) from {}, retry {} after {:.1f}s",
                            response.status,
                            url,
                            attempt + 1,
                            backoff,
                        )
                        last_exception = ProviderError(
                            f"Server returned {response.status}",
                            status_code=response.status,
                        )
                        await asyncio.sleep(backoff)

                    else:
                        # Client error - don't retry
                        text = await response.text()
                        raise ProviderError(
                            f"HTTP {response.status}: {text[:200]}",
                            status_code=response.status,
                        )

            except aiohttp.ClientError as e:
                backoff = self._calculate_backoff(attempt)
                logger.warning(
                    "Connection error: {}, retry {} after {:.1f}s",
                    str(e),
                    attempt + 1,
                    backoff,
                )
                last_exception = ProviderError(f"Connection error: {e}")
                await asyncio.sleep(backoff)

            except asyncio.TimeoutError:
                backoff = self._calculate_backoff(attempt)
                logger.warning(
                    "Request timeout for {}, retry {} after {:.1f}s",
                    url,
                    attempt + 1,
                    backoff,
                )
                last_exception = ProviderError("Request timeout")
                await asyncio.sleep(backoff)

        # All retries exhausted
        if last_exception is not None:
            raise last_exception
        raise ProviderError("Unknown error after retries")
