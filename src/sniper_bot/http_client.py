"""
Shared async HTTP client base.

All outbound HTTP collaborators (Solana JSON-RPC, rug check reports,
Sniperoo buy API) go through JsonApiClient so that session ownership,
timeouts and retry behaviour are identical everywhere.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base exception for external API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ApiError):
    """Rate limit exceeded."""
    pass


class JsonApiClient:
    """
    Async JSON-over-HTTP client with retries.

    Retries 429, 5xx, timeouts and connection errors with exponential
    backoff. 4xx responses fail immediately. Clients whose calls must
    never be repeated (order placement) pass max_retries=1.

    Usage:
        async with SomeClient() as client:
            data = await client._request("GET", url)
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ):
        """
        Initialize the client.

        Args:
            session: Optional aiohttp session (created lazily if not provided)
            timeout: Total request timeout in seconds
            max_retries: Number of attempts for retryable failures
            retry_delay: Base delay between retries (exponential backoff)
        """
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Make an HTTP request and return the decoded JSON body.

        Raises:
            ApiError: On non-retryable errors or when retries are exhausted
            RateLimitError: When rate limited on the final attempt
            asyncio.CancelledError: Always re-raised
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            is_last = attempt == self._max_retries - 1
            try:
                async with self._session.request(method, url, **kwargs) as response:
                    if response.status == 429:
                        raise RateLimitError("Rate limit exceeded", status_code=429)

                    if response.status >= 400:
                        text = await response.text()
                        raise ApiError(
                            f"HTTP {response.status} - {text[:200]}",
                            status_code=response.status,
                        )

                    return await response.json(content_type=None)

            except RateLimitError as e:
                last_error = e
                if is_last:
                    break
                delay = self._retry_delay * (2 ** attempt) * 2
                logger.warning(f"Rate limited by {url}, waiting {delay:.1f}s before retry")
                await asyncio.sleep(delay)

            except ApiError as e:
                # 4xx is final, 5xx is retried
                if e.status_code is not None and e.status_code < 500:
                    raise
                last_error = e
                if is_last:
                    break
                logger.warning(
                    f"Server error {e.status_code}, retry {attempt + 1}/{self._max_retries}"
                )
                await asyncio.sleep(self._retry_delay * (2 ** attempt))

            except asyncio.TimeoutError:
                last_error = ApiError(f"Request to {url} timed out")
                if is_last:
                    break
                logger.warning(f"Request timeout, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(self._retry_delay * (2 ** attempt))

            except asyncio.CancelledError:
                logger.debug("Request cancelled")
                raise

            except aiohttp.ClientError as e:
                last_error = ApiError(str(e))
                if is_last:
                    break
                logger.warning(f"Request failed: {e}, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(self._retry_delay * (2 ** attempt))

        raise last_error or ApiError("Request failed after retries")
