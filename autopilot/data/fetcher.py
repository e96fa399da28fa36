"""
Async HTTP fetcher shared by the roster and rankings clients.

Provides:
- one aiohttp session per fetcher with a per-request timeout
- a semaphore bounding concurrent requests
- retry with exponential backoff on timeouts, 429 and 5xx
- immediate, non-retryable failure on any other 4xx
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from autopilot.config import config
from autopilot.errors import DataUnavailable


logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; fantasy-autopilot/0.4)",
    "Accept": "application/json, text/html;q=0.9, */*;q=0.8",
}


@dataclass
class FetcherConfig:
    """Configuration for the HTTP fetcher."""
    max_concurrent: int = 10
    timeout_seconds: float = 30.0
    max_retries: int = 3
    base_backoff: float = 1.0

    @classmethod
    def from_global(cls) -> "FetcherConfig":
        return cls(
            max_concurrent=config.data.max_concurrent,
            timeout_seconds=config.data.timeout_seconds,
            max_retries=config.data.max_retries,
            base_backoff=config.data.base_backoff,
        )


class HttpFetcher:
    """
    Async fetcher with semaphore-based concurrency control.

    Usage:
        fetcher = HttpFetcher()
        data = await fetcher.get_json(url, params={"view": "mRoster"})
        await fetcher.close()
    """

    def __init__(self, fetch_config: FetcherConfig | None = None, source: str = "http"):
        self.config = fetch_config or FetcherConfig.from_global()
        self.source = source
        self._semaphore: asyncio.Semaphore | None = None
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=DEFAULT_HEADERS)
        return self._session

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent)
        return self._semaphore

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _backoff(self, attempt: int) -> None:
        if attempt < self.config.max_retries - 1:
            await asyncio.sleep(self.config.base_backoff * (2 ** attempt))

    async def _fetch_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        as_json: bool = True,
    ) -> Any:
        """
        Fetch a URL with retry logic and exponential backoff.

        Returns:
            Parsed JSON, or the response text when as_json is False

        Raises:
            DataUnavailable: Non-retryable status, or all retries failed
        """
        session = await self._get_session()
        semaphore = self._get_semaphore()
        last_error: Exception | None = None

        for attempt in range(self.config.max_retries):
            try:
                async with semaphore:
                    async with session.get(url, params=params, headers=headers) as response:
                        status = response.status
                        if status == 429 or status >= 500:
                            last_error = DataUnavailable(f"{self.source} returned {status}", source=self.source)
                            logger.warning(
                                f"{self.source} returned {status} "
                                f"(attempt {attempt + 1}/{self.config.max_retries})"
                            )
                        elif status >= 400:
                            # Auth, not-found and validation failures never succeed on retry
                            raise DataUnavailable(
                                f"{self.source} returned {status} for {url}",
                                source=self.source,
                                retryable=False,
                            )
                        elif as_json:
                            return await response.json(content_type=None)
                        else:
                            return await response.text()

            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(f"{self.source} timeout (attempt {attempt + 1}/{self.config.max_retries})")

            except aiohttp.ClientError as e:
                last_error = e
                logger.warning(f"{self.source} client error: {e} (attempt {attempt + 1})")

            except ValueError as e:
                raise DataUnavailable(
                    f"{self.source} returned an unparseable body: {e}",
                    source=self.source,
                    retryable=False,
                ) from e

            # Sleep without holding a concurrency slot
            await self._backoff(attempt)

        raise DataUnavailable(
            f"{self.source} failed after {self.config.max_retries} attempts: {last_error}",
            source=self.source,
        )

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        return await self._fetch_with_retry(url, params=params, headers=headers, as_json=True)

    async def get_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        return await self._fetch_with_retry(url, params=params, headers=headers, as_json=False)
