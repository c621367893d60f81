# src/fetching/retrying_fetcher.py — v1
"""Image downloader with bounded retries and linear backoff.

Every source candidate that resolves to a URL goes through this one
fetcher. An attempt fails on transport errors, timeouts, non-2xx status,
a non-image content type, or a payload outside the accepted size range;
attempt N failing waits ``base_delay * N`` before attempt N+1.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from bizimages.core.errors import FetchError, ValidationError
from bizimages.core.models import MIN_VALID_SIZE

if TYPE_CHECKING:
    from bizimages.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 15.0
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; PhotoDownloader/1.0)"


class FetchedImage(BaseModel):
    """Payload of one successful download."""

    url: str
    data: bytes
    content_type: str
    attempts: int


class _AttemptFailed(Exception):
    """One attempt failed; the message is the cause."""


def validate_url(url: str) -> None:
    """Raise ValidationError unless url is an absolute http(s) URL."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Not an absolute http(s) URL: {url!r}")


class RetryingFetcher:
    """Download image bytes over HTTP with retries."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        min_valid_size: int = MIN_VALID_SIZE,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Shared AsyncClient. A private one is created (and closed
                by ``aclose``) when omitted.
            timeout_s: Per-attempt timeout in seconds.
            min_valid_size: Smallest accepted payload, in bytes.
            max_image_bytes: Largest accepted payload, in bytes.
            user_agent: User-Agent header sent with every request.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._timeout = timeout_s
        self._min_size = min_valid_size
        self._max_size = max_image_bytes
        self._headers = {"User-Agent": user_agent, "Accept": "image/*"}

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> RetryingFetcher:
        return cls(
            client=client,
            timeout_s=settings.fetch_timeout_s,
            min_valid_size=settings.min_valid_size,
            max_image_bytes=settings.max_image_bytes,
            user_agent=settings.fetch_user_agent,
        )

    async def fetch(
        self, url: str, max_attempts: int = 3, base_delay: float = 1.0
    ) -> FetchedImage:
        """Download ``url``, retrying up to ``max_attempts`` times.

        Raises:
            ValidationError: If the URL is malformed or max_attempts < 1.
            FetchError: If every attempt failed; carries the last cause.
        """
        validate_url(url)
        if max_attempts < 1:
            raise ValidationError("max_attempts must be >= 1")

        cause = ""
        for attempt in range(1, max_attempts + 1):
            try:
                data, content_type = await self._attempt(url)
            except _AttemptFailed as e:
                cause = str(e)
                logger.debug(
                    "Download failed (attempt %d/%d) %s: %s",
                    attempt, max_attempts, url[:100], cause,
                )
                if attempt < max_attempts:
                    await asyncio.sleep(base_delay * attempt)
                continue

            logger.debug(
                "Downloaded %s (%.1fKB, attempt %d)", url[:100], len(data) / 1024, attempt
            )
            return FetchedImage(
                url=url, data=data, content_type=content_type, attempts=attempt
            )

        raise FetchError(url, cause, max_attempts)

    async def _attempt(self, url: str) -> tuple[bytes, str]:
        try:
            response = await self._client.get(
                url, headers=self._headers, timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            raise _AttemptFailed(f"timeout after {self._timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise _AttemptFailed(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise _AttemptFailed(f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if not content_type.startswith("image/"):
            raise _AttemptFailed(f"invalid content type: {content_type or 'missing'}")

        body = response.content
        if len(body) < self._min_size:
            raise _AttemptFailed(f"payload too small ({len(body)} bytes)")
        if len(body) > self._max_size:
            raise _AttemptFailed(f"payload too large ({len(body)} bytes)")

        return body, content_type

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RetryingFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
