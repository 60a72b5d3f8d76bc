"""HTTP client for the warning feed."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import TracebackType

import httpx

from warnung_tracker.config import FeedSettings

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base exception for feed retrieval errors."""


class InvalidURLError(FetchError):
    """Raised when the feed URL is not an absolute HTTP(S) URL."""


class FeedTransportError(FetchError):
    """Raised on network, DNS, TLS or timeout failures."""


class FeedStatusError(FetchError):
    """Raised when the feed answers with a non-2xx status."""

    def __init__(self, status_code: int, status: str) -> None:
        super().__init__(status)
        self.status_code = status_code
        self.status = status


class FeedClient:
    """Synchronous client fetching the raw warning feed.

    Each request carries a fixed browser-like User-Agent, Accept and
    Accept-Language header. Extra headers are appended after those, so a
    colliding name is sent with both values. Connections are pooled by the
    underlying ``httpx.Client`` and reused across calls.

    Example:
        >>> with FeedClient(FeedSettings()) as client:
        ...     body = client.fetch()
    """

    def __init__(
        self,
        settings: FeedSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the feed client.

        Args:
            settings: Feed URL, headers and timeouts.
            transport: Optional transport override, mainly for tests.
        """
        self._settings = settings
        self._client = httpx.Client(
            timeout=httpx.Timeout(
                settings.timeout_seconds,
                connect=settings.connect_timeout_seconds,
            ),
            limits=httpx.Limits(
                max_keepalive_connections=settings.max_idle_connections,
                keepalive_expiry=settings.idle_timeout_seconds,
            ),
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> FeedClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close pooled connections."""
        self._client.close()

    def _build_headers(self, extra_headers: Mapping[str, str] | None) -> list[tuple[str, str]]:
        headers = [
            ("User-Agent", self._settings.user_agent),
            ("Accept", self._settings.accept),
            ("Accept-Language", self._settings.accept_language),
        ]
        if extra_headers:
            headers.extend(extra_headers.items())
        return headers

    @staticmethod
    def _parse_url(url: str) -> httpx.URL:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidURLError(f"Invalid feed URL {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidURLError(f"Feed URL must be an absolute HTTP(S) URL: {url!r}")
        return parsed

    def fetch(
        self,
        url: str | None = None,
        extra_headers: Mapping[str, str] | None = None,
    ) -> bytes:
        """Fetch the feed body.

        Args:
            url: URL to fetch, defaults to the configured feed URL.
            extra_headers: Headers added after the fixed ones.

        Returns:
            The full response body.

        Raises:
            InvalidURLError: If the URL is not an absolute HTTP(S) URL.
            FeedTransportError: On network, TLS or timeout failures.
            FeedStatusError: If the response status is outside 2xx.
        """
        target = self._parse_url(url or self._settings.url)
        logger.debug("GET %s", target)

        try:
            response = self._client.get(target, headers=self._build_headers(extra_headers))
        except httpx.TransportError as e:
            raise FeedTransportError(f"Request to {target} failed: {e}") from e

        if not response.is_success:
            status = f"{response.status_code} {response.reason_phrase}".strip()
            raise FeedStatusError(response.status_code, status)

        body = response.content
        logger.info("Fetched %d bytes from %s", len(body), target)
        return body
