"""Async HTTP page fetcher with content-type checks and JS-shell detection.

Uses one shared ``httpx.AsyncClient`` for all requests.  Instead of returning
partial results, every failure raises a
:class:`~ai_webscraper.core.exceptions.FetchError` so the pipeline can retry
and escalate.  A JavaScript-only page shell (near-empty body) is rejected with
an error whose text triggers escalation to
:mod:`ai_webscraper.scraper.playwright_fetcher`.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ai_webscraper.core.exceptions import FetchError, FetchTimeoutError
from ai_webscraper.scraper.config import (
    BINARY_CONTENT_TYPES,
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT,
    JS_SHELL_BODY_THRESHOLD,
    USER_AGENT,
)

logger = logging.getLogger(__name__)

STRATEGY = "http"


# ---------------------------------------------------------------------------
# Content checks
# ---------------------------------------------------------------------------


def _is_binary_content_type(content_type: str) -> bool:
    """Return ``True`` if the Content-Type indicates a non-text binary resource."""
    ct = content_type.lower().split(";")[0].strip()
    return any(ct.startswith(prefix) for prefix in BINARY_CONTENT_TYPES)


def _looks_like_html(body: str) -> bool:
    """Return ``True`` if *body* starts like, or contains, an HTML document."""
    head = body.lstrip()[:4096].lower()
    return head.startswith(("<!doctype html", "<html")) or any(
        marker in head for marker in ("<body", "<head", "<title")
    )


def _is_textual_content_type(content_type: str) -> bool:
    ct = content_type.lower()
    return not ct or any(kind in ct for kind in ("html", "xml", "text/plain"))


def _is_js_shell(html: str) -> bool:
    """Return ``True`` if the page body is too short to contain real content.

    A very short body after stripping whitespace is a strong signal that the
    page requires JavaScript execution to populate its content.
    """
    return len(html.strip()) < JS_SHELL_BODY_THRESHOLD


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class HttpFetcher:
    """Fetch raw HTML over plain HTTP.

    Args:
        timeout: Default per-request timeout in seconds.
        client: Optional pre-built client.  When omitted the fetcher creates
            (and later closes) its own.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, **DEFAULT_HEADERS},
            follow_redirects=True,
            timeout=timeout,
        )

    async def fetch(self, url: str, *, timeout: Optional[float] = None) -> str:
        """Fetch *url* and return its HTML.

        Performs the following checks in order:

        1. **HTTP GET** with the shared client, following redirects.
        2. **Status**: any status ``>= 400`` fails with ``"HTTP <code>"``.
        3. **Content-Type**: binary types, and non-HTML types whose body does
           not look like HTML, are rejected.
        4. **JS-shell detection**: a near-empty body is rejected with an error
           that mentions empty content and JavaScript.

        Args:
            url: Target URL.
            timeout: Per-call timeout override in seconds.

        Returns:
            The decoded response body.

        Raises:
            FetchTimeoutError: If the request times out.
            FetchError: For every other failure listed above.
        """
        effective_timeout = timeout if timeout is not None else self._timeout

        try:
            response = await self._client.get(url, timeout=effective_timeout)
        except httpx.TimeoutException as exc:
            logger.warning("scraper: timeout fetching %s", url)
            raise FetchTimeoutError(
                f"Request timed out after {effective_timeout}s",
                url=url,
                timeout=effective_timeout,
                strategy=STRATEGY,
            ) from exc
        except httpx.TooManyRedirects as exc:
            logger.warning("scraper: too many redirects for %s", url)
            raise FetchError("Too many redirects", url=url, strategy=STRATEGY) from exc
        except httpx.RequestError as exc:
            logger.warning("scraper: request error for %s: %s", url, exc)
            raise FetchError(f"Request error: {exc}", url=url, strategy=STRATEGY) from exc

        if response.status_code >= 400:
            logger.info("scraper: HTTP %d for %s", response.status_code, url)
            raise FetchError(
                f"HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
                strategy=STRATEGY,
            )

        content_type = response.headers.get("content-type", "")
        if _is_binary_content_type(content_type):
            logger.info("scraper: rejecting binary content-type '%s' for %s", content_type, url)
            raise FetchError(
                f"Binary content-type: {content_type}",
                url=url,
                status_code=response.status_code,
                strategy=STRATEGY,
            )

        html = response.text
        if not _is_textual_content_type(content_type) and not _looks_like_html(html):
            logger.info("scraper: rejecting non-HTML content-type '%s' for %s", content_type, url)
            raise FetchError(
                f"Content type is not HTML or XML: {content_type}",
                url=url,
                status_code=response.status_code,
                strategy=STRATEGY,
            )

        if _is_js_shell(html):
            logger.info(
                "scraper: JS-only shell detected for %s (body_len=%d)",
                url,
                len(html.strip()),
            )
            raise FetchError(
                "Page body is empty or near-empty; content is likely rendered by JavaScript",
                url=url,
                status_code=response.status_code,
                strategy=STRATEGY,
            )

        logger.debug("scraper: fetched %s (%d chars)", url, len(html))
        return html

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()
