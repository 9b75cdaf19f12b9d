"""Playwright-based headless browser fetcher for JavaScript-heavy pages.

Playwright is an optional dependency.  If it is not installed, every fetch
raises :class:`~ai_webscraper.core.exceptions.ScriptFetchError` with
installation instructions, which the pipeline treats like any other fetch
failure.

Install Playwright and download the Chromium browser binary::

    pip install "ai-webscraper[browser]"
    playwright install chromium

One browser process is launched lazily on first use and shared by all
fetches; each fetch gets its own isolated browser context.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ai_webscraper.core.exceptions import FetchTimeoutError, ScriptFetchError
from ai_webscraper.scraper.config import BROWSER_USER_AGENT, DEFAULT_TIMEOUT, SCRIPT_SETTLE_MS

logger = logging.getLogger(__name__)

# Guard import: playwright is an optional dependency
try:
    from playwright.async_api import Error as _PlaywrightError
    from playwright.async_api import TimeoutError as _PlaywrightTimeoutError
    from playwright.async_api import async_playwright as _async_playwright

    _PLAYWRIGHT_AVAILABLE = True
except ImportError:
    _PLAYWRIGHT_AVAILABLE = False
    _PlaywrightError = None
    _PlaywrightTimeoutError = None
    _async_playwright = None

STRATEGY_BASIC = "script_basic"
STRATEGY_COMPREHENSIVE = "script_comprehensive"

_INSTALL_HINT = (
    "Playwright is not installed. "
    'Install it with: pip install "ai-webscraper[browser]" && playwright install chromium'
)

#: Script evaluated in the page to build the structured digest consumed by
#: :func:`ai_webscraper.scraper.digest.format_digest`.
DIGEST_SCRIPT = """
() => {
  const text = (el) => (el && el.textContent ? el.textContent.replace(/\\s+/g, ' ').trim() : '');
  const texts = (selector) => Array.from(document.querySelectorAll(selector))
    .map(text)
    .filter((t) => t.length > 0);
  const meta = (name) => {
    const el = document.querySelector(`meta[name="${name}"]`);
    return el ? (el.getAttribute('content') || '') : '';
  };
  const headings = {};
  for (const level of ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']) {
    headings[level] = texts(level);
  }
  const sections = Array.from(document.querySelectorAll('main, article, section, p'))
    .map(text)
    .filter((t) => t.length > 20);
  const links = Array.from(document.querySelectorAll('a[href]'))
    .map((a) => ({ text: text(a), href: a.href }))
    .filter((l) => l.text.length > 0);
  return {
    title: document.title || '',
    url: window.location.href,
    meta: { description: meta('description'), keywords: meta('keywords') },
    eventContent: {
      cards: texts('[class*="card"], [class*="event"]'),
      schedule: texts('[class*="schedule"], [class*="agenda"], [class*="program"]'),
      sessions: texts('[class*="session"], [class*="talk"], [class*="presentation"]'),
      speakers: texts('[class*="speaker"], [class*="presenter"]'),
      times: texts('time, [class*="time"], [class*="date"]'),
    },
    headings: headings,
    contentSections: sections,
    links: links,
    stats: {
      paragraphs: document.querySelectorAll('p').length,
      links: document.querySelectorAll('a').length,
      images: document.querySelectorAll('img').length,
      tables: document.querySelectorAll('table').length,
      forms: document.querySelectorAll('form').length,
    },
    bodyText: text(document.body),
  };
}
"""


class PlaywrightFetcher:
    """Render pages in headless Chromium.

    Args:
        timeout: Default navigation timeout in seconds.
        headless: Launch the browser without a window.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT, headless: bool = True) -> None:
        self._timeout = timeout
        self._headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()

    @property
    def is_available(self) -> bool:
        return _PLAYWRIGHT_AVAILABLE

    async def _ensure_browser(self) -> Any:
        """Return the shared browser, launching it on first use."""
        if self._browser is not None:
            return self._browser
        if not _PLAYWRIGHT_AVAILABLE:
            raise ScriptFetchError(_INSTALL_HINT, strategy="script")
        async with self._lock:
            if self._browser is None:
                logger.info("scraper: launching headless Chromium (headless=%s)", self._headless)
                driver = await _async_playwright().start()
                try:
                    self._browser = await driver.chromium.launch(headless=self._headless)
                except BaseException:
                    await driver.stop()
                    raise
                self._playwright = driver
        return self._browser

    async def _render(self, url: str, strategy: str, timeout: Optional[float]) -> tuple[Any, Any]:
        """Open a fresh context, navigate to *url* and wait for it to settle."""
        browser = await self._ensure_browser()
        effective_timeout = timeout if timeout is not None else self._timeout
        context = await browser.new_context(user_agent=BROWSER_USER_AGENT)
        try:
            page = await context.new_page()
            response = await page.goto(
                url,
                timeout=effective_timeout * 1000,
                wait_until="networkidle",
            )
            if response is not None and response.status >= 400:
                raise ScriptFetchError(
                    f"HTTP {response.status}",
                    url=url,
                    status_code=response.status,
                    strategy=strategy,
                )
            await page.wait_for_timeout(SCRIPT_SETTLE_MS)
        except BaseException:
            await context.close()
            raise
        return context, page

    async def _run(self, url: str, strategy: str, timeout: Optional[float], evaluate: bool) -> Any:
        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            context, page = await self._render(url, strategy, timeout)
            try:
                if evaluate:
                    return await page.evaluate(DIGEST_SCRIPT)
                return await page.content()
            finally:
                await context.close()
        except ScriptFetchError:
            raise
        except Exception as exc:
            if _PlaywrightTimeoutError is not None and isinstance(exc, _PlaywrightTimeoutError):
                logger.warning("scraper: playwright timeout for %s", url)
                raise FetchTimeoutError(
                    f"Browser navigation timed out after {effective_timeout}s",
                    url=url,
                    timeout=effective_timeout,
                    strategy=strategy,
                ) from exc
            if _PlaywrightError is not None and isinstance(exc, _PlaywrightError):
                logger.warning("scraper: playwright fetch failed for %s: %s", url, exc)
                raise ScriptFetchError(
                    f"Browser error: {exc}", url=url, strategy=strategy
                ) from exc
            raise

    async def fetch_basic(self, url: str, *, timeout: Optional[float] = None) -> str:
        """Return the fully rendered HTML of *url*.

        Raises:
            ScriptFetchError: If Playwright is missing or the browser fails.
            FetchTimeoutError: If navigation times out.
        """
        html = await self._run(url, STRATEGY_BASIC, timeout, evaluate=False)
        logger.debug("scraper: rendered %s (%d chars)", url, len(html))
        return html

    async def fetch_comprehensive(
        self, url: str, *, timeout: Optional[float] = None
    ) -> dict[str, Any]:
        """Return a structured digest of *url* built inside the page.

        The digest keys are documented in :mod:`ai_webscraper.scraper.digest`.

        Raises:
            ScriptFetchError: If Playwright is missing, the browser fails, or
                the page script does not return a mapping.
            FetchTimeoutError: If navigation times out.
        """
        digest = await self._run(url, STRATEGY_COMPREHENSIVE, timeout, evaluate=True)
        if not isinstance(digest, dict):
            raise ScriptFetchError(
                "Page digest script returned no content",
                url=url,
                strategy=STRATEGY_COMPREHENSIVE,
            )
        return digest

    async def dispose(self) -> None:
        """Close the shared browser and stop Playwright, if they were started."""
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
