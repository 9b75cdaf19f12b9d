"""Per-URL scrape pipeline: fetch with retry and fallback, then extract.

The pipeline turns one :class:`~ai_webscraper.core.models.ExtractionRequest`
into one :class:`~ai_webscraper.core.models.ExtractionResult` and never
raises.  Fetching follows a declarative fallback plan:

- script preferred: ``SCRIPT_COMPREHENSIVE -> SCRIPT_BASIC -> HTTP``, always
  escalating on failure;
- HTTP preferred: ``HTTP -> SCRIPT_COMPREHENSIVE -> SCRIPT_BASIC``, escalating
  out of ``HTTP`` only on a retry attempt or when the HTTP error suggests the
  page is rendered client-side.

The whole plan is retried up to ``max_retries + 1`` times with exponential
backoff (``base_delay * 2 ** (attempt - 1)`` before attempt ``attempt``).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Protocol

from ai_webscraper.core.exceptions import FetchError, InvalidRequestError
from ai_webscraper.core.models import Content, ExtractionRequest, ExtractionResult, Failed, ScrapeOutcome
from ai_webscraper.core.validation import validate_schema, validate_url
from ai_webscraper.extraction.base import Extractor
from ai_webscraper.scraper.config import (
    CLIENT_RENDERING_TOKENS,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_TIMEOUT,
)
from ai_webscraper.scraper.digest import format_digest

logger = logging.getLogger(__name__)

FETCH_FAILED_PREFIX = "Fetch failed: "
EXTRACTION_FAILED_PREFIX = "Extraction failed: "
INVALID_REQUEST_PREFIX = "Invalid request: "


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class PageFetcher(Protocol):
    async def fetch(self, url: str, *, timeout: Optional[float] = None) -> str: ...


class ScriptFetcher(Protocol):
    async def fetch_basic(self, url: str, *, timeout: Optional[float] = None) -> str: ...

    async def fetch_comprehensive(
        self, url: str, *, timeout: Optional[float] = None
    ) -> Mapping[str, Any]: ...

    async def dispose(self) -> None: ...


# ---------------------------------------------------------------------------
# Fallback policy
# ---------------------------------------------------------------------------


class FetchStep(str, Enum):
    """One way of obtaining page content."""

    SCRIPT_COMPREHENSIVE = "script_comprehensive"
    SCRIPT_BASIC = "script_basic"
    HTTP = "http"


FALLBACK_PLANS: dict[bool, tuple[FetchStep, ...]] = {
    True: (FetchStep.SCRIPT_COMPREHENSIVE, FetchStep.SCRIPT_BASIC, FetchStep.HTTP),
    False: (FetchStep.HTTP, FetchStep.SCRIPT_COMPREHENSIVE, FetchStep.SCRIPT_BASIC),
}
"""Ordered fetch steps keyed by ``prefer_script``."""


def resolve_fetch_steps(prefer_script: bool) -> tuple[FetchStep, ...]:
    """Return the ordered fetch steps for the given strategy preference."""
    return FALLBACK_PLANS[bool(prefer_script)]


def suggests_client_rendering(error: BaseException | str) -> bool:
    """Return ``True`` if *error* hints that the page renders client-side."""
    text = str(error).lower()
    return any(token in text for token in CLIENT_RENDERING_TOKENS)


def should_escalate(
    step: FetchStep,
    error: BaseException | str,
    *,
    prefer_script: bool,
    is_retry: bool,
) -> bool:
    """Decide whether a failed *step* moves on to the next step of its plan.

    Only the ``HTTP`` step of the HTTP-preferred plan is gated; every other
    failure escalates.
    """
    if not prefer_script and step is FetchStep.HTTP:
        return is_retry or suggests_client_rendering(error)
    return True


def _composite_message(errors: list[tuple[FetchStep, FetchError]]) -> str:
    details = "; ".join(f"{step.value}: {exc}" for step, exc in errors)
    return f"All fetch strategies failed ({details})"


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ScrapePipeline:
    """Fetch one page with retry and fallback, then run the extractor on it.

    Args:
        http_fetcher: Plain HTTP fetcher.
        script_fetcher: Headless-browser fetcher.
        extractor: AI extractor turning page content into schema fields.
        prefer_script: Start with the browser instead of plain HTTP.
        timeout: Timeout in seconds passed to every fetch.
        base_delay: Base of the exponential retry backoff, in seconds.
        sleep: Coroutine used to wait between attempts.  Tests inject a
            recorder here instead of sleeping.
    """

    def __init__(
        self,
        http_fetcher: PageFetcher,
        script_fetcher: ScriptFetcher,
        extractor: Extractor,
        *,
        prefer_script: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._http = http_fetcher
        self._script = script_fetcher
        self._extractor = extractor
        self._prefer_script = prefer_script
        self._timeout = timeout
        self._base_delay = base_delay
        self._sleep = sleep

    @property
    def provider_tag(self) -> str:
        return self._extractor.provider_tag

    @property
    def prefer_script(self) -> bool:
        return self._prefer_script

    # ------------------------------------------------------------------
    # Fetch phase
    # ------------------------------------------------------------------

    async def _run_step(self, step: FetchStep, url: str) -> str:
        if step is FetchStep.HTTP:
            return await self._http.fetch(url, timeout=self._timeout)
        if step is FetchStep.SCRIPT_BASIC:
            return await self._script.fetch_basic(url, timeout=self._timeout)
        digest = await self._script.fetch_comprehensive(url, timeout=self._timeout)
        text = format_digest(digest)
        if not text:
            raise FetchError("Page digest has no content", url=url, strategy=step.value)
        return text

    async def _fetch_once(
        self,
        url: str,
        *,
        prefer_script: bool,
        is_retry: bool,
        tried: list[str],
    ) -> Content:
        """Walk the fallback plan once, returning the first content obtained."""
        plan = resolve_fetch_steps(prefer_script)
        errors: list[tuple[FetchStep, FetchError]] = []
        for position, step in enumerate(plan):
            tried.append(step.value)
            try:
                text = await self._run_step(step, url)
            except FetchError as exc:
                errors.append((step, exc))
                logger.info("pipeline: %s failed for %s: %s", step.value, url, exc)
                is_last = position == len(plan) - 1
                if is_last or not should_escalate(
                    step, exc, prefer_script=prefer_script, is_retry=is_retry
                ):
                    break
                continue
            logger.debug("pipeline: %s succeeded for %s", step.value, url)
            return Content(text=text, strategy=step.value)

        if len(errors) == 1:
            raise errors[0][1]
        raise FetchError(_composite_message(errors), url=url) from errors[-1][1]

    async def fetch(self, request: ExtractionRequest) -> ScrapeOutcome:
        """Fetch page content for *request* with retry, backoff and fallback."""
        prefer_script = (
            request.use_script if request.use_script is not None else self._prefer_script
        )
        tried: list[str] = []
        last_error: Optional[FetchError] = None

        for attempt in range(request.max_retries + 1):
            if attempt > 0:
                delay = self._base_delay * (2 ** (attempt - 1))
                logger.info(
                    "pipeline: retrying %s in %.2fs (attempt %d/%d)",
                    request.url,
                    delay,
                    attempt + 1,
                    request.max_retries + 1,
                )
                await self._sleep(delay)
            try:
                return await self._fetch_once(
                    request.url,
                    prefer_script=prefer_script,
                    is_retry=attempt > 0,
                    tried=tried,
                )
            except FetchError as exc:
                last_error = exc

        assert last_error is not None
        return Failed(cause=last_error, tried=tuple(tried))

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def extract_one(self, request: ExtractionRequest) -> ExtractionResult:
        """Fetch and extract one URL.  Never raises.

        Every failure is captured in the ``error`` of a failed result, tagged
        ``"Invalid request: "``, ``"Fetch failed: "`` or
        ``"Extraction failed: "``.  ``elapsed`` covers all retries and
        fallbacks.
        """
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        def _failure(message: str) -> ExtractionResult:
            return ExtractionResult.failed(
                message,
                elapsed=timedelta(seconds=time.monotonic() - start),
                provider_tag=self.provider_tag,
                url=request.url,
                timestamp=started_at,
            )

        try:
            validate_url(request.url)
            validate_schema(request.schema)
            if request.max_retries < 0:
                raise InvalidRequestError("max_retries must be >= 0")
        except InvalidRequestError as exc:
            logger.warning("pipeline: invalid request for %s: %s", request.url, exc)
            return _failure(f"{INVALID_REQUEST_PREFIX}{exc}")

        try:
            outcome = await self.fetch(request)
        except Exception as exc:  # noqa: BLE001
            logger.exception("pipeline: unexpected fetch error for %s", request.url)
            return _failure(f"{FETCH_FAILED_PREFIX}{exc}")

        if isinstance(outcome, Failed):
            logger.warning(
                "pipeline: fetch failed for %s after %s: %s",
                request.url,
                " -> ".join(outcome.tried),
                outcome.cause,
            )
            return _failure(f"{FETCH_FAILED_PREFIX}{outcome.cause}")

        options = {"instructions": request.instructions} if request.instructions else None
        try:
            data = await self._extractor.extract(outcome.text, request.schema, options)
        except Exception as exc:  # noqa: BLE001
            logger.warning("pipeline: extraction failed for %s: %s", request.url, exc)
            return _failure(f"{EXTRACTION_FAILED_PREFIX}{exc}")

        elapsed = timedelta(seconds=time.monotonic() - start)
        logger.info(
            "pipeline: extracted %d fields from %s via %s in %.2fs",
            len(data),
            request.url,
            outcome.strategy,
            elapsed.total_seconds(),
        )
        return ExtractionResult.succeeded(
            data,
            elapsed=elapsed,
            provider_tag=self.provider_tag,
            url=request.url,
            timestamp=started_at,
        )
