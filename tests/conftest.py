"""Shared pytest fixtures and test doubles for ai-webscraper tests.

Fixture summary
---------------
clean_settings_cache - clears ``get_settings()``'s lru_cache around each test.
test_settings        - a ``Settings`` object with no .env file and test keys.
sleep_recorder       - async ``sleep`` replacement that records delays.
schema               - a small two-field extraction schema.

Test doubles
------------
FakeHttpFetcher, FakeScriptFetcher - scripted fetch outcomes; every call is
    appended to a shared ``calls`` list so fallback order can be asserted.
FakeExtractor      - ``Extractor`` subclass returning scripted data without HTTP.
StubPipeline       - ``extract_one`` double for batch tests with latency and
    in-flight instrumentation.

No test in this suite touches the network: httpx traffic is mocked with respx
and the headless browser is replaced by ``MagicMock``/``AsyncMock`` objects.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import timedelta
from typing import Any, Optional, Union
from unittest.mock import MagicMock

import httpx
import pytest

from ai_webscraper.config.providers import AIModel, AIProvider
from ai_webscraper.config.settings import Settings, get_settings
from ai_webscraper.core.exceptions import FetchError
from ai_webscraper.core.models import ExtractionRequest, ExtractionResult
from ai_webscraper.extraction.base import Extractor
from ai_webscraper.extraction.cache import ResponseCache

TEST_OPENAI_KEY = "sk-test-0123456789abcdefghij"
TEST_GEMINI_KEY = "AIzaTest0123456789"

Outcome = Union[str, Mapping[str, Any], BaseException]


# ---------------------------------------------------------------------------
# Scripted fetchers
# ---------------------------------------------------------------------------


class _Script:
    """Queue of outcomes; the last outcome repeats once the queue runs dry."""

    def __init__(self, name: str, outcomes: Iterable[Outcome]) -> None:
        self._name = name
        self._outcomes = list(outcomes)

    def next(self) -> Outcome:
        if not self._outcomes:
            raise FetchError(f"{self._name} not scripted")
        if len(self._outcomes) > 1:
            return self._outcomes.pop(0)
        return self._outcomes[0]


def _resolve(outcome: Outcome) -> Any:
    if isinstance(outcome, BaseException):
        raise outcome
    return outcome


class FakeHttpFetcher:
    def __init__(self, calls: list[str], outcomes: Iterable[Outcome] = ()) -> None:
        self.calls = calls
        self._script = _Script("http", outcomes)
        self.closed = False

    async def fetch(self, url: str, *, timeout: Optional[float] = None) -> str:
        self.calls.append("http")
        return _resolve(self._script.next())

    async def aclose(self) -> None:
        self.closed = True


class FakeScriptFetcher:
    def __init__(
        self,
        calls: list[str],
        *,
        basic: Iterable[Outcome] = (),
        comprehensive: Iterable[Outcome] = (),
    ) -> None:
        self.calls = calls
        self._basic = _Script("script_basic", basic)
        self._comprehensive = _Script("script_comprehensive", comprehensive)
        self.disposed = False

    async def fetch_basic(self, url: str, *, timeout: Optional[float] = None) -> str:
        self.calls.append("script_basic")
        return _resolve(self._basic.next())

    async def fetch_comprehensive(
        self, url: str, *, timeout: Optional[float] = None
    ) -> Mapping[str, Any]:
        self.calls.append("script_comprehensive")
        return _resolve(self._comprehensive.next())

    async def dispose(self) -> None:
        self.disposed = True


def make_fetchers(
    *,
    http: Iterable[Outcome] = (),
    basic: Iterable[Outcome] = (),
    comprehensive: Iterable[Outcome] = (),
) -> tuple[list[str], FakeHttpFetcher, FakeScriptFetcher]:
    """Return ``(calls, http_fetcher, script_fetcher)`` sharing one call log."""
    calls: list[str] = []
    return (
        calls,
        FakeHttpFetcher(calls, http),
        FakeScriptFetcher(calls, basic=basic, comprehensive=comprehensive),
    )


# ---------------------------------------------------------------------------
# Extractor double
# ---------------------------------------------------------------------------


class FakeExtractor(Extractor):
    """Extractor returning scripted data instead of calling a provider.

    Args:
        data: Mapping returned for every call, or a callable building it from
            ``(content, schema)``.
        error: Exception raised instead of returning data.
        cache: Optional response cache, to exercise the base-class caching.
    """

    provider = AIProvider.OPENAI

    def __init__(
        self,
        data: Union[Mapping[str, Any], Callable[[str, Mapping[str, str]], Mapping[str, Any]], None] = None,
        *,
        error: Optional[BaseException] = None,
        cache: Optional[ResponseCache] = None,
        api_key: str = TEST_OPENAI_KEY,
    ) -> None:
        super().__init__(
            api_key,
            model=AIModel.GPT_4O_MINI,
            client=MagicMock(spec=httpx.AsyncClient),
            cache=cache,
        )
        self._data = data if data is not None else {"title": "Example"}
        self._error = error
        self.contents: list[str] = []
        self.options: list[Mapping[str, Any]] = []

    async def _extract_uncached(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> tuple[dict[str, Any], str]:
        self.contents.append(content)
        self.options.append(options)
        if self._error is not None:
            raise self._error
        data = self._data(content, schema) if callable(self._data) else self._data
        return dict(data), "{}"


# ---------------------------------------------------------------------------
# Pipeline double for batch tests
# ---------------------------------------------------------------------------


class StubPipeline:
    """``extract_one`` double with latency and in-flight instrumentation.

    Args:
        delay: Seconds each call waits before returning.
        fail_urls: URLs that yield a failed result.
        crash_urls: URLs whose call raises ``RuntimeError``.
        delays: Per-URL delay overrides.
    """

    provider_tag = "openai"

    def __init__(
        self,
        *,
        delay: float = 0.0,
        fail_urls: Iterable[str] = (),
        crash_urls: Iterable[str] = (),
        delays: Optional[Mapping[str, float]] = None,
    ) -> None:
        self._delay = delay
        self._fail_urls = set(fail_urls)
        self._crash_urls = set(crash_urls)
        self._delays = dict(delays or {})
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    async def extract_one(self, request: ExtractionRequest) -> ExtractionResult:
        self.started.append(request.url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delays.get(request.url, self._delay))
            if request.url in self._crash_urls:
                raise RuntimeError(f"boom at {request.url}")
            if request.url in self._fail_urls:
                return ExtractionResult.failed(
                    "Fetch failed: HTTP 500",
                    elapsed=timedelta(milliseconds=1),
                    provider_tag=self.provider_tag,
                    url=request.url,
                )
            return ExtractionResult.succeeded(
                {"url": request.url},
                elapsed=timedelta(milliseconds=1),
                provider_tag=self.provider_tag,
                url=request.url,
            )
        finally:
            self.in_flight -= 1
            self.finished.append(request.url)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=TEST_OPENAI_KEY,
        gemini_api_key=TEST_GEMINI_KEY,
        ai_model="gpt-4o-mini",
        request_timeout=5,
        retry_base_delay=1.0,
    )


@pytest.fixture
def sleep_recorder() -> tuple[list[float], Callable[[float], Any]]:
    """Return ``(delays, sleep)``; ``sleep`` records its argument and returns at once."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    return delays, _sleep


@pytest.fixture
def schema() -> dict[str, str]:
    return {"title": "string", "price": "number"}
