"""High-level scraper facade.

:func:`create_scraper` resolves the model and API key, builds the fetchers,
the extractor, the optional response cache, the pipeline and the batch runner,
and returns a ready :class:`AIWebScraper`.  Nothing is wired lazily; only the
headless browser process itself starts on first use.

Usage::

    from ai_webscraper import create_scraper

    async with await create_scraper("gpt-4o-mini", api_key) as scraper:
        result = await scraper.extract_from_url(
            "https://example.com", {"title": "string", "price": "number"}
        )
        if result.success:
            print(result.data)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import timedelta
from typing import Any, Optional

from ai_webscraper.config.providers import AIModel, resolve_model
from ai_webscraper.config.settings import Settings, get_settings
from ai_webscraper.core.exceptions import InvalidApiKeyError
from ai_webscraper.core.models import BatchRequest, ExtractionRequest, ExtractionResult
from ai_webscraper.extraction.base import Extractor
from ai_webscraper.extraction.cache import ResponseCache
from ai_webscraper.extraction.factory import create_extractor
from ai_webscraper.scraper.batch import BatchRunner
from ai_webscraper.scraper.http_fetcher import HttpFetcher
from ai_webscraper.scraper.pipeline import PageFetcher, ScrapePipeline, ScriptFetcher
from ai_webscraper.scraper.playwright_fetcher import PlaywrightFetcher

logger = logging.getLogger(__name__)


class AIWebScraper:
    """Single and batch extraction entry points over one configured pipeline.

    Build instances with :func:`create_scraper`.

    Args:
        extractor: AI extractor shared by every request.
        http_fetcher: Plain HTTP fetcher.
        script_fetcher: Headless-browser fetcher.
        settings: Defaults for retries, concurrency and chunking.
        cache: The extractor's response cache, if caching is enabled.
        sleep: Backoff sleep passed to the pipeline.  Tests inject a recorder.
    """

    def __init__(
        self,
        *,
        extractor: Extractor,
        http_fetcher: PageFetcher,
        script_fetcher: ScriptFetcher,
        settings: Settings,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._extractor = extractor
        self._http = http_fetcher
        self._script = script_fetcher
        self._settings = settings
        self._cache = cache
        pipeline_kwargs: dict[str, Any] = {}
        if sleep is not None:
            pipeline_kwargs["sleep"] = sleep
        self._pipeline = ScrapePipeline(
            http_fetcher,
            script_fetcher,
            extractor,
            prefer_script=settings.prefer_script,
            timeout=settings.request_timeout,
            base_delay=settings.retry_base_delay,
            **pipeline_kwargs,
        )
        self._batch = BatchRunner(self._pipeline)
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pipeline(self) -> ScrapePipeline:
        return self._pipeline

    @property
    def provider_info(self) -> dict[str, Any]:
        """Provider and model details of the configured extractor."""
        caps = self._extractor.capabilities
        return {
            "provider": self._extractor.provider_tag,
            "display_name": caps.display_name,
            "model": self._extractor.model.value,
            "max_content_length": caps.max_content_length,
            "supports_structured_output": caps.supports_structured_output,
        }

    @property
    def max_content_length(self) -> int:
        return self._extractor.max_content_length

    def validate_api_key(self) -> bool:
        """Return ``True`` if the API key has the provider's expected format."""
        return self._extractor.validate_credentials()

    def cache_stats(self) -> Optional[dict[str, Any]]:
        """Return response cache statistics, or ``None`` when caching is off."""
        return self._cache.get_stats() if self._cache is not None else None

    async def clear_cache(self) -> None:
        if self._cache is not None:
            await self._cache.clear()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_from_url(
        self,
        url: str,
        schema: Mapping[str, str],
        *,
        use_script: Optional[bool] = None,
        instructions: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> ExtractionResult:
        """Extract *schema* fields from one page.  Never raises.

        Check ``result.success``; failures are described by ``result.error``.
        """
        request = ExtractionRequest(
            url=url,
            schema=schema,
            instructions=instructions,
            use_script=use_script,
            max_retries=self._settings.max_retries if max_retries is None else max_retries,
        )
        return await self._pipeline.extract_one(request)

    def _batch_request(
        self,
        urls: Sequence[str],
        schema: Mapping[str, str],
        *,
        concurrency: Optional[int],
        continue_on_error: bool,
        use_script: Optional[bool],
        instructions: Optional[str],
        max_retries: Optional[int],
        keep_failures: bool,
    ) -> BatchRequest:
        return BatchRequest(
            urls=tuple(urls),
            schema=schema,
            concurrency=self._settings.default_concurrency if concurrency is None else concurrency,
            continue_on_error=continue_on_error,
            use_script=use_script,
            instructions=instructions,
            max_retries=self._settings.max_retries if max_retries is None else max_retries,
            keep_failures=keep_failures,
        )

    async def extract_from_urls(
        self,
        urls: Sequence[str],
        schema: Mapping[str, str],
        *,
        concurrency: Optional[int] = None,
        continue_on_error: bool = True,
        use_script: Optional[bool] = None,
        instructions: Optional[str] = None,
        max_retries: Optional[int] = None,
        keep_failures: bool = False,
    ) -> list[ExtractionResult]:
        """Extract *schema* fields from many pages.

        See :class:`~ai_webscraper.scraper.batch.BatchRunner` for ordering and
        failure semantics.

        Raises:
            InvalidRequestError: If the URL list, concurrency, schema or any
                URL is invalid.  Nothing is fetched in that case.
            BatchProcessingError: Under ``continue_on_error=False`` when a URL
                fails.
        """
        request = self._batch_request(
            urls,
            schema,
            concurrency=concurrency,
            continue_on_error=continue_on_error,
            use_script=use_script,
            instructions=instructions,
            max_retries=max_retries,
            keep_failures=keep_failures,
        )
        return await self._batch.run_batch(request)

    async def extract_in_chunks(
        self,
        urls: Sequence[str],
        schema: Mapping[str, str],
        *,
        chunk_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        continue_on_error: bool = True,
        use_script: Optional[bool] = None,
        instructions: Optional[str] = None,
        max_retries: Optional[int] = None,
        keep_failures: bool = False,
    ) -> list[ExtractionResult]:
        """Like :meth:`extract_from_urls`, one contiguous chunk of URLs at a time."""
        request = self._batch_request(
            urls,
            schema,
            concurrency=concurrency,
            continue_on_error=continue_on_error,
            use_script=use_script,
            instructions=instructions,
            max_retries=max_retries,
            keep_failures=keep_failures,
        )
        size = self._settings.chunk_size if chunk_size is None else chunk_size
        return await self._batch.run_in_chunks(request, chunk_size=size)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Release the browser, HTTP clients and cache.  Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        await self._script.dispose()
        aclose_http = getattr(self._http, "aclose", None)
        if aclose_http is not None:
            await aclose_http()
        await self._extractor.aclose()
        if self._cache is not None:
            await self._cache.dispose()
        logger.debug("scraper: closed")

    async def __aenter__(self) -> "AIWebScraper":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def create_scraper(
    model: Optional[str | AIModel] = None,
    api_key: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    http_fetcher: Optional[PageFetcher] = None,
    script_fetcher: Optional[ScriptFetcher] = None,
    extractor: Optional[Extractor] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> AIWebScraper:
    """Build a ready :class:`AIWebScraper`.

    Args:
        model: Model name.  Defaults to ``settings.ai_model``.
        api_key: Provider API key.  Defaults to the key configured for the
            model's provider in *settings*.
        settings: Configuration.  Defaults to :func:`get_settings`.
        http_fetcher: Replacement HTTP fetcher.
        script_fetcher: Replacement browser fetcher.
        extractor: Replacement extractor.  When given, *model* and *api_key*
            are not used.
        sleep: Backoff sleep passed to the pipeline.

    Raises:
        UnsupportedProviderError: If the model is unknown.
        InvalidApiKeyError: If no API key is available for the provider.
    """
    settings = settings or get_settings()
    cache: Optional[ResponseCache] = None

    if extractor is None:
        resolved = resolve_model(model or settings.ai_model)
        key = api_key if api_key is not None else settings.api_key_for(resolved.provider)
        if not key or not key.strip():
            raise InvalidApiKeyError(
                f"No API key provided for {resolved.provider.value}; pass api_key or set "
                f"{resolved.provider.value.upper()}_API_KEY"
            )
        if settings.cache_enabled:
            cache = ResponseCache(
                file_path=settings.cache_file_path,
                max_age=timedelta(seconds=settings.cache_max_age_seconds),
                max_entries=settings.cache_max_entries,
            )
            await cache.initialize()
        extractor = create_extractor(
            resolved,
            key,
            timeout=settings.request_timeout,
            cache=cache,
        )
    else:
        cache = extractor.cache

    scraper = AIWebScraper(
        extractor=extractor,
        http_fetcher=http_fetcher or HttpFetcher(timeout=settings.request_timeout),
        script_fetcher=script_fetcher
        or PlaywrightFetcher(timeout=settings.request_timeout, headless=settings.browser_headless),
        settings=settings,
        cache=cache,
        sleep=sleep,
    )
    logger.info(
        "scraper: ready (provider=%s, model=%s, prefer_script=%s)",
        extractor.provider_tag,
        extractor.model.value,
        settings.prefer_script,
    )
    return scraper
