"""Concurrency-bounded batch processing over the scrape pipeline.

:class:`BatchRunner` runs ``extract_one`` for many URLs with a fixed pool of
workers.  Workers admit URLs strictly in input order from one shared iterator,
so at most ``concurrency`` pipeline invocations are in flight at any time.
Each result is written into a pre-sized buffer at its input index, so output
order never depends on completion order.

Partial-failure policy:

- ``continue_on_error=True`` (default): failed URLs are dropped and the output
  holds only successful results in input order.  With ``keep_failures=True``
  the index-aligned list including failures is returned instead.
- ``continue_on_error=False``: the first failure stops admission, in-flight
  work finishes and is discarded, and :class:`BatchProcessingError` is raised.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Iterator
from dataclasses import replace
from datetime import timedelta
from typing import Optional, Protocol

import structlog

from ai_webscraper.core.exceptions import BatchProcessingError, InvalidRequestError
from ai_webscraper.core.logging_config import batch_id_var
from ai_webscraper.core.models import BatchRequest, ExtractionRequest, ExtractionResult
from ai_webscraper.core.validation import validate_schema, validate_urls
from ai_webscraper.scraper.config import DEFAULT_CHUNK_SIZE

logger = structlog.get_logger(__name__)


class SingleExtractor(Protocol):
    async def extract_one(self, request: ExtractionRequest) -> ExtractionResult: ...


def validate_batch_request(request: BatchRequest) -> None:
    """Raise :class:`InvalidRequestError` if *request* cannot be scheduled.

    Checks, in order: non-empty URL list, ``concurrency >= 1``,
    ``max_retries >= 0``, the schema (once), and every URL.
    """
    if not request.urls:
        raise InvalidRequestError("URL list cannot be empty")
    if request.concurrency < 1:
        raise InvalidRequestError(f"concurrency must be >= 1, got {request.concurrency}")
    if request.max_retries < 0:
        raise InvalidRequestError(f"max_retries must be >= 0, got {request.max_retries}")
    validate_schema(request.schema)
    validate_urls(request.urls)


class BatchRunner:
    """Fan a single-URL extractor out over many URLs.

    Args:
        pipeline: Any object with ``async extract_one(ExtractionRequest)``,
            normally a :class:`~ai_webscraper.scraper.pipeline.ScrapePipeline`.
    """

    def __init__(self, pipeline: SingleExtractor) -> None:
        self._pipeline = pipeline

    @property
    def _provider_tag(self) -> str:
        return getattr(self._pipeline, "provider_tag", "unknown")

    async def run_batch(self, request: BatchRequest) -> list[ExtractionResult]:
        """Process every URL of *request* and return results in input order.

        Raises:
            InvalidRequestError: Before any work is scheduled, if the request
                fails validation.
            BatchProcessingError: Under ``continue_on_error=False`` when a URL
                fails, or whenever the scheduling machinery itself fails.
        """
        validate_batch_request(request)

        batch_id = uuid.uuid4().hex[:12]
        token = batch_id_var.set(batch_id)
        try:
            with structlog.contextvars.bound_contextvars(batch_id=batch_id):
                return await self._run(request)
        finally:
            batch_id_var.reset(token)

    async def _run(self, request: BatchRequest) -> list[ExtractionResult]:
        urls = request.urls
        total = len(urls)
        pool_size = min(request.concurrency, total)
        results: list[Optional[ExtractionResult]] = [None] * total
        admission: Iterator[tuple[int, str]] = iter(enumerate(urls))
        processed = 0
        abort_reason: Optional[str] = None
        abort_cause: Optional[BaseException] = None

        logger.info(
            "batch_started",
            total=total,
            concurrency=request.concurrency,
            workers=pool_size,
            continue_on_error=request.continue_on_error,
        )
        start = time.monotonic()

        async def worker() -> None:
            nonlocal processed, abort_reason, abort_cause
            for index, url in admission:
                if abort_reason is not None:
                    return
                call_start = time.monotonic()
                try:
                    result = await self._pipeline.extract_one(request.for_url(url))
                except Exception as exc:  # noqa: BLE001
                    logger.exception("batch_item_crashed", url=url, index=index)
                    if not request.continue_on_error:
                        processed += 1
                        if abort_reason is None:
                            abort_reason = f"{url}: {exc}"
                            abort_cause = exc
                        return
                    result = ExtractionResult.failed(
                        f"Unexpected error: {exc}",
                        elapsed=timedelta(seconds=time.monotonic() - call_start),
                        provider_tag=self._provider_tag,
                        url=url,
                    )

                processed += 1
                results[index] = result
                if not result.success:
                    logger.info("batch_item_failed", url=url, index=index, error=result.error)
                    if not request.continue_on_error and abort_reason is None:
                        abort_reason = f"{url}: {result.error}"

        try:
            await asyncio.gather(*(worker() for _ in range(pool_size)))
        except Exception as exc:
            logger.exception("batch_scheduling_failed", processed=processed, total=total)
            raise BatchProcessingError(
                f"Batch scheduling failed: {exc}", processed, total
            ) from exc

        elapsed = time.monotonic() - start
        if abort_reason is not None:
            logger.warning(
                "batch_aborted",
                processed=processed,
                total=total,
                reason=abort_reason,
                elapsed_s=round(elapsed, 3),
            )
            error = BatchProcessingError(f"Batch aborted: {abort_reason}", processed, total)
            if abort_cause is not None:
                raise error from abort_cause
            raise error

        completed = [result for result in results if result is not None]
        succeeded = [result for result in completed if result.success]
        logger.info(
            "batch_complete",
            total=total,
            succeeded=len(succeeded),
            failed=len(completed) - len(succeeded),
            elapsed_s=round(elapsed, 3),
        )
        if request.keep_failures:
            return completed
        return succeeded

    async def run_in_chunks(
        self,
        request: BatchRequest,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> list[ExtractionResult]:
        """Run :meth:`run_batch` over contiguous chunks of the URL list, one at a time.

        Results are concatenated in chunk order.

        Raises:
            InvalidRequestError: If ``chunk_size < 1`` or the request fails
                validation.  Nothing is scheduled in that case.
            BatchProcessingError: As for :meth:`run_batch`, with the processed
                and total counts taken over the whole URL list.
        """
        if chunk_size < 1:
            raise InvalidRequestError(f"chunk_size must be >= 1, got {chunk_size}")
        validate_batch_request(request)

        urls = request.urls
        chunk_count = (len(urls) + chunk_size - 1) // chunk_size
        collected: list[ExtractionResult] = []
        for number, offset in enumerate(range(0, len(urls), chunk_size), start=1):
            chunk = urls[offset : offset + chunk_size]
            logger.info("batch_chunk_started", chunk=number, chunks=chunk_count, size=len(chunk))
            chunk_request = replace(request, urls=tuple(chunk))
            try:
                collected.extend(await self.run_batch(chunk_request))
            except BatchProcessingError as err:
                # Report progress against the whole URL list, not the chunk.
                raise BatchProcessingError(
                    err.args[0], offset + err.processed_count, len(urls)
                ) from err
        return collected
