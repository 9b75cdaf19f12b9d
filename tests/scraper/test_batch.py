"""Tests for the concurrency-bounded batch runner.

Uses :class:`tests.conftest.StubPipeline` so batch semantics (ordering,
concurrency ceiling, partial-failure policy, chunking) are exercised without
any fetching or extraction.
"""

from __future__ import annotations

import time
from datetime import timedelta

import pytest

from ai_webscraper.core.exceptions import (
    BatchProcessingError,
    InvalidRequestError,
    SchemaValidationError,
    URLValidationError,
)
from ai_webscraper.core.logging_config import batch_id_var
from ai_webscraper.core.models import BatchRequest, ExtractionRequest, ExtractionResult
from ai_webscraper.scraper.batch import BatchRunner, validate_batch_request
from tests.conftest import StubPipeline

SCHEMA = {"title": "string"}


def _urls(count: int) -> tuple[str, ...]:
    return tuple(f"https://example.com/{i}" for i in range(count))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidateBatchRequest:
    def test_empty_url_list(self) -> None:
        with pytest.raises(InvalidRequestError, match="URL list cannot be empty"):
            validate_batch_request(BatchRequest(urls=(), schema=SCHEMA))

    def test_zero_concurrency(self) -> None:
        with pytest.raises(InvalidRequestError, match="concurrency"):
            validate_batch_request(BatchRequest(urls=_urls(1), schema=SCHEMA, concurrency=0))

    def test_negative_retries(self) -> None:
        with pytest.raises(InvalidRequestError, match="max_retries"):
            validate_batch_request(BatchRequest(urls=_urls(1), schema=SCHEMA, max_retries=-1))

    def test_invalid_schema(self) -> None:
        with pytest.raises(SchemaValidationError):
            validate_batch_request(BatchRequest(urls=_urls(1), schema={}))

    def test_any_invalid_url(self) -> None:
        urls = _urls(2) + ("mailto:someone@example.com",)
        with pytest.raises(URLValidationError):
            validate_batch_request(BatchRequest(urls=urls, schema=SCHEMA))


# ---------------------------------------------------------------------------
# run_batch
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRunBatch:
    async def test_failed_item_dropped_order_kept(self) -> None:
        urls = _urls(3)
        pipeline = StubPipeline(fail_urls=[urls[1]])

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=urls, schema=SCHEMA, concurrency=1)
        )

        assert [r.url for r in results] == [urls[0], urls[2]]
        assert all(r.success for r in results)

    async def test_wall_clock_reflects_scheduling_rounds(self) -> None:
        pipeline = StubPipeline(delay=0.05)

        start = time.monotonic()
        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=_urls(5), schema=SCHEMA, concurrency=2)
        )
        elapsed = time.monotonic() - start

        assert len(results) == 5
        assert 0.14 <= elapsed < 0.3
        assert pipeline.max_in_flight == 2

    async def test_results_follow_input_order_not_completion_order(self) -> None:
        urls = _urls(4)
        pipeline = StubPipeline(delays={urls[0]: 0.06, urls[1]: 0.0, urls[2]: 0.03, urls[3]: 0.0})

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=urls, schema=SCHEMA, concurrency=4)
        )

        assert [r.url for r in results] == list(urls)
        assert pipeline.finished != list(urls)

    async def test_in_flight_never_exceeds_concurrency(self) -> None:
        pipeline = StubPipeline(delay=0.01)

        await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=_urls(12), schema=SCHEMA, concurrency=3)
        )

        assert pipeline.max_in_flight == 3
        assert pipeline.started == list(_urls(12))

    async def test_concurrency_above_url_count(self) -> None:
        pipeline = StubPipeline(delay=0.01)

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=_urls(2), schema=SCHEMA, concurrency=10)
        )

        assert len(results) == 2
        assert pipeline.max_in_flight == 2

    async def test_duplicate_urls_processed_independently(self) -> None:
        url = "https://example.com/same"
        pipeline = StubPipeline()

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=(url, url, url), schema=SCHEMA)
        )

        assert len(results) == 3
        assert pipeline.started == [url, url, url]

    async def test_keep_failures_returns_index_aligned_list(self) -> None:
        urls = _urls(3)
        pipeline = StubPipeline(fail_urls=[urls[1]])

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=urls, schema=SCHEMA, concurrency=2, keep_failures=True)
        )

        assert [r.url for r in results] == list(urls)
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "Fetch failed: HTTP 500"

    async def test_crashed_item_becomes_failed_result(self) -> None:
        urls = _urls(3)
        pipeline = StubPipeline(crash_urls=[urls[0]])

        results = await BatchRunner(pipeline).run_batch(
            BatchRequest(urls=urls, schema=SCHEMA, keep_failures=True)
        )

        assert results[0].success is False
        assert results[0].error == f"Unexpected error: boom at {urls[0]}"
        assert results[0].provider_tag == "openai"
        assert results[1].success and results[2].success

    async def test_fail_fast_raises_with_counts(self) -> None:
        urls = _urls(5)
        pipeline = StubPipeline(fail_urls=[urls[1]])

        with pytest.raises(BatchProcessingError) as exc_info:
            await BatchRunner(pipeline).run_batch(
                BatchRequest(urls=urls, schema=SCHEMA, concurrency=1, continue_on_error=False)
            )

        error = exc_info.value
        assert error.total_count == 5
        assert error.processed_count == 2
        assert urls[1] in str(error)
        assert pipeline.started == list(urls[:2])

    async def test_fail_fast_lets_in_flight_work_finish(self) -> None:
        urls = _urls(6)
        pipeline = StubPipeline(
            delays={urls[0]: 0.0, urls[1]: 0.05}, fail_urls=[urls[0]]
        )

        with pytest.raises(BatchProcessingError) as exc_info:
            await BatchRunner(pipeline).run_batch(
                BatchRequest(urls=urls, schema=SCHEMA, concurrency=2, continue_on_error=False)
            )

        assert urls[1] in pipeline.finished
        assert pipeline.in_flight == 0
        assert len(pipeline.started) < len(urls)
        assert exc_info.value.processed_count == len(pipeline.finished)

    async def test_fail_fast_crash_is_chained(self) -> None:
        urls = _urls(2)
        pipeline = StubPipeline(crash_urls=[urls[0]])

        with pytest.raises(BatchProcessingError) as exc_info:
            await BatchRunner(pipeline).run_batch(
                BatchRequest(urls=urls, schema=SCHEMA, concurrency=1, continue_on_error=False)
            )

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_invalid_request_schedules_nothing(self) -> None:
        pipeline = StubPipeline()

        with pytest.raises(InvalidRequestError):
            await BatchRunner(pipeline).run_batch(BatchRequest(urls=(), schema=SCHEMA))

        assert pipeline.started == []

    async def test_batch_id_is_bound_during_run_only(self) -> None:
        seen: list = []

        class RecordingPipeline:
            provider_tag = "openai"

            async def extract_one(self, request: ExtractionRequest) -> ExtractionResult:
                seen.append(batch_id_var.get())
                return ExtractionResult.failed(
                    "Fetch failed: x", elapsed=timedelta(0),
                    provider_tag="openai", url=request.url,
                )

        await BatchRunner(RecordingPipeline()).run_batch(
            BatchRequest(urls=_urls(2), schema=SCHEMA)
        )

        assert seen[0] is not None
        assert seen[0] == seen[1]
        assert batch_id_var.get() is None

    async def test_per_url_requests_carry_batch_settings(self) -> None:
        received: list[ExtractionRequest] = []

        class RecordingPipeline:
            async def extract_one(self, request: ExtractionRequest) -> ExtractionResult:
                received.append(request)
                return ExtractionResult.succeeded(
                    {"title": "t"}, elapsed=timedelta(0),
                    provider_tag="openai", url=request.url,
                )

        await BatchRunner(RecordingPipeline()).run_batch(
            BatchRequest(
                urls=_urls(1),
                schema=SCHEMA,
                use_script=True,
                instructions="Only the headline",
                max_retries=0,
            )
        )

        assert received == [
            ExtractionRequest(
                url=_urls(1)[0],
                schema=SCHEMA,
                instructions="Only the headline",
                use_script=True,
                max_retries=0,
            )
        ]


# ---------------------------------------------------------------------------
# run_in_chunks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRunInChunks:
    async def test_chunked_processing_drops_failures(self) -> None:
        urls = _urls(15)
        pipeline = StubPipeline(fail_urls=[urls[4], urls[11]])

        results = await BatchRunner(pipeline).run_in_chunks(
            BatchRequest(urls=urls, schema=SCHEMA, concurrency=3), chunk_size=6
        )

        expected = [u for i, u in enumerate(urls) if i not in (4, 11)]
        assert len(results) == 13
        assert [r.url for r in results] == expected

    async def test_chunks_run_sequentially(self) -> None:
        urls = _urls(7)
        pipeline = StubPipeline(delay=0.01)

        await BatchRunner(pipeline).run_in_chunks(
            BatchRequest(urls=urls, schema=SCHEMA, concurrency=10), chunk_size=3
        )

        assert pipeline.max_in_flight == 3
        assert pipeline.started == list(urls)

    async def test_invalid_chunk_size(self) -> None:
        pipeline = StubPipeline()

        with pytest.raises(InvalidRequestError, match="chunk_size"):
            await BatchRunner(pipeline).run_in_chunks(
                BatchRequest(urls=_urls(3), schema=SCHEMA), chunk_size=0
            )

        assert pipeline.started == []

    async def test_invalid_url_in_later_chunk_fails_before_any_work(self) -> None:
        urls = _urls(5) + ("not a url",)
        pipeline = StubPipeline()

        with pytest.raises(URLValidationError):
            await BatchRunner(pipeline).run_in_chunks(
                BatchRequest(urls=urls, schema=SCHEMA), chunk_size=2
            )

        assert pipeline.started == []

    async def test_fail_fast_counts_cover_whole_url_list(self) -> None:
        urls = _urls(15)
        pipeline = StubPipeline(fail_urls=[urls[7]])

        with pytest.raises(BatchProcessingError) as exc_info:
            await BatchRunner(pipeline).run_in_chunks(
                BatchRequest(urls=urls, schema=SCHEMA, concurrency=1, continue_on_error=False),
                chunk_size=6,
            )

        error = exc_info.value
        assert error.total_count == 15
        assert error.processed_count == 8
        assert urls[7] in str(error)
        assert isinstance(error.__cause__, BatchProcessingError)
        assert error.__cause__.total_count == 6
        assert pipeline.started == list(urls[:8])
