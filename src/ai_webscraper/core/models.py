"""Request, outcome and result types shared by the pipeline and batch runner.

Requests are frozen dataclasses built by callers (or by
:class:`~ai_webscraper.client.AIWebScraper`).  ``Content`` and ``Failed`` are
the two internal outcomes of the fetch phase.  :class:`ExtractionResult` is the
public, immutable result of one URL.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionRequest:
    """A single-URL extraction request.

    Attributes:
        url: Target page URL.
        schema: Ordered mapping of field name to type hint.
        instructions: Optional free-text guidance passed to the extractor.
        use_script: Per-request override of the pipeline's preferred fetch
            strategy.  ``None`` uses the pipeline default.
        max_retries: Number of retries after the first attempt.
    """

    url: str
    schema: Mapping[str, str]
    instructions: Optional[str] = None
    use_script: Optional[bool] = None
    max_retries: int = 2


@dataclass(frozen=True)
class BatchRequest:
    """A multi-URL extraction request.

    Attributes:
        urls: Target URLs.  Order is significant and duplicates are allowed.
        schema: Ordered mapping of field name to type hint, shared by all URLs.
        concurrency: Maximum number of URLs processed at the same time.
        continue_on_error: When ``True`` failed URLs are dropped from the
            output; when ``False`` the first failure aborts the batch.
        use_script: Per-request override of the preferred fetch strategy.
        instructions: Optional free-text guidance passed to the extractor.
        max_retries: Number of retries after the first attempt, per URL.
        keep_failures: When ``True`` (and ``continue_on_error`` is ``True``)
            the output is index-aligned with ``urls`` and includes failures.
    """

    urls: tuple[str, ...]
    schema: Mapping[str, str]
    concurrency: int = 3
    continue_on_error: bool = True
    use_script: Optional[bool] = None
    instructions: Optional[str] = None
    max_retries: int = 2
    keep_failures: bool = False

    def for_url(self, url: str) -> ExtractionRequest:
        """Build the per-URL request for *url* from this batch's settings."""
        return ExtractionRequest(
            url=url,
            schema=self.schema,
            instructions=self.instructions,
            use_script=self.use_script,
            max_retries=self.max_retries,
        )


# ---------------------------------------------------------------------------
# Fetch outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Content:
    """Fetched page content and the fetch step that produced it."""

    text: str
    strategy: str


@dataclass(frozen=True)
class Failed:
    """A fetch that exhausted its fallback plan.

    Attributes:
        cause: The error surfaced to the caller.
        tried: Ordered names of the fetch steps that were attempted.
    """

    cause: Exception
    tried: tuple[str, ...] = field(default_factory=tuple)


ScrapeOutcome = Union[Content, Failed]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExtractionResult(BaseModel):
    """Outcome of extracting structured data from one URL.

    Exactly one of ``data`` and ``error`` is set, and ``success`` says which.

    Attributes:
        success: Whether extraction produced data.
        data: Extracted field values (successful results only).
        error: Tagged error message (failed results only).
        elapsed: Wall-clock duration including all retries and fallbacks.
        provider_tag: Short name of the AI provider (e.g. ``"openai"``).
        url: The URL this result belongs to.
        timestamp: UTC time at which the operation started.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    elapsed: timedelta = timedelta(0)
    provider_tag: str
    url: str
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_data_error_exclusive(self) -> "ExtractionResult":
        if self.success:
            if self.data is None or self.error is not None:
                raise ValueError("a successful result must carry data and no error")
        elif self.error is None or self.data is not None:
            raise ValueError("a failed result must carry an error and no data")
        return self

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def succeeded(
        cls,
        data: Mapping[str, Any],
        *,
        elapsed: timedelta,
        provider_tag: str,
        url: str,
        timestamp: datetime | None = None,
    ) -> "ExtractionResult":
        """Build a successful result."""
        return cls(
            success=True,
            data=dict(data),
            elapsed=elapsed,
            provider_tag=provider_tag,
            url=url,
            timestamp=timestamp or _utcnow(),
        )

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        elapsed: timedelta,
        provider_tag: str,
        url: str,
        timestamp: datetime | None = None,
    ) -> "ExtractionResult":
        """Build a failed result."""
        return cls(
            success=False,
            error=error,
            elapsed=elapsed,
            provider_tag=provider_tag,
            url=url,
            timestamp=timestamp or _utcnow(),
        )

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def has_data(self) -> bool:
        return bool(self.data)

    @property
    def has_error(self) -> bool:
        return bool(self.error)

    @property
    def field_count(self) -> int:
        return len(self.data) if self.data else 0

    @property
    def field_names(self) -> list[str]:
        return list(self.data) if self.data else []

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed.total_seconds() * 1000)

    def get_field(self, name: str, default: Any = None) -> Any:
        """Return the extracted value for *name*, or *default* if absent."""
        if not self.data:
            return default
        return self.data.get(name, default)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload with a ``metadata`` block."""
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "metadata": {
                "elapsed_ms": self.elapsed_ms,
                "provider": self.provider_tag,
                "url": self.url,
                "timestamp": self.timestamp.isoformat(),
                "field_count": self.field_count,
                "field_names": self.field_names,
                "has_data": self.has_data,
                "has_error": self.has_error,
            },
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ExtractionResult":
        """Rebuild a result from the payload produced by :meth:`to_json`."""
        metadata = payload.get("metadata") or {}
        timestamp = metadata.get("timestamp")
        return cls(
            success=bool(payload.get("success")),
            data=payload.get("data"),
            error=payload.get("error"),
            elapsed=timedelta(milliseconds=metadata.get("elapsed_ms", 0)),
            provider_tag=metadata.get("provider", ""),
            url=metadata.get("url", ""),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else _utcnow(),
        )
