"""Application-wide exception hierarchy for ai-webscraper.

All custom exceptions subclass ``WebScraperError``, enabling consistent error
handling and structured logging across fetching, extraction and batching.

Hierarchy::

    WebScraperError
    ├── InvalidRequestError          (also a ValueError)
    │   ├── SchemaValidationError
    │   ├── URLValidationError       (url)
    │   └── InvalidApiKeyError
    ├── UnsupportedProviderError
    ├── FetchError                   (url, status_code, strategy)
    │   ├── FetchTimeoutError        (timeout)
    │   └── ScriptFetchError
    ├── AIProviderError              (provider, status_code)
    │   ├── AIAuthError
    │   └── AIRateLimitError         (retry_after: float)
    ├── ParsingError                 (raw_data)
    └── BatchProcessingError         (processed_count, total_count)
"""

from __future__ import annotations


class WebScraperError(Exception):
    """Base class for all ai-webscraper exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Validation exceptions
# ---------------------------------------------------------------------------


class InvalidRequestError(WebScraperError, ValueError):
    """Raised when caller-supplied input is rejected before any network call.

    Validation errors are fatal: they are never retried and never trigger a
    fetch-strategy fallback.
    """


class SchemaValidationError(InvalidRequestError):
    """Raised when an extraction schema is empty, malformed or uses an
    unsupported field type."""


class URLValidationError(InvalidRequestError):
    """Raised when a URL is empty, malformed or uses an unsupported scheme.

    Args:
        message: Human-readable description of the problem.
        url: The offending URL.
    """

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (url: {self.url!r})" if self.url else base


class InvalidApiKeyError(InvalidRequestError):
    """Raised when an AI provider API key is empty or has the wrong format."""


class UnsupportedProviderError(WebScraperError):
    """Raised when a model or provider name does not map to a known provider."""


# ---------------------------------------------------------------------------
# Fetch exceptions
# ---------------------------------------------------------------------------


class FetchError(WebScraperError):
    """Raised when a fetch strategy cannot produce page content.

    Fetch errors are retryable: the pipeline retries with backoff and may
    escalate to another strategy before surfacing them.

    Args:
        message: Human-readable description of the failure.
        url: URL that failed to be fetched.
        status_code: HTTP status code, if one was received.
        strategy: Name of the fetch strategy that failed (e.g. ``"http"``).
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        strategy: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.strategy = strategy


class FetchTimeoutError(FetchError):
    """Raised when a fetch does not complete within its timeout.

    Args:
        message: Human-readable description of the timeout.
        url: URL being fetched.
        timeout: Timeout in seconds that was exceeded.
        strategy: Name of the fetch strategy that timed out.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        timeout: float | None = None,
        strategy: str | None = None,
    ) -> None:
        super().__init__(message, url=url, strategy=strategy)
        self.timeout = timeout


class ScriptFetchError(FetchError):
    """Raised when the script-capable (headless browser) fetcher fails."""


# ---------------------------------------------------------------------------
# AI provider exceptions
# ---------------------------------------------------------------------------


class AIProviderError(WebScraperError):
    """Raised when an AI provider call fails.

    Args:
        message: Human-readable description of the failure.
        provider: Provider tag (e.g. ``"openai"``).
        status_code: HTTP status code returned by the provider, if any.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class AIAuthError(AIProviderError):
    """Raised when the provider rejects the API key (HTTP 401/403)."""


class AIRateLimitError(AIProviderError):
    """Raised when the provider rate-limits the caller (HTTP 429).

    Args:
        message: Human-readable description of the rate limit.
        provider: Provider tag.
        retry_after: Seconds to wait before retrying. Defaults to 60.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: float = 60.0,
    ) -> None:
        super().__init__(message, provider=provider, status_code=429)
        self.retry_after = retry_after


class ParsingError(WebScraperError):
    """Raised when a provider response cannot be decoded into a JSON object.

    Args:
        message: Human-readable description of the parse failure.
        raw_data: The raw text that failed to parse.
    """

    def __init__(self, message: str, raw_data: str = "") -> None:
        super().__init__(message)
        self.raw_data = raw_data

    def __str__(self) -> str:
        base = super().__str__()
        if not self.raw_data:
            return base
        snippet = self.raw_data if len(self.raw_data) <= 200 else self.raw_data[:200] + "..."
        return f"{base} (raw: {snippet})"


# ---------------------------------------------------------------------------
# Batch exceptions
# ---------------------------------------------------------------------------


class BatchProcessingError(WebScraperError):
    """Raised when a batch is aborted or its scheduling fails.

    Args:
        message: Description of the failure.
        processed_count: Number of URLs that had completed when the batch
            was aborted.
        total_count: Total number of URLs in the batch.
    """

    def __init__(self, message: str, processed_count: int, total_count: int) -> None:
        super().__init__(message)
        self.processed_count = processed_count
        self.total_count = total_count

    def __str__(self) -> str:
        return f"{super().__str__()} (processed {self.processed_count}/{self.total_count})"
