"""Abstract base class for AI extractors.

An extractor turns page content plus a field schema into a mapping of field
values by calling one AI provider.  Subclasses implement
:meth:`Extractor._extract_uncached`; the base class validates input, consults
the optional :class:`~ai_webscraper.extraction.cache.ResponseCache`, and maps
provider HTTP failures to typed exceptions in :meth:`Extractor._post`.

Example usage::

    from ai_webscraper.extraction.base import Extractor

    class MyExtractor(Extractor):
        provider = AIProvider.OPENAI

        async def _extract_uncached(self, content, schema, options):
            ...
            return data, raw_text
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, Optional

import httpx

from ai_webscraper.config.providers import (
    PROVIDER_CAPABILITIES,
    AIModel,
    AIProvider,
    ProviderCapabilities,
)
from ai_webscraper.core.exceptions import (
    AIAuthError,
    AIProviderError,
    AIRateLimitError,
    InvalidApiKeyError,
    InvalidRequestError,
    ParsingError,
)
from ai_webscraper.core.validation import normalize_schema, validate_schema
from ai_webscraper.extraction.cache import ResponseCache

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE: float = 0.1
DEFAULT_MAX_TOKENS: int = 1000


class Extractor(ABC):
    """Base class for provider-specific extractors.

    Args:
        api_key: Provider API key.
        model: Model to call.  Must belong to :attr:`provider`.
        timeout: Per-call timeout in seconds.
        client: Optional shared ``httpx.AsyncClient``.  When omitted the
            extractor creates (and later closes) its own.
        cache: Optional response cache shared across extractors.
        temperature: Sampling temperature sent with each call.
        max_tokens: Output token limit sent with each call.
    """

    provider: ClassVar[AIProvider]

    def __init__(
        self,
        api_key: str,
        *,
        model: AIModel,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        if not api_key or not api_key.strip():
            raise InvalidApiKeyError(f"{self.provider.value} API key cannot be empty")
        self._api_key = api_key.strip()
        self._model = model
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._cache = cache
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @property
    def provider_tag(self) -> str:
        return self.provider.value

    @property
    def model(self) -> AIModel:
        return self._model

    @property
    def capabilities(self) -> ProviderCapabilities:
        return PROVIDER_CAPABILITIES[self.provider]

    @property
    def max_content_length(self) -> int:
        return self.capabilities.max_content_length

    @property
    def cache(self) -> Optional[ResponseCache]:
        return self._cache

    def validate_credentials(self) -> bool:
        """Return ``True`` if the API key has this provider's expected format.

        Only the format is checked; no network call is made.
        """
        caps = self.capabilities
        return (
            self._api_key.startswith(caps.api_key_prefix)
            and len(self._api_key) >= caps.min_api_key_length
        )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """Extract *schema* fields from *content*.

        Args:
            content: Page HTML or digest text.
            schema: Ordered mapping of field name to type hint.
            options: Optional settings.  ``instructions`` is added to the
                prompt; ``temperature`` and ``max_tokens`` override the
                extractor defaults for this call.

        Returns:
            Mapping of field name to extracted value.

        Raises:
            InvalidRequestError: If the content is empty or the schema invalid.
            AIAuthError: If the provider rejects the API key.
            AIRateLimitError: If the provider rate-limits the call.
            AIProviderError: On other provider or network failures.
            ParsingError: If the provider response is not a JSON object.
        """
        if not content or not content.strip():
            raise InvalidRequestError("Content cannot be empty")
        validate_schema(schema)
        schema = normalize_schema(schema)

        if self._cache is not None:
            cached = await self._cache.get(content, schema, self.provider_tag, options)
            if cached is not None:
                logger.debug("extraction: cache hit for %s", self.provider_tag)
                return dict(cached.data)

        logger.debug(
            "extraction: calling %s (%s) with %d chars",
            self.provider_tag,
            self._model.value,
            len(content),
        )
        data, raw = await self._extract_uncached(content, schema, options or {})

        if self._cache is not None:
            await self._cache.store(
                content, schema, self.provider_tag, data, raw_response=raw, options=options
            )
        return data

    @abstractmethod
    async def _extract_uncached(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> tuple[dict[str, Any], str]:
        """Call the provider and return ``(parsed data, raw response text)``."""

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _post(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> dict[str, Any]:
        """POST *payload* as JSON and return the decoded JSON response.

        Raises:
            AIRateLimitError: On HTTP 429.
            AIAuthError: On HTTP 401 or 403.
            AIProviderError: On other non-2xx responses or network errors.
            ParsingError: If the response body is not JSON.
        """
        tag = self.provider_tag
        try:
            response = await self._client.post(
                url, json=dict(payload), headers=dict(headers), timeout=self._timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            if code == 429:
                retry_after = _retry_after_seconds(exc.response.headers.get("Retry-After"))
                raise AIRateLimitError(
                    f"{tag}: HTTP 429, rate limited", provider=tag, retry_after=retry_after
                ) from exc
            if code in (401, 403):
                raise AIAuthError(
                    f"{tag}: HTTP {code}, invalid API key", provider=tag, status_code=code
                ) from exc
            raise AIProviderError(
                f"{tag}: HTTP {code}: {exc.response.text[:200]}", provider=tag, status_code=code
            ) from exc
        except httpx.TimeoutException as exc:
            raise AIProviderError(f"{tag}: request timed out after {self._timeout}s", provider=tag) from exc
        except httpx.RequestError as exc:
            raise AIProviderError(f"{tag}: network error: {exc}", provider=tag) from exc

        try:
            return response.json()  # type: ignore[no-any-return]
        except json.JSONDecodeError as exc:
            raise ParsingError(f"{tag}: response is not valid JSON", raw_data=response.text) from exc

    async def aclose(self) -> None:
        """Close the HTTP client if this extractor created it."""
        if self._owns_client:
            await self._client.aclose()


def _retry_after_seconds(value: Optional[str]) -> float:
    try:
        return float(value) if value is not None else 60.0
    except ValueError:
        return 60.0


def parse_json_object(text: str, *, provider: str) -> dict[str, Any]:
    """Decode *text* as a JSON object.

    Raises:
        ParsingError: If *text* is not JSON or not an object.
    """
    try:
        parsed = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ParsingError(f"{provider}: response content is not valid JSON", raw_data=text or "") from exc
    if not isinstance(parsed, dict):
        raise ParsingError(f"{provider}: response content is not a JSON object", raw_data=text)
    return parsed
