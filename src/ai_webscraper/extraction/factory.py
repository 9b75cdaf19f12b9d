"""Construction of provider-specific extractors."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx

from ai_webscraper.config.providers import AIModel, AIProvider, resolve_model
from ai_webscraper.core.exceptions import InvalidApiKeyError, UnsupportedProviderError
from ai_webscraper.extraction._gemini import GeminiExtractor
from ai_webscraper.extraction._openai import OpenAIExtractor
from ai_webscraper.extraction.base import Extractor
from ai_webscraper.extraction.cache import ResponseCache

logger = logging.getLogger(__name__)

EXTRACTOR_CLASSES: dict[AIProvider, type[Extractor]] = {
    AIProvider.OPENAI: OpenAIExtractor,
    AIProvider.GEMINI: GeminiExtractor,
}


def create_extractor(
    model: str | AIModel,
    api_key: str,
    *,
    timeout: float = 30.0,
    options: Optional[Mapping[str, Any]] = None,
    cache: Optional[ResponseCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Extractor:
    """Return the extractor serving *model*.

    Args:
        model: Model name or :class:`AIModel`.
        api_key: Provider API key.  Must not be empty.
        timeout: Per-call timeout in seconds.
        options: Optional defaults: ``temperature`` and ``max_tokens``.
        cache: Optional shared response cache.
        client: Optional shared ``httpx.AsyncClient``.

    Raises:
        UnsupportedProviderError: If *model* is unknown.
        InvalidApiKeyError: If *api_key* is empty.
    """
    resolved = resolve_model(model)
    if not api_key or not api_key.strip():
        raise InvalidApiKeyError(f"API key for {resolved.provider.value} cannot be empty")

    extractor_cls = EXTRACTOR_CLASSES.get(resolved.provider)
    if extractor_cls is None:
        raise UnsupportedProviderError(f"No extractor for provider {resolved.provider.value!r}")

    kwargs: dict[str, Any] = {}
    for key in ("temperature", "max_tokens"):
        if options and options.get(key) is not None:
            kwargs[key] = options[key]

    extractor = extractor_cls(
        api_key,
        model=resolved,
        timeout=timeout,
        client=client,
        cache=cache,
        **kwargs,
    )
    if not extractor.validate_credentials():
        logger.warning(
            "extraction: API key does not look like a %s key", resolved.provider.value
        )
    return extractor
