"""OpenAI chat-completions extractor.

Private to the ``extraction`` package; build instances through
:func:`~ai_webscraper.extraction.factory.create_extractor`.

Sends the shared extraction prompt as ``system`` + ``user`` messages with
``response_format={"type": "json_object"}`` and decodes
``choices[0].message.content`` as the result object.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ai_webscraper.config.providers import AIProvider
from ai_webscraper.core.exceptions import AIProviderError
from ai_webscraper.extraction.base import Extractor, parse_json_object
from ai_webscraper.extraction.prompts import build_chat_messages

logger = logging.getLogger(__name__)

OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"

#: Optional sampling parameters copied from the call options when present.
_PASSTHROUGH_OPTIONS: tuple[str, ...] = ("top_p", "frequency_penalty", "presence_penalty")


class OpenAIExtractor(Extractor):
    """Extract structured data with an OpenAI chat model."""

    provider = AIProvider.OPENAI

    def build_payload(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Return the chat-completions request body for one extraction."""
        payload: dict[str, Any] = {
            "model": self._model.value,
            "messages": build_chat_messages(
                content,
                schema,
                instructions=options.get("instructions"),
                max_length=self.max_content_length,
            ),
            "temperature": options.get("temperature", self._temperature),
            "max_tokens": options.get("max_tokens", self._max_tokens),
            "response_format": {"type": "json_object"},
        }
        for key in _PASSTHROUGH_OPTIONS:
            if options.get(key) is not None:
                payload[key] = options[key]
        return payload

    async def _extract_uncached(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> tuple[dict[str, Any], str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        response = await self._post(
            OPENAI_API_URL, self.build_payload(content, schema, options), headers
        )

        choices = response.get("choices") or []
        if not choices:
            raise AIProviderError("openai: no choices returned", provider=self.provider_tag)
        message = choices[0].get("message") or {}
        text = message.get("content")
        if not isinstance(text, str) or not text.strip():
            raise AIProviderError("openai: empty message content", provider=self.provider_tag)

        usage = response.get("usage") or {}
        logger.debug(
            "extraction: openai returned %d chars (total_tokens=%s)",
            len(text),
            usage.get("total_tokens"),
        )
        return parse_json_object(text.strip(), provider=self.provider_tag), text
