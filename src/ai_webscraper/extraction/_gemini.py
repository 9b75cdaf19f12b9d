"""Google Gemini ``generateContent`` extractor.

Private to the ``extraction`` package; build instances through
:func:`~ai_webscraper.extraction.factory.create_extractor`.

The field schema is converted to a Gemini ``responseSchema`` so the model is
constrained to return a JSON object with every field present.  Responses are
then normalised: ``"null"`` strings become ``None``, ``None`` items are
removed from lists, and missing schema fields are filled with ``None``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from ai_webscraper.config.providers import AIProvider
from ai_webscraper.core.exceptions import AIProviderError, ParsingError
from ai_webscraper.extraction.base import Extractor, parse_json_object
from ai_webscraper.extraction.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt

logger = logging.getLogger(__name__)

GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta/models"

_TYPED_ARRAY_RE = re.compile(r"^array<(?P<inner>[^<>]+)>$")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

#: Gemini schema type for each supported field type.
_PRIMITIVE_TYPES: dict[str, dict[str, Any]] = {
    "string": {"type": "STRING"},
    "text": {"type": "STRING"},
    "number": {"type": "NUMBER"},
    "integer": {"type": "INTEGER"},
    "boolean": {"type": "BOOLEAN"},
    "date": {"type": "STRING", "description": "Date in ISO 8601 format"},
    "url": {"type": "STRING", "description": "Valid URL"},
    "email": {"type": "STRING", "description": "Valid email address"},
    # Gemini rejects OBJECT schemas without properties.
    "object": {"type": "STRING", "description": "Structured data as JSON text"},
}

_GEMINI_INSTRUCTIONS = (
    "Include every schema field in the response. Use JSON null, never the "
    'string "null", for missing values, and never put null inside arrays.'
)


def field_type_schema(type_hint: str) -> dict[str, Any]:
    """Return the Gemini schema fragment for one field type hint.

    Handles ``array`` (array of strings), ``array<T>``, a trailing ``!``
    marker (stripped) and unknown types (treated as strings).
    """
    hint = type_hint.strip().lower().rstrip("!").strip()
    match = _TYPED_ARRAY_RE.match(hint)
    if match is not None:
        return {"type": "ARRAY", "items": field_type_schema(match.group("inner"))}
    if hint == "array":
        return {"type": "ARRAY", "items": {"type": "STRING"}}
    if hint not in _PRIMITIVE_TYPES:
        logger.warning("extraction: unknown field type %r, using string", type_hint)
        return {"type": "STRING"}
    return dict(_PRIMITIVE_TYPES[hint])


def build_response_schema(schema: Mapping[str, str]) -> dict[str, Any]:
    """Return a Gemini object schema with every field in *schema* required."""
    return {
        "type": "OBJECT",
        "properties": {name: field_type_schema(hint) for name, hint in schema.items()},
        "required": list(schema),
    }


def _clean(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() == "null":
        return None
    if isinstance(value, list):
        return [item for item in (_clean(v) for v in value) if item is not None]
    if isinstance(value, dict):
        return {key: _clean(v) for key, v in value.items()}
    return value


def normalize_response(data: Mapping[str, Any], schema: Mapping[str, str]) -> dict[str, Any]:
    """Clean ``"null"`` artefacts from *data* and add missing schema keys."""
    cleaned = {key: _clean(value) for key, value in data.items()}
    for key in schema:
        cleaned.setdefault(key, None)
    return cleaned


def parse_response_text(text: str, *, provider: str = "gemini") -> dict[str, Any]:
    """Decode *text* as a JSON object, falling back to its outermost ``{...}`` block."""
    try:
        return parse_json_object(text, provider=provider)
    except ParsingError as direct_error:
        match = _JSON_OBJECT_RE.search(text)
        if match is None:
            raise
        logger.info("extraction: gemini response wrapped in extra text, extracting object")
        try:
            return parse_json_object(match.group(0), provider=provider)
        except ParsingError:
            raise direct_error from None


class GeminiExtractor(Extractor):
    """Extract structured data with a Google Gemini model."""

    provider = AIProvider.GEMINI

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_API_BASE}/{self._model.value}:generateContent"

    def build_payload(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Return the ``generateContent`` request body for one extraction."""
        instructions = options.get("instructions")
        combined = _GEMINI_INSTRUCTIONS if not instructions else f"{instructions}\n{_GEMINI_INSTRUCTIONS}"
        prompt = build_extraction_prompt(
            content, schema, instructions=combined, max_length=self.max_content_length
        )
        return {
            "systemInstruction": {"parts": [{"text": EXTRACTION_SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.get("temperature", self._temperature),
                "maxOutputTokens": options.get("max_tokens", self._max_tokens),
                "responseMimeType": "application/json",
                "responseSchema": build_response_schema(schema),
            },
        }

    async def _extract_uncached(
        self,
        content: str,
        schema: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> tuple[dict[str, Any], str]:
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }
        response = await self._post(self.endpoint, self.build_payload(content, schema, options), headers)

        candidates = response.get("candidates") or []
        if not candidates:
            feedback = response.get("promptFeedback") or {}
            reason = feedback.get("blockReason", "no candidates returned")
            raise AIProviderError(f"gemini: {reason}", provider=self.provider_tag)

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, Mapping)).strip()
        if not text:
            raise AIProviderError("gemini: empty response text", provider=self.provider_tag)

        parsed = parse_response_text(text, provider=self.provider_tag)
        logger.debug("extraction: gemini returned %d fields", len(parsed))
        return normalize_response(parsed, schema), text
