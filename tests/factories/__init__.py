"""Factory Boy factories for test data generation.

Available factories
-------------------
PageDigestFactory       - comprehensive browser digest dict
ArticleHtmlFactory      - ``{"url", "html"}`` pair with a full-length body
OpenAIResponseFactory   - raw chat-completions response dict
GeminiResponseFactory   - raw generateContent response dict
"""

from __future__ import annotations

from tests.factories.pages import (
    ArticleHtmlFactory,
    GeminiResponseFactory,
    OpenAIResponseFactory,
    PageDigestFactory,
)

__all__ = [
    "ArticleHtmlFactory",
    "GeminiResponseFactory",
    "OpenAIResponseFactory",
    "PageDigestFactory",
]
