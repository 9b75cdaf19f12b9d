"""Factory Boy factories for page content and provider responses.

Usage::

    from tests.factories.pages import PageDigestFactory, OpenAIResponseFactory

    digest = PageDigestFactory.build(title="Conference 2025")
    body = OpenAIResponseFactory.build(content='{"title": "Conference 2025"}')
"""

from __future__ import annotations

import factory


class PageDigestFactory(factory.Factory):
    """Factory for the mapping returned by the comprehensive browser fetch."""

    class Meta:
        model = dict

    title = factory.Sequence(lambda n: f"Test page {n}")
    url = factory.Sequence(lambda n: f"https://example.com/page/{n}")
    meta = factory.LazyFunction(
        lambda: {"description": "A page used in tests", "keywords": "test, page"}
    )
    eventContent = factory.LazyFunction(
        lambda: {"cards": [], "schedule": [], "sessions": [], "speakers": [], "times": []}
    )
    headings = factory.LazyAttribute(lambda o: {"h1": [o.title], "h2": ["Details"]})
    contentSections = factory.LazyFunction(lambda: ["The first paragraph of real content."])
    links = factory.LazyAttribute(lambda o: [{"text": "Home", "href": o.url}])
    stats = factory.LazyFunction(lambda: {"paragraphs": 3, "links": 1})
    bodyText = factory.LazyAttribute(lambda o: f"{o.title}. The first paragraph of real content.")


class ArticleHtmlFactory(factory.Factory):
    """Factory for a ``{"url", "html"}`` pair long enough to pass JS-shell detection."""

    class Meta:
        model = dict

    url = factory.Sequence(lambda n: f"https://example.com/article/{n}")
    title = factory.Sequence(lambda n: f"Article {n}")
    html = factory.LazyAttribute(
        lambda o: f"<html><head><title>{o.title}</title></head><body>"
        + ("<p>Some article text.</p>" * 40)
        + "</body></html>"
    )


class OpenAIResponseFactory(factory.Factory):
    """Factory for a raw OpenAI chat-completions response body."""

    class Meta:
        model = dict

    class Params:
        content = '{"title": "Example"}'

    id = factory.Sequence(lambda n: f"chatcmpl-test{n}")
    object = "chat.completion"
    choices = factory.LazyAttribute(
        lambda o: [
            {
                "index": 0,
                "message": {"role": "assistant", "content": o.content},
                "finish_reason": "stop",
            }
        ]
    )
    usage = factory.LazyFunction(
        lambda: {"prompt_tokens": 120, "completion_tokens": 12, "total_tokens": 132}
    )


class GeminiResponseFactory(factory.Factory):
    """Factory for a raw Gemini ``generateContent`` response body."""

    class Meta:
        model = dict

    class Params:
        text = '{"title": "Example"}'

    candidates = factory.LazyAttribute(
        lambda o: [
            {
                "content": {"role": "model", "parts": [{"text": o.text}]},
                "finishReason": "STOP",
            }
        ]
    )
    usageMetadata = factory.LazyFunction(
        lambda: {"promptTokenCount": 120, "candidatesTokenCount": 12, "totalTokenCount": 132}
    )
