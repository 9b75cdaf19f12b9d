"""ai-webscraper: extract structured data from web pages with AI models.

A page is fetched over plain HTTP or in a headless browser (with retries and
fallback between the two), and its content is handed to an OpenAI or Gemini
model together with a field schema.  Batches of URLs run under a concurrency
ceiling with results returned in input order.

Sub-packages:
- ``core``       - request/result models, validation, exceptions, logging
- ``config``     - settings and the AI provider/model table
- ``scraper``    - fetchers, page digest, ``ScrapePipeline`` and ``BatchRunner``
- ``extraction`` - AI extractors, prompts and the response cache

Sub-modules:
- ``client``     - ``AIWebScraper`` facade and ``create_scraper()``
- ``cli``        - ``ai-webscraper`` command-line entry point
"""

from __future__ import annotations

from ai_webscraper.client import AIWebScraper, create_scraper
from ai_webscraper.config.providers import AIModel, AIProvider
from ai_webscraper.core.exceptions import (
    AIAuthError,
    AIProviderError,
    AIRateLimitError,
    BatchProcessingError,
    FetchError,
    InvalidRequestError,
    ParsingError,
    WebScraperError,
)
from ai_webscraper.core.models import BatchRequest, ExtractionRequest, ExtractionResult

__version__ = "0.3.0"

__all__ = [
    "AIWebScraper",
    "create_scraper",
    "AIModel",
    "AIProvider",
    "ExtractionRequest",
    "BatchRequest",
    "ExtractionResult",
    "WebScraperError",
    "InvalidRequestError",
    "FetchError",
    "AIProviderError",
    "AIAuthError",
    "AIRateLimitError",
    "ParsingError",
    "BatchProcessingError",
]
