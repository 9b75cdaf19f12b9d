"""Page fetching and the extraction orchestration engine.

Sub-modules:
- ``config``             - constants and tuning parameters
- ``http_fetcher``       - async httpx-based page fetcher with JS-shell detection
- ``playwright_fetcher`` - headless Chromium fetcher with a structured page digest
- ``digest``             - plain-text rendering of the page digest
- ``pipeline``           - per-URL fetch/retry/fallback then extract (``ScrapePipeline``)
- ``batch``              - concurrency-bounded, order-preserving batches (``BatchRunner``)
"""
