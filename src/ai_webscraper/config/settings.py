"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
API keys are read exclusively through this module; never call ``os.getenv``
directly elsewhere in the codebase.

Usage::

    from ai_webscraper.config.settings import get_settings

    settings = get_settings()
    model = settings.ai_model
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ai_webscraper.config.providers import AIProvider


class Settings(BaseSettings):
    """Scraper configuration backed by environment variables and an optional .env file.

    Every field has a default, so an empty environment yields a usable (if
    key-less) configuration.  API keys should never be committed to version
    control.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # AI providers
    # ------------------------------------------------------------------

    openai_api_key: Optional[str] = None
    """OpenAI API key (``sk-...``).  Used when ``ai_model`` is an OpenAI model."""

    gemini_api_key: Optional[str] = None
    """Google Gemini API key (``AI...``).  Used when ``ai_model`` is a Gemini model."""

    ai_model: str = "gpt-4o-mini"
    """Model name used for extraction.  Must be one of
    :class:`~ai_webscraper.config.providers.AIModel`."""

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    request_timeout: float = Field(default=30.0, gt=0)
    """Timeout in seconds applied to each page fetch and each AI call."""

    prefer_script: bool = False
    """Start with the headless browser instead of plain HTTP."""

    browser_headless: bool = True
    """Run Chromium headless.  Disable only for local debugging."""

    # ------------------------------------------------------------------
    # Retry and batching
    # ------------------------------------------------------------------

    max_retries: int = Field(default=2, ge=0)
    """Retries after the first fetch attempt, per URL."""

    retry_base_delay: float = Field(default=1.0, ge=0)
    """Base backoff delay in seconds; attempt *i* waits ``base * 2**(i-1)``."""

    default_concurrency: int = Field(default=3, ge=1)
    """Default number of URLs processed at the same time in a batch."""

    chunk_size: int = Field(default=10, ge=1)
    """Default chunk size for chunked batch processing."""

    # ------------------------------------------------------------------
    # Response cache
    # ------------------------------------------------------------------

    cache_enabled: bool = False
    """Cache AI responses keyed by content, schema, provider and options."""

    cache_file_path: Optional[str] = None
    """Optional JSON file used to persist the response cache between runs."""

    cache_max_age_seconds: int = Field(default=3600, ge=1)
    """Cache entries older than this are treated as misses."""

    cache_max_entries: int = Field(default=1000, ge=1)
    """The oldest entries are evicted once the cache grows past this size."""

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    """Root log level passed to :func:`~ai_webscraper.core.logging_config.configure_logging`."""

    def api_key_for(self, provider: AIProvider) -> Optional[str]:
        """Return the configured API key for *provider*, if any."""
        if provider is AIProvider.OPENAI:
            return self.openai_api_key
        return self.gemini_api_key


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
