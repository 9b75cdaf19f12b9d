"""Configuration package for ai-webscraper.

Re-exports the most commonly used configuration symbols so that
callers can write::

    from ai_webscraper.config import get_settings, AIModel, PROVIDER_CAPABILITIES

without needing to know which sub-module each symbol lives in.
"""

from __future__ import annotations

from ai_webscraper.config.providers import (
    MODEL_PROVIDERS,
    PROVIDER_CAPABILITIES,
    AIModel,
    AIProvider,
    ProviderCapabilities,
    models_for,
    resolve_model,
    resolve_provider,
)
from ai_webscraper.config.settings import Settings, get_settings

__all__ = [
    # settings
    "Settings",
    "get_settings",
    # providers
    "AIProvider",
    "AIModel",
    "MODEL_PROVIDERS",
    "ProviderCapabilities",
    "PROVIDER_CAPABILITIES",
    "models_for",
    "resolve_model",
    "resolve_provider",
]
