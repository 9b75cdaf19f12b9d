"""AI provider and model definitions with per-provider capabilities.

Defines the closed set of AI providers (OpenAI, Gemini) and the model names
each one serves.  Every extractor reads its limits from
:data:`PROVIDER_CAPABILITIES`; :func:`resolve_model` maps a user-supplied model
name to its :class:`AIModel` and fails fast on unknown names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ai_webscraper.core.exceptions import UnsupportedProviderError


class AIProvider(str, Enum):
    """Supported AI providers."""

    OPENAI = "openai"
    GEMINI = "gemini"


class AIModel(str, Enum):
    """Supported model names.  The value is the name sent to the provider."""

    # OpenAI
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4_TURBO = "gpt-4-turbo"
    GPT_4_TURBO_PREVIEW = "gpt-4-turbo-preview"
    GPT_4 = "gpt-4"
    GPT_35_TURBO = "gpt-3.5-turbo"

    # Gemini
    GEMINI_25_PRO = "gemini-2.5-pro"
    GEMINI_25_FLASH = "gemini-2.5-flash"
    GEMINI_20_FLASH = "gemini-2.0-flash"
    GEMINI_25_FLASH_LITE = "gemini-2.5-flash-lite"
    GEMINI_20_FLASH_LITE = "gemini-2.0-flash-lite"

    @property
    def provider(self) -> AIProvider:
        return MODEL_PROVIDERS[self]


MODEL_PROVIDERS: dict[AIModel, AIProvider] = {
    model: (AIProvider.GEMINI if model.value.startswith("gemini") else AIProvider.OPENAI)
    for model in AIModel
}
"""Provider serving each model, resolved once at import time."""


@dataclass(frozen=True)
class ProviderCapabilities:
    """Static capabilities and limits of one AI provider.

    Attributes:
        provider: The :class:`AIProvider` these capabilities describe.
        display_name: Human-readable provider name.
        default_model: Model used when the caller does not pick one.
        supports_structured_output: Whether the provider can be asked to
            return JSON directly.
        max_content_length: Maximum page-content characters sent per call.
            Longer content is truncated by the prompt builder.
        api_key_prefix: Expected prefix of a well-formed API key.
        min_api_key_length: Shortest acceptable API key.
    """

    provider: AIProvider
    display_name: str
    default_model: AIModel
    supports_structured_output: bool
    max_content_length: int
    api_key_prefix: str
    min_api_key_length: int


PROVIDER_CAPABILITIES: dict[AIProvider, ProviderCapabilities] = {
    AIProvider.OPENAI: ProviderCapabilities(
        provider=AIProvider.OPENAI,
        display_name="OpenAI GPT",
        default_model=AIModel.GPT_4O_MINI,
        supports_structured_output=True,
        max_content_length=50_000,
        api_key_prefix="sk-",
        min_api_key_length=20,
    ),
    AIProvider.GEMINI: ProviderCapabilities(
        provider=AIProvider.GEMINI,
        display_name="Google Gemini",
        default_model=AIModel.GEMINI_25_FLASH,
        supports_structured_output=True,
        max_content_length=100_000,
        api_key_prefix="AI",
        min_api_key_length=10,
    ),
}


def models_for(provider: AIProvider) -> list[AIModel]:
    """Return the models served by *provider*, in declaration order."""
    return [model for model, owner in MODEL_PROVIDERS.items() if owner is provider]


def resolve_model(name: str | AIModel) -> AIModel:
    """Return the :class:`AIModel` for *name*.

    Raises:
        UnsupportedProviderError: If *name* is not a known model.
    """
    if isinstance(name, AIModel):
        return name
    try:
        return AIModel(str(name).strip())
    except ValueError:
        supported = ", ".join(model.value for model in AIModel)
        raise UnsupportedProviderError(
            f"Unsupported model {name!r}. Supported models: {supported}"
        ) from None


def resolve_provider(name: str | AIProvider) -> AIProvider:
    """Return the :class:`AIProvider` for *name*.

    Raises:
        UnsupportedProviderError: If *name* is not a known provider.
    """
    if isinstance(name, AIProvider):
        return name
    try:
        return AIProvider(str(name).strip().lower())
    except ValueError:
        raise UnsupportedProviderError(f"Unsupported AI provider {name!r}") from None
