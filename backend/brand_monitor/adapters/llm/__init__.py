"""
LLM Adapters - Unified interface for multiple LLM providers
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

import httpx

from brand_monitor.config import PROVIDER_DISPLAY_NAMES, get_settings
from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMProviderType,
    LLMAdapterError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMTimeoutError,
    LLMInvalidRequestError,
    LLMEmptyResponseError,
    LLMSchemaValidationError,
    LLMProviderUnavailableError,
    NoProvidersConfiguredError,
)
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter
from .perplexity_adapter import PerplexityAdapter

logger = logging.getLogger(__name__)

ADAPTERS: Dict[str, Type[BaseLLMAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "google": GoogleAdapter,
    "perplexity": PerplexityAdapter,
}

# Loose spellings seen in model output and user input
PROVIDER_ALIASES = {
    "chatgpt": "openai",
    "gpt": "openai",
    "claude": "anthropic",
    "gemini": "google",
    "pplx": "perplexity",
}


@dataclass
class ProviderInfo:
    """A provider that has a key and is enabled"""
    id: str
    name: str
    default_model: str


def normalize_provider_name(provider: str) -> str:
    """Map a provider id, display name or alias onto its canonical id"""
    key = (provider or "").strip().lower()
    return PROVIDER_ALIASES.get(key, key)


def provider_display_name(provider: str) -> str:
    """Canonical display name ("openai" -> "OpenAI")"""
    provider_id = normalize_provider_name(provider)
    return PROVIDER_DISPLAY_NAMES.get(provider_id, provider)


def _api_key_for(provider_id: str) -> Optional[str]:
    settings = get_settings()
    return {
        "openai": settings.OPENAI_API_KEY,
        "anthropic": settings.ANTHROPIC_API_KEY,
        "google": settings.GOOGLE_API_KEY,
        "perplexity": settings.PERPLEXITY_API_KEY,
    }.get(provider_id)


def is_provider_configured(provider: str) -> bool:
    provider_id = normalize_provider_name(provider)
    return (
        provider_id in ADAPTERS
        and provider_id in get_settings().enabled_providers_list
        and bool(_api_key_for(provider_id))
    )


def get_adapter(
    provider: str,
    api_key: Optional[str] = None,
    config: Optional[LLMConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMAdapter:
    """
    Factory function to get the appropriate LLM adapter.

    Args:
        provider: One of "openai", "anthropic", "google", "perplexity"
        api_key: Optional API key (uses env var if not provided)
        config: Optional LLM configuration
        transport: Optional httpx transport (tests use httpx.MockTransport)

    Returns:
        Configured LLM adapter instance

    Raises:
        ValueError: If provider is not supported
    """
    provider_id = normalize_provider_name(provider)
    if provider_id not in ADAPTERS:
        raise ValueError(f"Unsupported provider: {provider}. Must be one of {list(ADAPTERS.keys())}")

    return ADAPTERS[provider_id](api_key=api_key, config=config, transport=transport)


def list_configured_providers() -> List[ProviderInfo]:
    """
    Providers with an API key that are also listed in ENABLED_PROVIDERS,
    in registry order.
    """
    providers = []
    for provider_id, adapter_cls in ADAPTERS.items():
        if not is_provider_configured(provider_id):
            continue
        providers.append(ProviderInfo(
            id=provider_id,
            name=provider_display_name(provider_id),
            default_model=adapter_cls(api_key=_api_key_for(provider_id)).default_model,
        ))
    return providers


def get_model_handle(
    provider: str,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[BaseLLMAdapter]:
    """
    Adapter bound to a model, or None when the provider is unknown or not
    configured. Callers treat None as "provider unavailable".
    """
    provider_id = normalize_provider_name(provider)
    if not is_provider_configured(provider_id):
        logger.debug(f"No model handle for provider {provider!r}")
        return None

    settings = get_settings()
    adapter = get_adapter(provider_id, api_key=_api_key_for(provider_id), transport=transport)
    adapter.config = LLMConfig(
        model=model or adapter.default_model,
        timeout=settings.LLM_REQUEST_TIMEOUT,
    )
    return adapter


def get_extraction_handle(answering: BaseLLMAdapter) -> BaseLLMAdapter:
    """
    Model used for structured extraction of an answer. EXTRACTION_PROVIDER /
    EXTRACTION_MODEL reroute it when that provider is available; otherwise the
    answering model extracts its own answer.
    """
    settings = get_settings()
    if not settings.EXTRACTION_PROVIDER:
        return answering
    handle = get_model_handle(settings.EXTRACTION_PROVIDER, settings.EXTRACTION_MODEL)
    if handle is None:
        logger.warning(
            f"Extraction provider {settings.EXTRACTION_PROVIDER} unavailable, "
            f"using {answering.provider.value}"
        )
        return answering
    return handle


__all__ = [
    # Registry
    "ProviderInfo",
    "get_adapter",
    "get_model_handle",
    "get_extraction_handle",
    "list_configured_providers",
    "is_provider_configured",
    "normalize_provider_name",
    "provider_display_name",
    # Base classes
    "BaseLLMAdapter",
    "LLMConfig",
    "LLMMessage",
    "LLMResponse",
    "LLMProviderType",
    # Exceptions
    "LLMAdapterError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "LLMTimeoutError",
    "LLMInvalidRequestError",
    "LLMEmptyResponseError",
    "LLMSchemaValidationError",
    "LLMProviderUnavailableError",
    "NoProvidersConfiguredError",
    # Adapters
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "PerplexityAdapter",
]
