"""Provider resolution and startup registration"""

import logging
from typing import Type

from xyzulu.config.schema import MultiProviderConfig, ProviderCredentials

from .anthropic import AnthropicProvider
from .base import Provider
from .errors import (
    AuthenticationError,
    ProviderNotImplementedError,
    ValidationError,
    set_key_hint,
)
from .openai import OpenAIProvider
from .qwen import QwenProvider
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

# Map of provider names to provider classes
PROVIDERS: dict[str, Type[Provider]] = {
    "qwen": QwenProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

# Static model table; adding a model is a data edit only
MODEL_TO_PROVIDER: dict[str, str] = {
    "qwen-turbo": "qwen",
    "qwen-plus": "qwen",
    "qwen-max": "qwen",
    "qwen-max-longcontext": "qwen",
    "gpt-4o": "openai",
    "gpt-4-turbo": "openai",
    "gpt-4": "openai",
    "gpt-3.5-turbo": "openai",
    "claude-3-opus": "anthropic",
    "claude-3-sonnet": "anthropic",
    "claude-3-haiku": "anthropic",
    "claude-3-5-sonnet": "anthropic",
}

FALLBACK_PROVIDER = "qwen"

# Generic shape check for providers without their own rule
_MIN_GENERIC_KEY_LENGTH = 6


def is_known_model(value: str) -> bool:
    return value.lower() in MODEL_TO_PROVIDER


def resolve_provider_name(hint: str | None, registry: ProviderRegistry) -> str | None:
    """Turn a provider name or model identifier into a provider name"""
    if not hint:
        return None

    if registry.has(hint):
        return hint

    lowered = hint.lower()
    if registry.has(lowered) or lowered in PROVIDERS:
        return lowered

    return MODEL_TO_PROVIDER.get(lowered)


def validate_provider_model(model: str | None, provider: str | None) -> str | None:
    """Return an error message if an explicit model and provider disagree"""
    if not model or not provider:
        return None

    expected = MODEL_TO_PROVIDER.get(model.lower())
    if expected and expected != provider.lower():
        return f'Model "{model}" belongs to provider "{expected}", not "{provider}"'
    return None


def validate_provider_key(name: str, key: str | None) -> bool:
    """Shape-check a key using the provider's own rule"""
    if not key or not key.strip():
        return False

    provider_class = PROVIDERS.get(name.lower())
    if provider_class is None:
        return len(key) >= _MIN_GENERIC_KEY_LENGTH

    return provider_class.validate_config(ProviderCredentials(api_key=key))


def create_provider(name: str, credentials: ProviderCredentials) -> Provider:
    """Instantiate the implementation registered for a provider name"""
    provider_class = PROVIDERS.get(name.lower())
    if provider_class is None:
        raise ProviderNotImplementedError(
            name,
            metadata={"available": sorted(PROVIDERS)},
        )
    return provider_class(credentials)


def resolve_provider(
    hint: str | None,
    config: MultiProviderConfig,
    registry: ProviderRegistry,
) -> Provider:
    """Pick the provider for one invocation.

    Priority: explicit hint (provider name or model id), then the configured
    default provider, then the qwen fallback when it has a key. The chosen
    provider must have a key of the right shape. An existing registration is
    reused; otherwise a new instance is created and registered.
    """
    name = None

    if hint:
        name = resolve_provider_name(hint, registry)
        if name is None:
            available = registry.list()
            raise ValidationError(
                f'Unknown model or provider: "{hint}". '
                f"Available providers: {', '.join(available) or '(none registered)'}",
                "unknown",
                metadata={"hint": hint, "available": available},
            )
        logger.debug(f"Resolved hint '{hint}' to provider '{name}'")

    if name is None and config.default_provider:
        name = config.default_provider.lower()
        logger.debug(f"Using configured default provider '{name}'")

    if name is None:
        fallback = config.providers.get(FALLBACK_PROVIDER)
        if fallback is not None and fallback.is_configured():
            name = FALLBACK_PROVIDER
            logger.debug(f"Falling back to provider '{name}'")

    if name is None:
        raise AuthenticationError(
            "No provider configured. Please set an API key for at least one provider. "
            + set_key_hint("<provider>"),
            "unknown",
        )

    credentials = config.providers.get(name)
    if credentials is None or not credentials.is_configured():
        raise AuthenticationError(
            f'API key not configured for provider "{name}". {set_key_hint(name)}',
            name,
        )

    if not validate_provider_key(name, credentials.api_key):
        raise AuthenticationError(
            f'Invalid API key format for provider "{name}". {set_key_hint(name)}',
            name,
        )

    provider = registry.get(name)
    if provider is None:
        provider = create_provider(name, credentials)
        registry.register(provider, name)
        logger.info(f"Registered provider on first use: {name}")

    return provider


def get_provider_by_model(model_id: str, registry: ProviderRegistry) -> Provider | None:
    """Find the registered provider serving a model"""
    name = MODEL_TO_PROVIDER.get(model_id.lower())
    if name is None:
        return None
    return registry.get_by_model(model_id) or registry.get(name)


def register_configured_providers(
    config: MultiProviderConfig,
    registry: ProviderRegistry,
) -> list[str]:
    """Register every provider that has a key and pick the registry default"""
    registered = []

    for name, credentials in config.providers.items():
        if not credentials.is_configured():
            continue
        try:
            provider = create_provider(name, credentials)
        except ProviderNotImplementedError:
            logger.info(f"Skipping provider without implementation: {name}")
            continue
        registry.register(provider, name)
        registered.append(name)

    default = config.default_provider
    if default and registry.has(default):
        registry.set_default(default)
    elif registry.has(FALLBACK_PROVIDER):
        registry.set_default(FALLBACK_PROVIDER)

    logger.info(f"Registered {len(registered)} configured providers")
    return registered
