"""Provider registry"""

import logging

from .base import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """In-memory catalog of instantiated providers.

    Keeps a name -> provider map, a model -> provider-name index built from
    each provider's supported models, and at most one default name. Not
    thread-safe: callers sharing one registry across threads must lock
    around mutations.
    """

    def __init__(self):
        self._providers: dict[str, Provider] = {}
        self._model_index: dict[str, str] = {}
        self._default: str | None = None

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def register(self, provider: Provider, name: str | None = None):
        """Register a provider, replacing any previous one with the same name"""
        if provider is None:
            raise ValueError("Provider cannot be None")
        if name is None:
            name = provider.get_name()
        if not name or not name.strip():
            raise ValueError("Provider name cannot be empty")

        self._providers[name] = provider

        # Drop models indexed by a provider previously registered under this name
        self._model_index = {m: n for m, n in self._model_index.items() if n != name}

        # Last registration wins on model collisions
        for model in provider.supported_models():
            previous = self._model_index.get(model)
            if previous is not None and previous != name:
                logger.debug(f"Model '{model}' moved from provider '{previous}' to '{name}'")
            self._model_index[model] = name

        logger.debug(f"Registered provider: {name}")

    def get(self, name: str) -> Provider | None:
        """Get a provider by name"""
        return self._providers.get(name)

    def get_by_model(self, model_id: str) -> Provider | None:
        """Get the provider currently registered for a model"""
        name = self._model_index.get(model_id)
        if name is None:
            return None
        return self._providers.get(name)

    def has(self, name: str) -> bool:
        return name in self._providers

    def list(self) -> list[str]:
        """Registered provider names in registration order"""
        return list(self._providers)

    def set_default(self, name: str):
        if name not in self._providers:
            raise ValueError(f'Provider "{name}" is not registered')
        self._default = name

    def get_default(self) -> Provider | None:
        if self._default is None:
            return None
        return self._providers.get(self._default)

    @property
    def default_name(self) -> str | None:
        return self._default

    def unregister(self, name: str) -> bool:
        """Remove a provider and every model entry pointing at it"""
        provider = self._providers.pop(name, None)
        if provider is None:
            return False

        for model in [m for m, owner in self._model_index.items() if owner == name]:
            del self._model_index[model]

        if self._default == name:
            self._default = None

        logger.debug(f"Unregistered provider: {name}")
        return True

    def clear(self):
        self._providers.clear()
        self._model_index.clear()
        self._default = None
