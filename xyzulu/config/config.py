"""Configuration management"""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError as SchemaError

from .schema import MultiProviderConfig, ProviderCredentials

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "XYZULU_CONFIG"

# Environment variables consulted for providers without a stored key
PROVIDER_ENV_KEYS = {
    "qwen": "DASHSCOPE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class ConfigError(Exception):
    """Raised when configuration cannot be updated or persisted"""


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".xyzulu" / "config.json"


class ConfigManager:
    """Loads, migrates and persists the multi-provider configuration.

    The file is read once at construction. Every mutating accessor writes the
    whole document back. Provider names are always stored lowercase.
    """

    def __init__(self, config_path: Path | str | None = None):
        self._path = Path(config_path) if config_path else default_config_path()
        self._config = self._load()

    @property
    def config_path(self) -> Path:
        return self._path

    def _load(self) -> MultiProviderConfig:
        """Load config from file, migrating the legacy layout"""
        if not self._path.exists():
            return MultiProviderConfig()

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load config from {self._path}: {e}")
            return MultiProviderConfig()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config at {self._path}: expected a JSON object")
            return MultiProviderConfig()

        if "apiKey" in data and "providers" not in data:
            return self._migrate_legacy(data)

        if "providers" not in data:
            return MultiProviderConfig()

        try:
            config = MultiProviderConfig.model_validate(data)
        except SchemaError as e:
            logger.warning(f"Invalid config at {self._path}: {e.error_count()} errors")
            return MultiProviderConfig()

        return self._normalize(config)

    @staticmethod
    def _normalize(config: MultiProviderConfig) -> MultiProviderConfig:
        config.providers = {name.lower(): creds for name, creds in config.providers.items()}
        if config.default_provider:
            config.default_provider = config.default_provider.lower()
        return config

    def _migrate_legacy(self, data: dict) -> MultiProviderConfig:
        """Convert the single-provider {apiKey, defaultModel} layout"""
        config = MultiProviderConfig()

        api_key = data.get("apiKey")
        if isinstance(api_key, str) and api_key:
            config.providers["qwen"] = ProviderCredentials(api_key=api_key)
            config.default_provider = "qwen"
            if isinstance(data.get("defaultModel"), str):
                config.default_model = data["defaultModel"]

            logger.info(f"Migrating legacy config at {self._path}")
            self._save(config)

        return config

    def _save(self, config: MultiProviderConfig | None = None):
        config = config or self._config
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(config.to_json(), encoding="utf-8")
            self._path.chmod(0o600)
        except OSError as e:
            logger.error(f"Failed to save config to {self._path}: {e}")
            raise ConfigError(f"Failed to save configuration: {e}") from e

    def get_provider_key(self, provider: str) -> str | None:
        creds = self._config.providers.get(provider.lower())
        return creds.api_key if creds else None

    def set_provider_key(self, provider: str, key: str):
        provider = provider.lower()
        creds = self._config.providers.get(provider)
        if creds is None:
            self._config.providers[provider] = ProviderCredentials(api_key=key)
        else:
            creds.api_key = key
        self._save()

    def get_provider_config(self, provider: str) -> ProviderCredentials | None:
        creds = self._config.providers.get(provider.lower())
        return creds.model_copy(deep=True) if creds else None

    def set_provider_config(self, provider: str, credentials: ProviderCredentials):
        self._config.providers[provider.lower()] = credentials.model_copy(deep=True)
        self._save()

    def get_default_provider(self) -> str | None:
        return self._config.default_provider

    def set_default_provider(self, provider: str):
        provider = provider.lower()
        if provider not in self._config.providers:
            raise ConfigError(
                f'Provider "{provider}" is not configured. '
                f"Set its key first with: xyzulu config set {provider}.apiKey <key>"
            )
        self._config.default_provider = provider
        self._save()

    def get_default_model(self) -> str | None:
        return self._config.default_model

    def set_default_model(self, model: str):
        self._config.default_model = model
        self._save()

    def get_all_providers(self) -> MultiProviderConfig:
        """A deep copy of the persisted configuration"""
        return self._config.model_copy(deep=True)

    def has_provider(self, provider: str) -> bool:
        creds = self._config.providers.get(provider.lower())
        return creds is not None and creds.is_configured()

    def remove_provider(self, provider: str) -> bool:
        provider = provider.lower()
        if provider not in self._config.providers:
            return False

        del self._config.providers[provider]
        if self._config.default_provider == provider:
            self._config.default_provider = None
        self._save()
        return True

    def effective_config(self) -> MultiProviderConfig:
        """Persisted config with environment keys filling the gaps"""
        config = self.get_all_providers()

        for provider, env_var in PROVIDER_ENV_KEYS.items():
            key = os.environ.get(env_var)
            if not key:
                continue
            creds = config.providers.get(provider)
            if creds is None:
                config.providers[provider] = ProviderCredentials(api_key=key)
            elif not creds.is_configured():
                creds.api_key = key

        return config
