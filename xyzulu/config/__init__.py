"""Configuration storage for providers"""

from .config import ConfigError, ConfigManager
from .schema import MultiProviderConfig, ProviderCredentials

__all__ = ["ConfigError", "ConfigManager", "MultiProviderConfig", "ProviderCredentials"]
