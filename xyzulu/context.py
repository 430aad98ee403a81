"""Application context shared by CLI commands"""

from dataclasses import dataclass, field
from pathlib import Path

from xyzulu.config import ConfigManager
from xyzulu.provider.base import Provider
from xyzulu.provider.registry import ProviderRegistry
from xyzulu.provider.resolver import register_configured_providers, resolve_provider


@dataclass
class AppContext:
    """Configuration store and provider registry for one process"""
    config: ConfigManager
    registry: ProviderRegistry = field(default_factory=ProviderRegistry)

    @classmethod
    def default(cls, config_path: Path | None = None) -> "AppContext":
        return cls(config=ConfigManager(config_path))

    def bootstrap(self) -> list[str]:
        """Register every configured provider up front"""
        return register_configured_providers(self.config.effective_config(), self.registry)

    def resolve(self, hint: str | None = None) -> Provider:
        return resolve_provider(hint, self.config.effective_config(), self.registry)
