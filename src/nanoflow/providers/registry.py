"""
Provider Registry - Central registry for generation providers.

This module manages:
- Registration of provider implementations
- Provider configuration loading/saving
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from nanoflow.providers.base import ImageProvider, ProviderConfig


logger = logging.getLogger(__name__)


def default_config_path() -> Path:
    return Path.home() / ".config" / "nanoflow" / "providers.json"


class ProviderRegistry:
    """
    Central registry for providers.

    Handles:
    - Provider registration
    - Lazily created, cached provider instances
    - Configuration management
    """

    _instance: ProviderRegistry | None = None

    def __new__(cls) -> ProviderRegistry:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init()
        return cls._instance

    @classmethod
    def instance(cls) -> ProviderRegistry:
        return cls()

    def _init(self) -> None:
        self._providers: dict[str, type[ImageProvider]] = {}
        self._provider_instances: dict[str, ImageProvider] = {}
        self._configs: dict[str, ProviderConfig] = {}
        self._config_path: Path | None = None

    # -------------------------------------------------------------------------
    # Provider Registration
    # -------------------------------------------------------------------------

    def register_provider(self, provider_class: type[ImageProvider]) -> None:
        """Register a provider implementation."""
        self._providers[provider_class.id] = provider_class

    def get_provider(self, provider_id: str) -> ImageProvider | None:
        """Get an instantiated provider."""
        if provider_id in self._provider_instances:
            return self._provider_instances[provider_id]

        if provider_id not in self._providers:
            return None

        config = self._configs.get(provider_id, ProviderConfig())
        provider = self._providers[provider_id](config)
        self._provider_instances[provider_id] = provider
        return provider

    def list_providers(self) -> list[str]:
        return list(self._providers.keys())

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_config(self, provider_id: str, config: ProviderConfig) -> None:
        """Set configuration for a provider."""
        self._configs[provider_id] = config
        # Invalidate cached instance
        self._provider_instances.pop(provider_id, None)

    def get_config(self, provider_id: str) -> ProviderConfig:
        return self._configs.get(provider_id, ProviderConfig())

    def load_config(self, path: Path | None = None) -> None:
        """Load provider configurations from file."""
        path = path or default_config_path()
        self._config_path = path

        if not path.exists():
            return

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

            for provider_id, cfg_data in data.get("providers", {}).items():
                self.set_config(provider_id, ProviderConfig(
                    api_key=cfg_data.get("api_key", ""),
                    enabled=cfg_data.get("enabled", True),
                    base_url=cfg_data.get("base_url"),
                    extra=cfg_data.get("extra", {}),
                ))
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Failed to load provider config: %s", e)

    def save_config(self, path: Path | None = None) -> None:
        """Save provider configurations to file."""
        path = path or self._config_path or default_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "providers": {
                pid: {
                    "api_key": cfg.api_key,
                    "enabled": cfg.enabled,
                    "base_url": cfg.base_url,
                    "extra": cfg.extra,
                }
                for pid, cfg in self._configs.items()
            },
        }

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return ProviderRegistry.instance()
