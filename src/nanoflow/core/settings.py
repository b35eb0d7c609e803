"""
Engine Settings - User configuration for running workflows.

Settings live in `~/.config/nanoflow/settings.json`; missing keys fall
back to the defaults below.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "nanoflow"
CACHE_DIR = Path.home() / ".cache" / "nanoflow"


def default_settings_path() -> Path:
    return CONFIG_DIR / "settings.json"


@dataclass
class EngineSettings:
    """
    Settings that affect every run.

    Attributes:
        use_cache: Reuse results whose inputs haven't changed
        cache_path: Where the result cache is persisted
        cache_max_entries: Most recent entries kept in the cache
        cache_ttl_seconds: Age after which entries are dropped on load
        provider_timeout: Seconds to wait for a single provider call
        default_provider: Provider used when none is given explicitly
    """
    use_cache: bool = True
    cache_path: Path = CACHE_DIR / "node_cache.json"
    cache_max_entries: int = 50
    cache_ttl_seconds: float = 24 * 60 * 60
    provider_timeout: float = 300.0
    default_provider: str = "gemini"

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {
            "use_cache": self.use_cache,
            "cache_path": str(self.cache_path),
            "cache_max_entries": self.cache_max_entries,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "provider_timeout": self.provider_timeout,
            "default_provider": self.default_provider,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineSettings:
        """Create settings from dictionary."""
        defaults = cls()
        return cls(
            use_cache=bool(data.get("use_cache", defaults.use_cache)),
            cache_path=Path(data["cache_path"]).expanduser() if data.get("cache_path") else defaults.cache_path,
            cache_max_entries=int(data.get("cache_max_entries", defaults.cache_max_entries)),
            cache_ttl_seconds=float(data.get("cache_ttl_seconds", defaults.cache_ttl_seconds)),
            provider_timeout=float(data.get("provider_timeout", defaults.provider_timeout)),
            default_provider=data.get("default_provider", defaults.default_provider),
        )


def load_settings(path: Path | None = None) -> EngineSettings:
    """
    Load settings from file.

    A missing or unreadable file yields the defaults.
    """
    path = path or default_settings_path()
    if not path.exists():
        return EngineSettings()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return EngineSettings.from_dict(data)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Failed to load settings from %s: %s", path, e)
        return EngineSettings()


def save_settings(settings: EngineSettings, path: Path | None = None) -> Path:
    """Save settings to file, creating the directory if needed."""
    path = path or default_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)

    return path
