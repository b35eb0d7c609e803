"""
Generation Providers.

This package provides the backends that nodes delegate generation to:
- GeminiProvider: Google Gemini image and text models

Usage:
    from nanoflow.providers import get_registry

    registry = get_registry()
    registry.load_config()

    provider = registry.get_provider("gemini")
"""

from nanoflow.providers.base import (
    AnalysisResult,
    AuthenticationError,
    GenerationError,
    ImageProvider,
    ProviderConfig,
    ProviderError,
    RateLimitError,
)

from nanoflow.providers.registry import (
    ProviderRegistry,
    get_registry,
)

from nanoflow.providers.gemini import GeminiProvider


def _register_providers():
    get_registry().register_provider(GeminiProvider)

_register_providers()


__all__ = [
    # Base classes
    "ImageProvider",
    "AnalysisResult",
    "ProviderConfig",
    # Exceptions
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "GenerationError",
    # Registry
    "ProviderRegistry",
    "get_registry",
    # Providers
    "GeminiProvider",
]
