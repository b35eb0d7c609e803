"""
Provider Base - Abstract base class for generation backends.

This module provides the foundation for all image generation providers:
- ImageProvider: Abstract base class for provider implementations
- AnalysisResult: Structured result of image analysis
- ProviderConfig: Credentials and endpoint settings
- ProviderError and subclasses: Failures raised by providers

The engine treats a provider as an opaque asynchronous capability: every
method may take arbitrarily long and may raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass
class AnalysisResult:
    """Result from image analysis."""
    colors: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    description: str = ""


@dataclass
class ProviderConfig:
    """Configuration for a provider."""
    api_key: str = ""
    enabled: bool = True
    base_url: str | None = None  # Override default URL
    extra: dict[str, Any] = field(default_factory=dict)


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class AuthenticationError(ProviderError):
    """API key invalid or missing."""
    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded."""
    retry_after: float | None = None


class GenerationError(ProviderError):
    """Error during generation."""
    pass


class ImageProvider(ABC):
    """
    Abstract base class for image generation providers.

    Image arguments and results are image values: `ImageData` for
    providers that decode their output, or any opaque value a provider
    understands (e.g. data URL strings).
    """

    id: str = ""
    name: str = ""

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or ProviderConfig()

    @property
    def api_key(self) -> str:
        return self.config.api_key

    @property
    def is_configured(self) -> bool:
        """Check if provider has necessary configuration."""
        return bool(self.config.api_key)

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        reference_images: Sequence[Any],
        aspect_ratio: str = "1:1",
        quality: str = "2K",
    ) -> Any:
        """
        Generate an image from a prompt and optional reference images.

        Raises:
            AuthenticationError: Invalid API key
            RateLimitError: Rate limit exceeded
            GenerationError: Generation failed
        """
        ...

    @abstractmethod
    async def analyze(self, image: Any) -> AnalysisResult:
        """Extract a palette, style keywords and a description."""
        ...

    @abstractmethod
    async def edit_variation(self, image: Any, instruction: str, quality: str = "2K") -> Any:
        """Re-render an image following an instruction."""
        ...

    @abstractmethod
    async def style_transfer(self, content: Any, style: Any) -> Any:
        """Apply the style of one image to the content of another."""
        ...

    @abstractmethod
    async def compose(self, images: Sequence[Any], prompt: str) -> Any:
        """Combine several images into one scene."""
        ...
