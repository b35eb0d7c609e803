"""
Google Gemini Provider - Gemini image and text models.

Supports:
- Gemini 3 Pro Image: generation, editing, style transfer and composition
- Gemini 2.5 Flash: structured image analysis (JSON response schema)

API Reference:
- https://ai.google.dev/gemini-api/docs/image-generation
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import aiohttp

from nanoflow.core.data_types import ImageData, ImageMetadata, split_data_url
from nanoflow.providers.base import (
    AnalysisResult,
    AuthenticationError,
    GenerationError,
    ImageProvider,
    ProviderConfig,
    RateLimitError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

VISION_MODEL = "gemini-3-pro-image-preview"
TEXT_MODEL = "gemini-2.5-flash"

ANALYSIS_PROMPT = (
    "Analyze this image. Extract 5 hex color codes, 5 style keywords, "
    "and a 1-sentence description."
)

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "colors": {"type": "ARRAY", "items": {"type": "STRING"}},
        "keywords": {"type": "ARRAY", "items": {"type": "STRING"}},
        "description": {"type": "STRING"},
    },
}


class GeminiProvider(ImageProvider):
    """
    Google Gemini image provider.

    Every image operation goes through the `:generateContent` endpoint
    with image parts followed by a text instruction.
    """

    id = "gemini"
    name = "Google Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, config: ProviderConfig | None = None):
        super().__init__(config)
        if not self.config.api_key:
            self.config.api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY", "")
        if self.config.base_url:
            self.base_url = self.config.base_url
        self.vision_model = self.config.extra.get("vision_model", VISION_MODEL)
        self.text_model = self.config.extra.get("text_model", TEXT_MODEL)
        self.retries = int(self.config.extra.get("retries", 1))
        self.retry_delay = float(self.config.extra.get("retry_delay", 1.0))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        reference_images: Sequence[Any],
        aspect_ratio: str = "1:1",
        quality: str = "2K",
    ) -> ImageData:
        parts = [self._image_part(img) for img in reference_images]
        parts.append({"text": f"{prompt}. High quality, detailed."})

        return await self._with_retry(lambda: self._generate_image(
            parts, aspect_ratio, _api_image_size(quality), prompt, "Model returned no image."
        ))

    async def analyze(self, image: Any) -> AnalysisResult:
        url = f"{self.base_url}/models/{self.text_model}:generateContent"
        body = {
            "contents": [{"parts": [self._image_part(image), {"text": ANALYSIS_PROMPT}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": ANALYSIS_SCHEMA,
            },
        }

        data = await self._with_retry(lambda: self._post(url, body))
        text = self._first_text(data)
        if not text:
            raise GenerationError("No analysis returned")

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Analysis was not valid JSON: {e}") from e

        return AnalysisResult(
            colors=[str(c) for c in parsed.get("colors", [])],
            keywords=[str(k) for k in parsed.get("keywords", [])],
            description=str(parsed.get("description", "")),
        )

    async def edit_variation(self, image: Any, instruction: str, quality: str = "2K") -> ImageData:
        parts = [
            self._image_part(image),
            {"text": f'Modify this image: "{instruction}". Maintain high quality.'},
        ]
        return await self._with_retry(lambda: self._generate_image(
            parts, "1:1", _api_image_size(quality), instruction, "No variation generated"
        ))

    async def style_transfer(self, content: Any, style: Any) -> ImageData:
        parts = [
            {"text": "Content:"},
            self._image_part(content),
            {"text": "Style:"},
            self._image_part(style),
            {"text": "Apply the style of the Style image to the Content image."},
        ]
        return await self._with_retry(lambda: self._generate_image(
            parts, "1:1", "2K", None, "No style transfer generated"
        ))

    async def compose(self, images: Sequence[Any], prompt: str) -> ImageData:
        parts = [self._image_part(img) for img in images]
        parts.append({
            "text": (
                f'Combine these images into a cohesive scene. User Instruction: "{prompt}". '
                "High resolution, photorealistic."
            )
        })
        return await self._with_retry(lambda: self._generate_image(
            parts, "16:9", "2K", prompt, "No composition generated"
        ))

    async def validate_credentials(self) -> bool:
        """Validate API key by listing models."""
        try:
            url = f"{self.base_url}/models?key={self.api_key}"
            async with aiohttp.ClientSession() as session:
                async with session.get(url) as resp:
                    return resp.status == 200
        except aiohttp.ClientError:
            return False

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _generate_image(
        self,
        parts: list[dict[str, Any]],
        aspect_ratio: str,
        image_size: str,
        prompt: str | None,
        empty_message: str,
    ) -> ImageData:
        url = f"{self.base_url}/models/{self.vision_model}:generateContent"
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {
                    "aspectRatio": aspect_ratio,
                    "imageSize": image_size,
                },
            },
        }

        data = await self._post(url, body)
        image = self._first_image(data)
        if image is None:
            raise GenerationError(empty_message)

        image.metadata.prompt = prompt
        image.metadata.model = self.vision_model
        return image

    async def _with_retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run `fn`, retrying transient failures with exponential backoff."""
        delay = self.retry_delay
        attempts_left = self.retries

        while True:
            try:
                return await fn()
            except AuthenticationError:
                raise
            except (GenerationError, RateLimitError, aiohttp.ClientError) as e:
                if attempts_left <= 0:
                    raise
                logger.warning("Gemini request failed (%s); retrying in %.1fs", e, delay)
                await asyncio.sleep(delay)
                attempts_left -= 1
                delay *= 2

    async def _post(self, url: str, body: dict) -> dict:
        """Make POST request with JSON body and API key in query string."""
        if not self.api_key:
            raise AuthenticationError("Google API key is not configured")

        url_with_key = f"{url}?key={self.api_key}"

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url_with_key,
                json=body,
                headers={"Content-Type": "application/json"},
            ) as resp:
                try:
                    data = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, json.JSONDecodeError):
                    data = {}
                self._check_error(resp.status, data)
                return data

    def _check_error(self, status: int, data: dict) -> None:
        """Check for API errors."""
        if status == 401 or status == 403:
            raise AuthenticationError("Invalid Google API key")
        elif status == 429:
            error = RateLimitError("Google API rate limit exceeded")
            error.retry_after = 60
            raise error
        elif status >= 400:
            error_msg = (data or {}).get("error", {}).get("message", "Unknown error")
            raise GenerationError(f"Google API error: {error_msg}")

    def _image_part(self, image: Any) -> dict[str, Any]:
        """Build an inline image part from ImageData or a (data URL) string."""
        if isinstance(image, ImageData):
            data = base64.b64encode(image.to_png_bytes()).decode()
            return {"inlineData": {"mimeType": "image/png", "data": data}}
        if isinstance(image, str):
            mime_type, data = split_data_url(image)
            return {"inlineData": {"mimeType": mime_type, "data": data}}
        raise GenerationError(f"Unsupported image value: {type(image).__name__}")

    def _first_image(self, data: dict) -> ImageData | None:
        for part in self._candidate_parts(data):
            if "inlineData" in part:
                inline = part["inlineData"]
                return ImageData.from_bytes(
                    base64.b64decode(inline["data"]),
                    ImageMetadata(mime_type=inline.get("mimeType", "image/png")),
                )
        return None

    def _first_text(self, data: dict) -> str | None:
        for part in self._candidate_parts(data):
            if "text" in part:
                return part["text"]
        return None

    @staticmethod
    def _candidate_parts(data: dict) -> list[dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        return candidates[0].get("content", {}).get("parts", []) or []


def _api_image_size(quality: str) -> str:
    # The API has no 1080p preset
    return "2K" if quality == "1080p" else quality
