"""
Data Types - Values that flow through node connections.

This module defines the data types that travel along the workflow graph:
- PortKind: Enum of all port value kinds
- ImageData: Container for image pixels and metadata
- OutputBundle: Base for multi-output results (AnalysisBundle, GridSelection)
- encode_value / decode_value: Tagged codec used by the result cache

Node results form a closed union:
    ImageData | str | list[str] | list[ImageData] | AnalysisBundle | GridSelection

Providers may hand back opaque image values (e.g. encoded strings); these
pass through the graph unchanged.
"""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import Any, TypeAlias

import numpy as np
from numpy.typing import NDArray


class PortKind(Enum):
    """
    Kinds of values a port carries.

    Each input/output port has a PortKind that determines what
    kinds of connections are valid.
    """
    IMAGE = "image"
    TEXT = "text"
    STYLE = "style"
    MASK = "mask"
    PALETTE = "palette"
    IMAGE_ARRAY = "imageArray"
    TEXT_ARRAY = "textArray"

    def is_compatible_with(self, target: PortKind) -> bool:
        """Check if an output of this kind can feed an input of `target`."""
        if self == target:
            return True
        # Styles are plain images
        if {self, target} == {PortKind.STYLE, PortKind.IMAGE}:
            return True
        # Arrays may feed a scalar input (the first element is used)
        if self == PortKind.IMAGE_ARRAY and target == PortKind.IMAGE:
            return True
        if self == PortKind.TEXT_ARRAY and target == PortKind.TEXT:
            return True
        return False

    @property
    def is_array(self) -> bool:
        return self in (PortKind.IMAGE_ARRAY, PortKind.TEXT_ARRAY)


# Type alias for node configuration values
ConfigValue: TypeAlias = str | int | float | bool | list | dict | None


_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)


@dataclass
class ImageMetadata:
    """Metadata associated with an image."""

    prompt: str | None = None
    model: str | None = None
    mime_type: str = "image/png"

    def copy(self) -> ImageMetadata:
        """Create a shallow copy of this metadata."""
        return ImageMetadata(
            prompt=self.prompt,
            model=self.model,
            mime_type=self.mime_type,
        )


@dataclass
class ImageData:
    """
    Container for image data flowing through the node graph.

    Internally stores pixels as a numpy array in HWC format with
    float32 values in range [0, 1].

    Attributes:
        pixels: numpy array of shape (H, W, C) with float32 values [0, 1]
        metadata: Optional metadata about the image
    """
    pixels: NDArray[np.float32]
    metadata: ImageMetadata = field(default_factory=ImageMetadata)

    @classmethod
    def from_numpy(
        cls,
        array: NDArray,
        metadata: ImageMetadata | None = None
    ) -> ImageData:
        """
        Create ImageData from a numpy array.

        Handles various input formats:
        - uint8 [0, 255] -> float32 [0, 1]
        - float64 -> float32
        - HW (grayscale) -> HWC
        """
        arr = array.copy()

        if arr.dtype == np.uint8:
            arr = arr.astype(np.float32) / 255.0
        elif arr.dtype != np.float32:
            arr = arr.astype(np.float32)

        if arr.ndim == 2:
            arr = np.stack([arr, arr, arr], axis=-1)

        return cls(pixels=arr, metadata=metadata or ImageMetadata())

    @classmethod
    def from_pil(cls, image, metadata: ImageMetadata | None = None) -> ImageData:
        """Create ImageData from a PIL Image."""
        from PIL import Image

        if not isinstance(image, Image.Image):
            raise TypeError(f"Expected PIL Image, got {type(image)}")

        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGB")

        arr = np.array(image, dtype=np.float32) / 255.0
        return cls(pixels=arr, metadata=metadata or ImageMetadata())

    @classmethod
    def from_bytes(cls, data: bytes, metadata: ImageMetadata | None = None) -> ImageData:
        """Decode PNG/JPEG/WebP bytes."""
        from PIL import Image

        return cls.from_pil(Image.open(BytesIO(data)), metadata)

    @classmethod
    def from_data_url(cls, url: str) -> ImageData:
        """Decode a `data:image/...;base64,...` URL (bare base64 is PNG)."""
        mime_type, payload = split_data_url(url)
        return cls.from_bytes(
            base64.b64decode(payload),
            ImageMetadata(mime_type=mime_type),
        )

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def channels(self) -> int:
        """Number of color channels (3 for RGB, 4 for RGBA)."""
        return self.pixels.shape[2] if self.pixels.ndim == 3 else 1

    @property
    def size(self) -> tuple[int, int]:
        """Image size as (width, height)."""
        return (self.width, self.height)

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    def to_numpy(self, dtype: np.dtype = np.float32) -> NDArray:
        """Convert to a numpy array in HWC format."""
        if dtype == np.uint8:
            return (self.pixels * 255).round().clip(0, 255).astype(np.uint8)
        return self.pixels.astype(dtype)

    def to_pil(self):
        """Convert to PIL Image."""
        from PIL import Image

        arr = self.to_numpy(np.uint8)
        mode = "RGBA" if self.has_alpha else "RGB"
        return Image.fromarray(arr, mode=mode)

    def to_png_bytes(self) -> bytes:
        buf = BytesIO()
        self.to_pil().save(buf, format="PNG")
        return buf.getvalue()

    def to_data_url(self) -> str:
        """Encode as a PNG data URL."""
        b64 = base64.b64encode(self.to_png_bytes()).decode()
        return f"data:image/png;base64,{b64}"

    def digest(self) -> str:
        """Content digest over shape and pixel values."""
        h = hashlib.sha256()
        h.update(repr(self.pixels.shape).encode())
        h.update(np.ascontiguousarray(self.pixels, dtype=np.float32).tobytes())
        return h.hexdigest()

    def copy(self) -> ImageData:
        return ImageData(
            pixels=self.pixels.copy(),
            metadata=self.metadata.copy(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageData):
            return NotImplemented
        return (
            self.pixels.shape == other.pixels.shape
            and bool(np.array_equal(self.pixels, other.pixels))
        )


def split_data_url(value: str) -> tuple[str, str]:
    """Split a data URL into (mime type, base64 payload)."""
    match = _DATA_URL_RE.match(value)
    if match:
        return match.group(1), match.group(2)
    return "image/png", value


class OutputBundle:
    """
    A result with several named sub-results.

    Nodes with more than one output port return a bundle; downstream
    inputs pick the sub-result matching the port name.
    """

    fields: tuple[str, ...] = ()

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Any = None) -> Any:
        if name in self.fields:
            return getattr(self, name)
        return default


@dataclass(eq=True)
class AnalysisBundle(OutputBundle):
    """Result of the Analyze node."""
    palette: list[str] = field(default_factory=list)
    keywords: str = ""
    description: str = ""

    fields = ("palette", "keywords", "description")


@dataclass(eq=True)
class GridSelection(OutputBundle):
    """Result of the Compare Grid node: every candidate plus the pick."""
    images: list[Any] = field(default_factory=list)
    selected: Any = None

    fields = ("images", "selected")


# ----------------------------------------------------------------------------
# Tagged value codec (used for cache persistence)
# ----------------------------------------------------------------------------

def encode_value(value: Any) -> dict[str, Any]:
    """
    Encode a node result as a JSON-compatible tagged dict.

    Raises:
        TypeError: If the value is not part of the result union.
    """
    if value is None:
        return {"kind": "none"}
    if isinstance(value, bool):
        return {"kind": "bool", "value": value}
    if isinstance(value, str):
        return {"kind": "text", "value": value}
    if isinstance(value, (int, float)):
        return {"kind": "number", "value": value}
    if isinstance(value, ImageData):
        return {
            "kind": "image",
            "png": base64.b64encode(value.to_png_bytes()).decode(),
            "mime_type": value.metadata.mime_type,
        }
    if isinstance(value, AnalysisBundle):
        return {
            "kind": "analysis",
            "palette": list(value.palette),
            "keywords": value.keywords,
            "description": value.description,
        }
    if isinstance(value, GridSelection):
        return {
            "kind": "grid",
            "images": [encode_value(v) for v in value.images],
            "selected": encode_value(value.selected),
        }
    if isinstance(value, (list, tuple)):
        return {"kind": "list", "items": [encode_value(v) for v in value]}
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def decode_value(data: dict[str, Any]) -> Any:
    """
    Decode a value produced by `encode_value`.

    Raises:
        ValueError: If the tag is unknown or the payload is malformed.
    """
    kind = data.get("kind")
    if kind == "none":
        return None
    if kind in ("bool", "text", "number"):
        return data["value"]
    if kind == "image":
        return ImageData.from_bytes(
            base64.b64decode(data["png"]),
            ImageMetadata(mime_type=data.get("mime_type", "image/png")),
        )
    if kind == "analysis":
        return AnalysisBundle(
            palette=list(data.get("palette", [])),
            keywords=data.get("keywords", ""),
            description=data.get("description", ""),
        )
    if kind == "grid":
        return GridSelection(
            images=[decode_value(v) for v in data.get("images", [])],
            selected=decode_value(data.get("selected", {"kind": "none"})),
        )
    if kind == "list":
        return [decode_value(v) for v in data.get("items", [])]
    raise ValueError(f"Unknown value kind: {kind!r}")
