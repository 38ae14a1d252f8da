"""Image codec utilities for the watermark pipeline."""

import base64
import io
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
from PIL import Image

from .error_handling import with_error_handling
from .exceptions import MediaIOError

# Formats whose encoder discards information
LOSSY_FORMATS = frozenset({"JPEG", "WEBP"})

_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
    "BMP": "bmp",
    "TIFF": "tiff",
}

_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}


@dataclass
class DecodedImage:
    """RGB pixels plus the alpha channel, which inpainting leaves untouched."""

    pixels: np.ndarray
    format: str
    alpha: Optional[np.ndarray] = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class OutputFormat:
    """Encoder selection for a processed image."""

    format: str
    lossless: bool = False

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.format, "png")

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES.get(self.format, "image/png")


def normalize_format(image_format: Optional[str]) -> str:
    """Map Pillow format names and file extensions onto one spelling."""
    if not image_format:
        return "PNG"
    value = image_format.upper().lstrip(".")
    if value in ("JPG", "JPEG", "MPO"):
        return "JPEG"
    if value == "TIF":
        return "TIFF"
    return value if value in _EXTENSIONS else "PNG"


def is_lossy_format(image_format: str) -> bool:
    return normalize_format(image_format) in LOSSY_FORMATS


def resolve_output_format(source_format: Optional[str], lossless: bool) -> OutputFormat:
    """
    Pick the encoder for a processed image.

    Without the lossless override the source format is kept. With it, JPEG
    becomes PNG (JPEG has no lossless mode), WebP switches to lossless WebP,
    and GIF becomes PNG since GIF re-encoding quantizes colors.
    """
    fmt = normalize_format(source_format)
    if not lossless:
        return OutputFormat(fmt)
    if fmt == "WEBP":
        return OutputFormat("WEBP", lossless=True)
    if fmt in ("JPEG", "GIF"):
        return OutputFormat("PNG", lossless=True)
    return OutputFormat(fmt, lossless=True)


@with_error_handling
def decode_image(image_bytes: bytes) -> DecodedImage:
    """
    Decode image bytes into an RGB pixel array.

    Raises:
        MediaIOError: If the bytes are not a readable image
    """
    image_stream = io.BytesIO(image_bytes)
    image = Image.open(image_stream)
    image.load()
    source_format = normalize_format(image.format)

    alpha = None
    if image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        alpha = np.array(rgba.getchannel("A"))
        rgb = rgba.convert("RGB")
    else:
        rgb = image.convert("RGB")

    return DecodedImage(pixels=np.array(rgb), format=source_format, alpha=alpha)


def _save_options(output: OutputFormat) -> Dict[str, Any]:
    if output.format == "JPEG":
        return {"quality": 95}
    if output.format == "PNG":
        return {"compress_level": 9 if output.lossless else 6}
    if output.format == "WEBP":
        return {"lossless": True} if output.lossless else {"quality": 95}
    return {}


@with_error_handling
def encode_image(
    pixels: np.ndarray, output: OutputFormat, alpha: Optional[np.ndarray] = None
) -> bytes:
    """
    Encode an RGB pixel array with the selected encoder.

    The alpha channel is re-attached for formats that can store it.
    """
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise MediaIOError(f"Expected an RGB pixel array, got shape {pixels.shape}")

    image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    if alpha is not None and output.format in ("PNG", "WEBP", "TIFF"):
        image.putalpha(Image.fromarray(alpha))

    output_stream = io.BytesIO()
    image.save(output_stream, format=output.format, **_save_options(output))
    return output_stream.getvalue()


@with_error_handling
def read_image_size(image_bytes: bytes) -> Tuple[int, int, str]:
    """Return ``(width, height, format)`` without decoding the pixels."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        return image.width, image.height, normalize_format(image.format)


def to_data_url(data: bytes, image_format: str) -> str:
    """Inline preview of encoded image bytes."""
    mime_type = OutputFormat(normalize_format(image_format)).mime_type
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
