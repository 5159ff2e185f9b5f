"""Pillow-based compression, encoding and markup utilities."""

from __future__ import annotations

from base64 import b64decode, b64encode
from io import BytesIO
from typing import TypeAlias
import binascii
import re

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError


Box: TypeAlias = tuple[int, int, int, int]
Line: TypeAlias = tuple[int, int, int, int]
Color: TypeAlias = tuple[int, int, int]
DEFAULT_MAX_DIMENSION = 1024
MARKUP_COLOR: Color = (255, 0, 0)
DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[^;,]+)?(?:;base64)?,(?P<data>.*)$", re.DOTALL)


class ImageProcessingError(Exception):
    """Raised when image bytes cannot be decoded or re-encoded."""


def optimal_quality(width: int, height: int) -> int:
    """Pick a JPEG quality from the final pixel count."""
    pixels = width * height
    if pixels > 1_000_000:
        return 75
    if pixels > 500_000:
        return 80
    if pixels > 250_000:
        return 85
    return 90


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageProcessingError(f"Unable to decode image: {exc}") from exc
    return ImageOps.exif_transpose(image)


def image_dimensions(data: bytes) -> tuple[int, int]:
    """Return (width, height) of encoded image bytes."""
    with _open(data) as image:
        return image.size


def compress_image(
    data: bytes,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int | None = None,
) -> bytes:
    """Downscale to fit ``max_dimension`` keeping aspect ratio; return JPEG bytes."""
    with _open(data) as image:
        rgb = image.convert("RGB")
        rgb.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        width, height = rgb.size
        buff = BytesIO()
        rgb.save(
            buff,
            format="JPEG",
            quality=quality if quality is not None else optimal_quality(width, height),
            optimize=True,
        )
        return buff.getvalue()


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{b64encode(data).decode('ascii')}"


def from_data_url(data_url: str) -> tuple[bytes, str]:
    """Decode a base64 data URL into (bytes, mime type)."""
    match = DATA_URL_PATTERN.match(data_url)
    if not match:
        raise ValueError("Not a data URL")
    try:
        payload = b64decode(match.group("data"), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return payload, match.group("mime") or "image/jpeg"


def draw_markup(
    data: bytes,
    boxes: list[Box] | None = None,
    lines: list[Line] | None = None,
    color: Color = MARKUP_COLOR,
    width: int = 4,
) -> bytes:
    """Render rectangles and lines onto a photo and return JPEG bytes."""
    with _open(data) as image:
        canvas = image.convert("RGB")
        draw = ImageDraw.Draw(canvas)
        for x1, y1, x2, y2 in boxes or []:
            draw.rectangle(((min(x1, x2), min(y1, y2)), (max(x1, x2), max(y1, y2))), outline=color, width=width)
        for x1, y1, x2, y2 in lines or []:
            draw.line(((x1, y1), (x2, y2)), fill=color, width=width)

        buff = BytesIO()
        canvas.save(buff, format="JPEG", quality=92)
        return buff.getvalue()
