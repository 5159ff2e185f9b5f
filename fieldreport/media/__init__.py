"""Image compression and markup helpers."""

from .imaging import (
    Box,
    ImageProcessingError,
    Line,
    compress_image,
    draw_markup,
    from_data_url,
    image_dimensions,
    optimal_quality,
    to_data_url,
)

__all__ = [
    "Box",
    "ImageProcessingError",
    "Line",
    "compress_image",
    "draw_markup",
    "from_data_url",
    "image_dimensions",
    "optimal_quality",
    "to_data_url",
]
