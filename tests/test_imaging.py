from __future__ import annotations

from io import BytesIO
from unittest.mock import patch
import unittest

from PIL import Image

from fieldreport.media import (
    ImageProcessingError,
    compress_image,
    draw_markup,
    from_data_url,
    image_dimensions,
    optimal_quality,
    to_data_url,
)
from tests.support import make_jpeg


class OptimalQualityTests(unittest.TestCase):
    def test_quality_steps_down_with_pixel_count(self) -> None:
        self.assertEqual(optimal_quality(1001, 1000), 75)
        self.assertEqual(optimal_quality(1000, 1000), 80)
        self.assertEqual(optimal_quality(600, 500), 85)
        self.assertEqual(optimal_quality(500, 500), 90)


class CompressImageTests(unittest.TestCase):
    def test_downscales_longest_side_and_keeps_aspect_ratio(self) -> None:
        compressed = compress_image(make_jpeg(2000, 1000))

        self.assertEqual(compressed[:2], b"\xff\xd8")
        self.assertEqual(image_dimensions(compressed), (1024, 512))

    def test_respects_custom_max_dimension(self) -> None:
        compressed = compress_image(make_jpeg(600, 1200), max_dimension=512)

        self.assertEqual(image_dimensions(compressed), (256, 512))

    def test_small_images_are_not_upscaled(self) -> None:
        compressed = compress_image(make_jpeg(120, 80), max_dimension=512)

        self.assertEqual(image_dimensions(compressed), (120, 80))

    def test_transparent_png_is_flattened_to_jpeg(self) -> None:
        buff = BytesIO()
        Image.new("RGBA", (300, 200), (0, 128, 0, 100)).save(buff, format="PNG")

        compressed = compress_image(buff.getvalue(), max_dimension=150)

        with Image.open(BytesIO(compressed)) as image:
            self.assertEqual(image.format, "JPEG")
            self.assertEqual(image.mode, "RGB")
            self.assertEqual(image.size, (150, 100))

    def test_rejects_undecodable_bytes(self) -> None:
        with self.assertRaises(ImageProcessingError):
            compress_image(b"definitely not an image")

    def test_rejects_images_over_the_pixel_limit(self) -> None:
        with patch.object(Image, "MAX_IMAGE_PIXELS", 100):
            with self.assertRaises(ImageProcessingError):
                compress_image(make_jpeg())


class DataUrlTests(unittest.TestCase):
    def test_data_url_round_trip(self) -> None:
        payload = make_jpeg()
        url = to_data_url(payload, "image/jpeg")

        self.assertTrue(url.startswith("data:image/jpeg;base64,"))
        self.assertEqual(from_data_url(url), (payload, "image/jpeg"))

    def test_from_data_url_rejects_other_strings(self) -> None:
        with self.assertRaises(ValueError):
            from_data_url("https://example.com/photo.jpg")
        with self.assertRaises(ValueError):
            from_data_url("data:image/jpeg;base64,@@not-base64@@")


class DrawMarkupTests(unittest.TestCase):
    def test_draws_box_outline_on_photo(self) -> None:
        source = make_jpeg(100, 80, color=(255, 255, 255))

        rendered = draw_markup(source, boxes=[(50, 40, 10, 10)], width=6)

        with Image.open(BytesIO(rendered)) as image:
            self.assertEqual(image.size, (100, 80))
            red, green, blue = image.convert("RGB").getpixel((12, 25))
            center = image.convert("RGB").getpixel((30, 25))
        self.assertGreater(red, 180)
        self.assertLess(green, 120)
        self.assertLess(blue, 120)
        self.assertGreater(min(center), 220)

    def test_rejects_undecodable_bytes(self) -> None:
        with self.assertRaises(ImageProcessingError):
            draw_markup(b"nope", lines=[(0, 0, 5, 5)])


if __name__ == "__main__":
    unittest.main()
