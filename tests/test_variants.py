import base64
import io

import pytest
from PIL import Image

from imgvault.core.errors import DecodeError
from imgvault.core.variants import (
    VariantEncoder,
    encode_variants,
    format_data_url,
    resize_to_width,
)

from conftest import make_image_bytes


def _size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "WEBP"
        return img.size


@pytest.mark.parametrize(
    "width,height",
    [(2400, 1200), (1000, 800), (600, 600), (300, 200), (20, 10)],
)
def test_variant_widths_respect_limits_without_upscaling(width, height):
    variants = encode_variants(make_image_bytes(width, height))

    thumb_w, _ = _size(variants.thumbnail)
    full_w, _ = _size(variants.full)

    assert thumb_w <= 600
    assert full_w <= 1600
    assert thumb_w <= full_w
    assert thumb_w <= width
    assert full_w <= width


def test_large_image_is_downscaled_with_aspect_ratio():
    variants = encode_variants(make_image_bytes(3200, 1600))

    assert _size(variants.thumbnail) == (600, 300)
    assert _size(variants.full) == (1600, 800)


def test_original_metadata_is_reported():
    variants = encode_variants(make_image_bytes(640, 480, "PNG"))

    assert variants.original_width == 640
    assert variants.original_height == 480
    assert variants.original_format == "png"


def test_placeholder_is_tiny_webp_data_url():
    variants = encode_variants(make_image_bytes(800, 400))

    prefix = "data:image/webp;base64,"
    assert variants.placeholder.startswith(prefix)
    payload = base64.b64decode(variants.placeholder[len(prefix):])
    assert _size(payload) == (20, 10)


def test_webp_source_is_accepted():
    variants = encode_variants(make_image_bytes(120, 90, "WEBP"))
    assert variants.original_format == "webp"


def test_palette_image_is_converted():
    img = Image.new("P", (50, 50))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    variants = encode_variants(buffer.getvalue())
    assert _size(variants.full) == (50, 50)


def test_corrupt_buffer_raises_decode_error():
    with pytest.raises(DecodeError):
        encode_variants(b"definitely not an image")


def test_truncated_jpeg_raises_decode_error():
    data = make_image_bytes(200, 200)
    with pytest.raises(DecodeError):
        encode_variants(data[: len(data) // 3])


def test_unaccepted_format_raises_decode_error():
    img = Image.new("RGB", (10, 10))
    buffer = io.BytesIO()
    img.save(buffer, format="GIF")

    with pytest.raises(DecodeError):
        VariantEncoder().decode(buffer.getvalue())


def test_resize_to_width_never_upscales_by_default():
    img = Image.new("RGB", (100, 50))
    assert resize_to_width(img, 600) is img
    assert resize_to_width(img, 200, allow_upscale=True).size == (200, 100)


def test_resize_keeps_height_at_least_one_pixel():
    img = Image.new("RGB", (4000, 10))
    assert resize_to_width(img, 20).size == (20, 1)


def test_format_data_url():
    assert format_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"
