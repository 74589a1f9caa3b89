"""Derivation of the thumbnail, full and placeholder variants of an image.

Each source image is re-encoded as WebP three times:

    thumbnail    width <= 600 px, never upscaled, quality 75   (stored as a blob)
    full         width <= 1600 px, never upscaled, quality 82  (stored as a blob)
    placeholder  width 20 px, blurred, quality 30              (inline data URL)
"""

import base64
import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageFilter, UnidentifiedImageError

from .errors import DecodeError
from .models import VariantSet

# Codecs accepted when decoding source buffers
ACCEPTED_FORMATS = ("JPEG", "PNG", "WEBP")

VARIANT_MIMETYPE = "image/webp"


@dataclass(frozen=True)
class VariantPolicy:
    """Resize and re-encode settings for one variant."""

    width: int
    quality: int
    allow_upscale: bool = False
    blur_radius: Optional[float] = None


THUMBNAIL_POLICY = VariantPolicy(width=600, quality=75)
FULL_POLICY = VariantPolicy(width=1600, quality=82)
PLACEHOLDER_POLICY = VariantPolicy(width=20, quality=30, allow_upscale=True, blur_radius=1)


def resize_to_width(
    img: Image.Image,
    width: int,
    allow_upscale: bool = False,
) -> Image.Image:
    """Resize an image to the target width, preserving aspect ratio.

    Args:
        img: PIL Image object
        width: Target width in pixels
        allow_upscale: If False, images narrower than width are returned unchanged

    Returns:
        PIL Image object (resized if necessary, original otherwise)
    """
    src_width, src_height = img.size

    if src_width == width or (src_width < width and not allow_upscale):
        return img

    new_height = max(1, round(src_height * width / src_width))
    return img.resize((width, new_height), Image.Resampling.LANCZOS)


def format_data_url(data: bytes, mimetype: str = VARIANT_MIMETYPE) -> str:
    """Format raw bytes as a base64 data URL: data:<mimetype>;base64,{data}"""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mimetype};base64,{payload}"


def _webp_compatible(img: Image.Image) -> Image.Image:
    """Convert to a mode the WebP encoder accepts."""
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def encode_variant(img: Image.Image, policy: VariantPolicy) -> bytes:
    """Resize, optionally blur, and re-encode an image as WebP."""
    out = resize_to_width(img, policy.width, allow_upscale=policy.allow_upscale)
    if policy.blur_radius:
        out = out.filter(ImageFilter.GaussianBlur(policy.blur_radius))

    buffer = io.BytesIO()
    out.save(buffer, format="WEBP", quality=policy.quality)
    return buffer.getvalue()


def decode_image(data: bytes) -> Image.Image:
    """Decode a source buffer, raising DecodeError if it is not an accepted image."""
    try:
        img = Image.open(io.BytesIO(data), formats=ACCEPTED_FORMATS)
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Not a decodable image: {e}") from e
    return img


class VariantEncoder:
    """Derives the thumbnail, full and placeholder variants of a source image."""

    thumbnail_policy = THUMBNAIL_POLICY
    full_policy = FULL_POLICY
    placeholder_policy = PLACEHOLDER_POLICY

    def decode(self, data: bytes) -> Image.Image:
        return decode_image(data)

    def encode(self, img: Image.Image) -> VariantSet:
        """Encode all three variants of a decoded image."""
        original_format = img.format.lower() if img.format else None
        width, height = img.size

        img = _webp_compatible(img)

        return VariantSet(
            thumbnail=encode_variant(img, self.thumbnail_policy),
            full=encode_variant(img, self.full_policy),
            placeholder=format_data_url(encode_variant(img, self.placeholder_policy)),
            original_width=width or None,
            original_height=height or None,
            original_format=original_format,
        )


def encode_variants(data: bytes) -> VariantSet:
    """Derive all three variants from one source image buffer.

    Args:
        data: Raw image bytes (JPEG, PNG or WebP)

    Returns:
        VariantSet with thumbnail and full WebP bytes, the placeholder data URL
        and the original width/height/format

    Raises:
        DecodeError: If the buffer cannot be decoded
    """
    encoder = VariantEncoder()
    return encoder.encode(encoder.decode(data))
