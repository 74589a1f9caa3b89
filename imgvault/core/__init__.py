"""Core business logic - data models, tree walking, variant encoding."""

from .models import BlobRecord, CategoryEntry, ImageMetadataRecord, VariantSet
from .variants import VariantEncoder, encode_variants
from .walker import CategoryTreeWalker

__all__ = [
    "BlobRecord",
    "CategoryEntry",
    "ImageMetadataRecord",
    "VariantSet",
    "VariantEncoder",
    "encode_variants",
    "CategoryTreeWalker",
]
