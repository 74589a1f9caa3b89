"""Data models for ingested images, their variants and stored blobs."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple, Optional

_IMAGE_SUFFIX_RE = re.compile(r"\.(jpg|jpeg|png|webp)$", re.IGNORECASE)


def alt_text_for(filename: str) -> str:
    """Derive human-readable alt text from a filename by dropping its image extension."""
    return _IMAGE_SUFFIX_RE.sub("", filename)


class CategoryEntry(NamedTuple):
    """One discovered image file and its position in the category tree."""

    path: Path
    category: str
    subcategory: Optional[str] = None
    subsubcategory: Optional[str] = None

    def describe(self) -> str:
        parts = [self.category, self.subcategory or "(none)"]
        if self.subsubcategory:
            parts.append(self.subsubcategory)
        return " -> ".join(parts)


@dataclass
class VariantSet:
    """The three derived variants of one source image plus its original metadata."""

    thumbnail: bytes
    full: bytes
    placeholder: str  # data URL, stored inline
    original_width: Optional[int] = None
    original_height: Optional[int] = None
    original_format: Optional[str] = None


@dataclass
class BlobRecord:
    """A stored blob as reported by the blob store after a completed write."""

    id: str
    filename: str
    length: int
    upload_date: datetime
    content_type: str
    tags: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "length": self.length,
            "uploadDate": self.upload_date.isoformat(),
            "contentType": self.content_type,
            "tags": dict(self.tags),
        }


@dataclass
class ImageMetadataRecord:
    """Represents the metadata document stored for one ingested image."""

    filename: str
    alt: str
    category: str
    thumbnail_id: str
    full_id: str
    lqip: str
    subcategory: Optional[str] = None
    subsubcategory: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None  # assigned by the index

    def to_document(self) -> dict:
        """Render the record in the index's document shape (without ``_id``)."""
        return {
            "filename": self.filename,
            "alt": self.alt,
            "category": self.category,
            "subcategory": self.subcategory,
            "subsubcategory": self.subsubcategory,
            "variants": {
                "thumbnailId": self.thumbnail_id,
                "fullId": self.full_id,
            },
            "lqip": self.lqip,
            "original": {
                "width": self.width,
                "height": self.height,
                "format": self.format,
            },
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "ImageMetadataRecord":
        variants = doc.get("variants") or {}
        original = doc.get("original") or {}
        created_at = doc.get("createdAt")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if created_at is not None and created_at.tzinfo is None:
            # BSON dates are UTC; clients without tz_aware return them naive
            created_at = created_at.replace(tzinfo=timezone.utc)
        record_id = doc.get("_id")
        return cls(
            filename=doc["filename"],
            alt=doc.get("alt", alt_text_for(doc["filename"])),
            category=doc["category"],
            subcategory=doc.get("subcategory"),
            subsubcategory=doc.get("subsubcategory"),
            thumbnail_id=str(variants["thumbnailId"]),
            full_id=str(variants["fullId"]),
            lqip=doc.get("lqip", ""),
            width=original.get("width"),
            height=original.get("height"),
            format=original.get("format"),
            created_at=created_at,
            id=str(record_id) if record_id is not None else None,
        )
