"""Pydantic schemas for read service responses."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import ImageMetadataRecord


class VariantRefs(BaseModel):
    """Blob ids of the stored variants."""
    thumbnailId: str
    fullId: str


class OriginalInfo(BaseModel):
    """Dimensions and format of the source image."""
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None


class ImageMetadataOut(BaseModel):
    """One metadata record as served to clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    filename: str
    alt: str
    category: str
    subcategory: Optional[str] = None
    subsubcategory: Optional[str] = None
    variants: VariantRefs
    lqip: str
    original: OriginalInfo
    createdAt: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ImageMetadataRecord) -> "ImageMetadataOut":
        doc = record.to_document()
        doc["_id"] = record.id
        return cls.model_validate(doc)


class HealthResponse(BaseModel):
    status: str = "ok"
