"""Ingestion orchestration: walk, encode, upload, and index each image in order."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .errors import UnreadableFileError
from .models import CategoryEntry, ImageMetadataRecord, alt_text_for
from .variants import VARIANT_MIMETYPE, VariantEncoder
from .walker import CategoryTreeWalker
from ..storage.blob_store import BlobStore
from ..storage.metadata_index import MetadataIndex

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Per-file processing stages, in order.

    A file ends in DONE, or in SKIPPED_UNREADABLE when READING fails. Any other
    failure leaves the stage at the step that raised.
    """

    READING = "reading"
    DECODING = "decoding"
    ENCODING_VARIANTS = "encoding variants"
    UPLOADING_THUMBNAIL = "uploading thumbnail"
    UPLOADING_FULL = "uploading full"
    PERSISTING_METADATA = "persisting metadata"
    DONE = "done"
    SKIPPED_UNREADABLE = "skipped unreadable"


@dataclass
class IngestReport:
    """Outcome of an ingestion run."""

    ingested: list[str] = field(default_factory=list)  # metadata record ids
    skipped: list[str] = field(default_factory=list)  # unreadable file paths

    @property
    def processed_count(self) -> int:
        return len(self.ingested)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def __str__(self) -> str:
        return f"Ingested {self.processed_count} image(s), skipped {self.skipped_count} unreadable file(s)"


class IngestionPipeline:
    """Sequentially ingests discovered images into a blob store and metadata index.

    Only unreadable source files are skipped. Any later failure (decode,
    upload, index write) propagates and ends the run; blobs already uploaded
    for the failing file are left in the store unreferenced.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        index: MetadataIndex,
        walker: Optional[CategoryTreeWalker] = None,
        encoder: Optional[VariantEncoder] = None,
    ):
        self.blob_store = blob_store
        self.index = index
        self.walker = walker or CategoryTreeWalker()
        self.encoder = encoder or VariantEncoder()
        self.stage: Optional[Stage] = None  # of the file being, or last, processed

    @staticmethod
    def read_source(path: Path) -> bytes:
        """Read a source file, raising UnreadableFileError on any OS-level failure."""
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise UnreadableFileError(path, e.strerror or str(e)) from e

    @staticmethod
    def blob_tags(entry: CategoryEntry, variant: str) -> dict:
        return {
            "category": entry.category,
            "subcategory": entry.subcategory,
            "subsubcategory": entry.subsubcategory,
            "variant": variant,
        }

    def process_file(self, entry: CategoryEntry) -> Optional[str]:
        """
        Ingest one image file.

        Args:
            entry: Discovered file and its category path

        Returns:
            The inserted metadata record id, or None if the file was unreadable
            and skipped

        Raises:
            DecodeError, UploadError, IndexWriteError: Propagated unchanged
        """
        filename = entry.path.name
        self.stage = Stage.READING
        try:
            source = self.read_source(entry.path)
        except UnreadableFileError as e:
            self.stage = Stage.SKIPPED_UNREADABLE
            logger.error("FAILED: Could not read file %s. Skipping. (%s)", filename, e.reason)
            return None

        try:
            self.stage = Stage.DECODING
            image = self.encoder.decode(source)
            del source

            self.stage = Stage.ENCODING_VARIANTS
            variants = self.encoder.encode(image)
            del image

            self.stage = Stage.UPLOADING_THUMBNAIL
            thumb = self.blob_store.upload(
                variants.thumbnail,
                f"{filename}-thumb.webp",
                self.blob_tags(entry, "thumbnail"),
                VARIANT_MIMETYPE,
            )

            self.stage = Stage.UPLOADING_FULL
            full = self.blob_store.upload(
                variants.full,
                f"{filename}-full.webp",
                self.blob_tags(entry, "full"),
                VARIANT_MIMETYPE,
            )

            self.stage = Stage.PERSISTING_METADATA
            record = ImageMetadataRecord(
                filename=filename,
                alt=alt_text_for(filename),
                category=entry.category,
                subcategory=entry.subcategory,
                subsubcategory=entry.subsubcategory,
                thumbnail_id=thumb.id,
                full_id=full.id,
                lqip=variants.placeholder,
                width=variants.original_width,
                height=variants.original_height,
                format=variants.original_format,
                created_at=datetime.now(timezone.utc),
            )
            record_id = self.index.insert(record)
        except Exception:
            logger.error("Aborting at %s while %s", entry.path, self.stage.value)
            raise

        self.stage = Stage.DONE
        logger.info("Success: %s inserted (%s)", filename, entry.describe())
        return record_id

    def run(self, entries: Iterable[CategoryEntry]) -> IngestReport:
        """Process entries in order, stopping at the first non-read failure."""
        report = IngestReport()
        for entry in entries:
            logger.info("Processing %s -> %s", entry.path.name, entry.describe())
            record_id = self.process_file(entry)
            if record_id is None:
                report.skipped.append(str(entry.path))
            else:
                report.ingested.append(record_id)
        return report

    def ingest_tree(self, root: str | Path) -> IngestReport:
        """Walk root and ingest every discovered image."""
        return self.run(self.walker.walk(root))
