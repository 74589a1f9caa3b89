"""imgvault - Ingest category-structured image trees into a blob store and metadata index.

Package structure:
    imgvault/
    ├── cli.py              # Command-line interface (ingest, list, serve)
    ├── config.py           # Settings from environment
    ├── core/               # Core business logic
    │   ├── models.py       # Data models (CategoryEntry, BlobRecord, ImageMetadataRecord)
    │   ├── walker.py       # Category tree discovery
    │   ├── variants.py     # Thumbnail / full / placeholder encoding
    │   └── pipeline.py     # Ingestion orchestration
    ├── storage/            # Data persistence
    │   ├── blob_store.py   # Chunked blob storage (SQLite, GridFS)
    │   ├── metadata_index.py # Metadata documents (SQLite, MongoDB)
    │   └── connection.py   # Store connection from a URI
    └── server/             # Read service
        └── app.py          # FastAPI app: metadata queries, file streaming
"""

from .config import Settings
from .core.errors import (
    BlobNotFoundError,
    BlobStreamError,
    DecodeError,
    ImgVaultError,
    IndexWriteError,
    InvalidBlobId,
    StoreConnectionError,
    UnreadableFileError,
    UploadError,
)
from .core.models import BlobRecord, CategoryEntry, ImageMetadataRecord, VariantSet
from .core.variants import VariantEncoder, encode_variants
from .core.walker import CategoryTreeWalker
from .storage.blob_store import BlobStore, GridFSBlobStore, SQLiteBlobStore
from .storage.metadata_index import MetadataIndex, MongoMetadataIndex, SQLiteMetadataIndex
from .storage.connection import Stores, open_stores
from .core.pipeline import IngestionPipeline, IngestReport

__all__ = [
    "Settings",
    # Errors
    "ImgVaultError",
    "UnreadableFileError",
    "DecodeError",
    "UploadError",
    "IndexWriteError",
    "StoreConnectionError",
    "InvalidBlobId",
    "BlobNotFoundError",
    "BlobStreamError",
    # Core
    "BlobRecord",
    "CategoryEntry",
    "ImageMetadataRecord",
    "VariantSet",
    "VariantEncoder",
    "encode_variants",
    "CategoryTreeWalker",
    "IngestionPipeline",
    "IngestReport",
    # Storage
    "BlobStore",
    "SQLiteBlobStore",
    "GridFSBlobStore",
    "MetadataIndex",
    "SQLiteMetadataIndex",
    "MongoMetadataIndex",
    "Stores",
    "open_stores",
]
