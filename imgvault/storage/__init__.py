"""Storage layers - chunked blob store and metadata index."""

from .blob_store import BlobStore, GridFSBlobStore, SQLiteBlobStore
from .metadata_index import MetadataIndex, MongoMetadataIndex, SQLiteMetadataIndex

__all__ = [
    "BlobStore",
    "GridFSBlobStore",
    "SQLiteBlobStore",
    "MetadataIndex",
    "MongoMetadataIndex",
    "SQLiteMetadataIndex",
]
