"""Scoped acquisition of the blob store and metadata index handles."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..config import Settings
from ..core.errors import StoreConnectionError
from .blob_store import BlobStore, GridFSBlobStore, SQLiteBlobStore
from .metadata_index import MetadataIndex, MongoMetadataIndex, SQLiteMetadataIndex

logger = logging.getLogger(__name__)

SQLITE_SCHEME = "sqlite:///"
MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


class Stores(NamedTuple):
    blob_store: BlobStore
    index: MetadataIndex


def sqlite_path(uri: str) -> Path:
    """Extract the database path from a sqlite:///<path> URI."""
    path = uri[len(SQLITE_SCHEME):]
    if not path:
        raise StoreConnectionError(f"No database path in store URI: {uri}")
    return Path(path)


def redact_uri(uri: str) -> str:
    """Hide credentials in a connection URI for logging."""
    scheme, sep, rest = uri.partition("://")
    if "@" not in rest:
        return uri
    return f"{scheme}{sep}***@{rest.split('@', 1)[1]}"


@contextmanager
def open_stores(settings: Settings) -> Iterator[Stores]:
    """
    Open the blob store and metadata index named by settings.store_uri.

    The connection is established (or fails) before anything is yielded, and
    closed once when the block exits.

    Raises:
        StoreConnectionError: If the store cannot be reached or the URI is unsupported
    """
    uri = settings.store_uri

    if uri.startswith(SQLITE_SCHEME):
        path = sqlite_path(uri)
        try:
            stores = Stores(SQLiteBlobStore(path), SQLiteMetadataIndex(path))
        except (sqlite3.Error, OSError) as e:
            raise StoreConnectionError(f"Could not open SQLite store at {path}: {e}") from e
        logger.info("Using SQLite store at %s", path)
        yield stores
        return

    if not uri.startswith(MONGO_SCHEMES):
        raise StoreConnectionError(f"Unsupported store URI: {redact_uri(uri)}")

    try:
        client = MongoClient(
            uri,
            serverSelectionTimeoutMS=int(settings.server_selection_timeout * 1000),
            connectTimeoutMS=int(settings.connect_timeout * 1000),
            socketTimeoutMS=int(settings.socket_timeout * 1000),
            tz_aware=True,
        )
    except PyMongoError as e:
        raise StoreConnectionError(f"Invalid MongoDB URI {redact_uri(uri)}: {e}") from e

    try:
        try:
            client.admin.command("ping")
        except PyMongoError as e:
            raise StoreConnectionError(
                f"Could not connect to MongoDB at {redact_uri(uri)}: {e}"
            ) from e

        logger.info("Connected to MongoDB database %s", settings.db_name)
        db = client[settings.db_name]
        yield Stores(
            GridFSBlobStore(db, bucket_name=settings.bucket_name),
            MongoMetadataIndex(db, collection_name=settings.metadata_collection),
        )
    finally:
        client.close()
