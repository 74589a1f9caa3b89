"""Chunked blob storage for image variants.

Two backends share one interface:

    SQLiteBlobStore   chunks in a local SQLite database
    GridFSBlobStore   MongoDB GridFS bucket (files + chunks collections)

A write either returns a BlobRecord carrying the store-assigned id, after the
last chunk is flushed, or raises UploadError. Chunks left behind by a failed
write are the store's concern, not the caller's.
"""

import json
import logging
import re
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from bson import ObjectId
from gridfs import GridFSBucket, GridIn
from gridfs.errors import NoFile
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..core.errors import BlobNotFoundError, BlobStreamError, InvalidBlobId, UploadError
from ..core.models import BlobRecord

logger = logging.getLogger(__name__)

# Same default as GridFS
DEFAULT_CHUNK_SIZE = 255 * 1024
DEFAULT_CONTENT_TYPE = "image/webp"


def iter_chunks(data: bytes, chunk_size: int) -> Iterator[bytes]:
    """Split a buffer into chunk_size slices."""
    view = memoryview(data)
    for offset in range(0, len(view), chunk_size):
        yield bytes(view[offset:offset + chunk_size])


class BlobStore(ABC):
    """Interface for a chunked binary object store addressed by opaque ids."""

    @abstractmethod
    def upload(
        self,
        data: bytes,
        filename: str,
        tags: Optional[dict] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> BlobRecord:  # pragma: no cover - interface
        """Write data as a new blob and return its record once fully flushed.

        Raises:
            UploadError: If any part of the write fails, or the write
                completes without an identifier
        """
        raise NotImplementedError

    @abstractmethod
    def parse_id(self, raw: str):  # pragma: no cover - interface
        """Validate an id string, returning the backend key. Raises InvalidBlobId."""
        raise NotImplementedError

    @abstractmethod
    def get(self, blob_id: str) -> Optional[BlobRecord]:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def open_stream(self, blob_id: str) -> Iterator[bytes]:  # pragma: no cover - interface
        """Return an iterator over the blob's chunks.

        Raises:
            InvalidBlobId: If blob_id is malformed
            BlobNotFoundError: If no blob matches
            BlobStreamError: If reading faults
        """
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def exists(self, blob_id: str) -> bool:
        try:
            return self.get(blob_id) is not None
        except InvalidBlobId:
            return False

    def read_bytes(self, blob_id: str) -> bytes:
        """Read a whole blob into memory."""
        return b"".join(self.open_stream(blob_id))

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

_SQLITE_ID_RE = re.compile(r"[0-9a-f]{32}")


class SQLiteBlobStore(BlobStore):
    """Stores blobs as fixed-size chunks in SQLite."""

    def __init__(self, db_path: str | Path = "data/imgvault.db", chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        self._init_db()

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Create the blob tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS blob_files (
                    id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    length INTEGER NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    content_type TEXT NOT NULL,
                    upload_date TEXT NOT NULL,
                    tags TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS blob_chunks (
                    blob_id TEXT NOT NULL,
                    n INTEGER NOT NULL,
                    data BLOB NOT NULL,
                    PRIMARY KEY (blob_id, n)
                )
            """)

    def parse_id(self, raw: str) -> str:
        if not isinstance(raw, str) or not _SQLITE_ID_RE.fullmatch(raw):
            raise InvalidBlobId(f"Malformed blob id: {raw!r}")
        return raw

    def upload(
        self,
        data: bytes,
        filename: str,
        tags: Optional[dict] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> BlobRecord:
        blob_id = uuid.uuid4().hex
        upload_date = datetime.now(timezone.utc)
        tags = dict(tags or {})

        try:
            with self._connect() as conn:
                # Chunks first, file row last: a blob is visible only once complete
                conn.executemany(
                    "INSERT INTO blob_chunks (blob_id, n, data) VALUES (?, ?, ?)",
                    ((blob_id, n, chunk) for n, chunk in enumerate(iter_chunks(data, self.chunk_size))),
                )
                conn.execute("""
                    INSERT INTO blob_files (id, filename, length, chunk_size, content_type, upload_date, tags)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    blob_id,
                    filename,
                    len(data),
                    self.chunk_size,
                    content_type,
                    upload_date.isoformat(),
                    json.dumps(tags),
                ))
            record = self.get(blob_id)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise UploadError(f"Upload of {filename} failed: {e}") from e

        if record is None:
            raise UploadError(f"Upload of {filename} finished without returning file metadata")
        logger.debug("Stored blob %s (%s, %d bytes)", blob_id, filename, record.length)
        return record

    def _row_to_record(self, row) -> BlobRecord:
        return BlobRecord(
            id=row[0],
            filename=row[1],
            length=row[2],
            content_type=row[3],
            upload_date=datetime.fromisoformat(row[4]),
            tags=json.loads(row[5]),
        )

    def get(self, blob_id: str) -> Optional[BlobRecord]:
        blob_id = self.parse_id(blob_id)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, filename, length, content_type, upload_date, tags FROM blob_files WHERE id = ?",
                (blob_id,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def open_stream(self, blob_id: str) -> Iterator[bytes]:
        record = self.get(blob_id)
        if record is None:
            raise BlobNotFoundError(f"No blob with id {blob_id}")
        try:
            with self._connect() as conn:
                n_chunks = conn.execute(
                    "SELECT COUNT(*) FROM blob_chunks WHERE blob_id = ?", (blob_id,)
                ).fetchone()[0]
        except sqlite3.Error as e:
            raise BlobStreamError(f"Opening blob {blob_id} failed: {e}") from e
        return self._stream_chunks(blob_id, n_chunks)

    def _stream_chunks(self, blob_id: str, n_chunks: int) -> Iterator[bytes]:
        # One connection per chunk: consumers may resume the iterator from another thread
        for n in range(n_chunks):
            try:
                with self._connect() as conn:
                    row = conn.execute(
                        "SELECT data FROM blob_chunks WHERE blob_id = ? AND n = ?",
                        (blob_id, n),
                    ).fetchone()
            except sqlite3.Error as e:
                raise BlobStreamError(f"Reading blob {blob_id} failed: {e}") from e
            if row is None:
                raise BlobStreamError(f"Blob {blob_id} is missing chunk {n}")
            yield bytes(row[0])

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM blob_files").fetchone()[0]

    def list_all(self) -> list[BlobRecord]:
        """List every stored blob, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, filename, length, content_type, upload_date, tags FROM blob_files ORDER BY rowid"
            ).fetchall()
        return [self._row_to_record(row) for row in rows]


# ---------------------------------------------------------------------------
# GridFS backend
# ---------------------------------------------------------------------------

class GridFSBlobStore(BlobStore):
    """Stores blobs in a MongoDB GridFS bucket."""

    def __init__(
        self,
        database: Database,
        bucket_name: str = "images",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.database = database
        self.bucket_name = bucket_name
        self.chunk_size = chunk_size
        self.files = database[f"{bucket_name}.files"]
        self._bucket: Optional[GridFSBucket] = None

    @property
    def bucket(self) -> GridFSBucket:
        if self._bucket is None:
            self._bucket = GridFSBucket(self.database, bucket_name=self.bucket_name, chunk_size_bytes=self.chunk_size)
        return self._bucket

    def parse_id(self, raw: str) -> ObjectId:
        if isinstance(raw, ObjectId):
            return raw
        if not isinstance(raw, str) or not ObjectId.is_valid(raw):
            raise InvalidBlobId(f"Malformed blob id: {raw!r}")
        return ObjectId(raw)

    def upload(
        self,
        data: bytes,
        filename: str,
        tags: Optional[dict] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> BlobRecord:
        tags = dict(tags or {})
        try:
            upload_stream = GridIn(
                self.database[self.bucket_name],
                filename=filename,
                contentType=content_type,
                metadata=tags,
                chunkSize=self.chunk_size,
            )
        except PyMongoError as e:
            raise UploadError(f"Upload of {filename} failed: {e}") from e

        try:
            for chunk in iter_chunks(data, self.chunk_size):
                upload_stream.write(chunk)
            upload_stream.close()
        except Exception as e:
            try:
                upload_stream.abort()
            except PyMongoError:
                logger.warning("Could not abort partial upload of %s", filename, exc_info=True)
            raise UploadError(f"Upload of {filename} failed: {e}") from e

        file_id = getattr(upload_stream, "_id", None)
        if not upload_stream.closed or file_id is None:
            raise UploadError(f"GridFS upload finished without returning file metadata for {filename}.")

        logger.debug("Stored blob %s (%s, %d bytes)", file_id, filename, len(data))
        return BlobRecord(
            id=str(file_id),
            filename=filename,
            length=upload_stream.length,
            upload_date=upload_stream.upload_date,
            content_type=content_type,
            tags=tags,
        )

    def get(self, blob_id: str) -> Optional[BlobRecord]:
        oid = self.parse_id(blob_id)
        doc = self.files.find_one({"_id": oid})
        if doc is None:
            return None
        return BlobRecord(
            id=str(doc["_id"]),
            filename=doc.get("filename", ""),
            length=doc.get("length", 0),
            upload_date=doc.get("uploadDate"),
            content_type=doc.get("contentType") or DEFAULT_CONTENT_TYPE,
            tags=doc.get("metadata") or {},
        )

    def open_stream(self, blob_id: str) -> Iterator[bytes]:
        oid = self.parse_id(blob_id)
        try:
            download_stream = self.bucket.open_download_stream(oid)
        except NoFile as e:
            raise BlobNotFoundError(f"No blob with id {blob_id}") from e
        except PyMongoError as e:
            raise BlobStreamError(f"Opening blob {blob_id} failed: {e}") from e
        return self._stream_chunks(blob_id, download_stream)

    @staticmethod
    def _stream_chunks(blob_id: str, download_stream) -> Iterator[bytes]:
        try:
            while True:
                chunk = download_stream.readchunk()
                if not chunk:
                    break
                yield chunk
        except PyMongoError as e:
            raise BlobStreamError(f"Reading blob {blob_id} failed: {e}") from e
        finally:
            download_stream.close()

    def count(self) -> int:
        return self.files.count_documents({})
