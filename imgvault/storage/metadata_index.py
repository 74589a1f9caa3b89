"""Metadata index for ingested images (SQLite or MongoDB)."""

import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from bson import ObjectId
from bson.errors import BSONError
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..core.errors import IndexWriteError
from ..core.models import ImageMetadataRecord


class MetadataIndex(ABC):
    """Document store holding one record per ingested source image."""

    @abstractmethod
    def insert(self, record: ImageMetadataRecord) -> str:  # pragma: no cover - interface
        """Insert a record and return its generated id. Raises IndexWriteError."""
        raise NotImplementedError

    @abstractmethod
    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        subsubcategory: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ImageMetadataRecord]:  # pragma: no cover - interface
        """Return records matching every given filter, newest first."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        pass


def _filters(category, subcategory, subsubcategory) -> dict:
    filters = {}
    if category:
        filters["category"] = category
    if subcategory:
        filters["subcategory"] = subcategory
    if subsubcategory:
        filters["subsubcategory"] = subsubcategory
    return filters


class SQLiteMetadataIndex(MetadataIndex):
    """Manages image metadata storage in SQLite."""

    _COLUMNS = (
        "id, filename, alt, category, subcategory, subsubcategory, "
        "thumbnail_id, full_id, lqip, width, height, format, created_at"
    )

    def __init__(self, db_path: str | Path = "data/imgvault.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
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
        """Create the metadata table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS images_meta (
                    id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    alt TEXT NOT NULL,
                    category TEXT NOT NULL,
                    subcategory TEXT,
                    subsubcategory TEXT,
                    thumbnail_id TEXT NOT NULL,
                    full_id TEXT NOT NULL,
                    lqip TEXT NOT NULL,
                    width INTEGER,
                    height INTEGER,
                    format TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_images_meta_category "
                "ON images_meta (category, subcategory, subsubcategory)"
            )

    def insert(self, record: ImageMetadataRecord) -> str:
        record_id = uuid.uuid4().hex
        created_at = record.created_at or datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                conn.execute(f"""
                    INSERT INTO images_meta ({self._COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record_id,
                    record.filename,
                    record.alt,
                    record.category,
                    record.subcategory,
                    record.subsubcategory,
                    record.thumbnail_id,
                    record.full_id,
                    record.lqip,
                    record.width,
                    record.height,
                    record.format,
                    created_at.isoformat(),
                ))
        except sqlite3.Error as e:
            raise IndexWriteError(f"Could not insert metadata for {record.filename}: {e}") from e
        return record_id

    def _row_to_record(self, row) -> ImageMetadataRecord:
        return ImageMetadataRecord(
            id=row[0],
            filename=row[1],
            alt=row[2],
            category=row[3],
            subcategory=row[4],
            subsubcategory=row[5],
            thumbnail_id=row[6],
            full_id=row[7],
            lqip=row[8],
            width=row[9],
            height=row[10],
            format=row[11],
            created_at=datetime.fromisoformat(row[12]),
        )

    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        subsubcategory: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ImageMetadataRecord]:
        filters = _filters(category, subcategory, subsubcategory)
        sql = f"SELECT {self._COLUMNS} FROM images_meta"
        params: list = []
        if filters:
            sql += " WHERE " + " AND ".join(f"{column} = ?" for column in filters)
            params.extend(filters.values())
        sql += " ORDER BY created_at DESC, rowid DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM images_meta").fetchone()[0]


class MongoMetadataIndex(MetadataIndex):
    """Stores metadata documents in a MongoDB collection."""

    def __init__(self, database: Database, collection_name: str = "imagesMeta"):
        self.collection = database[collection_name]

    @staticmethod
    def _to_object_id(value: str):
        # Blob ids from GridFS are kept as ObjectIds so they join with <bucket>.files
        return ObjectId(value) if ObjectId.is_valid(value) else value

    def insert(self, record: ImageMetadataRecord) -> str:
        doc = record.to_document()
        if doc["createdAt"] is None:
            doc["createdAt"] = datetime.now(timezone.utc)
        doc["variants"] = {
            "thumbnailId": self._to_object_id(record.thumbnail_id),
            "fullId": self._to_object_id(record.full_id),
        }
        try:
            result = self.collection.insert_one(doc)
        except (PyMongoError, BSONError) as e:
            raise IndexWriteError(f"Could not insert metadata for {record.filename}: {e}") from e
        return str(result.inserted_id)

    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        subsubcategory: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[ImageMetadataRecord]:
        cursor = self.collection.find(_filters(category, subcategory, subsubcategory))
        cursor = cursor.sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        if limit:
            cursor = cursor.limit(limit)
        return [ImageMetadataRecord.from_document(doc) for doc in cursor]

    def count(self) -> int:
        return self.collection.count_documents({})
