from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId

from imgvault.core.errors import IndexWriteError
from imgvault.core.models import ImageMetadataRecord, alt_text_for
from imgvault.storage.metadata_index import MongoMetadataIndex, SQLiteMetadataIndex

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_record(filename="a.jpg", category="Ribbons", subcategory=None, subsubcategory=None,
                minutes=0, thumbnail_id=None, full_id=None):
    return ImageMetadataRecord(
        filename=filename,
        alt=alt_text_for(filename),
        category=category,
        subcategory=subcategory,
        subsubcategory=subsubcategory,
        thumbnail_id=thumbnail_id or str(ObjectId()),
        full_id=full_id or str(ObjectId()),
        lqip="data:image/webp;base64,AAAA",
        width=640,
        height=480,
        format="jpeg",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture(params=["sqlite", "mongo"])
def any_index(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteMetadataIndex(tmp_path / "meta.db")
    return MongoMetadataIndex(mongomock.MongoClient().db, collection_name="imagesMeta")


def test_insert_returns_id_and_round_trips(any_index):
    record = make_record("Blue Velvet.JPG", subcategory="Velvet")

    record_id = any_index.insert(record)
    [stored] = any_index.query()

    assert stored.id == record_id
    assert stored.filename == "Blue Velvet.JPG"
    assert stored.alt == "Blue Velvet"
    assert stored.category == "Ribbons"
    assert stored.subcategory == "Velvet"
    assert stored.subsubcategory is None
    assert stored.thumbnail_id == record.thumbnail_id
    assert stored.full_id == record.full_id
    assert (stored.width, stored.height, stored.format) == (640, 480, "jpeg")
    assert stored.lqip == record.lqip
    assert stored.created_at == BASE_TIME
    assert stored.created_at.utcoffset() == timedelta(0)


def test_query_filters_by_category_hierarchy(any_index):
    any_index.insert(make_record("a.jpg", "Ribbons", "Velvet"))
    any_index.insert(make_record("b.jpg", "Ribbons", "Satin", "Cotton"))
    any_index.insert(make_record("c.jpg", "Buttons"))

    assert {r.filename for r in any_index.query(category="Ribbons")} == {"a.jpg", "b.jpg"}
    assert [r.filename for r in any_index.query(category="Ribbons", subcategory="Satin")] == ["b.jpg"]
    assert [r.filename for r in any_index.query(subsubcategory="Cotton")] == ["b.jpg"]
    assert any_index.query(category="Lace") == []


def test_query_is_newest_first_with_limit(any_index):
    any_index.insert(make_record("old.jpg", minutes=0))
    any_index.insert(make_record("new.jpg", minutes=10))
    any_index.insert(make_record("mid.jpg", minutes=5))

    assert [r.filename for r in any_index.query()] == ["new.jpg", "mid.jpg", "old.jpg"]
    assert [r.filename for r in any_index.query(limit=2)] == ["new.jpg", "mid.jpg"]
    assert any_index.count() == 3


def test_mongo_stores_variant_ids_as_object_ids():
    db = mongomock.MongoClient().db
    index = MongoMetadataIndex(db)
    record = make_record()

    index.insert(record)
    doc = db.imagesMeta.find_one()

    assert doc["variants"]["thumbnailId"] == ObjectId(record.thumbnail_id)
    assert doc["variants"]["fullId"] == ObjectId(record.full_id)
    assert doc["subsubcategory"] is None
    assert doc["original"] == {"width": 640, "height": 480, "format": "jpeg"}


def test_sqlite_write_failure_raises_index_write_error(tmp_path):
    index = SQLiteMetadataIndex(tmp_path / "meta.db")
    record = make_record()
    record.category = None  # violates NOT NULL

    with pytest.raises(IndexWriteError):
        index.insert(record)
    assert index.count() == 0


def test_alt_text_strips_only_image_extensions():
    assert alt_text_for("photo.jpeg") == "photo"
    assert alt_text_for("photo.PNG") == "photo"
    assert alt_text_for("archive.tar.gz") == "archive.tar.gz"


def test_naive_bson_dates_are_read_as_utc():
    db = mongomock.MongoClient().db
    doc = make_record().to_document()
    doc["createdAt"] = datetime(2024, 5, 1, 12, 0)
    db.imagesMeta.insert_one(doc)

    [stored] = MongoMetadataIndex(db).query()

    assert stored.created_at == BASE_TIME
