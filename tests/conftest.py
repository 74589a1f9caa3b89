import io
from pathlib import Path

import pytest
from PIL import Image

from imgvault.storage.blob_store import SQLiteBlobStore
from imgvault.storage.metadata_index import SQLiteMetadataIndex


def make_image_bytes(width: int = 64, height: int = 48, fmt: str = "JPEG", color=(200, 40, 40)) -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 255)
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def write_image(path: Path, width: int = 64, height: int = 48, fmt: str = "JPEG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_image_bytes(width, height, fmt))
    return path


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "store" / "imgvault.db"


@pytest.fixture
def blob_store(db_path):
    return SQLiteBlobStore(db_path, chunk_size=1024)


@pytest.fixture
def index(db_path):
    return SQLiteMetadataIndex(db_path)


@pytest.fixture
def images_root(tmp_path):
    root = tmp_path / "images"
    root.mkdir()
    return root
