"""Runtime settings read from the environment (and a .env file via the CLI)."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STORE_URI = "sqlite:///data/imgvault.db"


@dataclass
class Settings:
    """Settings for ingestion and the read service.

    Environment variables:
        IMAGES_ROOT: Directory whose subdirectories are categories (default: images)
        STORE_URI: mongodb://... or sqlite:///<path> (default: sqlite:///data/imgvault.db)
        DB_NAME: MongoDB database name (default: imgvault)
        BUCKET_NAME: GridFS bucket for image variants (default: images)
        METADATA_COLLECTION: MongoDB collection for metadata (default: imagesMeta)
        STORE_CONNECT_TIMEOUT: Connection timeout in seconds (default: 10)
        HOST / PORT: Read service bind address (default: 0.0.0.0 / 5001)
    """

    images_root: Path = Path("images")
    store_uri: str = DEFAULT_STORE_URI
    db_name: str = "imgvault"
    bucket_name: str = "images"
    metadata_collection: str = "imagesMeta"
    connect_timeout: float = 10.0
    server_selection_timeout: float = 5.0
    socket_timeout: float = 45.0
    host: str = "0.0.0.0"
    port: int = 5001

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ
        return cls(
            images_root=Path(env.get("IMAGES_ROOT", "images")),
            store_uri=env.get("STORE_URI", DEFAULT_STORE_URI),
            db_name=env.get("DB_NAME", "imgvault"),
            bucket_name=env.get("BUCKET_NAME", "images"),
            metadata_collection=env.get("METADATA_COLLECTION", "imagesMeta"),
            connect_timeout=float(env.get("STORE_CONNECT_TIMEOUT", 10.0)),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", 5001)),
        )
