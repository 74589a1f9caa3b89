"""FastAPI read service: metadata queries and variant streaming."""
import logging
from contextlib import ExitStack, asynccontextmanager
from typing import Iterator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from ..config import Settings
from ..core.errors import BlobNotFoundError, BlobStreamError, InvalidBlobId
from ..storage.blob_store import DEFAULT_CONTENT_TYPE, BlobStore
from ..storage.connection import open_stores
from ..storage.metadata_index import MetadataIndex
from .schemas import HealthResponse, ImageMetadataOut

logger = logging.getLogger(__name__)

# Stored variants never change under an id
CACHE_CONTROL = "public, max-age=31536000, immutable"


def _guarded(file_id: str, chunks: Iterator[bytes]) -> Iterator[bytes]:
    try:
        yield from chunks
    except BlobStreamError:
        logger.exception("Blob stream error for %s", file_id)
        raise


def create_app(
    blob_store: Optional[BlobStore] = None,
    index: Optional[MetadataIndex] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the read service.

    Args:
        blob_store: Blob store to serve from. Opened from settings if omitted.
        index: Metadata index to query. Opened from settings if omitted.
        settings: Connection settings (default: Settings.from_env())
    """

    # -----------------------------------------------------------------------
    # Lifespan
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        with ExitStack() as stack:
            if blob_store is None or index is None:
                stores = stack.enter_context(open_stores(settings or Settings.from_env()))
                app.state.blob_store = blob_store or stores.blob_store
                app.state.index = index or stores.index
            else:
                app.state.blob_store = blob_store
                app.state.index = index
            yield

    app = FastAPI(
        title="imgvault read service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse()

    @app.get("/api/metadata", response_model=list[ImageMetadataOut])
    def list_metadata(
        request: Request,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        subsubcategory: Optional[str] = None,
        limit: Optional[int] = Query(None, ge=1),
    ):
        records = request.app.state.index.query(
            category=category,
            subcategory=subcategory,
            subsubcategory=subsubcategory,
            limit=limit,
        )
        return [ImageMetadataOut.from_record(r) for r in records]

    @app.get("/api/file/{file_id}")
    def get_file(file_id: str, request: Request):
        store: BlobStore = request.app.state.blob_store
        try:
            record = store.get(file_id)
        except InvalidBlobId:
            raise HTTPException(400, detail="bad id")
        if record is None:
            raise HTTPException(404, detail="file not found")

        try:
            chunks = store.open_stream(file_id)
        except BlobNotFoundError:
            raise HTTPException(404, detail="file not found")
        except BlobStreamError as e:
            logger.error("Could not open blob %s: %s", file_id, e)
            raise HTTPException(500, detail="stream error")

        return StreamingResponse(
            _guarded(file_id, chunks),
            media_type=record.content_type or DEFAULT_CONTENT_TYPE,
            headers={"Cache-Control": CACHE_CONTROL},
        )

    return app
