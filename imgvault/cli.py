"""Command-line interface for imgvault: ingest, list, and serve.

Environment variables (a .env file in the working directory is loaded first):
    IMAGES_ROOT: Directory whose subdirectories are categories (default: images)
    STORE_URI: mongodb://... or sqlite:///<path> (default: sqlite:///data/imgvault.db)
    DB_NAME: MongoDB database name (default: imgvault)
    BUCKET_NAME: GridFS bucket for image variants (default: images)
    METADATA_COLLECTION: MongoDB collection for metadata (default: imagesMeta)
    HOST / PORT: Read service bind address (default: 0.0.0.0 / 5001)
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .config import Settings
from .core.errors import StoreConnectionError
from .core.pipeline import IngestionPipeline
from .storage.connection import open_stores, redact_uri

logger = logging.getLogger("imgvault.cli")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def ingest(args, settings: Settings) -> int:
    """Ingest the category tree under the images root. Returns the exit status."""
    root = Path(args.root) if args.root else settings.images_root

    try:
        with open_stores(settings) as stores:
            print(f"Connected to store: {redact_uri(settings.store_uri)}")
            pipeline = IngestionPipeline(stores.blob_store, stores.index)
            entries = pipeline.walker.walk(root)

            with logging_redirect_tqdm():
                progress = tqdm(entries, desc="Ingesting", unit="img", disable=args.no_progress)
                report = pipeline.run(progress)
    except StoreConnectionError as e:
        print("\n*** FATAL CONNECTION ERROR ***", file=sys.stderr)
        print("Could not connect to the store. Check STORE_URI and network access.", file=sys.stderr)
        print(f"Raw Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Ingestion aborted")
        print("\nFATAL SCRIPT ERROR (Raw Message Below):", file=sys.stderr)
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print(f"\n*** COMPLETE: {report} ***")
    return 0


def list_records(args, settings: Settings) -> int:
    """List indexed records, newest first."""
    try:
        with open_stores(settings) as stores:
            records = stores.index.query(
                category=args.category,
                subcategory=args.subcategory,
                subsubcategory=args.subsubcategory,
                limit=args.limit,
            )
    except StoreConnectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not records:
        print("Index is empty")
        return 0

    print(f"{'Filename':<32} {'Category':<40} {'Dimensions':>12} {'Created':<12}")
    print("-" * 100)
    for r in records:
        path = " / ".join(p for p in (r.category, r.subcategory, r.subsubcategory) if p)
        dims = f"{r.width}x{r.height}" if r.width and r.height else "N/A"
        created = r.created_at.strftime("%Y-%m-%d") if r.created_at else "N/A"
        print(f"{r.filename[:32]:<32} {path[:40]:<40} {dims:>12} {created:<12}")
    print(f"\nTotal: {len(records)} record(s)")
    return 0


def serve(args, settings: Settings) -> int:
    """Run the read service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "imgvault.server.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="imgvault - ingest category-structured image trees and serve their variants",
        epilog="Environment variables: IMAGES_ROOT, STORE_URI, DB_NAME, BUCKET_NAME, METADATA_COLLECTION",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- ingest ---
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Encode, upload and index every image under the root",
    )
    ingest_parser.add_argument("root", nargs="?", help="Images root (default: $IMAGES_ROOT)")
    ingest_parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    ingest_parser.set_defaults(func=ingest)

    # --- list ---
    list_parser = subparsers.add_parser(
        "list",
        help="List indexed images, newest first",
    )
    list_parser.add_argument("--category", "-c", help="Filter by category")
    list_parser.add_argument("--subcategory", "-s", help="Filter by subcategory")
    list_parser.add_argument("--subsubcategory", "-S", help="Filter by sub-subcategory")
    list_parser.add_argument("--limit", "-n", type=int, default=None, help="Maximum records to show")
    list_parser.set_defaults(func=list_records)

    # --- serve ---
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the read service (metadata queries and file streaming)",
    )
    serve_parser.add_argument("--host", default=None, help="Host to bind to (default: $HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: $PORT or 5001)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=serve)

    return parser


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return args.func(args, Settings.from_env())


if __name__ == "__main__":
    sys.exit(main())
