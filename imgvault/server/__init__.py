"""Read service - metadata queries and variant streaming."""

from .app import create_app

__all__ = ["create_app"]
