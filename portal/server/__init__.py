"""In-memory reference backend for the maker/checker portal."""

from .main import create_app

__all__ = ["create_app"]
