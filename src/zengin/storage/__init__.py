"""Catalog persistence."""

from .json_store import CatalogIOError, FormatError, JsonCatalogStore

__all__ = ["CatalogIOError", "FormatError", "JsonCatalogStore"]
