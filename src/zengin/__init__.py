"""Top-level package for the zengin catalog harvester."""

from __future__ import annotations

from importlib.metadata import version

try:
    __version__ = version("zengin")
except Exception:  # pragma: no cover - fallback during local development
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import Branch, Catalog, Institution, LiveInstitution

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Branch",
    "Catalog",
    "Institution",
    "LiveInstitution",
]
