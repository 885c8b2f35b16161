"""Entity exports for the zengin harvester."""

from .core import Branch, Catalog, Institution, LiveInstitution, SearchKey

__all__ = [
    "Branch",
    "Catalog",
    "Institution",
    "LiveInstitution",
    "SearchKey",
]
