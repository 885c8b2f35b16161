"""Configuration utilities for the zengin harvester."""

from .policies import (
    HarvestPolicy,
    MarkupMarkers,
    Policies,
    RemoteServicePolicy,
    load_policies,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "Policies",
    "load_policies",
    "HarvestPolicy",
    "MarkupMarkers",
    "RemoteServicePolicy",
]
