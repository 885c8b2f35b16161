"""Command-line interface for the zengin harvester."""

from .main import app

__all__ = ["app"]
