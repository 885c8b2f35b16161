"""Utility helpers shared across zengin modules."""

from .logging import configure_logging, get_logger, log_timing

__all__ = [
    "configure_logging",
    "get_logger",
    "log_timing",
]
