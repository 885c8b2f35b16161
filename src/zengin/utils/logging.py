"""Centralised logging configuration built on loguru."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from loguru import logger

from ..config.settings import Settings, get_settings

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[run_id]}</cyan> | "
    "<magenta>{extra[phase]}</magenta> | "
    "{message}"
)


def configure_logging(settings: Settings | None = None, level: str = "INFO", *, run_id: str = "-") -> None:
    """Initialise loguru sinks according to the active settings."""

    cfg = settings or get_settings()
    log_path = cfg.log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=_LOG_FORMAT,
    )
    logger.add(
        log_path,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        format=_LOG_FORMAT,
        level=level,
    )
    logger.configure(extra={"run_id": run_id, "phase": "-"})


def get_logger(**context: Any):
    """Return a contextualised logger instance."""

    return logger.bind(**context)


@contextmanager
def log_timing(phase: str, *, logger_=logger):
    """Log the elapsed wall time of a block."""

    start = perf_counter()
    try:
        yield
    finally:
        logger_.info("Phase timing", phase=phase, seconds=round(perf_counter() - start, 3))


__all__ = ["configure_logging", "get_logger", "log_timing"]
