"""Counters and timings collected while harvesting."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from statistics import mean
from typing import DefaultDict, Dict, List

from zengin.utils.logging import get_logger


@dataclass
class MetricsCollector:
    """Accumulates counters and timings for one harvest run.

    Only the aggregating thread records into a collector; worker threads hand
    their outcomes back through futures.
    """

    scope: str
    _counters: Counter = field(default_factory=Counter)
    _timings: DefaultDict[str, List[float]] = field(default_factory=lambda: defaultdict(list))
    _logger = get_logger(component="harvest_metrics")

    def increment(self, metric: str, amount: int = 1) -> None:
        self._counters[metric] += amount

    def record_timing(self, metric: str, seconds: float) -> None:
        self._timings[metric].append(seconds)

    def record_shard(self, *, records: int, rejected_rows: int = 0) -> None:
        self.increment("shards_succeeded")
        self.increment("records", records)
        if rejected_rows:
            self.increment("rows_rejected", rejected_rows)

    def record_failure(self, error_type: str) -> None:
        self.increment(f"error::{error_type}")
        self.increment("shards_failed")

    def finalize(self) -> Dict[str, float | int | str]:
        summary: Dict[str, float | int | str] = dict(self._counters)
        for name, values in self._timings.items():
            summary[f"{name}_avg"] = mean(values)
            summary[f"{name}_max"] = max(values)
            summary[f"{name}_min"] = min(values)
        summary["finalized_at"] = datetime.now(timezone.utc).isoformat()
        self._logger.info("Harvest metrics finalized", scope=self.scope, metrics=summary)
        return summary


__all__ = ["MetricsCollector"]
