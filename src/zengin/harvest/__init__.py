"""Harvest package exports."""

from __future__ import annotations

import threading

from zengin.config.policies import Policies

from .aggregator import CatalogAggregator
from .client import NetworkError, RemoteQueryClient
from .keys import SearchKeySpace, default_key_space
from .models import HarvestReport, ShardBatch, ShardFailure
from .observability import MetricsCollector
from .parser import HtmlTableParser, ParsedTable, ParseError, RowParseError
from .scheduler import FanOutScheduler, ShardCancelled


def build_aggregator(
    policies: Policies,
    *,
    client: RemoteQueryClient | None = None,
    cancel_event: threading.Event | None = None,
) -> CatalogAggregator:
    """Construct a CatalogAggregator wired according to policy settings."""

    harvest = policies.harvest
    scheduler = FanOutScheduler(
        client or RemoteQueryClient(policies.service),
        HtmlTableParser(policies.service.markup),
        shard_concurrency=harvest.shard_concurrency,
        cancel_event=cancel_event,
    )
    return CatalogAggregator(
        scheduler,
        SearchKeySpace(harvest.key_rows),
        branch_key_space=SearchKeySpace.from_alphabet(harvest.branch_alphabet),
        institution_concurrency=harvest.institution_concurrency,
    )


__all__ = [
    "CatalogAggregator",
    "FanOutScheduler",
    "HarvestReport",
    "HtmlTableParser",
    "MetricsCollector",
    "NetworkError",
    "ParseError",
    "ParsedTable",
    "RemoteQueryClient",
    "RowParseError",
    "SearchKeySpace",
    "ShardBatch",
    "ShardCancelled",
    "ShardFailure",
    "build_aggregator",
    "default_key_space",
]
