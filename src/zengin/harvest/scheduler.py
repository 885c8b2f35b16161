"""Concurrent fan-out of one fetch-and-parse task per search key."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from time import perf_counter
from typing import Callable, Iterable, Tuple, TypeVar

from zengin.entities.core import Branch, LiveInstitution, SearchKey
from zengin.utils.logging import get_logger

from .client import NetworkError, RemoteQueryClient
from .models import ShardBatch, ShardFailure
from .observability import MetricsCollector
from .parser import HtmlTableParser, ParsedTable, ParseError

T = TypeVar("T")


class ShardCancelled(Exception):
    """Raised inside a shard task that was not started before cancellation."""

    error_type = "cancelled"


class FanOutScheduler:
    """Runs one shard task per key on a bounded thread pool and joins them all.

    A failing shard never cancels its siblings and never raises to the caller;
    it is recorded in the returned :class:`ShardBatch`. Records are flattened
    in completion order, which differs between runs.
    """

    def __init__(
        self,
        client: RemoteQueryClient,
        parser: HtmlTableParser,
        *,
        shard_concurrency: int = 8,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if shard_concurrency < 1:
            raise ValueError("shard_concurrency must be at least 1")
        self.client = client
        self.parser = parser
        self.shard_concurrency = shard_concurrency
        self.cancel_event = cancel_event or threading.Event()
        self._logger = get_logger(component="fan_out")

    def cancel(self) -> None:
        """Stop starting new shards; shards already in flight run to completion."""

        self.cancel_event.set()

    def fetch_all_institutions(
        self,
        keys: Iterable[SearchKey],
        *,
        metrics: MetricsCollector | None = None,
    ) -> ShardBatch[LiveInstitution]:
        def task(key: SearchKey) -> ParsedTable[LiveInstitution]:
            return self.parser.parse_institutions(self.client.fetch_institution_page(key))

        return self._fan_out(keys, task, scope=None, metrics=metrics)

    def fetch_all_branches(
        self,
        institution: LiveInstitution,
        keys: Iterable[SearchKey],
        *,
        metrics: MetricsCollector | None = None,
    ) -> ShardBatch[Branch]:
        def task(key: SearchKey) -> ParsedTable[Branch]:
            return self.parser.parse_branches(self.client.fetch_branch_page(institution, key))

        return self._fan_out(keys, task, scope=institution.code, metrics=metrics)

    def _run_shard(
        self,
        task: Callable[[SearchKey], ParsedTable[T]],
        key: SearchKey,
    ) -> Tuple[ParsedTable[T], float]:
        if self.cancel_event.is_set():
            raise ShardCancelled("harvest cancelled before shard started")
        started = perf_counter()
        table = task(key)
        return table, perf_counter() - started

    def _fan_out(
        self,
        keys: Iterable[SearchKey],
        task: Callable[[SearchKey], ParsedTable[T]],
        *,
        scope: str | None,
        metrics: MetricsCollector | None,
    ) -> ShardBatch[T]:
        key_list = list(keys)
        batch: ShardBatch[T] = ShardBatch(keys=tuple(key_list))
        if not key_list:
            return batch

        workers = min(self.shard_concurrency, len(key_list))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="zengin-shard") as executor:
            futures = {executor.submit(self._run_shard, task, key): key for key in key_list}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    table, seconds = future.result()
                except (NetworkError, ParseError, ShardCancelled) as exc:
                    self._record_failure(batch, key, exc.error_type, str(exc), scope, metrics)
                    continue
                except Exception as exc:  # pragma: no cover - defensive catch
                    self._logger.exception("Unexpected shard error", key=key, scope=scope)
                    self._record_failure(batch, key, "unexpected", repr(exc), scope, metrics)
                    continue

                batch.succeeded.extend(table.records)
                batch.rejected_rows += len(table.rejected)
                if metrics is not None:
                    metrics.record_shard(records=len(table.records), rejected_rows=len(table.rejected))
                    metrics.record_timing("shard_seconds", seconds)

        self._logger.debug(
            "Fan-out joined",
            scope=scope,
            shards=batch.shards_total,
            failed=len(batch.failures),
            records=len(batch.succeeded),
        )
        return batch

    def _record_failure(
        self,
        batch: ShardBatch,
        key: SearchKey,
        error_type: str,
        detail: str,
        scope: str | None,
        metrics: MetricsCollector | None,
    ) -> None:
        failure = ShardFailure(key=key, error_type=error_type, detail=detail or error_type, scope=scope)
        batch.failures.append(failure)
        if metrics is not None:
            metrics.record_failure(error_type)
        self._logger.warning(
            "Shard dropped",
            key=key,
            scope=scope,
            error_type=error_type,
            detail=detail,
        )


__all__ = ["FanOutScheduler", "ShardCancelled"]
