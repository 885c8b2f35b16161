"""Keyed merge of fetched institutions and their branches."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Mapping

from zengin.entities.core import Branch, Catalog, InstitutionT, LiveInstitution, SearchKey
from zengin.utils.logging import get_logger, log_timing

from .keys import SearchKeySpace
from .models import HarvestReport, ShardBatch
from .observability import MetricsCollector
from .scheduler import FanOutScheduler


class CatalogAggregator:
    """Builds a catalog from the two fan-out phases.

    Branch lookups are fanned out across institutions on an outer pool of
    ``institution_concurrency`` workers, each driving an inner pool of the
    scheduler's ``shard_concurrency`` workers. At most
    ``institution_concurrency * shard_concurrency`` requests are in flight at
    once. Results are attached on the calling thread only.
    """

    def __init__(
        self,
        scheduler: FanOutScheduler,
        key_space: SearchKeySpace,
        *,
        branch_key_space: SearchKeySpace | None = None,
        institution_concurrency: int = 4,
    ) -> None:
        if institution_concurrency < 1:
            raise ValueError("institution_concurrency must be at least 1")
        self.scheduler = scheduler
        self.key_space = key_space
        self.branch_key_space = branch_key_space or key_space
        self.institution_concurrency = institution_concurrency
        self._logger = get_logger(component="aggregator")

    @property
    def max_inflight_requests(self) -> int:
        return self.institution_concurrency * self.scheduler.shard_concurrency

    def merge(self, institutions: Iterable[InstitutionT] | Mapping[str, InstitutionT]) -> Catalog[InstitutionT]:
        """Insert each institution by code; a later duplicate replaces the earlier one."""

        if isinstance(institutions, Mapping):
            institutions = institutions.values()
        catalog: Catalog[InstitutionT] = Catalog()
        for institution in institutions:
            replaced = catalog.insert(institution)
            if replaced is not None and replaced is not institution:
                self._logger.debug("Duplicate institution code overwritten", code=institution.code)
        return catalog

    def attach_branches(self, institution: InstitutionT, branches: Iterable[Branch]) -> InstitutionT:
        """Replace the institution's branch list wholesale."""

        institution.branches = list(branches)
        return institution

    def compose_full_catalog(
        self,
        keys: Iterable[SearchKey] | None = None,
        branch_keys: Iterable[SearchKey] | None = None,
        *,
        include_branches: bool = True,
    ) -> HarvestReport:
        metrics = MetricsCollector(scope="harvest")
        institution_keys = self.key_space if keys is None else keys
        per_institution_keys = self.branch_key_space if branch_keys is None else tuple(branch_keys)

        with log_timing("institutions", logger_=self._logger):
            institution_batch = self.scheduler.fetch_all_institutions(institution_keys, metrics=metrics)
        catalog: Catalog[LiveInstitution] = self.merge(institution_batch.succeeded)
        metrics.increment("institutions", len(catalog))
        self._logger.info(
            "Institution phase finished",
            institutions=len(catalog),
            outcome=institution_batch.summary(),
        )

        branch_batches: Dict[str, ShardBatch[Branch]] = {}
        if include_branches and len(catalog):
            with log_timing("branches", logger_=self._logger):
                branch_batches = self._fetch_branches(catalog, per_institution_keys, metrics)

        report = HarvestReport(
            catalog=catalog,
            institution_batch=institution_batch,
            branch_batches=branch_batches,
        )
        report.metrics = metrics.finalize()
        self._logger.info("Harvest finished", outcome=report.summary(), branches=catalog.branch_count())
        return report

    def _fetch_branches(
        self,
        catalog: Catalog[LiveInstitution],
        keys: Iterable[SearchKey],
        metrics: MetricsCollector,
    ) -> Dict[str, ShardBatch[Branch]]:
        batches: Dict[str, ShardBatch[Branch]] = {}
        workers = min(self.institution_concurrency, len(catalog))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="zengin-institution") as executor:
            futures = {
                executor.submit(self.scheduler.fetch_all_branches, institution, keys): code
                for code, institution in catalog.items()
            }
            for future in as_completed(futures):
                code = futures[future]
                batch = future.result()
                self.attach_branches(catalog[code], batch.succeeded)
                batches[code] = batch
                metrics.increment("branches", len(batch.succeeded))
                metrics.increment("branch_shards_succeeded", batch.shards_succeeded)
                if batch.failures:
                    metrics.increment("branch_shards_failed", len(batch.failures))
                if batch.rejected_rows:
                    metrics.increment("rows_rejected", batch.rejected_rows)
        return batches


__all__ = ["CatalogAggregator"]
