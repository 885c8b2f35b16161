"""Result containers returned by the fan-out and aggregation layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Generic, List, Sequence, TypeVar

from pydantic import BaseModel, Field

from zengin.entities.core import Catalog, LiveInstitution, SearchKey

T = TypeVar("T")


class ShardFailure(BaseModel):
    """Structured record of a shard that produced no result."""

    key: SearchKey = Field(..., min_length=1, max_length=1)
    error_type: str = Field(..., min_length=1)
    detail: str = Field(..., min_length=1)
    scope: str | None = Field(default=None, description="Institution code for branch shards")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ShardBatch(Generic[T]):
    """Partial result of one fan-out: surviving records plus failed shards."""

    keys: Sequence[SearchKey]
    succeeded: List[T] = field(default_factory=list)
    failures: List[ShardFailure] = field(default_factory=list)
    rejected_rows: int = 0

    @property
    def failed_keys(self) -> List[SearchKey]:
        return [failure.key for failure in self.failures]

    @property
    def shards_total(self) -> int:
        return len(self.keys)

    @property
    def shards_succeeded(self) -> int:
        return self.shards_total - len(self.failures)

    @property
    def complete(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return f"succeeded with {self.shards_succeeded} of {self.shards_total} shards"


@dataclass
class HarvestReport:
    """Outcome of a full two-phase harvest."""

    catalog: Catalog[LiveInstitution]
    institution_batch: ShardBatch[LiveInstitution]
    branch_batches: Dict[str, ShardBatch] = field(default_factory=dict)
    metrics: Dict[str, int | float | str | List[str]] = field(default_factory=dict)

    @property
    def shards_total(self) -> int:
        return self.institution_batch.shards_total + sum(b.shards_total for b in self.branch_batches.values())

    @property
    def shards_succeeded(self) -> int:
        return self.institution_batch.shards_succeeded + sum(
            b.shards_succeeded for b in self.branch_batches.values()
        )

    @property
    def failures(self) -> List[ShardFailure]:
        collected = list(self.institution_batch.failures)
        for batch in self.branch_batches.values():
            collected.extend(batch.failures)
        return collected

    @property
    def complete(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return f"succeeded with {self.shards_succeeded} of {self.shards_total} shards"


__all__ = ["HarvestReport", "ShardBatch", "ShardFailure"]
