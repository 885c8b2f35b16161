"""Sharding and concurrency policy models."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator

# Kana syllabary grouped by row; each character is one shard key.
DEFAULT_KEY_ROWS: tuple[str, ...] = (
    "あいうえお",
    "かきくけこ",
    "さしすせそ",
    "たちつてと",
    "なにぬねの",
    "はひふへほ",
    "まみむめも",
    "やゆよ",
    "らりるれろ",
    "わ",
)


def _check_alphabet(field_name: str, rows: List[str]) -> None:
    """Every character across ``rows`` is one search key and must occur once."""

    keys = "".join(row.strip() for row in rows)
    if not keys:
        raise ValueError(f"{field_name} must contain at least one search key")
    seen: set[str] = set()
    for key in keys:
        if key in seen:
            raise ValueError(f"{field_name} repeats search key {key!r}")
        seen.add(key)


class HarvestPolicy(BaseModel):
    """Controls how the remote catalog is sharded and fanned out."""

    key_rows: List[str] = Field(default_factory=lambda: list(DEFAULT_KEY_ROWS))
    branch_key_rows: List[str] | None = Field(
        default=None,
        description="Alphabet used to shard branch lookups; defaults to key_rows.",
    )
    shard_concurrency: int = Field(default=8, ge=1, le=64)
    institution_concurrency: int = Field(default=4, ge=1, le=32)
    max_inflight_requests: int = Field(default=64, ge=1)
    include_branches: bool = Field(default=True)

    @field_validator("key_rows", "branch_key_rows", mode="before")
    @classmethod
    def _split_rows(cls, value):
        if isinstance(value, str):
            return [segment for segment in value.split(",") if segment.strip()]
        return value

    @model_validator(mode="after")
    def _validate_bounds(self) -> "HarvestPolicy":
        _check_alphabet("key_rows", self.key_rows)
        if self.branch_key_rows is not None:
            _check_alphabet("branch_key_rows", self.branch_key_rows)
        inflight = self.shard_concurrency * self.institution_concurrency
        if inflight > self.max_inflight_requests:
            raise ValueError(
                "shard_concurrency * institution_concurrency "
                f"({inflight}) exceeds max_inflight_requests ({self.max_inflight_requests})"
            )
        return self

    @property
    def alphabet(self) -> str:
        return "".join(self.key_rows)

    @property
    def branch_alphabet(self) -> str:
        if self.branch_key_rows is None:
            return self.alphabet
        return "".join(self.branch_key_rows)
