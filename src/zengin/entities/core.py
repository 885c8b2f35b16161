"""Core domain entities for the harvested institution catalog."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

SearchKey = str


class Branch(BaseModel):
    """A branch office listed under exactly one institution."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name of the branch")
    phonetic: str = Field(..., description="Half-width katakana reading")
    code: str = Field(..., min_length=1, description="Branch code, unique only within its institution")

    @field_validator("name", "phonetic", "code")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()


class Institution(BaseModel):
    """Persisted representation of an institution.

    Carries no query token; instances are produced either by loading a saved
    catalog or by :meth:`LiveInstitution.to_persisted`.
    """

    name: str
    phonetic: str
    code: str = Field(..., min_length=1)
    branches: List[Branch] = Field(default_factory=list)

    @field_validator("name", "phonetic", "code")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()


class LiveInstitution(BaseModel):
    """In-memory institution returned by the list endpoint.

    ``query_token`` is the opaque value replayed to the branch endpoint. It only
    lives for the duration of a harvest and never reaches storage.
    """

    name: str
    phonetic: str
    code: str = Field(..., min_length=1)
    query_token: str = Field(..., min_length=1)
    branches: List[Branch] = Field(default_factory=list)

    @field_validator("name", "phonetic", "code")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()

    def to_persisted(self) -> Institution:
        return Institution(
            name=self.name,
            phonetic=self.phonetic,
            code=self.code,
            branches=list(self.branches),
        )


InstitutionT = TypeVar("InstitutionT", Institution, LiveInstitution)


class Catalog(Mapping[str, InstitutionT]):
    """Mapping of institution code to institution with one entry per code.

    Later inserts with an existing code replace the earlier entry wholesale.
    """

    def __init__(self, institutions: Iterable[InstitutionT] = ()) -> None:
        self._entries: Dict[str, InstitutionT] = {}
        for institution in institutions:
            self.insert(institution)

    def insert(self, institution: InstitutionT) -> InstitutionT | None:
        """Insert ``institution`` and return the entry it replaced, if any."""

        previous = self._entries.get(institution.code)
        self._entries[institution.code] = institution
        return previous

    def __getitem__(self, code: str) -> InstitutionT:
        return self._entries[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Catalog):
            return self._entries == other._entries
        return NotImplemented

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Catalog(codes={sorted(self._entries)!r})"

    def branch_count(self) -> int:
        return sum(len(entry.branches) for entry in self._entries.values())

    def to_persisted(self) -> "Catalog[Institution]":
        persisted: Catalog[Institution] = Catalog()
        for entry in self._entries.values():
            persisted.insert(entry.to_persisted() if isinstance(entry, LiveInstitution) else entry)
        return persisted


__all__ = [
    "Branch",
    "Catalog",
    "Institution",
    "InstitutionT",
    "LiveInstitution",
    "SearchKey",
]
