"""Fixed alphabets of search keys used to shard remote lookups."""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from zengin.config.policies import DEFAULT_KEY_ROWS
from zengin.entities.core import SearchKey


class SearchKeySpace:
    """Ordered, finite and restartable sequence of single-character search keys.

    Every call to :meth:`__iter__` starts a fresh pass, so the same space can
    shard the institution list and then each institution's branch list.
    """

    def __init__(self, rows: Sequence[str] | str = DEFAULT_KEY_ROWS) -> None:
        if isinstance(rows, str):
            rows = (rows,)
        cleaned = tuple(row for row in (r.strip() for r in rows) if row)
        seen: set[str] = set()
        for key in "".join(cleaned):
            if key in seen:
                raise ValueError(f"Duplicate search key {key!r}")
            seen.add(key)
        if not seen:
            raise ValueError("A search key space needs at least one key")
        self._rows = cleaned

    @classmethod
    def from_alphabet(cls, alphabet: str) -> "SearchKeySpace":
        return cls((alphabet,))

    @property
    def rows(self) -> tuple[str, ...]:
        return self._rows

    @property
    def alphabet(self) -> str:
        return "".join(self._rows)

    def __iter__(self) -> Iterator[SearchKey]:
        for row in self._rows:
            yield from row

    def __len__(self) -> int:
        return len(self.alphabet)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and len(key) == 1 and key in self.alphabet

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SearchKeySpace):
            return self.alphabet == other.alphabet
        return NotImplemented

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"SearchKeySpace({self.alphabet!r})"

    def subset(self, keys: Iterable[str]) -> "SearchKeySpace":
        """Return the keys of ``keys`` that belong to this space, in space order."""

        wanted = set("".join(keys))
        unknown = wanted.difference(self.alphabet)
        if unknown:
            raise ValueError(f"Keys outside the search space: {''.join(sorted(unknown))}")
        rows = ["".join(key for key in row if key in wanted) for row in self._rows]
        return SearchKeySpace(rows)


def default_key_space() -> SearchKeySpace:
    return SearchKeySpace(DEFAULT_KEY_ROWS)


__all__ = ["SearchKeySpace", "default_key_space"]
