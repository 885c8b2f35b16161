"""Positional extraction of result rows from the service's HTML tables.

The layout is dictated by the remote service: a result table whose body rows
hold name, phonetic reading and code in the first three cells, plus (for the
institution list only) a button carrying the branch query token. Any change to
that markup must be caught by the fixture tests in ``tests/test_parser.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, List, Sequence, TypeVar

from bs4 import BeautifulSoup
from bs4.element import Tag
from pydantic import ValidationError

from zengin.config.policies import MarkupMarkers
from zengin.entities.core import Branch, LiveInstitution
from zengin.utils.logging import get_logger

T = TypeVar("T")


class ParseError(Exception):
    """Raised when a response does not contain the expected result table."""

    error_type = "parse"


class RowParseError(ParseError):
    """Raised for a single row whose cells do not match the expected shape."""

    error_type = "row"

    def __init__(self, row_index: int, message: str) -> None:
        super().__init__(f"row {row_index}: {message}")
        self.row_index = row_index


@dataclass
class ParsedTable(Generic[T]):
    """Records extracted from one response plus the rows that were rejected."""

    records: List[T] = field(default_factory=list)
    rejected: List[RowParseError] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


def _cell_text(cells: Sequence[Tag], index: int, row_index: int, label: str) -> str:
    if index >= len(cells):
        raise RowParseError(row_index, f"missing {label} cell (index {index})")
    return cells[index].get_text(strip=True)


def _token_value(cells: Sequence[Tag], row_index: int) -> str:
    if len(cells) < 4:
        raise RowParseError(row_index, "missing query token cell (index 3)")
    control = cells[3].find("button", attrs={"value": True}) or cells[3].find("input", attrs={"value": True})
    if control is None:
        raise RowParseError(row_index, "query token cell has no element with a value attribute")
    value = str(control.get("value", "")).strip()
    if not value:
        raise RowParseError(row_index, "query token is empty")
    return value


class HtmlTableParser:
    """Extracts ordered flat records from result tables."""

    def __init__(self, markup: MarkupMarkers | None = None) -> None:
        self.markup = markup or MarkupMarkers()
        self._logger = get_logger(component="html_parser")

    def is_sentinel(self, row: Tag) -> bool:
        return row.get_text(strip=True) == self.markup.empty_result_sentinel

    def parse_institutions(self, html: str) -> ParsedTable[LiveInstitution]:
        scope = f".{self.markup.institution_table_class}"

        def build(cells: Sequence[Tag], row_index: int) -> LiveInstitution:
            return LiveInstitution(
                name=_cell_text(cells, 0, row_index, "name"),
                phonetic=_cell_text(cells, 1, row_index, "phonetic"),
                code=_cell_text(cells, 2, row_index, "code"),
                query_token=_token_value(cells, row_index),
            )

        return self._parse(html, f"table{scope}, {scope} table", build)

    def parse_branches(self, html: str) -> ParsedTable[Branch]:
        def build(cells: Sequence[Tag], row_index: int) -> Branch:
            return Branch(
                name=_cell_text(cells, 0, row_index, "name"),
                phonetic=_cell_text(cells, 1, row_index, "phonetic"),
                code=_cell_text(cells, 2, row_index, "code"),
            )

        return self._parse(html, "table", build)

    def _parse(
        self,
        html: str,
        table_selector: str,
        build: Callable[[Sequence[Tag], int], T],
    ) -> ParsedTable[T]:
        soup = BeautifulSoup(html, "html.parser")
        rows = self._result_rows(soup, table_selector)

        table: ParsedTable[T] = ParsedTable()
        for row_index, row in enumerate(rows, start=1):
            if not row.get_text(strip=True) or self.is_sentinel(row):
                continue
            cells = row.find_all(["td", "th"], recursive=False)
            try:
                table.records.append(build(cells, row_index))
            except RowParseError as exc:
                table.rejected.append(exc)
            except ValidationError as exc:
                table.rejected.append(RowParseError(row_index, f"invalid values: {exc.error_count()} error(s)"))
        for rejected in table.rejected:
            self._logger.warning("Skipped malformed row", detail=str(rejected))
        return table

    @staticmethod
    def _result_rows(soup: BeautifulSoup, table_selector: str) -> List[Tag]:
        """Body rows of every table matching ``table_selector``, in document order.

        ``html.parser`` does not insert the implied ``<tbody>``, so a table
        written without one contributes its direct ``<tr>`` children instead.
        Rows under ``<thead>`` are never included.
        """

        tables = soup.select(table_selector)
        if not tables:
            raise ParseError(f"No result table matched selector {table_selector!r}")
        rows: List[Tag] = []
        for element in tables:
            bodies = element.find_all("tbody", recursive=False)
            if bodies:
                rows.extend(row for body in bodies for row in body.find_all("tr"))
            else:
                rows.extend(element.find_all("tr", recursive=False))
        return rows


__all__ = ["HtmlTableParser", "ParseError", "ParsedTable", "RowParseError"]
