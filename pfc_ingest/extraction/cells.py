"""Typed spreadsheet cells and grids.

Every raw value read from a workbook is converted once, at the parsing
boundary, into one of four cell variants:

- ``NumberCell``: a finite numeric value
- ``TextCell``: a non-blank string, kept verbatim (line breaks included)
- ``DateCell``: a calendar date (spreadsheet date-formatted cells)
- ``EmptyCell``: blank, NaN or missing

Downstream heuristics dispatch on the variant and use the ``as_text`` /
``as_number`` views rather than inspecting raw Python types.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterator, Union

from pfc_ingest.core.utils.parsing import parse_numeric_value


@dataclass(frozen=True)
class EmptyCell:
    def as_text(self) -> str:
        return ""

    def as_number(self) -> float | None:
        return None

    @property
    def is_empty(self) -> bool:
        return True


@dataclass(frozen=True)
class NumberCell:
    value: float

    def as_text(self) -> str:
        if float(self.value).is_integer():
            return str(int(self.value))
        return repr(float(self.value))

    def as_number(self) -> float | None:
        return float(self.value)

    @property
    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True)
class TextCell:
    value: str

    def as_text(self) -> str:
        return self.value

    def as_number(self) -> float | None:
        return parse_numeric_value(self.value)

    @property
    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True)
class DateCell:
    value: date

    def as_text(self) -> str:
        return self.value.isoformat()

    def as_number(self) -> float | None:
        return None

    @property
    def is_empty(self) -> bool:
        return False


Cell = Union[EmptyCell, NumberCell, TextCell, DateCell]

EMPTY = EmptyCell()


def to_cell(raw: Any) -> Cell:
    """Convert a raw value from pandas/openpyxl/JSON into a Cell variant."""
    if raw is None:
        return EMPTY
    if isinstance(raw, (EmptyCell, NumberCell, TextCell, DateCell)):
        return raw
    if isinstance(raw, bool):
        return TextCell(str(raw))
    # NaN and NaT compare unequal to themselves
    if raw != raw:
        return EMPTY
    if isinstance(raw, datetime):
        return DateCell(raw.date())
    if isinstance(raw, date):
        return DateCell(raw)
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
        return NumberCell(value) if math.isfinite(value) else EMPTY
    if isinstance(raw, str):
        return TextCell(raw) if raw.strip() else EMPTY
    # numpy scalars and other number-likes
    try:
        value = float(raw)
    except (TypeError, ValueError):
        text = str(raw)
        return TextCell(text) if text.strip() and text != "NaT" else EMPTY
    return NumberCell(value) if math.isfinite(value) else EMPTY


def cell_text(cell: Cell) -> str:
    """Lower-cased, whitespace-collapsed text used for keyword matching."""
    return " ".join(cell.as_text().split()).lower()


@dataclass
class Sheet:
    """A named 2-D grid of cells. Out-of-range reads return EMPTY."""

    name: str
    rows: list[list[Cell]] = field(default_factory=list)

    @classmethod
    def from_values(cls, name: str, values: list[list[Any]]) -> "Sheet":
        return cls(name=name, rows=[[to_cell(v) for v in row] for row in values])

    @property
    def n_rows(self) -> int:
        return len(self.rows)

    def row(self, r: int) -> list[Cell]:
        if 0 <= r < len(self.rows):
            return self.rows[r]
        return []

    def cell(self, r: int, c: int) -> Cell:
        row = self.row(r)
        if 0 <= c < len(row):
            return row[c]
        return EMPTY

    def is_blank_row(self, r: int) -> bool:
        return all(cell.is_empty for cell in self.row(r))

    def non_empty_count(self, r: int) -> int:
        return sum(1 for cell in self.row(r) if not cell.is_empty)


@dataclass
class Workbook:
    """Ordered collection of sheets, as parsed from one downloaded file."""

    sheets: list[Sheet] = field(default_factory=list)
    source: str = ""

    @property
    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def get(self, name: str) -> Sheet | None:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    def __iter__(self) -> Iterator[Sheet]:
        return iter(self.sheets)

    def __len__(self) -> int:
        return len(self.sheets)
