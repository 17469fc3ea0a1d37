"""Keyword rules for recognizing header cells and row labels.

A header rule is only satisfied when the keyword test passes AND the cell
is shorter than the rule's length ceiling. Sheet titles such as "Police
workforce totals by force, England and Wales" mention the same words as
genuine column headers, and the ceiling is what tells them apart.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from pfc_ingest.extraction.cells import Cell, Sheet, cell_text


class HeaderMatcher(Protocol):
    def matches(self, text: str) -> bool: ...


@dataclass(frozen=True)
class HeaderRule:
    """Keyword test over lower-cased, whitespace-collapsed cell text.

    Attributes:
        exact: Texts accepted outright on equality (no other checks).
        required: Every one of these substrings must be present.
        keywords: At least one of these substrings must be present.
        qualifiers: A second any-of group, for "share ... AND electricity".
        excluded: None of these substrings may be present.
        max_length: Text must be strictly shorter than this.
    """

    exact: tuple[str, ...] = ()
    required: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    qualifiers: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()
    max_length: int | None = None

    def matches(self, text: str) -> bool:
        text = " ".join(text.split()).lower()
        if not text:
            return False
        if text in self.exact:
            return True
        if not (self.required or self.keywords):
            return False
        if self.max_length is not None and len(text) >= self.max_length:
            return False
        if any(word in text for word in self.excluded):
            return False
        if not all(word in text for word in self.required):
            return False
        if self.keywords and not any(word in text for word in self.keywords):
            return False
        if self.qualifiers and not any(word in text for word in self.qualifiers):
            return False
        return True


@dataclass(frozen=True)
class AnyOf:
    """Matches when any member rule matches."""

    rules: tuple[HeaderMatcher, ...]

    def matches(self, text: str) -> bool:
        return any(rule.matches(text) for rule in self.rules)


def any_of(*rules: HeaderMatcher) -> AnyOf:
    return AnyOf(tuple(rules))


def exactly(*texts: str) -> HeaderRule:
    return HeaderRule(exact=tuple(t.lower() for t in texts))


def cell_matches(cell: Cell, rule: HeaderMatcher) -> bool:
    return not cell.is_empty and rule.matches(cell_text(cell))


def find_in_row(
    row: Sequence[Cell],
    rule: HeaderMatcher,
    start_col: int = 0,
) -> int | None:
    """Return the first column index in ``row`` whose cell matches ``rule``."""
    for j in range(start_col, len(row)):
        if cell_matches(row[j], rule):
            return j
    return None


def find_in_row_by_priority(
    row: Sequence[Cell],
    rules: Sequence[HeaderMatcher],
    start_col: int = 0,
) -> int | None:
    """Try ``rules`` in priority order; the first rule with any match wins."""
    for rule in rules:
        col = find_in_row(row, rule, start_col)
        if col is not None:
            return col
    return None


def find_header_cell(
    sheet: Sheet,
    rule: HeaderMatcher,
    max_rows: int = 30,
    start_col: int = 0,
) -> tuple[int, int] | None:
    """Scan the first ``max_rows`` rows for a cell matching ``rule``.

    Returns:
        (row, column) of the first match in row-major order, or None.
    """
    for r in range(min(sheet.n_rows, max_rows)):
        col = find_in_row(sheet.row(r), rule, start_col)
        if col is not None:
            return r, col
    return None


def find_header_row(
    sheet: Sheet,
    rule: HeaderMatcher,
    max_rows: int = 30,
    start_col: int = 0,
) -> int | None:
    """Row index of the first header cell matching ``rule``, or None."""
    found = find_header_cell(sheet, rule, max_rows, start_col)
    return found[0] if found else None
