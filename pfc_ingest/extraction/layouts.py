"""Layout hypotheses for pulling a time series out of a worksheet.

Government tables come in four broad shapes, each handled by one
hypothesis:

1. ``TransposedLayout``: periods run across a heading row, metrics run down
   column 0 (DESNZ Energy Trends, MHCLG Live Table 120).
2. ``RowOrientedLayout``: a conventional table with a header row naming
   value columns and a date/period column (NHS RTT, police workforce).
3. ``ColumnOrientedLayout``: a period label per row in a fixed column and a
   value column found by keyword or position (older Table 120 releases).
4. ``ComputedRatioLayout``: no share column exists, so a share is derived
   from two absolute columns.

``TableExtractor`` selects a sheet, runs its hypotheses in order until one
yields points, retries the leading hypotheses on every other sheet, then
applies the cutoff and last-wins date dedupe.

Header discovery never looks beyond the first ``header_scan_rows`` rows,
and no hypothesis raises on malformed input: a cell that fails to parse
drops its row and the rest of the table is still read.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Mapping, Optional, Sequence

import structlog

from pfc_ingest.core.utils.parsing import Period, normalise_percentage, quarter_period
from pfc_ingest.core.utils.parsing import parse_quarter_number, parse_year, round_half_up
from pfc_ingest.extraction.cells import (
    EMPTY,
    Cell,
    NumberCell,
    Sheet,
    TextCell,
    Workbook,
    cell_text,
)
from pfc_ingest.extraction.headers import (
    HeaderMatcher,
    cell_matches,
    find_in_row,
    find_in_row_by_priority,
)
from pfc_ingest.extraction.periods import (
    PeriodParser,
    leading_serial_quarter,
    quarter_heading,
    quarter_snapped,
)
from pfc_ingest.extraction.points import DataPoint, finalize_points
from pfc_ingest.extraction.sheets import SheetPreference, select_sheet

logger = structlog.get_logger(__name__)

ValueTransform = Callable[[float], float]


def _identity(value: float) -> float:
    return value


# ---------------------------------------------------------------------------
# Hypothesis interface
# ---------------------------------------------------------------------------
class ExtractionHypothesis(abc.ABC):
    """One guess at how a sheet is laid out."""

    name: str = "hypothesis"

    @abc.abstractmethod
    def extract(self, sheet: Sheet) -> list[DataPoint]:
        """Return points found under this layout, or [] if it does not fit."""
        ...


# ---------------------------------------------------------------------------
# Shared row helpers
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PeriodColumns:
    """Where a tabular row keeps its period information (-1 = absent)."""

    date_col: int = -1
    year_col: int = -1
    quarter_col: int = -1


def period_from_row(
    row: Sequence[Cell],
    columns: PeriodColumns,
    date_parser: PeriodParser = quarter_snapped,
    leading_columns: int = 4,
) -> Period | None:
    """Work out a row's period from whichever columns are available.

    Order: year + quarter columns, a year column alone (annual data), the
    date column, then the first ``leading_columns`` cells.
    """

    def at(col: int) -> Cell:
        return row[col] if 0 <= col < len(row) else EMPTY

    if columns.year_col >= 0 and columns.quarter_col >= 0:
        year = _cell_year(at(columns.year_col))
        quarter = parse_quarter_number(_cell_raw(at(columns.quarter_col)))
        if year is not None and quarter is not None:
            return quarter_period(year, quarter)

    if columns.year_col >= 0 and columns.quarter_col < 0:
        year = _cell_year(at(columns.year_col))
        if year is not None:
            return Period(date(year, 1, 1), str(year))

    if columns.date_col >= 0:
        if columns.date_col >= len(row):
            return None
        return date_parser(row[columns.date_col])

    for cell in row[:leading_columns]:
        if cell.is_empty:
            continue
        period = leading_serial_quarter(cell)
        if period is None and isinstance(cell, TextCell):
            period = date_parser(cell)
        if period is not None:
            return period
    return None


def _cell_raw(cell: Cell) -> object:
    if isinstance(cell, NumberCell):
        return cell.value
    return cell.as_text() or None


def _cell_year(cell: Cell) -> int | None:
    if isinstance(cell, NumberCell):
        return parse_year(cell.value)
    if isinstance(cell, TextCell):
        return parse_year(cell.value)
    return None


def _value(cell: Cell, min_value: float | None) -> float | None:
    value = cell.as_number()
    if value is None:
        return None
    if min_value is not None and value <= min_value:
        return None
    return value


# ---------------------------------------------------------------------------
# 1. Transposed: periods across, metrics down
# ---------------------------------------------------------------------------
@dataclass
class TransposedLayout(ExtractionHypothesis):
    """Periods as column headings, the target metric as a labelled row.

    The heading row is found either by a section title in the label column
    (``section_header``) or, when that is not set, as the first row with at
    least ``min_period_headers`` parseable period headings. The data row is
    the first row below it whose label matches ``row_label``, searched
    within ``data_row_window`` rows and, if ``stop_at_blank``, not past the
    first blank row that follows a non-blank row (stacked tables are
    separated by blank rows; blank padding under the heading is skipped).
    """

    row_label: HeaderMatcher
    section_header: Optional[HeaderMatcher] = None
    period_parser: PeriodParser = quarter_heading
    min_period_headers: int = 1
    header_scan_rows: int = 30
    data_row_window: Optional[int] = 20
    stop_at_blank: bool = True
    label_col: int = 0
    min_value: Optional[float] = None
    value_transform: ValueTransform = normalise_percentage
    name: str = "transposed"

    def extract(self, sheet: Sheet) -> list[DataPoint]:
        header = self._find_heading_row(sheet)
        if header is None:
            return []
        header_row, periods = header

        data_row = self._find_data_row(sheet, header_row)
        if data_row is None:
            logger.debug("transposed_data_row_missing", sheet=sheet.name, header_row=header_row)
            return []

        row = sheet.row(data_row)
        points: list[DataPoint] = []
        for col, period in periods.items():
            if col >= len(row):
                continue
            value = _value(row[col], self.min_value)
            if value is None:
                continue
            points.append(DataPoint.at(self.value_transform(value), period))
        return points

    def _find_heading_row(self, sheet: Sheet) -> tuple[int, dict[int, Period]] | None:
        for r in range(min(sheet.n_rows, self.header_scan_rows)):
            row = sheet.row(r)
            if self.section_header is not None:
                if not cell_matches(sheet.cell(r, self.label_col), self.section_header):
                    continue
                return r, self._parse_periods(row)
            periods = self._parse_periods(row)
            if len(periods) >= self.min_period_headers:
                return r, periods
        return None

    def _parse_periods(self, row: Sequence[Cell]) -> dict[int, Period]:
        periods: dict[int, Period] = {}
        for col, cell in enumerate(row):
            if col == self.label_col or cell.is_empty:
                continue
            period = self.period_parser(cell)
            if period is not None:
                periods[col] = period
        return periods

    def _find_data_row(self, sheet: Sheet, header_row: int) -> int | None:
        end = sheet.n_rows
        if self.data_row_window is not None:
            end = min(end, header_row + self.data_row_window)
        seen_row = False
        for r in range(header_row + 1, end):
            if sheet.is_blank_row(r):
                # Blank rows directly under the heading are padding
                if self.stop_at_blank and seen_row:
                    return None
                continue
            seen_row = True
            if cell_matches(sheet.cell(r, self.label_col), self.row_label):
                return r
        return None


# ---------------------------------------------------------------------------
# 2. Row-oriented: tabular header row with value and date columns
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ValueColumn:
    """A named value column, located by rules tried in priority order."""

    key: str
    rules: tuple[HeaderMatcher, ...]


@dataclass(frozen=True)
class HeaderMatch:
    row: int
    values: Mapping[str, int]
    periods: PeriodColumns


def first_value(values: Mapping[str, Optional[float]]) -> Optional[float]:
    for value in values.values():
        if value is not None:
            return value
    return None


@dataclass
class RowOrientedLayout(ExtractionHypothesis):
    """Conventional table: one row per period below a header row.

    Attributes:
        value_columns: Value columns to locate; the header row is the first
            row (within ``header_scan_rows``) where ``accept`` approves the
            columns found.
        date_column / year_column / quarter_column: Period column rules,
            checked on the header row and then on the rows above it.
        default_date_col: Used when no date/year column is found.
        combine: Reduces the per-column values of a row to one value.
        min_header_cells: Rows with fewer non-empty cells are title rows.
        value_start_col: Columns before this are never value columns.
    """

    value_columns: tuple[ValueColumn, ...]
    date_column: Optional[HeaderMatcher] = None
    year_column: Optional[HeaderMatcher] = None
    quarter_column: Optional[HeaderMatcher] = None
    default_date_col: Optional[int] = None
    date_parser: PeriodParser = quarter_snapped
    combine: Callable[[Mapping[str, Optional[float]]], Optional[float]] = first_value
    accept: Optional[Callable[[HeaderMatch], bool]] = None
    header_scan_rows: int = 30
    min_header_cells: int = 1
    value_start_col: int = 0
    skip_zero: bool = False
    value_transform: ValueTransform = normalise_percentage
    name: str = "row_oriented"

    def extract(self, sheet: Sheet) -> list[DataPoint]:
        header = self.find_header(sheet)
        if header is None:
            return []

        points: list[DataPoint] = []
        for r in range(header.row + 1, sheet.n_rows):
            row = sheet.row(r)
            if not row:
                continue
            values = {
                key: (row[col].as_number() if col < len(row) else None)
                for key, col in header.values.items()
            }
            value = self.combine(values)
            if value is None or (self.skip_zero and value == 0):
                continue
            period = period_from_row(row, header.periods, self.date_parser)
            if period is None:
                continue
            points.append(DataPoint.at(self.value_transform(value), period))
        return points

    def find_header(self, sheet: Sheet) -> HeaderMatch | None:
        """Locate the header row and the columns it names."""
        for r in range(min(sheet.n_rows, self.header_scan_rows)):
            if sheet.non_empty_count(r) < self.min_header_cells:
                continue
            row = sheet.row(r)
            found: dict[str, int] = {}
            for column in self.value_columns:
                col = find_in_row_by_priority(row, column.rules, self.value_start_col)
                if col is not None:
                    found[column.key] = col
            if not found:
                continue
            match = HeaderMatch(row=r, values=found, periods=self._period_columns(sheet, r))
            if self.accept is not None and not self.accept(match):
                continue
            periods = match.periods
            if periods.date_col < 0 and periods.year_col < 0 and self.default_date_col is not None:
                periods = PeriodColumns(
                    date_col=self.default_date_col,
                    year_col=-1,
                    quarter_col=periods.quarter_col,
                )
                match = HeaderMatch(row=r, values=found, periods=periods)
            return match
        return None

    def _period_columns(self, sheet: Sheet, header_row: int) -> PeriodColumns:
        def locate(rule: Optional[HeaderMatcher]) -> int:
            if rule is None:
                return -1
            for r in range(header_row, -1, -1):
                col = find_in_row(sheet.row(r), rule)
                if col is not None:
                    return col
            return -1

        date_col = locate(self.date_column)
        year_col = locate(self.year_column)
        quarter_col = locate(self.quarter_column)
        return PeriodColumns(date_col=date_col, year_col=year_col, quarter_col=quarter_col)


# ---------------------------------------------------------------------------
# 3. Column-oriented: a period label per row in a fixed column
# ---------------------------------------------------------------------------
@dataclass
class ColumnOrientedLayout(ExtractionHypothesis):
    """Period labels down ``period_col``; values in a keyword-located column.

    If no header cell matches ``value_header``, ``default_value_col`` is
    used and scanning starts from the top of the sheet. A row whose value
    column is empty falls back to the first other cell above
    ``fallback_threshold``.
    """

    period_parser: PeriodParser
    value_header: Optional[HeaderMatcher] = None
    period_col: int = 0
    default_value_col: int = 1
    header_scan_rows: int = 30
    min_value: Optional[float] = 0
    fallback_threshold: Optional[float] = None
    value_transform: ValueTransform = _identity
    name: str = "column_oriented"

    def extract(self, sheet: Sheet) -> list[DataPoint]:
        value_col, start_row = self.default_value_col, 0
        if self.value_header is not None:
            for r in range(min(sheet.n_rows, self.header_scan_rows)):
                col = find_in_row(sheet.row(r), self.value_header)
                if col is not None:
                    value_col, start_row = col, r + 1
                    break

        points: list[DataPoint] = []
        for r in range(start_row, sheet.n_rows):
            period = self.period_parser(sheet.cell(r, self.period_col))
            if period is None:
                continue
            value = _value(sheet.cell(r, value_col), self.min_value)
            if value is None and self.fallback_threshold is not None:
                value = self._fallback_value(sheet.row(r))
            if value is None:
                continue
            points.append(DataPoint.at(self.value_transform(value), period))
        return points

    def _fallback_value(self, row: Sequence[Cell]) -> float | None:
        for col in range(1, len(row)):
            if col == self.period_col:
                continue
            value = row[col].as_number()
            if value is not None and value > self.fallback_threshold:
                return value
        return None


# ---------------------------------------------------------------------------
# 4. Computed ratio: numerator / denominator * 100
# ---------------------------------------------------------------------------
@dataclass
class ComputedRatioLayout(ExtractionHypothesis):
    """Derive a percentage share from two absolute columns."""

    numerator: HeaderMatcher
    denominator: HeaderMatcher
    date_column: Optional[HeaderMatcher] = None
    year_column: Optional[HeaderMatcher] = None
    quarter_column: Optional[HeaderMatcher] = None
    date_parser: PeriodParser = quarter_snapped
    header_scan_rows: int = 30
    name: str = "computed_ratio"

    def extract(self, sheet: Sheet) -> list[DataPoint]:
        num_col = den_col = -1
        header_row = -1
        date_col = year_col = quarter_col = -1

        for r in range(min(sheet.n_rows, self.header_scan_rows)):
            for c, cell in enumerate(sheet.row(r)):
                if cell.is_empty:
                    continue
                text = cell_text(cell)
                if num_col < 0 and self.numerator.matches(text):
                    num_col, header_row = c, r
                if den_col < 0 and self.denominator.matches(text):
                    den_col = c
                if self.date_column is not None and self.date_column.matches(text):
                    date_col = c
                if self.year_column is not None and self.year_column.matches(text):
                    year_col = c
                if self.quarter_column is not None and self.quarter_column.matches(text):
                    quarter_col = c

        if num_col < 0 or den_col < 0 or header_row < 0:
            return []

        columns = PeriodColumns(date_col=date_col, year_col=year_col, quarter_col=quarter_col)
        points: list[DataPoint] = []
        for r in range(header_row + 1, sheet.n_rows):
            row = sheet.row(r)
            numerator = sheet.cell(r, num_col).as_number()
            denominator = sheet.cell(r, den_col).as_number()
            if numerator is None or not denominator:
                continue
            period = period_from_row(row, columns, self.date_parser)
            if period is None:
                continue
            points.append(DataPoint.at(round_half_up(numerator / denominator * 100, 1), period))
        return points


# ---------------------------------------------------------------------------
# Extractor: sheet selection + ordered hypotheses + cross-sheet retry
# ---------------------------------------------------------------------------
@dataclass
class TableExtractor:
    """Run layout hypotheses over a workbook until one produces points.

    Attributes:
        hypotheses: Tried in order on the selected sheet.
        sheet_preference: How to pick the primary sheet.
        retry_count: How many leading hypotheses are retried on each of the
            other sheets when the primary sheet yields nothing.
        cutoff: Points dated before this are discarded. A hypothesis whose
            points all fall before the cutoff counts as a miss.
        retry_sheets: Optional filter on which other sheets are retried.
    """

    hypotheses: Sequence[ExtractionHypothesis]
    sheet_preference: SheetPreference = field(default_factory=SheetPreference)
    retry_count: int = 2
    cutoff: Optional[date] = None
    retry_sheets: Optional[Callable[[Sheet], bool]] = None
    source: str = ""

    def extract(self, workbook: Workbook) -> list[DataPoint]:
        log = logger.bind(source=self.source or workbook.source)
        primary = select_sheet(workbook, self.sheet_preference)
        if primary is None:
            log.warning("workbook_has_no_sheets")
            return []

        log.debug("sheet_selected", sheet=primary.name, available=workbook.sheet_names)
        points = self._run(primary, self.hypotheses)
        if points:
            return points

        retry = list(self.hypotheses[: self.retry_count])
        for sheet in workbook:
            if sheet is primary:
                continue
            if self.retry_sheets is not None and not self.retry_sheets(sheet):
                continue
            points = self._run(sheet, retry)
            if points:
                log.info("data_found_in_alternative_sheet", sheet=sheet.name)
                return points

        log.warning("no_layout_matched", sheets=workbook.sheet_names)
        return []

    def _run(self, sheet: Sheet, hypotheses: Sequence[ExtractionHypothesis]) -> list[DataPoint]:
        for hypothesis in hypotheses:
            try:
                raw = hypothesis.extract(sheet)
            except Exception as exc:
                logger.warning(
                    "hypothesis_error",
                    hypothesis=hypothesis.name,
                    sheet=sheet.name,
                    error=str(exc),
                )
                continue
            points = finalize_points(raw, self.cutoff)
            if points:
                logger.debug(
                    "hypothesis_matched",
                    hypothesis=hypothesis.name,
                    sheet=sheet.name,
                    points=len(points),
                )
                return points
        return []
