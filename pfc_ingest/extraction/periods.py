"""Cell-level period parsers used by the layout hypotheses.

Each parser takes one Cell and returns a Period or None. Sources differ in
how they anchor a period (month snapshot, quarter start, financial-year
end), so the layout is configured with the parser that matches the source.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from pfc_ingest.core.utils.parsing import (
    Period,
    excel_serial_to_date,
    month_label,
    parse_financial_year,
    parse_iso_date,
    parse_month_reference,
    parse_quarter_reference,
    parse_year,
    quarter_period_for,
)
from pfc_ingest.extraction.cells import Cell, DateCell, NumberCell, TextCell

PeriodParser = Callable[[Cell], Optional[Period]]

# Serial numbers below this are counts or years, not dates
MIN_DATE_SERIAL = 10000


def _cell_date(cell: Cell, min_serial: float = MIN_DATE_SERIAL, max_serial: float | None = None) -> date | None:
    if isinstance(cell, DateCell):
        return cell.value
    if isinstance(cell, NumberCell):
        if cell.value <= min_serial:
            return None
        if max_serial is not None and cell.value >= max_serial:
            return None
        return excel_serial_to_date(cell.value)
    return None


def quarter_heading(cell: Cell) -> Period | None:
    """Quarter or annual heading such as "2024 1st quarter" or "Q1 2024"."""
    if isinstance(cell, NumberCell):
        year = parse_year(cell.value)
        return parse_quarter_reference(str(year)) if year is not None else None
    if isinstance(cell, TextCell):
        return parse_quarter_reference(cell.value)
    return None


def financial_year_end(cell: Cell) -> Period | None:
    """Financial year heading anchored on 31 March of its end year."""
    if not isinstance(cell, TextCell):
        return None
    fy = parse_financial_year(cell.value)
    if fy is None or not 2000 <= fy.end_year <= 2100:
        return None
    return Period(date(fy.end_year, 3, 31), fy.label)


def month_snapshot(cell: Cell) -> Period | None:
    """Spreadsheet date (serial or date cell) labelled by month, e.g. "Mar 2024"."""
    d = _cell_date(cell)
    return Period(d, month_label(d)) if d else None


def month_reference(cell: Cell) -> Period | None:
    """Spreadsheet date or text such as "31 March 2024" / "Mar 2024"."""
    d = _cell_date(cell)
    if d:
        return Period(d, month_label(d))
    if isinstance(cell, TextCell):
        return parse_month_reference(cell.value)
    return None


def quarter_snapped(cell: Cell) -> Period | None:
    """Any date-like cell snapped to the start of its quarter.

    Text may be "Q1 2024", "2024 Q1", a bare year, or an ISO date.
    """
    d = _cell_date(cell)
    if d:
        return quarter_period_for(d)
    if not isinstance(cell, TextCell):
        return None
    text = cell.value.strip()
    if not text:
        return None
    period = parse_quarter_reference(text)
    if period:
        return period
    iso = parse_iso_date(text)
    return quarter_period_for(iso) if iso else None


def leading_serial_quarter(cell: Cell) -> Period | None:
    """Serial dates in the 30000-60000 window (1982-2064), snapped to quarter."""
    if isinstance(cell, DateCell):
        return quarter_period_for(cell.value)
    d = _cell_date(cell, min_serial=30000, max_serial=60000)
    return quarter_period_for(d) if d else None
