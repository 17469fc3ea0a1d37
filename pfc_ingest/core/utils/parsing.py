"""Numeric and period normalization for government statistics.

Pure functions that turn raw spreadsheet and API values into canonical
numbers and ``Period`` (date, label) pairs. Nothing here performs I/O, and
the value/period parsers never raise on bad input: they return ``None``
for "no usable value".

Conventions:
- Excel serial dates count days from 1899-12-30.
- Quarters map to their first day: Q1 -> 01-01, Q2 -> 04-01, Q3 -> 07-01,
  Q4 -> 10-01.
- Financial years are labelled ``"YYYY-YY"`` whatever punctuation the
  source used.
- A percentage strictly between 0 and 1 is read as a fraction and scaled
  by 100. This misreads a genuine sub-1% figure (0.8% becomes 80.0); the
  tracked metrics never sit in that range, so the rule is kept as-is.

Examples::

    >>> parse_numeric_value("1,234.5")
    1234.5
    >>> parse_numeric_value("[x]")  # returns None
    >>> excel_serial_to_date(45000)
    datetime.date(2023, 3, 15)
    >>> parse_financial_year("2022/23").label
    '2022-23'
    >>> normalise_percentage(0.652)
    65.2
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, NamedTuple

EXCEL_EPOCH = date(1899, 12, 30)
# Largest serial Excel accepts (9999-12-31)
MAX_EXCEL_SERIAL = 2958465

NO_VALUE_SENTINELS = frozenset(
    {"", "-", "--", "..", "...", "[x]", "[z]", "[c]", "[u]", "[w]", "x", "z",
     "n/a", "na", ":", "*", "–", "—"}
)

MONTH_ABBREVS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

MONTH_NUMBERS: dict[str, int] = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5,
    "june": 6, "july": 7, "august": 8, "september": 9, "october": 10,
    "november": 11, "december": 12,
}
MONTH_NUMBERS.update({abbr.lower(): i for i, abbr in enumerate(MONTH_ABBREVS, 1)})
MONTH_NUMBERS["sept"] = 9

QUARTER_START_MONTH = {1: 1, 2: 4, 3: 7, 4: 10}

_FOOTNOTE_RE = re.compile(r"\[[^\]]*\]|\((?:p|r|e|provisional|revised)\)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[-+]?\d+)?", re.IGNORECASE)
_FY_RE = re.compile(r"(\d{4})\s*(?:[-/–]|to)\s*(\d{2,4})(?!\d)")
_ORDINAL_QUARTER_RE = re.compile(r"(\d{4})\s+([1-4])(?:st|nd|rd|th)\s+quarter", re.IGNORECASE)
_Q_YEAR_RE = re.compile(r"Q\s*([1-4])\s+(\d{4})|(\d{4})\s+Q\s*([1-4])", re.IGNORECASE)
_BARE_YEAR_RE = re.compile(r"^((?:19|20)\d{2})$")
_EMBEDDED_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DAY_MONTH_YEAR_RE = re.compile(r"(?:(\d{1,2})\s+)?([A-Za-z]+)\s+(\d{4})")


class Period(NamedTuple):
    """A reporting period anchored on a calendar date."""

    date: date
    label: str


class FinancialYear(NamedTuple):
    """UK April-March financial year, e.g. start 2022, end 2023."""

    start_year: int
    end_year: int

    @property
    def label(self) -> str:
        return f"{self.start_year}-{self.end_year % 100:02d}"


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------
def is_no_value(raw: Any) -> bool:
    """Return True for None, NaN and the placeholder strings used by ONS/GSS."""
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    if isinstance(raw, str):
        return raw.strip().lower() in NO_VALUE_SENTINELS
    return False


def parse_numeric_value(raw: Any) -> float | None:
    """Coerce a cell value into a float, or None when it holds no value.

    Accepts ints, floats and Decimals as-is. Strings may carry thousands
    separators, ``%``, ``£``, ``per cent``, surrounding whitespace, and
    trailing footnote markers such as ``[note 3]`` or ``(p)``. Placeholder
    sentinels (``-``, ``..``, ``[x]``, empty) yield None, never zero.

    Args:
        raw: The raw value from a spreadsheet cell or JSON payload.

    Returns:
        The parsed float, or None if the value is missing or unparseable.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
        return value if math.isfinite(value) else None
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if text.lower() in NO_VALUE_SENTINELS:
        return None

    text = _FOOTNOTE_RE.sub("", text)
    text = re.sub(r"per\s*cent", "", text, flags=re.IGNORECASE)
    text = re.sub(r"[,%£\s]", "", text)
    if text.lower() in NO_VALUE_SENTINELS:
        return None

    if not _NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    return value if math.isfinite(value) else None


def round_half_up(value: float, places: int = 1) -> float:
    """Round with ties away from zero (45.25 -> 45.3), unlike built-in round().

    The value goes through its shortest decimal string so 45.25 is not
    seen as 45.2499999...
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def normalise_percentage(value: float) -> float:
    """Scale a fraction in (0, 1) to a percentage and round to 1 d.p.

    Exactly 1.0 is treated as an existing percentage (1.0%), not 100%.
    """
    if 0 < value < 1:
        value = value * 100
    return round_half_up(value, 1)


def round_count(value: float) -> int:
    """Round a headcount / dwelling count to the nearest whole number."""
    return int(round_half_up(value, 0))


# ---------------------------------------------------------------------------
# Dates and periods
# ---------------------------------------------------------------------------
def excel_serial_to_date(serial: float) -> date | None:
    """Convert an Excel serial day number (1899-12-30 epoch) to a date.

    Fractional parts (time of day) are discarded.
    """
    if isinstance(serial, bool) or not isinstance(serial, (int, float)):
        return None
    if not math.isfinite(serial) or serial < 1 or serial > MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def quarter_to_date(year: int, quarter: int | str) -> date:
    """Return the first day of ``quarter`` in ``year``.

    Raises:
        ValueError: If the quarter is not 1-4 / "Q1"-"Q4".
    """
    q = _quarter_number(quarter)
    if q is None:
        raise ValueError(f"Invalid quarter: {quarter!r}")
    return date(int(year), QUARTER_START_MONTH[q], 1)


def quarter_of(d: date) -> int:
    return (d.month - 1) // 3 + 1


def quarter_start(d: date) -> date:
    return date(d.year, QUARTER_START_MONTH[quarter_of(d)], 1)


def quarter_label(year: int, quarter: int | str) -> str:
    q = _quarter_number(quarter)
    if q is None:
        raise ValueError(f"Invalid quarter: {quarter!r}")
    return f"Q{q} {int(year)}"


def quarter_period(year: int, quarter: int | str) -> Period:
    return Period(quarter_to_date(year, quarter), quarter_label(year, quarter))


def quarter_period_for(d: date) -> Period:
    """Snap an arbitrary date to its quarter start, labelled "Q2 2024"."""
    return Period(quarter_start(d), f"Q{quarter_of(d)} {d.year}")


def month_label(d: date) -> str:
    """Return a short month label such as "Mar 2024"."""
    return f"{MONTH_ABBREVS[d.month - 1]} {d.year}"


def _quarter_number(quarter: int | str | float | None) -> int | None:
    if quarter is None or isinstance(quarter, bool):
        return None
    if isinstance(quarter, (int, float)):
        if isinstance(quarter, float) and not quarter.is_integer():
            return None
        q = int(quarter)
        return q if 1 <= q <= 4 else None
    text = str(quarter).strip()
    m = re.search(r"Q\s*([1-4])", text, re.IGNORECASE)
    if m:
        return int(m.group(1))
    m = re.fullmatch(r"([1-4])(?:st|nd|rd|th)?(?:\s+quarter)?", text, re.IGNORECASE)
    return int(m.group(1)) if m else None


def parse_quarter_number(raw: Any) -> int | None:
    """Read a quarter from "Q3", "q 3", "3rd quarter" or the number 3."""
    return _quarter_number(raw)


def parse_year(raw: Any, min_year: int = 1990, max_year: int = 2100) -> int | None:
    """Read a calendar year from a number or from text containing one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return None
        year = int(raw)
        return year if min_year <= year <= max_year else None
    m = _EMBEDDED_YEAR_RE.search(str(raw))
    if not m:
        return None
    year = int(m.group(1))
    return year if min_year <= year <= max_year else None


def parse_financial_year(raw: Any) -> FinancialYear | None:
    """Parse "2022-23", "2022/23", "2022-2023" or "2022 to 2023".

    The two-digit form takes its century from the start year, rolling over
    for "1999-00". The end year must follow the start year directly.
    """
    if raw is None:
        return None
    m = _FY_RE.search(str(raw))
    if not m:
        return None
    start = int(m.group(1))
    end_part = m.group(2)
    if len(end_part) == 2:
        end = (start // 100) * 100 + int(end_part)
        if end < start:
            end += 100
    elif len(end_part) == 4:
        end = int(end_part)
    else:
        return None
    if end != start + 1:
        return None
    return FinancialYear(start, end)


def parse_quarter_reference(raw: Any) -> Period | None:
    """Parse a quarter or annual column/row heading.

    Handles "2024 \\r\\n1st quarter", "Q1 2024", "2024 Q1" and a bare
    year "2024" (anchored on 1 January, labelled "2024").
    """
    if raw is None:
        return None
    text = re.sub(r"\s+", " ", str(raw)).strip()
    if not text:
        return None

    m = _ORDINAL_QUARTER_RE.search(text)
    if m:
        year, q = int(m.group(1)), int(m.group(2))
        if 1990 <= year <= 2100:
            return quarter_period(year, q)

    m = _Q_YEAR_RE.search(text)
    if m:
        q = int(m.group(1) or m.group(4))
        year = int(m.group(2) or m.group(3))
        if 1990 <= year <= 2100:
            return quarter_period(year, q)

    m = _BARE_YEAR_RE.match(text)
    if m:
        year = int(m.group(1))
        if 1990 <= year <= 2100:
            return Period(date(year, 1, 1), str(year))
    return None


def parse_month_reference(raw: Any) -> Period | None:
    """Parse a dated snapshot heading into a month-labelled Period.

    Handles ISO dates ("2024-03-31"), "31 March 2024", "March 2024" and
    "Mar 2024". A missing day defaults to the 1st.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        raw = raw.date()
    if isinstance(raw, date):
        return Period(raw, month_label(raw))

    text = str(raw).strip()
    if not text:
        return None

    m = _ISO_DATE_RE.match(text)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return Period(d, month_label(d)) if d else None

    for m in _DAY_MONTH_YEAR_RE.finditer(text):
        month = MONTH_NUMBERS.get(m.group(2).lower())
        if month is None:
            continue
        day = int(m.group(1)) if m.group(1) else 1
        d = _safe_date(int(m.group(3)), month, day)
        if d:
            return Period(d, month_label(d))
    return None


def parse_title_date(title: str) -> Period | None:
    """Find a full "31 March 2024" date inside a publication title."""
    m = re.search(
        r"(\d{1,2})\s+(January|February|March|April|May|June|July|August|"
        r"September|October|November|December)\s+(\d{4})",
        title or "",
        re.IGNORECASE,
    )
    if not m:
        return None
    d = _safe_date(int(m.group(3)), MONTH_NUMBERS[m.group(2).lower()], int(m.group(1)))
    return Period(d, month_label(d)) if d else None


def parse_iso_date(raw: Any) -> date | None:
    """Read the leading YYYY-MM-DD of an API timestamp string."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    m = _ISO_DATE_RE.match(str(raw).strip())
    if not m:
        return None
    return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None
