"""Extracted time-series points and their final clean-up."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from pfc_ingest.core.utils.parsing import Period


@dataclass(frozen=True)
class DataPoint:
    """One dated KPI observation extracted from a source."""

    value: float
    date: date
    label: str

    @classmethod
    def at(cls, value: float, period: Period) -> "DataPoint":
        return cls(value=value, date=period.date, label=period.label)

    def as_record(self, milestone_slug: str) -> dict:
        return {
            "milestone_slug": milestone_slug,
            "value": self.value,
            "date": self.date,
            "label": self.label,
        }


def finalize_points(
    points: Iterable[DataPoint],
    cutoff: date | None = None,
) -> list[DataPoint]:
    """Apply the cutoff, dedupe by date and sort ascending.

    When the same date appears more than once, the later occurrence wins:
    government tables append revised figures below the originals.

    Args:
        points: Points in extraction order.
        cutoff: Drop points dated before this day (inclusive lower bound).

    Returns:
        Date-ordered list with at most one point per date.
    """
    by_date: dict[date, DataPoint] = {}
    for point in points:
        if cutoff is not None and point.date < cutoff:
            continue
        by_date[point.date] = point
    return [by_date[d] for d in sorted(by_date)]
