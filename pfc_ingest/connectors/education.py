"""Education connector -- DfE EYFSP "good level of development" (GLD).

The Early Years Foundation Stage Profile results are published each autumn
for the previous school year. The headline GLD percentage is read from the
explore-education-statistics release page.

Key design decisions:
- Page first: academic year from "Academic year 2023/24", GLD from
  "68.3% had a good level of development" (or a looser match within 100
  characters of the phrase)
- Fallback: GOV.UK search titles and descriptions mentioning early years,
  accepting only 50-85% to avoid unrelated percentages
- Date = 1 September of the end year (publication autumn); label "2023-24"
- COVID years (2019-20, 2020-21) have no data and are simply absent
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.core.utils.parsing import (
    FinancialYear,
    Period,
    parse_financial_year,
    parse_numeric_value,
    round_half_up,
)
from pfc_ingest.extraction.locator import SEARCH_API
from pfc_ingest.extraction.points import DataPoint

DFE_STATS_URL = (
    "https://explore-education-statistics.service.gov.uk"
    "/find-statistics/early-years-foundation-stage-profile-results"
)
SEARCH_QUERIES = (
    "early years foundation stage profile results",
    "EYFSP good level of development",
)
EARLY_YEARS_WORDS = ("early years", "eyfsp", "foundation stage")

PAGE_RANGE = (0.0, 100.0)
SEARCH_RANGE = (50.0, 85.0)

_ACADEMIC_YEAR_RE = re.compile(r"academic\s+year\s+(\d{4}[/-]\d{2,4})", re.IGNORECASE)
_GLD_RE = re.compile(
    r"(\d{1,2}\.\d)%\s*(?:had|achieved|attained|reaching)\s*a?\s*good\s*level\s*of\s*development",
    re.IGNORECASE,
)
_GLD_LOOSE_RE = re.compile(r"(\d{1,2}\.\d)%[^<]{0,100}good\s*level\s*of\s*development", re.IGNORECASE)
_YEAR_RE = re.compile(r"\d{4}[/-]\d{2,4}")
_PERCENT_RE = re.compile(r"(\d{1,2}\.\d)%")


def school_year_period(year: FinancialYear) -> Period:
    """Results for 2023-24 are published in autumn 2024."""
    return Period(date(year.end_year, 9, 1), year.label)


def _in_range(raw: str, bounds: tuple[float, float]) -> Optional[float]:
    value = parse_numeric_value(raw)
    low, high = bounds
    if value is None or not low <= value <= high:
        return None
    return round_half_up(value, 1)


def parse_release_page(html: str) -> Optional[DataPoint]:
    """Extract the headline GLD point from the release page HTML."""
    year_match = _ACADEMIC_YEAR_RE.search(html)
    year = parse_financial_year(year_match.group(1)) if year_match else None
    if year is None:
        return None
    gld_match = _GLD_RE.search(html) or _GLD_LOOSE_RE.search(html)
    if gld_match is None:
        return None
    value = _in_range(gld_match.group(1), PAGE_RANGE)
    if value is None:
        return None
    return DataPoint.at(value, school_year_period(year))


def parse_search_result(result: dict) -> Optional[DataPoint]:
    """A GLD point from a search result title + description, if present."""
    text = f"{result.get('title') or ''} {result.get('description') or ''}"
    if not any(word in text.lower() for word in EARLY_YEARS_WORDS):
        return None
    year_match = _YEAR_RE.search(text)
    percent_match = _PERCENT_RE.search(text)
    if year_match is None or percent_match is None:
        return None
    year = parse_financial_year(year_match.group(0))
    value = _in_range(percent_match.group(1), SEARCH_RANGE)
    if year is None or value is None:
        return None
    return DataPoint.at(value, school_year_period(year))


class EducationConnector(KpiConnector):
    """Connector for the EYFSP good level of development headline.

    Usage::

        async with EducationConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "EDUCATION"
    MILESTONE: str = MilestoneSlug.EDUCATION.value
    CUTOFF: Optional[date] = date(2015, 1, 1)

    async def fetch_from_page(self) -> list[DataPoint]:
        html = await self._get_text_soft(DFE_STATS_URL)
        if not html:
            return []
        point = parse_release_page(html)
        if point is None:
            self.log.warning("gld_not_found_on_page", url=DFE_STATS_URL)
            return []
        self.log.info("gld_found_on_page", value=point.value, label=point.label)
        return [point]

    async def fetch_from_search(self) -> list[DataPoint]:
        for query in SEARCH_QUERIES:
            params = {
                "q": query,
                "filter_organisations": "department-for-education",
                "count": "5",
                "fields": "title,description,link,public_timestamp",
            }
            data = await self._get_json_soft(SEARCH_API, params=params)
            results = data.get("results") if isinstance(data, dict) else None
            for result in results or []:
                if not isinstance(result, dict):
                    continue
                point = parse_search_result(result)
                if point is not None:
                    self.log.info("gld_found_in_search", value=point.value, label=point.label)
                    return [point]
        return []

    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Headline GLD from the release page, else from GOV.UK search.

        Returns:
            Zero or one point; history accumulates across runs.
        """
        points = await self.fetch_from_page()
        if not points:
            self.log.info("trying_govuk_search")
            points = await self.fetch_from_search()
        if not points:
            self.log.error("no_gld_data")
        return self.finalize(points)
