"""NHS RTT connector -- referral to treatment waiting times, % within 18 weeks.

Downloads the "RTT Overview Timeseries" workbook from the NHS England
statistics pages. Its "Full Time Series" sheet holds monthly national data
since April 2007, including a "% within 18 weeks" column.

Key design decisions:
- Index pages for the current and previous financial year are scraped for
  a spreadsheet link containing both "overview" and "timeseries"
- Relative links resolve against the index page ("/" against the site root)
- Months come from Excel serial dates in the Month column; footnoted text
  entries such as "* Feb-24" are skipped
- Fractions (0.589) become percentages (58.9); one decimal place
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.extraction.headers import HeaderRule, exactly
from pfc_ingest.extraction.layouts import RowOrientedLayout, TableExtractor, ValueColumn
from pfc_ingest.extraction.locator import HtmlScrapeStrategy, LocatorStrategy, run_fallback_chain
from pfc_ingest.extraction.periods import month_snapshot
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.sheets import SheetPreference

RTT_BASE = "https://www.england.nhs.uk/statistics/statistical-work-areas/rtt-waiting-times"

WITHIN_18_WEEKS = HeaderRule(keywords=("% within 18 weeks",), max_length=40)
MONTH_HEADER = exactly("month")
DEFAULT_MONTH_COL = 2


def rtt_index_urls(today: date) -> list[str]:
    """Index pages for the financial year containing ``today`` and the one before."""
    start = today.year if today.month >= 4 else today.year - 1
    return [
        f"{RTT_BASE}/rtt-data-{year}-{(year + 1) % 100:02d}/"
        for year in (start, start - 1)
    ]


class NhsRttConnector(KpiConnector):
    """Connector for the NHS England RTT overview time series.

    Usage::

        async with NhsRttConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "NHS_RTT"
    MILESTONE: str = MilestoneSlug.NHS.value

    def __init__(self, *args: Any, today: Optional[date] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.today = today or date.today()

    def strategies(self) -> list[LocatorStrategy]:
        return [
            HtmlScrapeStrategy(
                page_urls=rtt_index_urls(self.today),
                patterns=(r"overview.*timeseries|timeseries.*overview",),
                strict=True,
                name="rtt_index_pages",
            )
        ]

    def extractor(self) -> TableExtractor:
        return TableExtractor(
            hypotheses=[
                RowOrientedLayout(
                    value_columns=(ValueColumn("within_18_weeks", (WITHIN_18_WEEKS,)),),
                    date_column=MONTH_HEADER,
                    default_date_col=DEFAULT_MONTH_COL,
                    date_parser=month_snapshot,
                    header_scan_rows=20,
                    name="full_time_series",
                )
            ],
            sheet_preference=SheetPreference(
                exact_names=("Full Time Series",),
                front_matter=(),
            ),
            retry_count=0,
            cutoff=self.cutoff,
            source=self.SOURCE_NAME,
        )

    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Locate and parse the overview time series workbook.

        Returns:
            Monthly % of pathways within 18 weeks from 2020, oldest first.
        """
        links = await run_fallback_chain(self.strategies(), self, source=self.SOURCE_NAME)
        if not links:
            self.log.error("overview_timeseries_not_found")
            return []
        return self.finalize(await self._extract_from_links(links, self.extractor(), limit=1))
