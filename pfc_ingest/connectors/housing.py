"""Housing supply connector -- MHCLG Live Table 120, net additional dwellings.

Discovers the Table 120 spreadsheet attached to the "Live tables on
housing supply: net additional dwellings" statistical data set and stores
one KPI snapshot per financial year.

Key design decisions:
- Discovery chain: content API attachments -> search API (then content
  lookup of the matched publication) -> HTML page href scraping
- GOV.UK has moved many attachments from .xlsx to .ods, so all spreadsheet
  formats are accepted
- Two layouts: financial-year heading row with a labelled England total
  row, or one financial year per row in column A
- Date = 31 March of the financial year's end year; label "2022-23"
- Values rounded to whole dwellings; years before 2014-15 dropped
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.core.utils.parsing import round_count
from pfc_ingest.extraction.headers import HeaderRule, any_of
from pfc_ingest.extraction.layouts import ColumnOrientedLayout, TableExtractor, TransposedLayout
from pfc_ingest.extraction.locator import (
    ContentApiStrategy,
    DocumentLink,
    HtmlScrapeStrategy,
    LocatorStrategy,
    SearchApiStrategy,
    attachment_links,
    rank_spreadsheet_links,
    run_fallback_chain,
)
from pfc_ingest.extraction.periods import financial_year_end
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.sheets import SheetPreference

DATASET_PATH = "/government/statistical-data-sets/live-tables-on-net-supply-of-housing"
HTML_PAGE_URL = "https://www.gov.uk" + DATASET_PATH

TABLE_120_TERMS = ("table 120", "livetable120", "table120", "table_120", "live_table_120")

# Row label of the England total in the financial-year heading layout
TOTAL_ROW = any_of(
    HeaderRule(keywords=("total net additional", "net additional dwellings")),
    HeaderRule(exact=("england", "total"), keywords=("net additional",), excluded=("of which",)),
)

# Value column header in the one-year-per-row layout
VALUE_HEADER = HeaderRule(
    exact=("england",),
    keywords=("net additional", "total", "net supply"),
)

SEARCH_TITLES = (
    "net additional dwellings",
    "live tables on housing supply",
    "live tables on net supply",
)


def select_table_120(content: Any) -> list[DocumentLink]:
    """Table 120 (or any "net additional") spreadsheet attachments."""
    links = attachment_links(content, include_documents=False)
    return [
        link
        for link in links
        if any(term in link.search_text for term in TABLE_120_TERMS + ("net additional",))
    ]


def _is_housing_publication(result: dict) -> bool:
    title = (result.get("title") or "").lower()
    return any(term in title for term in SEARCH_TITLES)


class HousingConnector(KpiConnector):
    """Connector for MHCLG net additional dwellings (Live Table 120).

    Usage::

        async with HousingConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "HOUSING"
    MILESTONE: str = MilestoneSlug.HOUSING.value
    RATE_LIMIT_PER_SECOND: float = 2.0

    @property
    def cutoff(self) -> date:
        return date(self.settings.housing_cutoff_year, 1, 1)

    def strategies(self) -> list[LocatorStrategy]:
        return [
            ContentApiStrategy(paths=[DATASET_PATH], select=select_table_120),
            SearchApiStrategy(
                query="net additional dwellings live tables",
                filters={
                    "filter_organisations": "ministry-of-housing-communities-local-government",
                },
                accept=_is_housing_publication,
                select=select_table_120,
                first_match_only=True,
            ),
            HtmlScrapeStrategy(
                page_urls=[HTML_PAGE_URL],
                base_url="https://www.gov.uk",
                patterns=(r"table_?120|livetable120|live_table_120", r"120[^/]*$"),
            ),
        ]

    def extractor(self) -> TableExtractor:
        return TableExtractor(
            hypotheses=[
                TransposedLayout(
                    row_label=TOTAL_ROW,
                    period_parser=financial_year_end,
                    min_period_headers=3,
                    data_row_window=None,
                    stop_at_blank=False,
                    min_value=0,
                    value_transform=round_count,
                    name="financial_year_heading_row",
                ),
                ColumnOrientedLayout(
                    period_parser=financial_year_end,
                    value_header=VALUE_HEADER,
                    min_value=0,
                    fallback_threshold=1000,
                    value_transform=round_count,
                    name="financial_year_per_row",
                ),
            ],
            sheet_preference=SheetPreference(
                exact_names=("Table 120", "LiveTable120", "Live Table 120", "120"),
                patterns=(r"120",),
                front_matter=(),
            ),
            cutoff=self.cutoff,
            source=self.SOURCE_NAME,
        )

    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Locate, download and parse Live Table 120.

        Returns:
            Annual net additional dwellings, oldest first.
        """
        self.log.info("discovering_table_120")
        links = await run_fallback_chain(self.strategies(), self, source=self.SOURCE_NAME)
        if not links:
            self.log.error("table_120_not_found")
            return []

        ranked = rank_spreadsheet_links(links, exact=TABLE_120_TERMS, domain=("net additional",))
        return self.finalize(await self._extract_from_links(ranked, self.extractor()))
