"""Energy Trends connector -- renewables' share of UK electricity generation.

DESNZ publishes Energy Trends section 6 (renewables) quarterly. Table ET
6.1 carries a "Renewables' share of electricity generation" section with
quarters across the columns and an "All renewables" row.

Key design decisions:
- Discovery chain: content API attachments for the section 6 and section 5
  pages (pooled) -> search API for DESNZ statistical data sets -> HTML
  scrape of the section 6 page
- Candidate files ranked: "6.1" first, then renewable + generation, then
  renewable, then "ET 6"
- Sheet preference: quarterly, then annual, then the first data sheet
- Three layouts in order: transposed share row, share column, and share
  computed from renewable and total generation columns
- Fractions (0.45) become percentages (45.0); one decimal place
"""

from __future__ import annotations

from typing import Any

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.extraction.headers import HeaderRule, exactly
from pfc_ingest.extraction.layouts import (
    ComputedRatioLayout,
    ExtractionHypothesis,
    RowOrientedLayout,
    TableExtractor,
    TransposedLayout,
    ValueColumn,
)
from pfc_ingest.extraction.locator import (
    ASSETS_BASE,
    ContentApiStrategy,
    HtmlScrapeStrategy,
    LocatorStrategy,
    SearchApiStrategy,
    attachment_links,
    rank_spreadsheet_links,
    run_fallback_chain,
)
from pfc_ingest.extraction.periods import quarter_heading, quarter_snapped
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.sheets import SheetPreference

SECTION_6_PATH = "/government/statistics/energy-trends-section-6-renewables"
SECTION_5_PATH = "/government/statistics/energy-trends-section-5-electricity"
SECTION_6_PAGE_URL = "https://www.gov.uk" + SECTION_6_PATH

# ET 6.1 section heading, e.g. "Renewables' share of electricity generation (%)"
SHARE_SECTION = HeaderRule(keywords=("share",), qualifiers=("electric", "generat"))
ALL_RENEWABLES_ROW = HeaderRule(keywords=("all renewable",))

SHARE_COLUMN = HeaderRule(
    keywords=(
        "share",
        "percentage",
        "% of",
        "percent",
        "proportion",
        "renewables as a",
        "renewable share",
    ),
    qualifiers=("generat", "electric", "renew"),
    max_length=80,
)
YEAR_COLUMN = HeaderRule(keywords=("year",), max_length=20)
QUARTER_COLUMN = HeaderRule(exact=("qtr",), keywords=("quarter",), max_length=20)

RENEWABLE_GENERATION = HeaderRule(
    keywords=("renewable",), qualifiers=("total", "generation"), max_length=80
)
TOTAL_GENERATION = HeaderRule(
    required=("total", "generation"), excluded=("renewable",), max_length=80
)

RANK_EXACT = ("6.1",)
RANK_DOMAIN = (("renewable", "generation"), "renewable", "et 6", "et_6", "et6")


def share_layouts() -> list[ExtractionHypothesis]:
    return [
        TransposedLayout(
            row_label=ALL_RENEWABLES_ROW,
            section_header=SHARE_SECTION,
            period_parser=quarter_heading,
            header_scan_rows=100,
            data_row_window=20,
            stop_at_blank=True,
            name="share_section_transposed",
        ),
        RowOrientedLayout(
            value_columns=(ValueColumn("share", (SHARE_COLUMN,)),),
            date_column=exactly("date", "period", "month"),
            year_column=YEAR_COLUMN,
            quarter_column=QUARTER_COLUMN,
            date_parser=quarter_snapped,
            value_start_col=1,
            name="share_column",
        ),
        ComputedRatioLayout(
            numerator=RENEWABLE_GENERATION,
            denominator=TOTAL_GENERATION,
            date_column=exactly("date", "period"),
            year_column=exactly("year"),
            quarter_column=exactly("quarter", "qtr"),
            name="computed_share",
        ),
    ]


class EnergyTrendsConnector(KpiConnector):
    """Connector for DESNZ Energy Trends renewables share (ET 6.1).

    Usage::

        async with EnergyTrendsConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "ENERGY_TRENDS"
    MILESTONE: str = MilestoneSlug.CLEAN_ENERGY.value

    def strategies(self) -> list[LocatorStrategy]:
        return [
            ContentApiStrategy(paths=[SECTION_6_PATH, SECTION_5_PATH], collect_all=True),
            SearchApiStrategy(
                query="energy trends renewables electricity",
                filters={
                    "filter_organisations": "department-for-energy-security-and-net-zero",
                    "filter_content_store_document_type": "statistical_data_set",
                },
                count=5,
                select=attachment_links,
            ),
            HtmlScrapeStrategy(
                page_urls=[SECTION_6_PAGE_URL],
                base_url=ASSETS_BASE,
                patterns=(r"et_?6\.?1", r"renewable|section.?6"),
            ),
        ]

    def extractor(self) -> TableExtractor:
        return TableExtractor(
            hypotheses=share_layouts(),
            sheet_preference=SheetPreference(patterns=(r"quarterly|quarter|qtr", r"annual")),
            retry_count=2,
            cutoff=self.cutoff,
            source=self.SOURCE_NAME,
        )

    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Locate ET 6.1 and extract the quarterly renewables share.

        Returns:
            Quarterly renewables share (%) from 2020, oldest first.
        """
        links = await run_fallback_chain(self.strategies(), self, source=self.SOURCE_NAME)
        if not links:
            self.log.error("energy_trends_spreadsheet_not_found")
            return []

        ranked = rank_spreadsheet_links(links, exact=RANK_EXACT, domain=RANK_DOMAIN)
        return self.finalize(await self._extract_from_links(ranked, self.extractor()))

