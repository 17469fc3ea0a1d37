"""Police workforce connector -- Home Office "Police workforce, England and Wales".

Finds the latest biannual publications (31 March / 30 September
snapshots), discovers their spreadsheet attachments and extracts the
national time series of officers + PCSOs + special constables.

Key design decisions:
- Publications found by probing the predictable GOV.UK slugs with a short
  per-request timeout (stop after 2 hits), then the search API
- Attachment discovery: content API attachments and document fragments,
  then child pages of collections, then the publication's HTML page
- Main tables are tried before "neighbourhood" files; diversity, pay,
  sickness and leavers files are skipped
- Headline sheet is usually Table_4; other table/officer/workforce sheets
  are tried next
- Fallback: a "total ... officers" row with a value in 50k-300k, dated
  from the publication title
- Raw totals are stored; the dashboard computes deltas against a baseline
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.core.utils.parsing import Period, parse_title_date, round_count
from pfc_ingest.extraction.cells import Sheet, Workbook, cell_text
from pfc_ingest.extraction.headers import HeaderRule, exactly
from pfc_ingest.extraction.layouts import (
    HeaderMatch,
    RowOrientedLayout,
    TableExtractor,
    ValueColumn,
)
from pfc_ingest.extraction.locator import (
    GOVUK_BASE,
    CandidatePathStrategy,
    DocumentLink,
    LocatorStrategy,
    SearchApiStrategy,
    attachment_links,
    child_links,
    content_api_url,
    dedupe_links,
    extract_spreadsheet_links,
    run_fallback_chain,
)
from pfc_ingest.extraction.periods import month_reference
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.sheets import SheetPreference

PUBLICATION_PREFIX = "/government/statistics/police-workforce-england-and-wales"
EARLIEST_YEAR = 2020

RELATED_SHEET_WORDS = ("table", "officer", "workforce", "headcount", "summary")
LIKELY_WORKFORCE_WORDS = ("workforce", "headline", "table", "officer", "strength", "neighbourhood")
IRRELEVANT_FILE_WORDS = ("diversity", "ethnicity", "pay", "sickness", "leaver")

# Plausible national workforce total for the title-dated fallback
FALLBACK_RANGE = (50_000, 300_000)

# ---------------------------------------------------------------------------
# Header rules
# ---------------------------------------------------------------------------
OFFICER_RULES = (
    HeaderRule(keywords=("officer",), qualifiers=("total", "all"), max_length=60),
    exactly("police officers"),
    HeaderRule(
        keywords=("officer",),
        excluded=("pcso", "special", "community"),
        max_length=40,
    ),
)
PCSO_RULES = (
    exactly("pcsos", "pcso"),
    HeaderRule(keywords=("community support",), max_length=60),
)
SPECIAL_RULES = (HeaderRule(keywords=("special",), max_length=30),)
TOTAL_RULES = (
    exactly("total"),
    HeaderRule(keywords=("total",), excluded=("officer", "staff"), max_length=20),
)
DATE_HEADER = exactly("as at", "as of", "date", "period", "year")

_COMPONENTS = ("officers", "pcsos", "specials")


def combined_total(values: Mapping[str, Optional[float]]) -> Optional[float]:
    """Officers + PCSOs + specials, or the total column when none is present."""
    parts = [values.get(key) for key in _COMPONENTS]
    if any(part is not None for part in parts):
        return sum(part or 0.0 for part in parts)
    return values.get("total")


def accept_header(match: HeaderMatch) -> bool:
    """A date column plus one metric, or at least two metric columns."""
    relevant = sum(1 for key in _COMPONENTS if key in match.values)
    return relevant >= 1 and (match.periods.date_col >= 0 or relevant >= 2)


def workforce_layout() -> RowOrientedLayout:
    return RowOrientedLayout(
        value_columns=(
            ValueColumn("officers", OFFICER_RULES),
            ValueColumn("pcsos", PCSO_RULES),
            ValueColumn("specials", SPECIAL_RULES),
            ValueColumn("total", TOTAL_RULES),
        ),
        date_column=DATE_HEADER,
        default_date_col=0,
        date_parser=month_reference,
        combine=combined_total,
        accept=accept_header,
        min_header_cells=2,
        skip_zero=True,
        value_transform=round_count,
        name="workforce_time_series",
    )


def is_related_sheet(sheet: Sheet) -> bool:
    name = sheet.name.lower()
    return any(word in name for word in RELATED_SHEET_WORDS)


def order_attachments(links: list[DocumentLink]) -> list[DocumentLink]:
    """Neighbourhood files last; obviously unrelated files dropped.

    Files are only dropped when there is more than one candidate and the
    name gives no sign of being a workforce table.
    """
    ordered = sorted(links, key=lambda link: "neighbourhood" in link.url.lower())
    if len(ordered) <= 1:
        return ordered
    kept = []
    for link in ordered:
        url = link.url.lower()
        likely = any(word in url for word in LIKELY_WORKFORCE_WORDS)
        if not likely and any(word in url for word in IRRELEVANT_FILE_WORDS):
            continue
        kept.append(link)
    return kept


def fallback_total(workbook: Workbook, period: Period) -> DataPoint | None:
    """Scan every sheet for a workforce total row and date it from the title.

    A row qualifies when one cell mentions "total" together with officer,
    police, workforce or strength, and the largest number in the row is
    within FALLBACK_RANGE.
    """
    low, high = FALLBACK_RANGE
    for sheet in workbook:
        for row in sheet.rows:
            has_total = False
            largest = 0.0
            for cell in row:
                text = cell_text(cell)
                if "total" in text and any(
                    word in text for word in ("officer", "police", "workforce", "strength")
                ):
                    has_total = True
                value = cell.as_number()
                if value is not None and value > largest:
                    largest = value
            if has_total and low <= largest <= high:
                return DataPoint.at(round_count(largest), period)
    return None


def _is_workforce_title(title: str) -> bool:
    lower = title.lower()
    return "police" in lower and "workforce" in lower


class PoliceConnector(KpiConnector):
    """Connector for Home Office police workforce statistics.

    Usage::

        async with PoliceConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "POLICE"
    MILESTONE: str = MilestoneSlug.POLICING.value
    CUTOFF: date = date(2020, 1, 1)
    MAX_PUBLICATION_HITS: int = 2

    def __init__(self, *args: Any, today: Optional[date] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.today = today or date.today()

    # -----------------------------------------------------------------------
    # Publication discovery
    # -----------------------------------------------------------------------
    def candidate_paths(self) -> list[str]:
        """Biannual publication slugs, newest first, back to EARLIEST_YEAR."""
        paths = []
        for year in range(self.today.year, EARLIEST_YEAR - 1, -1):
            paths.append(f"{PUBLICATION_PREFIX}-30-september-{year}")
            paths.append(f"{PUBLICATION_PREFIX}-31-march-{year}")
        return paths

    def strategies(self) -> list[LocatorStrategy]:
        return [
            CandidatePathStrategy(
                paths=self.candidate_paths(),
                timeout=self.settings.probe_timeout_seconds,
                max_hits=self.MAX_PUBLICATION_HITS,
            ),
            SearchApiStrategy(
                query='"police workforce" "england and wales"',
                filters={
                    "filter_organisations": "home-office",
                    "fields": "title,link,public_timestamp,format,content_store_document_type",
                },
                order="-public_timestamp",
            ),
        ]

    # -----------------------------------------------------------------------
    # Attachment discovery
    # -----------------------------------------------------------------------
    async def discover_attachments(self, url: str, depth: int = 0) -> list[DocumentLink]:
        """Spreadsheet links for one publication page.

        Content API attachments and document fragments first; if none,
        child pages (one level deep); if still none, the HTML page.
        """
        path = url[len(GOVUK_BASE):] if url.startswith(GOVUK_BASE) else url
        links: list[DocumentLink] = []

        content = await self._get_json_soft(content_api_url(path))
        if content is not None:
            links.extend(attachment_links(content))
            if not links and depth == 0:
                for child in child_links(content):
                    links.extend(await self.discover_attachments(child.url, depth + 1))

        if not links:
            html = await self._get_text_soft(GOVUK_BASE + path)
            if html:
                links.extend(extract_spreadsheet_links(html, GOVUK_BASE))

        return dedupe_links(links)

    def extractor(self) -> TableExtractor:
        return TableExtractor(
            hypotheses=[workforce_layout()],
            sheet_preference=SheetPreference(
                exact_names=("Table_4",),
                patterns=(
                    r"table.*h1",
                    r"time.?series",
                    r"workforce",
                    r"headcount",
                    r"summary",
                    r"overview",
                    r"table.*4",
                    r"officer",
                    r"strength",
                ),
                prefix="table",
            ),
            retry_sheets=is_related_sheet,
            source=self.SOURCE_NAME,
        )

    # -----------------------------------------------------------------------
    # Fetch
    # -----------------------------------------------------------------------
    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Extract the workforce series from the latest publications.

        Returns:
            Combined workforce totals from 2020 onwards, oldest first. When
            two publications cover the same date the first one found wins.
        """
        publications = await run_fallback_chain(self.strategies(), self, source=self.SOURCE_NAME)
        if not publications:
            self.log.error("no_publications_found")
            return []

        extractor = self.extractor()
        collected: list[DataPoint] = []
        seen_dates: set[date] = set()

        def collect(points: list[DataPoint]) -> None:
            for point in points:
                if point.date not in seen_dates:
                    seen_dates.add(point.date)
                    collected.append(point)

        for publication in publications:
            if not _is_workforce_title(publication.title):
                self.log.debug("publication_skipped", title=publication.title)
                continue

            self.log.info("processing_publication", title=publication.title, url=publication.url)
            attachments = await self.discover_attachments(publication.url)
            if not attachments:
                self.log.info("no_spreadsheets_found", title=publication.title)
                continue

            found = False
            for link in order_attachments(attachments):
                workbook = await self._download_workbook(link)
                if workbook is None:
                    continue
                points = extractor.extract(workbook)
                if points:
                    collect(points)
                    found = True
                    break

            title_period = parse_title_date(publication.title)
            if found or title_period is None:
                continue

            self.log.info("trying_title_date_fallback", title=publication.title)
            for link in attachments:
                workbook = await self._download_workbook(link)
                if workbook is None:
                    continue
                point = fallback_total(workbook, title_period)
                if point is not None and point.date not in seen_dates:
                    collect([point])
                    break

        points = self.finalize(collected)
        if not points:
            self.log.error("no_workforce_points")
        return points
