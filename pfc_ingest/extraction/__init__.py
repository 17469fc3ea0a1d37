"""Spreadsheet discovery and table extraction.

- cells / workbook: tagged cell grid loaded from xlsx, xls or ods bytes
- sheets / headers / periods: sheet choice, header rules, period parsers
- layouts: ordered extraction hypotheses run by TableExtractor
- locator: fallback chains resolving a dataset to document links
"""

from .cells import EMPTY, DateCell, EmptyCell, NumberCell, Sheet, TextCell, Workbook, to_cell
from .headers import HeaderRule, any_of, exactly, find_header_row
from .layouts import (
    ColumnOrientedLayout,
    ComputedRatioLayout,
    ExtractionHypothesis,
    RowOrientedLayout,
    TableExtractor,
    TransposedLayout,
    ValueColumn,
)
from .locator import (
    CandidatePathStrategy,
    ContentApiStrategy,
    DocumentLink,
    HtmlScrapeStrategy,
    LocatorStrategy,
    SearchApiStrategy,
    extract_spreadsheet_hrefs,
    rank_spreadsheet_links,
    run_fallback_chain,
)
from .points import DataPoint, finalize_points
from .sheets import SheetPreference, select_sheet
from .workbook import load_workbook

__all__ = [
    "EMPTY",
    "DateCell",
    "EmptyCell",
    "NumberCell",
    "TextCell",
    "Sheet",
    "Workbook",
    "to_cell",
    "load_workbook",
    "SheetPreference",
    "select_sheet",
    "HeaderRule",
    "any_of",
    "exactly",
    "find_header_row",
    "ExtractionHypothesis",
    "TransposedLayout",
    "RowOrientedLayout",
    "ColumnOrientedLayout",
    "ComputedRatioLayout",
    "ValueColumn",
    "TableExtractor",
    "DataPoint",
    "finalize_points",
    "DocumentLink",
    "LocatorStrategy",
    "ContentApiStrategy",
    "SearchApiStrategy",
    "HtmlScrapeStrategy",
    "CandidatePathStrategy",
    "run_fallback_chain",
    "rank_spreadsheet_links",
    "extract_spreadsheet_hrefs",
]
