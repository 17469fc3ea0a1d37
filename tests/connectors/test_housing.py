"""Tests for the MHCLG Live Table 120 housing connector.

Verifies:
- Content API attachments are filtered to Table 120 and ranked first
- Financial-year heading row layout with an England total row
- One-financial-year-per-row layout with an "England" value column
- The next ranked workbook is tried when the first yields nothing
- HTML scraping is used when the content and search APIs find nothing
- Years before 2014-15 are dropped and values are whole dwellings
"""

from __future__ import annotations

from datetime import date

import pytest
import respx

from pfc_ingest.connectors.housing import DATASET_PATH, HTML_PAGE_URL, HousingConnector, select_table_120
from pfc_ingest.extraction.locator import SEARCH_API, content_api_url
from pfc_ingest.extraction.points import DataPoint

CONTENT_URL = content_api_url(DATASET_PATH)
TABLE_120_URL = "https://assets.publishing.service.gov.uk/media/abc/LiveTable120.xlsx"
TABLE_122_URL = "https://assets.publishing.service.gov.uk/media/abc/LiveTable122.xlsx"

CONTENT = {
    "title": "Live tables on housing supply: net additional dwellings",
    "details": {
        "attachments": [
            {
                "url": TABLE_122_URL,
                "title": "Table 122: net additional dwellings by local authority district",
                "filename": "LiveTable122.xlsx",
            },
            {
                "url": TABLE_120_URL,
                "title": "Table 120: components of net housing supply",
                "filename": "LiveTable120.xlsx",
            },
            {"url": "https://assets.publishing.service.gov.uk/media/abc/notes.pdf", "title": "Notes"},
        ]
    },
}

HEADING_ROW_SHEET = [
    ["Table 120: Components of net housing supply, England"],
    ["Dwellings"],
    [None, "2013-14", "2014-15", "2022-23", "2023-24"],
    ["New build completions", 124720, 142890, 212570, 200000],
    ["Total net additional dwellings", 136610, 170690.4, 234400, 221070],
]

YEAR_PER_ROW_SHEET = [
    ["Dwellings by financial year"],
    ["Financial year", "England"],
    ["2021-22", 232820],
    ["2022-23", 234400],
    ["2023-24", 221070],
]


def test_select_table_120() -> None:
    links = select_table_120(CONTENT)
    assert [link.url for link in links] == [TABLE_122_URL, TABLE_120_URL]


@pytest.mark.asyncio
async def test_heading_row_layout(test_settings, make_xlsx) -> None:
    content = make_xlsx({"Contents": [["Contents"]], "Table 120": HEADING_ROW_SHEET})
    with respx.mock() as mock:
        mock.get(CONTENT_URL).respond(200, json=CONTENT)
        download = mock.get(TABLE_120_URL).respond(200, content=content)
        async with HousingConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert download.call_count == 1
    assert points == [
        DataPoint(170690, date(2015, 3, 31), "2014-15"),
        DataPoint(234400, date(2023, 3, 31), "2022-23"),
        DataPoint(221070, date(2024, 3, 31), "2023-24"),
    ]


@pytest.mark.asyncio
async def test_year_per_row_layout(test_settings, make_xlsx) -> None:
    content = make_xlsx({"Table 120": YEAR_PER_ROW_SHEET})
    with respx.mock() as mock:
        mock.get(CONTENT_URL).respond(200, json=CONTENT)
        mock.get(TABLE_120_URL).respond(200, content=content)
        async with HousingConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert [(p.label, p.value) for p in points] == [
        ("2021-22", 232820),
        ("2022-23", 234400),
        ("2023-24", 221070),
    ]


@pytest.mark.asyncio
async def test_next_workbook_tried(test_settings, make_xlsx) -> None:
    """Table 120 has no recognizable layout, so Table 122 is parsed."""
    empty = make_xlsx({"Table 120": [["This table has moved"]]})
    fallback = make_xlsx({"Table 122": YEAR_PER_ROW_SHEET})
    with respx.mock() as mock:
        mock.get(CONTENT_URL).respond(200, json=CONTENT)
        first = mock.get(TABLE_120_URL).respond(200, content=empty)
        second = mock.get(TABLE_122_URL).respond(200, content=fallback)
        async with HousingConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert first.called and second.called
    assert len(points) == 3


@pytest.mark.asyncio
async def test_html_scrape_fallback(test_settings, make_xlsx) -> None:
    html = """
    <a href="/media/abc/LiveTable122.xlsx">Table 122</a>
    <a href="/media/abc/LiveTable120.xlsx">Live Table 120</a>
    """
    scraped_url = "https://www.gov.uk/media/abc/LiveTable120.xlsx"
    with respx.mock() as mock:
        mock.get(CONTENT_URL).respond(404)
        search = mock.get(SEARCH_API).respond(200, json={"results": []})
        mock.get(HTML_PAGE_URL).respond(200, text=html)
        mock.get(scraped_url).respond(200, content=make_xlsx({"Table 120": HEADING_ROW_SHEET}))
        async with HousingConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert search.called
    assert len(points) == 3


@pytest.mark.asyncio
async def test_nothing_discovered(test_settings) -> None:
    with respx.mock() as mock:
        mock.route().respond(404)
        async with HousingConnector(settings=test_settings) as conn:
            assert await conn.fetch() == []


@pytest.mark.asyncio
async def test_run_stores_snapshots(test_settings, storage, make_xlsx) -> None:
    with respx.mock() as mock:
        mock.get(CONTENT_URL).respond(200, json=CONTENT)
        mock.get(TABLE_120_URL).respond(200, content=make_xlsx({"Table 120": HEADING_ROW_SHEET}))
        async with HousingConnector(storage, settings=test_settings) as conn:
            assert await conn.run() == 3

    rows = await storage.get_kpi_snapshots("housing")
    assert rows[-1].value == 221070
