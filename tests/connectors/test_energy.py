"""Tests for the Energy Trends renewables share connector.

Verifies:
- The share section is found deep in a quarterly sheet (transposed layout)
- A per-row share column is used when there is no share section
- The share is computed from renewable and total generation as a last resort
- Section 6 and section 5 attachments are pooled and ET 6.1 ranked first
- HTML scraping resolves links against the assets host
"""

from __future__ import annotations

from datetime import date

import pytest
import respx

from pfc_ingest.connectors.energy import (
    SECTION_5_PATH,
    SECTION_6_PAGE_URL,
    SECTION_6_PATH,
    EnergyTrendsConnector,
)
from pfc_ingest.extraction.locator import SEARCH_API, content_api_url
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.workbook import load_workbook

ASSETS = "https://assets.publishing.service.gov.uk/media/et"
ET_61_URL = f"{ASSETS}/ET_6.1_MAR_25.xlsx"
QUARTERS = ["2019 4th quarter", "2020 1st quarter", "2024 2nd quarter"]


def _quarterly_sheet() -> list[list]:
    rows: list[list] = [
        ["Table 6.1 Renewable electricity capacity and generation"],
        ["Generation (GWh)", *QUARTERS],
        ["Wind", 20100, 24300, 22800],
        ["All renewables", 31200, 38800, 36400],
    ]
    rows.extend([[f"Capacity note {i}", i, i, i] for i in range(36)])
    rows.extend(
        [
            ["Renewables' share of electricity generation (%)", *QUARTERS],
            ["Wind", 0.241, 0.313, 0.301],
            ["All renewables", 0.361, 0.472, 0.501],
        ]
    )
    return rows


def _extract(test_settings, content: bytes) -> list[DataPoint]:
    connector = EnergyTrendsConnector(settings=test_settings)
    return connector.extractor().extract(load_workbook(content, "ET_6.1.xlsx"))


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------
def test_share_section_in_quarterly_sheet(test_settings, make_xlsx) -> None:
    content = make_xlsx(
        {
            "Contents": [["Contents"]],
            "Main table": [["Annual data"]],
            "Quarter": _quarterly_sheet(),
        }
    )
    assert _extract(test_settings, content) == [
        DataPoint(47.2, date(2020, 1, 1), "Q1 2020"),
        DataPoint(50.1, date(2024, 4, 1), "Q2 2024"),
    ]


def test_share_column(test_settings, make_xlsx) -> None:
    content = make_xlsx(
        {
            "Quarterly": [
                ["Year", "Quarter", "Renewables' share of electricity generation (%)"],
                [2024, 1, 50.1],
                [2024, 2, 0.52],
            ]
        }
    )
    assert _extract(test_settings, content) == [
        DataPoint(50.1, date(2024, 1, 1), "Q1 2024"),
        DataPoint(52.0, date(2024, 4, 1), "Q2 2024"),
    ]


def test_computed_share(test_settings, make_xlsx) -> None:
    content = make_xlsx(
        {
            "Quarterly": [
                ["Year", "Quarter", "Total renewable generation (GWh)", "Total electricity generation (GWh)"],
                [2024, 1, 36000, 72000],
                [2024, 2, 27000, 60000],
            ]
        }
    )
    assert _extract(test_settings, content) == [
        DataPoint(50.0, date(2024, 1, 1), "Q1 2024"),
        DataPoint(45.0, date(2024, 4, 1), "Q2 2024"),
    ]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_content_api_pools_sections(test_settings, make_xlsx) -> None:
    section_6 = {
        "details": {
            "attachments": [
                {"url": f"{ASSETS}/ET_6.2_MAR_25.xlsx", "title": "Energy Trends 6.2", "filename": "ET_6.2_MAR_25.xlsx"},
                {
                    "url": ET_61_URL,
                    "title": "Energy Trends 6.1: renewable electricity capacity and generation",
                    "filename": "ET_6.1_MAR_25.xlsx",
                },
            ]
        }
    }
    section_5 = {
        "details": {
            "attachments": [
                {"url": f"{ASSETS}/ET_5.1_MAR_25.xlsx", "title": "Energy Trends 5.1", "filename": "ET_5.1_MAR_25.xlsx"}
            ]
        }
    }
    with respx.mock() as mock:
        mock.get(content_api_url(SECTION_6_PATH)).respond(200, json=section_6)
        mock.get(content_api_url(SECTION_5_PATH)).respond(200, json=section_5)
        download = mock.get(ET_61_URL).respond(200, content=make_xlsx({"Quarter": _quarterly_sheet()}))
        async with EnergyTrendsConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert download.call_count == 1
    assert [p.label for p in points] == ["Q1 2020", "Q2 2024"]


@pytest.mark.asyncio
async def test_html_scrape_fallback(test_settings, make_xlsx) -> None:
    html = '<a href="/media/et/ET_6.1_MAR_25.xlsx">ET 6.1</a>'
    with respx.mock() as mock:
        mock.get(content_api_url(SECTION_6_PATH)).respond(404)
        mock.get(content_api_url(SECTION_5_PATH)).respond(404)
        mock.get(SEARCH_API).respond(200, json={"results": []})
        mock.get(SECTION_6_PAGE_URL).respond(200, text=html)
        mock.get(ET_61_URL).respond(200, content=make_xlsx({"Quarter": _quarterly_sheet()}))
        async with EnergyTrendsConnector(settings=test_settings) as conn:
            points = await conn.fetch()

    assert len(points) == 2


@pytest.mark.asyncio
async def test_run_stores_snapshots(test_settings, storage, make_xlsx) -> None:
    with respx.mock() as mock:
        mock.get(content_api_url(SECTION_6_PATH)).respond(
            200, json={"details": {"attachments": [{"url": ET_61_URL, "title": "ET 6.1"}]}}
        )
        mock.get(content_api_url(SECTION_5_PATH)).respond(404)
        mock.get(ET_61_URL).respond(200, content=make_xlsx({"Quarter": _quarterly_sheet()}))
        async with EnergyTrendsConnector(storage, settings=test_settings) as conn:
            assert await conn.run() == 2

    assert [r.value for r in await storage.get_kpi_snapshots("clean-energy")] == [47.2, 50.1]
