"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- test_settings: Settings pointing at an in-memory database, with keys set
- storage: an in-memory Storage with the schema created
- make_xlsx: callable building .xlsx bytes from {sheet name: rows}
- make_sheet: callable building a typed Sheet from raw row values
- housing_mapping: a narrow housing milestone mapping (one department,
  one document type, one term per search) so every HTTP call in a test
  is predictable
"""

from __future__ import annotations

import io
from datetime import date
from typing import Any, Callable

import openpyxl
import pytest
import pytest_asyncio

from pfc_ingest.core.config import Settings
from pfc_ingest.core.database import Storage
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.core.milestones import MilestoneMapping, MilestoneTarget
from pfc_ingest.extraction.cells import Sheet

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_url=MEMORY_URL,
        guardian_api_key="test-guardian-key",
        twfy_api_key="test-twfy-key",
        tracking_from_date=date(2024, 7, 1),
    )


@pytest_asyncio.fixture
async def storage():
    """In-memory Storage with every table created."""
    store = Storage(MEMORY_URL)
    await store.create_schema()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def make_xlsx() -> Callable[[dict[str, list[list[Any]]]], bytes]:
    """Return a callable that writes sheets to an in-memory .xlsx file.

    Usage::

        def test_something(make_xlsx):
            content = make_xlsx({"Table 120": [["Year", "England"], ...]})
    """

    def _build(sheets: dict[str, list[list[Any]]]) -> bytes:
        workbook = openpyxl.Workbook()
        workbook.remove(workbook.active)
        for name, rows in sheets.items():
            worksheet = workbook.create_sheet(title=name)
            for row in rows:
                worksheet.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _build


@pytest.fixture
def make_sheet() -> Callable[..., Sheet]:
    """Return a callable building a Sheet without going through a file."""

    def _build(rows: list[list[Any]], name: str = "Sheet1") -> Sheet:
        return Sheet.from_values(name, rows)

    return _build


@pytest.fixture
def housing_mapping() -> MilestoneMapping:
    """Housing milestone with a single search term per source."""
    return MilestoneMapping(
        slug=MilestoneSlug.HOUSING,
        title="Build 1.5 million homes",
        short_title="Housing",
        description="1.5 million homes in England.",
        target=MilestoneTarget(
            value=300000,
            unit="homes per year",
            date=date(2029, 3, 31),
            kpi_label="Net additional dwellings",
        ),
        departments=["ministry-of-housing-communities-local-government"],
        govuk_search_terms=["planning reform"],
        govuk_doc_types=["policy_paper"],
        bill_search_terms=["planning"],
        bill_exclude_terms=["private"],
        committee_ids=[17],
        debate_search_terms=["housebuilding"],
        guardian_tags=["society/housing"],
        guardian_search_terms=["housebuilding target"],
    )
