"""Tests for the Parliament committees connector.

Verifies:
- Only inquiry business items are kept
- Status is Open until the close date has passed
- Last activity prefers the latest report, then close date, then open date
- Committees whose details cannot be loaded are skipped
"""

from __future__ import annotations

from datetime import date

import pytest
import respx

from pfc_ingest.connectors.committees import CommitteesConnector, inquiry_status
from pfc_ingest.core.enums import InquiryStatus
from pfc_ingest.core.models import CommitteeInquiry

COMMITTEES_API = "https://committees-api.parliament.uk/api"
TODAY = date(2025, 1, 1)

BUSINESS = {
    "items": [
        {
            "id": 8001,
            "title": "Delivering 1.5 million new homes",
            "type": {"isInquiry": True},
            "openDate": "2024-10-01T00:00:00",
            "closeDate": None,
            "latestReport": None,
        },
        {
            "id": 8002,
            "title": "Local government finance",
            "type": {"isInquiry": True},
            "openDate": "2024-07-20T00:00:00",
            "closeDate": "2024-09-01T00:00:00",
            "latestReport": {"publicationStartDate": "2024-12-01T00:00:00"},
        },
        {"id": 8003, "title": "Oral evidence: Minister for Housing", "type": {"isInquiry": False}},
    ]
}


def test_inquiry_status() -> None:
    assert inquiry_status(None, TODAY) is InquiryStatus.OPEN
    assert inquiry_status(date(2025, 2, 1), TODAY) is InquiryStatus.OPEN
    assert inquiry_status(date(2025, 1, 1), TODAY) is InquiryStatus.CLOSED


@pytest.mark.asyncio
async def test_fetch_inquiries(test_settings, housing_mapping) -> None:
    with respx.mock(base_url=COMMITTEES_API) as mock:
        mock.get("/Committees/17").respond(
            200, json={"id": 17, "name": "Housing, Communities and Local Government Committee"}
        )
        business = mock.get("/CommitteeBusiness").respond(200, json=BUSINESS)
        async with CommitteesConnector(housing_mapping, settings=test_settings, today=TODAY) as conn:
            inquiries = await conn.fetch()

    params = business.calls[0].request.url.params
    assert params["CommitteeId"] == "17"
    assert params["DateFrom"] == "2024-07-01"
    assert params["Take"] == "50"

    assert [i["id"] for i in inquiries] == ["committee-17-8001", "committee-17-8002"]
    open_inquiry, closed_inquiry = inquiries
    assert open_inquiry["status"] == "Open"
    assert open_inquiry["last_activity"] == date(2024, 10, 1)
    assert open_inquiry["reports_published"] == 0
    assert open_inquiry["url"] == "https://committees.parliament.uk/work/8001"
    assert closed_inquiry["status"] == "Closed"
    assert closed_inquiry["last_activity"] == date(2024, 12, 1)
    assert closed_inquiry["reports_published"] == 1
    assert closed_inquiry["committee_name"] == "Housing, Communities and Local Government Committee"


@pytest.mark.asyncio
async def test_unknown_committee_skipped(test_settings, housing_mapping) -> None:
    with respx.mock(base_url=COMMITTEES_API) as mock:
        mock.get("/Committees/17").respond(404)
        async with CommitteesConnector(housing_mapping, settings=test_settings, today=TODAY) as conn:
            assert await conn.fetch() == []


@pytest.mark.asyncio
async def test_run_stores_inquiries(test_settings, storage, housing_mapping) -> None:
    with respx.mock(base_url=COMMITTEES_API) as mock:
        mock.get("/Committees/17").respond(200, json={"id": 17, "name": "HCLG Committee"})
        mock.get("/CommitteeBusiness").respond(200, json=BUSINESS)
        async with CommitteesConnector(
            housing_mapping, storage, settings=test_settings, today=TODAY
        ) as conn:
            assert await conn.run() == 2

    assert await storage.count_rows(CommitteeInquiry) == 2
