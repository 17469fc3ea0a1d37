"""Tests for the Parliament bills connector.

Verifies:
- Bills matching an exclude term (private bills) are dropped
- Bills found by several terms are fetched once
- Stage rows take the earliest sitting date; stages without sittings are pending
- Acts are reported with status "Royal Assent"
- run() stores the bill output together with its stages
- A failed stage request leaves the stored stages in place
"""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import httpx
import pytest
import respx
from tenacity import wait_none

from pfc_ingest.connectors.parliament_bills import ParliamentBillsConnector, is_excluded, stage_row

BILLS_API = "https://bills-api.parliament.uk/api/v1"

BILLS = {
    "items": [
        {
            "billId": 3946,
            "shortTitle": "Planning and Infrastructure Bill",
            "currentStage": {"description": "Committee stage", "house": "Commons"},
            "isAct": False,
            "lastUpdate": "2025-04-10T14:00:00",
        },
        {"billId": 12, "shortTitle": "Planning (Private Bill)", "isAct": False},
        {"billId": 3946, "shortTitle": "Planning and Infrastructure Bill"},
        {"shortTitle": "No id"},
    ]
}
STAGES = {
    "items": [
        {"description": "1st reading", "house": "Commons", "stageSittings": [{"date": "2025-03-11T00:00:00"}]},
        {
            "description": "2nd reading",
            "house": "Commons",
            "stageSittings": [{"date": "2025-03-24T00:00:00"}, {"date": "2025-03-20T00:00:00"}],
        },
        {"description": "Committee stage", "house": "Commons", "stageSittings": []},
        {"description": "1st reading", "house": "Lords"},
    ]
}


def test_is_excluded() -> None:
    assert is_excluded("Planning (Private Bill)", ["private"])
    assert not is_excluded("Planning and Infrastructure Bill", ["private"])


def test_stage_row() -> None:
    assert stage_row(STAGES["items"][1]) == {
        "name": "2nd reading",
        "house": "Commons",
        "date": date(2025, 3, 20),
        "completed": True,
    }
    assert stage_row(STAGES["items"][3]) == {
        "name": "1st reading",
        "house": "Lords",
        "date": None,
        "completed": False,
    }


@pytest.mark.asyncio
async def test_fetch_bills_and_stages(test_settings, housing_mapping) -> None:
    with respx.mock(base_url=BILLS_API) as mock:
        search = mock.get("/Bills").respond(200, json=BILLS)
        stages = mock.get("/Bills/3946/Stages").respond(200, json=STAGES)
        async with ParliamentBillsConnector(housing_mapping, settings=test_settings) as conn:
            records = await conn.fetch()

    assert search.calls[0].request.url.params["SearchTerm"] == "planning"
    assert stages.call_count == 1
    assert len(records) == 1

    output = records[0].output
    assert output["id"] == "bill-3946"
    assert output["status"] == "Committee stage"
    assert output["url"] == "https://bills.parliament.uk/bills/3946"
    assert output["last_updated"] == date(2025, 4, 10)
    assert output["confidence"] == "high"
    assert [(s["name"], s["house"], s["completed"]) for s in records[0].stages] == [
        ("1st reading", "Commons", True),
        ("2nd reading", "Commons", True),
        ("Committee stage", "Commons", False),
        ("1st reading", "Lords", False),
    ]


@pytest.mark.asyncio
async def test_act_has_royal_assent(test_settings, housing_mapping) -> None:
    act = {
        "items": [
            {
                "billId": 3737,
                "shortTitle": "Renters' Rights Bill",
                "currentStage": {"description": "Royal Assent"},
                "isAct": True,
                "lastUpdate": "2025-10-27T12:00:00",
            }
        ]
    }
    with respx.mock(base_url=BILLS_API) as mock:
        mock.get("/Bills").respond(200, json=act)
        mock.get("/Bills/3737/Stages").respond(404)
        async with ParliamentBillsConnector(housing_mapping, settings=test_settings) as conn:
            records = await conn.fetch()

    assert records[0].output["status"] == "Royal Assent"
    assert records[0].stages is None


@pytest.mark.asyncio
async def test_no_search_terms(test_settings, housing_mapping) -> None:
    mapping = housing_mapping.model_copy(update={"bill_search_terms": []})
    async with ParliamentBillsConnector(mapping, settings=test_settings) as conn:
        assert await conn.fetch() == []


@pytest.mark.asyncio
async def test_run_stores_bill_with_stages(test_settings, storage, housing_mapping) -> None:
    with respx.mock(base_url=BILLS_API) as mock:
        mock.get("/Bills").respond(200, json=BILLS)
        mock.get("/Bills/3946/Stages").respond(200, json=STAGES)
        async with ParliamentBillsConnector(housing_mapping, storage, settings=test_settings) as conn:
            assert await conn.run() == 1

    output = await storage.get_output("bill-3946")
    assert output.title == "Planning and Infrastructure Bill"
    stages = await storage.get_bill_stages("bill-3946")
    assert [s.name for s in stages] == ["1st reading", "2nd reading", "Committee stage", "1st reading"]
    assert stages[1].date == date(2025, 3, 20)


@pytest.mark.asyncio
async def test_stage_outage_keeps_stored_stages(test_settings, storage, housing_mapping) -> None:
    with respx.mock(base_url=BILLS_API) as mock:
        mock.get("/Bills").respond(200, json=BILLS)
        mock.get("/Bills/3946/Stages").respond(200, json=STAGES)
        async with ParliamentBillsConnector(housing_mapping, storage, settings=test_settings) as conn:
            await conn.run()

    with patch("pfc_ingest.connectors.base.wait_exponential_jitter", return_value=wait_none()):
        with respx.mock(base_url=BILLS_API) as mock:
            mock.get("/Bills").respond(200, json=BILLS)
            stages = mock.get("/Bills/3946/Stages").respond(503)
            async with ParliamentBillsConnector(housing_mapping, storage, settings=test_settings) as conn:
                assert await conn.run() == 1

    assert stages.call_count == ParliamentBillsConnector.MAX_RETRIES
    assert len(await storage.get_bill_stages("bill-3946")) == 4


@pytest.mark.asyncio
async def test_empty_stage_list_replaces_stages(test_settings, storage, housing_mapping) -> None:
    with respx.mock(base_url=BILLS_API) as mock:
        mock.get("/Bills").respond(200, json=BILLS)
        mock.get("/Bills/3946/Stages").mock(
            side_effect=[httpx.Response(200, json=STAGES), httpx.Response(200, json={"items": []})]
        )
        async with ParliamentBillsConnector(housing_mapping, storage, settings=test_settings) as conn:
            await conn.run()
            await conn.run()

    assert await storage.get_bill_stages("bill-3946") == []
