"""Tests for the GOV.UK search outputs connector.

Verifies:
- Department-scoped results are high confidence, keyword-only medium
- A link found by both searches is kept once, at high confidence
- Search parameters carry the document type and tracking window
- Document types map to output types; unknown types become policy papers
- run() upserts outputs
"""

from __future__ import annotations

from datetime import date

import httpx
import pytest
import respx

from pfc_ingest.connectors.govuk_search import GovUkSearchConnector, id_from_link, map_doc_type
from pfc_ingest.core.enums import OutputType
from pfc_ingest.core.models import Output
from pfc_ingest.extraction.locator import SEARCH_API

WORKING_PAPER = {
    "link": "/government/publications/planning-reform-working-paper",
    "title": "Planning reform working paper",
    "description": "Proposals to speed up planning decisions.",
    "public_timestamp": "2024-12-12T10:00:00.000+00:00",
    "organisations": [{"title": "Ministry of Housing, Communities and Local Government"}],
    "content_store_document_type": "policy_paper",
}
CONSULTATION = {
    "link": "/government/consultations/planning-fees",
    "title": "Planning fees consultation",
    "public_timestamp": "2025-01-20T09:30:00.000+00:00",
    "content_store_document_type": "open_consultation",
}


def _search(request: httpx.Request) -> httpx.Response:
    if "filter_organisations" in request.url.params:
        return httpx.Response(200, json={"results": [WORKING_PAPER]})
    return httpx.Response(200, json={"results": [WORKING_PAPER, CONSULTATION, {"title": "no link"}]})


def test_id_from_link() -> None:
    assert id_from_link("/government/publications/x") == "govuk-government-publications-x"


def test_map_doc_type() -> None:
    assert map_doc_type("closed_consultation") is OutputType.CONSULTATION
    assert map_doc_type("independent_report") is OutputType.COMMITTEE_REPORT
    assert map_doc_type("press_release") is OutputType.POLICY_PAPER
    assert map_doc_type(None) is OutputType.POLICY_PAPER


@pytest.mark.asyncio
async def test_fetch_confidence_and_dedupe(test_settings, housing_mapping) -> None:
    with respx.mock() as mock:
        route = mock.get(SEARCH_API).mock(side_effect=_search)
        async with GovUkSearchConnector(housing_mapping, settings=test_settings) as conn:
            outputs = await conn.fetch()

    assert route.call_count == 2
    assert [(o["id"], o["confidence"]) for o in outputs] == [
        ("govuk-government-publications-planning-reform-working-paper", "high"),
        ("govuk-government-consultations-planning-fees", "medium"),
    ]

    paper, consultation = outputs
    assert paper["type"] == "policy_paper"
    assert paper["department"] == "Ministry of Housing, Communities and Local Government"
    assert paper["published_date"] == date(2024, 12, 12)
    assert paper["url"] == "https://www.gov.uk/government/publications/planning-reform-working-paper"
    assert consultation["type"] == "consultation"
    assert consultation["department"] == "ministry-of-housing-communities-local-government"
    assert consultation["description"] == ""


@pytest.mark.asyncio
async def test_search_params(test_settings, housing_mapping) -> None:
    with respx.mock() as mock:
        route = mock.get(SEARCH_API).respond(200, json={"results": []})
        async with GovUkSearchConnector(housing_mapping, settings=test_settings) as conn:
            assert await conn.fetch() == []

    params = route.calls[0].request.url.params
    assert params["q"] == "planning reform"
    assert params["filter_organisations"] == "ministry-of-housing-communities-local-government"
    assert params["filter_content_store_document_type"] == "policy_paper"
    assert params["filter_public_timestamp"] == "from:2024-07-01"
    assert params["count"] == "50"
    assert "filter_organisations" not in route.calls[1].request.url.params


@pytest.mark.asyncio
async def test_failed_search_is_skipped(test_settings, housing_mapping) -> None:
    with respx.mock() as mock:
        mock.get(SEARCH_API).respond(404)
        async with GovUkSearchConnector(housing_mapping, settings=test_settings) as conn:
            assert await conn.fetch() == []


@pytest.mark.asyncio
async def test_run_upserts_outputs(test_settings, storage, housing_mapping) -> None:
    with respx.mock() as mock:
        mock.get(SEARCH_API).mock(side_effect=_search)
        async with GovUkSearchConnector(housing_mapping, storage, settings=test_settings) as conn:
            assert await conn.run() == 2

    assert await storage.count_rows(Output) == 2
    stored = await storage.get_output("govuk-government-consultations-planning-fees")
    assert stored.source == "govuk"
    assert stored.milestone_slug == "housing"
