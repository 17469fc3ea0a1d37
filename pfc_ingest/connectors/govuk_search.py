"""GOV.UK search connector -- Whitehall outputs for one milestone.

Queries the GOV.UK search API (https://www.gov.uk/api/search.json) for
documents published since the tracking start date and stores them as
outputs.

Key design decisions:
- Department-scoped searches (organisation x document type x term) are
  high confidence; keyword-only searches (term x document type) are
  medium confidence
- The first sighting of a link wins, so department hits keep "high"
- Deterministic id ``govuk-<path-with-dashes>`` makes refreshes idempotent
- Unknown document types default to policy_paper
"""

from __future__ import annotations

from typing import Any, Optional

from pfc_ingest.connectors.base import EntityConnector
from pfc_ingest.core.enums import Confidence, OutputSource, OutputType
from pfc_ingest.core.utils.parsing import parse_iso_date
from pfc_ingest.extraction.locator import GOVUK_BASE, SEARCH_API

PAGE_SIZE = 50
FIELDS = ",".join(
    (
        "title",
        "description",
        "link",
        "public_timestamp",
        "organisations",
        "format",
        "content_store_document_type",
        "display_type",
    )
)

DOC_TYPE_MAP: dict[str, OutputType] = {
    "policy_paper": OutputType.POLICY_PAPER,
    "consultation": OutputType.CONSULTATION,
    "open_consultation": OutputType.CONSULTATION,
    "closed_consultation": OutputType.CONSULTATION,
    "consultation_outcome": OutputType.CONSULTATION,
    "guidance": OutputType.GUIDANCE,
    "detailed_guidance": OutputType.GUIDANCE,
    "statutory_guidance": OutputType.GUIDANCE,
    "statutory_instrument": OutputType.STATUTORY_INSTRUMENT,
    "government_response": OutputType.GOVERNMENT_RESPONSE,
    "impact_assessment": OutputType.IMPACT_ASSESSMENT,
    "white_paper": OutputType.WHITE_PAPER,
    "independent_report": OutputType.COMMITTEE_REPORT,
    "corporate_report": OutputType.POLICY_PAPER,
    "notice": OutputType.GUIDANCE,
    "regulation": OutputType.STATUTORY_INSTRUMENT,
    "national_statistics": OutputType.POLICY_PAPER,
    "official_statistics": OutputType.POLICY_PAPER,
    "research": OutputType.POLICY_PAPER,
}


def map_doc_type(govuk_type: Optional[str]) -> OutputType:
    return DOC_TYPE_MAP.get(govuk_type or "", OutputType.POLICY_PAPER)


def id_from_link(link: str) -> str:
    """"/government/publications/x" -> "govuk-government-publications-x"."""
    return "govuk-" + link.lstrip("/").replace("/", "-")


class GovUkSearchConnector(EntityConnector):
    """Connector for GOV.UK published outputs of one milestone.

    Usage::

        async with GovUkSearchConnector(mapping, storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "GOVUK_SEARCH"

    def _params(self, term: str, doc_type: str, department: Optional[str] = None) -> dict[str, str]:
        params = {
            "q": term,
            "filter_content_store_document_type": doc_type,
            "filter_public_timestamp": f"from:{self.tracking_from.isoformat()}",
            "count": str(PAGE_SIZE),
            "start": "0",
            "fields": FIELDS,
        }
        if department:
            params["filter_organisations"] = department
        return params

    async def search(self, params: dict[str, str]) -> list[dict[str, Any]]:
        data = await self._get_json_soft(SEARCH_API, params=params)
        results = data.get("results") if isinstance(data, dict) else None
        return [r for r in results or [] if isinstance(r, dict) and r.get("link")]

    def to_output(self, result: dict[str, Any], confidence: Confidence) -> dict[str, Any]:
        organisations = result.get("organisations") or []
        department = None
        if organisations and isinstance(organisations[0], dict):
            department = organisations[0].get("title")
        if not department and self.mapping.departments:
            department = self.mapping.departments[0]
        published = parse_iso_date(result.get("public_timestamp"))
        return {
            "id": id_from_link(result["link"]),
            "milestone_slug": self.milestone_slug,
            "type": map_doc_type(result.get("content_store_document_type")).value,
            "title": result.get("title") or "",
            "description": result.get("description") or "",
            "url": GOVUK_BASE + result["link"],
            "source": OutputSource.GOVUK.value,
            "status": "",
            "published_date": published,
            "last_updated": published,
            "department": department or "",
            "confidence": confidence.value,
        }

    async def fetch(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Department-scoped then keyword-only searches, deduped by link.

        Returns:
            Output rows ready for upsert.
        """
        seen: set[str] = set()
        outputs: list[dict[str, Any]] = []

        def collect(results: list[dict[str, Any]], confidence: Confidence) -> None:
            for result in results:
                if result["link"] in seen:
                    continue
                seen.add(result["link"])
                outputs.append(self.to_output(result, confidence))

        for department in self.mapping.departments:
            for doc_type in self.mapping.govuk_doc_types:
                for term in self.mapping.govuk_search_terms:
                    results = await self.search(self._params(term, doc_type, department))
                    collect(results, Confidence.HIGH)

        for term in self.mapping.govuk_search_terms:
            for doc_type in self.mapping.govuk_doc_types:
                results = await self.search(self._params(term, doc_type))
                collect(results, Confidence.MEDIUM)

        self.log.info("govuk_outputs_found", count=len(outputs))
        return outputs

    async def store(self, records: list[dict[str, Any]]) -> int:
        return await self.storage.upsert_outputs(records)
