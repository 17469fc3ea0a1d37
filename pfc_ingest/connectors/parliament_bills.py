"""UK Parliament Bills API connector.

Searches https://bills-api.parliament.uk for bills matching a milestone's
search terms and stores each as an output with its stage history.

Key design decisions:
- Bills whose short title contains an exclude term are dropped
- Status is "Royal Assent" for Acts, otherwise the current stage
- Stage date = earliest sitting; a stage with any sitting is completed
- Every bill and its stages are written in one transaction
- A stage list that could not be fetched leaves the stored stages alone
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pfc_ingest.connectors.base import EntityConnector
from pfc_ingest.core.enums import Confidence, House, OutputSource, OutputType
from pfc_ingest.core.utils.parsing import parse_iso_date

BILLS_PAGE_URL = "https://bills.parliament.uk/bills"


@dataclass
class BillRecord:
    """A bill output row and its stage rows, in stage order.

    ``stages`` is None when the stage request failed.
    """

    output: dict[str, Any]
    stages: Optional[list[dict[str, Any]]]


def is_excluded(title: str, exclude_terms: list[str]) -> bool:
    lower = title.lower()
    return any(term.lower() in lower for term in exclude_terms)


def stage_row(stage: dict[str, Any]) -> dict[str, Any]:
    sittings = [s for s in stage.get("stageSittings") or [] if isinstance(s, dict)]
    dates = sorted(d for d in (parse_iso_date(s.get("date")) for s in sittings) if d is not None)
    house = House.COMMONS if stage.get("house") == House.COMMONS.value else House.LORDS
    return {
        "name": stage.get("description") or "",
        "house": house.value,
        "date": dates[0] if dates else None,
        "completed": bool(sittings),
    }


class ParliamentBillsConnector(EntityConnector):
    """Connector for bills and their stages.

    Usage::

        async with ParliamentBillsConnector(mapping, storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "PARLIAMENT_BILLS"
    BASE_URL: str = "https://bills-api.parliament.uk/api/v1"

    async def search_bills(self, term: str) -> list[dict[str, Any]]:
        params = {
            "SearchTerm": term,
            "CurrentHouse": "All",
            "SortOrder": "DateUpdatedDescending",
        }
        data = await self._get_json_soft("/Bills", params=params)
        items = data.get("items") if isinstance(data, dict) else None
        return [item for item in items or [] if isinstance(item, dict) and item.get("billId")]

    async def fetch_stages(self, bill_id: int) -> Optional[list[dict[str, Any]]]:
        """Stage items of a bill, or None when the request or payload failed."""
        data = await self._get_json_soft(f"/Bills/{bill_id}/Stages")
        if not isinstance(data, dict):
            return None
        return [item for item in data.get("items") or [] if isinstance(item, dict)]

    def to_output(self, bill: dict[str, Any]) -> dict[str, Any]:
        bill_id = bill["billId"]
        current_stage = bill.get("currentStage") or {}
        status = "Royal Assent" if bill.get("isAct") else current_stage.get("description") or ""
        updated = parse_iso_date(bill.get("lastUpdate"))
        return {
            "id": f"bill-{bill_id}",
            "milestone_slug": self.milestone_slug,
            "type": OutputType.BILL.value,
            "title": bill.get("shortTitle") or "",
            "description": "",
            "url": f"{BILLS_PAGE_URL}/{bill_id}",
            "source": OutputSource.PARLIAMENT.value,
            "status": status,
            "published_date": updated,
            "last_updated": updated,
            "department": "",
            "confidence": Confidence.HIGH.value,
        }

    async def fetch(self, **kwargs: Any) -> list[BillRecord]:
        """Search every bill term, then load stages for each unique bill.

        Returns:
            One BillRecord per bill, in discovery order.
        """
        if not self.mapping.bill_search_terms:
            self.log.info("no_bill_search_terms")
            return []

        seen: set[int] = set()
        bills: list[dict[str, Any]] = []
        for term in self.mapping.bill_search_terms:
            for bill in await self.search_bills(term):
                if bill["billId"] in seen:
                    continue
                if is_excluded(bill.get("shortTitle") or "", self.mapping.bill_exclude_terms):
                    continue
                seen.add(bill["billId"])
                bills.append(bill)

        records = []
        for bill in bills:
            stages = await self.fetch_stages(bill["billId"])
            if stages is None:
                self.log.warning("bill_stages_unavailable", bill_id=bill["billId"])
            rows = [stage_row(s) for s in stages] if stages is not None else None
            records.append(BillRecord(self.to_output(bill), rows))
        return records

    async def store(self, records: list[BillRecord]) -> int:
        return await self.storage.upsert_bills([(r.output, r.stages) for r in records])
