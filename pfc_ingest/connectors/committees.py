"""UK Parliament Committees API connector -- select committee inquiries.

For each committee id in a milestone mapping, loads the committee name
from ``/Committees/{id}`` and its business since the tracking start date
from ``/CommitteeBusiness``; only inquiry-type items are kept.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pfc_ingest.connectors.base import EntityConnector
from pfc_ingest.core.enums import InquiryStatus
from pfc_ingest.core.utils.parsing import parse_iso_date

INQUIRY_URL = "https://committees.parliament.uk/work"


def inquiry_status(close_date: Optional[date], today: date) -> InquiryStatus:
    if close_date is None or close_date > today:
        return InquiryStatus.OPEN
    return InquiryStatus.CLOSED


class CommitteesConnector(EntityConnector):
    """Connector for committee inquiries.

    Usage::

        async with CommitteesConnector(mapping, storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "COMMITTEES"
    BASE_URL: str = "https://committees-api.parliament.uk/api"

    def __init__(self, *args: Any, today: Optional[date] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.today = today or date.today()

    async def committee_name(self, committee_id: int) -> Optional[str]:
        data = await self._get_json_soft(f"/Committees/{committee_id}")
        if not isinstance(data, dict) or not data.get("name"):
            return None
        return data["name"]

    async def committee_business(self, committee_id: int) -> list[dict[str, Any]]:
        params = {
            "CommitteeId": str(committee_id),
            "DateFrom": self.tracking_from.isoformat(),
            "Take": "50",
        }
        data = await self._get_json_soft("/CommitteeBusiness", params=params)
        items = data.get("items") if isinstance(data, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    def to_inquiry(self, committee_id: int, committee_name: str, item: dict[str, Any]) -> dict[str, Any]:
        latest_report = item.get("latestReport") or None
        close_date = parse_iso_date(item.get("closeDate"))
        last_activity = (
            parse_iso_date((latest_report or {}).get("publicationStartDate"))
            or close_date
            or parse_iso_date(item.get("openDate"))
        )
        return {
            "id": f"committee-{committee_id}-{item['id']}",
            "milestone_slug": self.milestone_slug,
            "committee_name": committee_name,
            "committee_id": committee_id,
            "inquiry_title": item.get("title") or "",
            "status": inquiry_status(close_date, self.today).value,
            "url": f"{INQUIRY_URL}/{item['id']}",
            "evidence_sessions": 0,
            "reports_published": 1 if latest_report else 0,
            "last_activity": last_activity,
        }

    async def fetch(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Inquiries of every mapped committee.

        Returns:
            Inquiry rows; committees whose details cannot be loaded are
            skipped.
        """
        if not self.mapping.committee_ids:
            self.log.info("no_committee_ids")
            return []

        inquiries: list[dict[str, Any]] = []
        for committee_id in self.mapping.committee_ids:
            name = await self.committee_name(committee_id)
            if name is None:
                self.log.warning("committee_not_found", committee_id=committee_id)
                continue
            for item in await self.committee_business(committee_id):
                business_type = item.get("type") or {}
                if not business_type.get("isInquiry") or item.get("id") is None:
                    continue
                inquiries.append(self.to_inquiry(committee_id, name, item))
        return inquiries

    async def store(self, records: list[dict[str, Any]]) -> int:
        return await self.storage.upsert_committee_inquiries(records)
