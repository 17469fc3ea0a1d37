"""TheyWorkForYou connector -- Hansard debates and written questions.

Searches the TheyWorkForYou API (https://www.theyworkforyou.com/api/)
with a milestone's debate search terms. Requires TWFY_API_KEY; a blank key
raises MissingCredentialError so the refresh marks the step skipped.

Key design decisions:
- Responses are either a bare list or ``{"rows": [...]}``
- htype 12/13 = Commons, 101 = Lords, 14 = Westminster Hall
- Titles are stripped of HTML and truncated with "..."
- Items dated before the tracking start date are dropped
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from pfc_ingest.connectors.base import EntityConnector
from pfc_ingest.core.enums import DebateHouse
from pfc_ingest.core.utils.parsing import parse_iso_date

TWFY_BASE = "https://www.theyworkforyou.com"
RESULTS_PER_TERM = 20

HOUSE_BY_HTYPE = {
    "12": DebateHouse.COMMONS,
    "13": DebateHouse.COMMONS,
    "101": DebateHouse.LORDS,
    "14": DebateHouse.WESTMINSTER_HALL,
}

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class TwfyRecords:
    debates: list[dict[str, Any]]
    questions: list[dict[str, Any]]

    def __len__(self) -> int:
        return len(self.debates) + len(self.questions)


def clean_text(raw: str, max_length: int = 200) -> str:
    """Strip HTML tags and truncate to ``max_length`` plus an ellipsis."""
    text = html.unescape(_TAG_RE.sub("", raw or "")).strip()
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def house_from_htype(htype: Any) -> DebateHouse:
    return HOUSE_BY_HTYPE.get(str(htype), DebateHouse.COMMONS)


def item_url(item: dict[str, Any], fallback_path: str) -> str:
    listurl = item.get("listurl") or ""
    if listurl.startswith("http"):
        return listurl
    return TWFY_BASE + (listurl or fallback_path)


def result_rows(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("rows")
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


class TheyWorkForYouConnector(EntityConnector):
    """Connector for debates and written questions of one milestone.

    Usage::

        async with TheyWorkForYouConnector(mapping, storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "THEYWORKFORYOU"
    BASE_URL: str = TWFY_BASE + "/api"

    async def search(self, endpoint: str, api_key: str, term: str) -> list[dict[str, Any]]:
        params = {"key": api_key, "s": term, "num": str(RESULTS_PER_TERM), "output": "json"}
        return result_rows(await self._get_json_soft(f"/{endpoint}", params=params))

    def _fresh(self, item: dict[str, Any], seen: set[str]) -> Optional[date]:
        """The item's date when it is new and inside the tracking window."""
        gid = item.get("gid")
        if not gid or gid in seen:
            return None
        hdate = parse_iso_date(item.get("hdate"))
        if hdate is None or hdate < self.tracking_from:
            return None
        seen.add(gid)
        return hdate

    def to_debate(self, item: dict[str, Any], hdate: date) -> dict[str, Any]:
        parent = item.get("parent") or {}
        if parent.get("body"):
            title = clean_text(parent["body"])
        else:
            title = clean_text(item.get("body") or "", 120)
        return {
            "id": f"twfy-debate-{item['gid']}",
            "milestone_slug": self.milestone_slug,
            "title": title,
            "date": hdate,
            "house": house_from_htype(item.get("htype")).value,
            "url": item_url(item, f"/debate/?id={item['gid']}"),
            "source": "theyworkforyou",
        }

    def to_question(self, item: dict[str, Any], hdate: date) -> dict[str, Any]:
        speaker = item.get("speaker") or {}
        return {
            "id": f"twfy-wq-{item['gid']}",
            "milestone_slug": self.milestone_slug,
            "question_title": clean_text(item.get("body") or "", 200),
            "asked_by": speaker.get("name") or "",
            "date": hdate,
            "url": item_url(item, f"/wrans/?id={item['gid']}"),
            "answered": bool(item.get("answered", False)),
        }

    async def fetch(self, **kwargs: Any) -> TwfyRecords:
        """Debates then written questions for every debate search term.

        Raises:
            MissingCredentialError: If TWFY_API_KEY is blank.
        """
        api_key = self._require_key(self.settings.twfy_api_key, "TWFY_API_KEY")
        records = TwfyRecords(debates=[], questions=[])
        if not self.mapping.debate_search_terms:
            self.log.info("no_debate_search_terms")
            return records

        seen_debates: set[str] = set()
        seen_questions: set[str] = set()
        for term in self.mapping.debate_search_terms:
            for item in await self.search("getDebates", api_key, term):
                hdate = self._fresh(item, seen_debates)
                if hdate is not None:
                    records.debates.append(self.to_debate(item, hdate))
        for term in self.mapping.debate_search_terms:
            for item in await self.search("getWrans", api_key, term):
                hdate = self._fresh(item, seen_questions)
                if hdate is not None:
                    records.questions.append(self.to_question(item, hdate))

        self.log.info(
            "twfy_items_found",
            debates=len(records.debates),
            questions=len(records.questions),
        )
        return records

    async def store(self, records: TwfyRecords) -> int:
        return await self.storage.upsert_hansard(records.debates, records.questions)
