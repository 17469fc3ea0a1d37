"""Guardian Open Platform connector -- media coverage per milestone.

Searches https://content.guardianapis.com/search by tag and keyword for
articles published since the tracking start date. Requires
GUARDIAN_API_KEY; a blank key raises MissingCredentialError.

Articles are insert-or-ignore by URL: the first stored copy is kept.
GuardianOutputCoverageConnector searches by title for the milestone's
high-confidence bills, policy papers and white papers.
"""

from __future__ import annotations

from typing import Any, Optional

from pfc_ingest.connectors.base import EntityConnector
from pfc_ingest.core.enums import ApiSource, OutputType
from pfc_ingest.core.utils.parsing import parse_iso_date

GUARDIAN_SEARCH_URL = "https://content.guardianapis.com/search"
PAGE_SIZE = 20
SOURCE_LABEL = "The Guardian"

KEY_OUTPUT_TYPES = (
    OutputType.BILL.value,
    OutputType.POLICY_PAPER.value,
    OutputType.WHITE_PAPER.value,
)
MAX_KEY_OUTPUTS = 50


def id_from_guardian_path(guardian_id: str) -> str:
    return "guardian-" + guardian_id.replace("/", "-")


class GuardianConnector(EntityConnector):
    """Connector for Guardian articles about one milestone.

    Usage::

        async with GuardianConnector(mapping, storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "GUARDIAN"

    async def search(
        self, api_key: str, query: Optional[str] = None, tag: Optional[str] = None
    ) -> list[dict[str, Any]]:
        params = {
            "from-date": self.tracking_from.isoformat(),
            "order-by": "newest",
            "show-fields": "trailText,thumbnail,byline",
            "page-size": str(PAGE_SIZE),
            "api-key": api_key,
        }
        if query:
            params["q"] = query
        if tag:
            params["tag"] = tag
        data = await self._get_json_soft(GUARDIAN_SEARCH_URL, params=params)
        response = data.get("response") if isinstance(data, dict) else None
        results = response.get("results") if isinstance(response, dict) else None
        return [
            r for r in results or []
            if isinstance(r, dict) and r.get("id") and r.get("webUrl")
        ]

    def to_article(self, result: dict[str, Any], output_id: Optional[str] = None) -> dict[str, Any]:
        fields = result.get("fields") or {}
        return {
            "id": id_from_guardian_path(result["id"]),
            "milestone_slug": self.milestone_slug,
            "output_id": output_id,
            "title": result.get("webTitle") or "",
            "url": result["webUrl"],
            "source": SOURCE_LABEL,
            "published_date": parse_iso_date(result.get("webPublicationDate")),
            "excerpt": fields.get("trailText"),
            "thumbnail_url": fields.get("thumbnail"),
            "api_source": ApiSource.GUARDIAN.value,
        }

    async def fetch(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Tag search (all tags OR-ed) then one keyword search per term.

        Raises:
            MissingCredentialError: If GUARDIAN_API_KEY is blank.
        """
        api_key = self._require_key(self.settings.guardian_api_key, "GUARDIAN_API_KEY")
        seen: set[str] = set()
        articles: list[dict[str, Any]] = []

        def collect(results: list[dict[str, Any]]) -> None:
            for result in results:
                if result["id"] not in seen:
                    seen.add(result["id"])
                    articles.append(self.to_article(result))

        if self.mapping.guardian_tags:
            collect(await self.search(api_key, tag="|".join(self.mapping.guardian_tags)))
        for term in self.mapping.guardian_search_terms:
            collect(await self.search(api_key, query=term))
        return articles

    async def store(self, records: list[dict[str, Any]]) -> int:
        inserted = await self.storage.insert_media_articles(records)
        self.log.info("articles_inserted", inserted=inserted, fetched=len(records))
        return inserted


class GuardianOutputCoverageConnector(GuardianConnector):
    """Coverage of the milestone's key outputs, linked by ``output_id``."""

    SOURCE_NAME: str = "GUARDIAN_OUTPUTS"

    async def fetch(self, **kwargs: Any) -> list[dict[str, Any]]:
        api_key = self._require_key(self.settings.guardian_api_key, "GUARDIAN_API_KEY")
        outputs = await self.storage.list_high_confidence_outputs(
            self.milestone_slug,
            KEY_OUTPUT_TYPES,
            since=self.tracking_from,
            limit=MAX_KEY_OUTPUTS,
        )
        self.log.info("key_outputs_found", count=len(outputs))

        articles: list[dict[str, Any]] = []
        for output in outputs:
            results = await self.search(api_key, query=output.title)
            articles.extend(self.to_article(result, output_id=output.id) for result in results)
        return articles
