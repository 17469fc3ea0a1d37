"""Base connector infrastructure for all data source connectors.

Provides the BaseConnector abstract class with:
- Async HTTP client via httpx with connection pooling and a fixed User-Agent
- Retry with exponential backoff + jitter via tenacity
- Rate limiting via asyncio.Semaphore
- Soft-fail GET helpers (_get_json_soft / _get_text_soft / _get_bytes_soft)
  that log and return None instead of raising, for discovery chains
- Structured logging via structlog
- Injected Storage for writes (no module-level database handle)

KpiConnector adds the shared spreadsheet download step and the KPI
snapshot store for the six headline-metric sources. EntityConnector binds
a connector to one milestone mapping.

Exception hierarchy (defined in pfc_ingest.core.exceptions, re-exported):
- ConnectorError: base for all connector errors
- RateLimitError: API rate limit hit (HTTP 429)
- DataParsingError: response data parse failure
- FetchError: HTTP fetch failure after retries exhausted
- MissingCredentialError: required API key not configured
"""

from __future__ import annotations

import abc
import asyncio
import inspect
from datetime import date
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from pfc_ingest.core.config import Settings, settings as default_settings
from pfc_ingest.core.database import Storage
from pfc_ingest.core.milestones import MilestoneMapping
from pfc_ingest.core.exceptions import (
    ConnectorError,
    DataParsingError,
    FetchError,
    MissingCredentialError,
    RateLimitError,
)
from pfc_ingest.extraction.cells import Workbook
from pfc_ingest.extraction.layouts import TableExtractor
from pfc_ingest.extraction.locator import DocumentLink
from pfc_ingest.extraction.points import DataPoint, finalize_points
from pfc_ingest.extraction.workbook import load_workbook

__all__ = [
    "BaseConnector",
    "EntityConnector",
    "KpiConnector",
    "ConnectorError",
    "DataParsingError",
    "FetchError",
    "MissingCredentialError",
    "RateLimitError",
]


def _is_retryable(exc: BaseException) -> bool:
    """Retry on rate limits, 5xx responses, connect errors and timeouts.

    4xx responses other than 429 are final: a missing publication slug
    will not appear on the next attempt.
    """
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


# ---------------------------------------------------------------------------
# BaseConnector ABC
# ---------------------------------------------------------------------------
class BaseConnector(abc.ABC):
    """Abstract base class for all data source connectors.

    Subclasses MUST override:
        SOURCE_NAME: str - identifier (e.g., "HOUSING", "GUARDIAN")

    Subclasses MAY override:
        BASE_URL: str - base API URL (absolute URLs work regardless)
        RATE_LIMIT_PER_SECOND: float - max concurrent requests (default 5.0)
        MAX_RETRIES: int - retry attempts on failure (default 3)
        TIMEOUT_SECONDS: float - HTTP timeout per request (default from settings)

    Usage::

        async with MyConnector(storage) as conn:
            count = await conn.run()
    """

    # Subclasses MUST override
    SOURCE_NAME: str = ""

    # Subclasses MAY override
    BASE_URL: str = ""
    RATE_LIMIT_PER_SECOND: float = 5.0
    MAX_RETRIES: int = 3
    TIMEOUT_SECONDS: Optional[float] = None

    def __init__(
        self,
        storage: Optional[Storage] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._storage = storage
        self.settings = settings or default_settings
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(int(self.RATE_LIMIT_PER_SECOND))
        self.log = structlog.get_logger().bind(connector=self.SOURCE_NAME)

    async def __aenter__(self) -> "BaseConnector":
        """Create and configure the httpx async client."""
        timeout = self.TIMEOUT_SECONDS or self.settings.http_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
            ),
            headers={"User-Agent": self.settings.http_user_agent},
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        """Close the httpx async client if open."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the active httpx client.

        Raises:
            ConnectorError: If the client has not been initialized via __aenter__.
        """
        if self._client is None:
            raise ConnectorError(
                f"{self.SOURCE_NAME}: HTTP client not initialized. "
                "Use 'async with connector:' context manager."
            )
        return self._client

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            raise ConnectorError(f"{self.SOURCE_NAME}: no storage configured")
        return self._storage

    async def _request(
        self, method: str, url: str, retries: Optional[int] = None, **kwargs: Any
    ) -> httpx.Response:
        """Rate-limited HTTP request with retry.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: URL path (relative to BASE_URL) or absolute URL.
            retries: Attempt limit for this call (default MAX_RETRIES).
            **kwargs: Additional arguments passed to httpx.AsyncClient.request,
                e.g. ``timeout=5.0`` to bound one probe.

        Returns:
            The httpx.Response object.

        Raises:
            RateLimitError: If the API returns HTTP 429 on the final attempt.
            httpx.HTTPError: If the final attempt fails.
        """
        async with self._semaphore:
            return await self._request_with_retry(
                method, url, retries or self.MAX_RETRIES, **kwargs
            )

    async def _request_with_retry(
        self, method: str, url: str, attempts: int, **kwargs: Any
    ) -> httpx.Response:
        """Execute an HTTP request with tenacity retry logic.

        Uses AsyncRetrying so that the attempt limit can vary per call.
        Backoff: exponential with jitter (initial=1s, max=30s, jitter=5s).
        """
        if kwargs.get("timeout") is None:
            kwargs.pop("timeout", None)

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            reraise=True,
        ):
            with attempt:
                self.log.debug(
                    "http_request",
                    method=method,
                    url=url,
                    attempt=attempt.retry_state.attempt_number,
                )
                response = self.client.request(method, url, **kwargs)
                if inspect.isawaitable(response):
                    response = await response
                if response.status_code == 429:
                    raise RateLimitError(
                        f"{self.SOURCE_NAME}: Rate limit exceeded (HTTP 429)"
                    )
                response.raise_for_status()
                return response

        # Should not be reached, but satisfies type checker
        raise FetchError(f"{self.SOURCE_NAME}: Request failed after retries")  # pragma: no cover

    # ---------------------------------------------------------------------------
    # Soft-fail helpers
    # ---------------------------------------------------------------------------
    async def _get_soft(self, url: str, **kwargs: Any) -> httpx.Response | None:
        try:
            return await self._request("GET", url, **kwargs)
        except (httpx.HTTPError, ConnectorError) as exc:
            self.log.info("soft_request_failed", url=url, error=str(exc) or type(exc).__name__)
            return None

    async def _get_json_soft(self, url: str, **kwargs: Any) -> Any | None:
        """GET ``url`` and decode JSON; None on any transport, status or JSON error."""
        response = await self._get_soft(url, **kwargs)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as exc:
            self.log.info("soft_json_invalid", url=url, error=str(exc))
            return None

    async def _get_text_soft(self, url: str, **kwargs: Any) -> str | None:
        response = await self._get_soft(url, **kwargs)
        return response.text if response is not None else None

    async def _get_bytes_soft(self, url: str, **kwargs: Any) -> bytes | None:
        response = await self._get_soft(url, **kwargs)
        return response.content if response is not None else None

    # ---------------------------------------------------------------------------
    # Abstract interface
    # ---------------------------------------------------------------------------
    @abc.abstractmethod
    async def fetch(self, **kwargs: Any) -> list[Any]:
        """Fetch records from the external source.

        Returns:
            List of records ready for storage.
        """
        ...

    @abc.abstractmethod
    async def store(self, records: list[Any]) -> int:
        """Persist fetched records.

        Args:
            records: Records from fetch().

        Returns:
            Number of records written.
        """
        ...

    # ---------------------------------------------------------------------------
    # Concrete methods
    # ---------------------------------------------------------------------------
    async def run(self, **kwargs: Any) -> int:
        """Execute the full fetch-then-store pipeline.

        Args:
            **kwargs: Passed through to fetch().

        Returns:
            Number of records written.
        """
        records = await self.fetch(**kwargs)

        if not records:
            self.log.warning("no_records_fetched")
            return 0

        written = await self.store(records)
        self.log.info("ingestion_complete", fetched=len(records), written=written)
        return written

    def _require_key(self, key: str, env_name: str) -> str:
        """Return ``key`` or raise MissingCredentialError when it is blank."""
        if not key or not key.strip():
            self.log.warning("missing_credential", env=env_name)
            raise MissingCredentialError(f"{self.SOURCE_NAME}: {env_name} is not set")
        return key.strip()


# ---------------------------------------------------------------------------
# KpiConnector
# ---------------------------------------------------------------------------
class KpiConnector(BaseConnector):
    """Connector producing dated KPI points for one milestone.

    Subclasses set MILESTONE and implement fetch() returning DataPoints;
    store() replaces snapshots on (milestone, date) in one transaction.
    """

    MILESTONE: str = ""
    CUTOFF: Optional[date] = None

    @property
    def cutoff(self) -> Optional[date]:
        if self.CUTOFF is not None:
            return self.CUTOFF
        return date(self.settings.kpi_cutoff_year, 1, 1)

    def finalize(self, points: list[DataPoint]) -> list[DataPoint]:
        """Apply the cutoff and last-wins date dedupe, sorted ascending."""
        return finalize_points(points, self.cutoff)

    async def store(self, records: list[DataPoint]) -> int:
        return await self.storage.upsert_kpi_snapshots(self.MILESTONE, records)

    async def _download_workbook(self, link: DocumentLink | str, **kwargs: Any) -> Workbook | None:
        """Download and parse a spreadsheet; None if either step fails."""
        url = link.url if isinstance(link, DocumentLink) else link
        content = await self._get_bytes_soft(url, **kwargs)
        if not content:
            return None
        try:
            workbook = load_workbook(content, url)
        except DataParsingError as exc:
            self.log.warning("workbook_unreadable", url=url, error=str(exc))
            return None
        self.log.info("workbook_loaded", url=url, sheets=workbook.sheet_names)
        return workbook

    async def _extract_from_links(
        self,
        links: list[DocumentLink],
        extractor: TableExtractor,
        limit: int = 3,
    ) -> list[DataPoint]:
        """Download ``links`` in order until one workbook yields points."""
        for link in links[:limit]:
            workbook = await self._download_workbook(link)
            if workbook is None:
                continue
            points = extractor.extract(workbook)
            if points:
                self.log.info(
                    "points_extracted",
                    url=link.url,
                    count=len(points),
                    first=points[0].label,
                    last=points[-1].label,
                )
                return points
            self.log.warning("no_points_in_workbook", url=link.url)
        return []


# ---------------------------------------------------------------------------
# EntityConnector
# ---------------------------------------------------------------------------
class EntityConnector(BaseConnector):
    """Connector scoped to one milestone's search configuration.

    Entity connectors map JSON search results to outputs, parliamentary
    activity or media rows for the milestone in ``mapping``.
    """

    def __init__(
        self,
        mapping: MilestoneMapping,
        storage: Optional[Storage] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        super().__init__(storage=storage, settings=settings)
        self.mapping = mapping
        self.log = self.log.bind(milestone=self.milestone_slug)

    @property
    def milestone_slug(self) -> str:
        return self.mapping.slug.value

    @property
    def tracking_from(self) -> date:
        return self.settings.tracking_from_date
