"""Source discovery: resolve a logical dataset to downloadable document URLs.

Each source is described by an ordered list of strategies. The chain
runner tries them in priority order and stops at the first strategy that
returns at least one link. A strategy that raises is logged and treated as
empty, so discovery never raises past the caller.

Strategies:
    ContentApiStrategy: GOV.UK content API lookup by known path(s)
    SearchApiStrategy: GOV.UK search API, optionally followed by a content
        lookup of every accepted result
    HtmlScrapeStrategy: regex ``href`` extraction from a human-facing page
    CandidatePathStrategy: probe per-year publication slugs with a short
        per-request timeout and stop after ``max_hits`` hits
"""

from __future__ import annotations

import abc
import html as html_lib
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, Union
from urllib.parse import unquote, urljoin, urlparse

import structlog

logger = structlog.get_logger(__name__)

GOVUK_BASE = "https://www.gov.uk"
CONTENT_API = "https://www.gov.uk/api/content"
SEARCH_API = "https://www.gov.uk/api/search.json"
ASSETS_BASE = "https://assets.publishing.service.gov.uk"

SPREADSHEET_RE = re.compile(r"\.(?:xlsx?|ods)(?:[?#].*)?$", re.IGNORECASE)
_HREF_RE = re.compile(
    r"""href\s*=\s*["']([^"']+\.(?:xlsx?|ods)(?:\?[^"']*)?)["']""",
    re.IGNORECASE,
)
_ANCHOR_RE = re.compile(
    r"""<a\s[^>]*?href\s*=\s*["']([^"']+)["'][^>]*>(.*?)</a>""",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]+>")

# A ranking term is one keyword, or a tuple of keywords that must all appear
RankTerm = Union[str, tuple[str, ...]]


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class DocumentLink:
    """A candidate document or publication URL with its human title."""

    url: str
    title: str = ""

    @property
    def filename(self) -> str:
        return unquote(urlparse(self.url).path.rsplit("/", 1)[-1])

    @property
    def search_text(self) -> str:
        """Lower-cased title + filename + URL used for keyword matching."""
        return f"{self.title} {self.filename} {self.url}".lower()

    @property
    def is_spreadsheet(self) -> bool:
        return is_spreadsheet_url(self.url)


def is_spreadsheet_url(url: str) -> bool:
    return bool(SPREADSHEET_RE.search(urlparse(url).path or url))


def absolute_url(href: str, base: str = GOVUK_BASE) -> str:
    """Resolve a relative ``href`` against ``base``; absolute URLs pass through."""
    href = html_lib.unescape(href.strip())
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base, href)


def content_api_url(path: str) -> str:
    """GOV.UK content API URL for a site path or full www.gov.uk URL."""
    if path.startswith(GOVUK_BASE):
        path = path[len(GOVUK_BASE):]
    if not path.startswith("/"):
        path = "/" + path
    return CONTENT_API + path


def dedupe_links(links: Iterable[DocumentLink]) -> list[DocumentLink]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[DocumentLink] = []
    for link in links:
        if link.url in seen:
            continue
        seen.add(link.url)
        unique.append(link)
    return unique


# ---------------------------------------------------------------------------
# HTML link extraction
# ---------------------------------------------------------------------------
def extract_spreadsheet_hrefs(html: str, base: str = GOVUK_BASE) -> list[str]:
    """All spreadsheet ``href`` targets in ``html``, absolute and de-duplicated."""
    urls: list[str] = []
    for match in _HREF_RE.finditer(html or ""):
        url = absolute_url(match.group(1), base)
        if url not in urls:
            urls.append(url)
    return urls


def extract_spreadsheet_links(html: str, base: str = GOVUK_BASE) -> list[DocumentLink]:
    """Spreadsheet anchors in ``html`` with their anchor text as title.

    Bare ``href`` matches outside a well-formed anchor are kept too, with
    an empty title.
    """
    links: list[DocumentLink] = []
    for href, inner in _ANCHOR_RE.findall(html or ""):
        url = absolute_url(href, base)
        if not is_spreadsheet_url(url):
            continue
        title = " ".join(html_lib.unescape(_TAG_RE.sub(" ", inner)).split())
        links.append(DocumentLink(url=url, title=title))
    links.extend(DocumentLink(url=url) for url in extract_spreadsheet_hrefs(html, base))
    return dedupe_links(links)


def extract_links(html: str, pattern: str, base: str = GOVUK_BASE) -> list[DocumentLink]:
    """Anchors whose ``href`` matches ``pattern`` (any file type)."""
    regex = re.compile(pattern, re.IGNORECASE)
    links = []
    for href, inner in _ANCHOR_RE.findall(html or ""):
        if not regex.search(href):
            continue
        title = " ".join(html_lib.unescape(_TAG_RE.sub(" ", inner)).split())
        links.append(DocumentLink(url=absolute_url(href, base), title=title))
    return dedupe_links(links)


# ---------------------------------------------------------------------------
# Content API payload helpers
# ---------------------------------------------------------------------------
def attachment_links(content: Any, include_documents: bool = True) -> list[DocumentLink]:
    """Spreadsheet links from a GOV.UK content item.

    Reads ``details.attachments`` (url, title, filename) and, when
    ``include_documents`` is set, the ``href`` targets inside the
    ``details.documents`` HTML fragments.
    """
    if not isinstance(content, dict):
        return []
    details = content.get("details") or {}
    links: list[DocumentLink] = []

    for attachment in details.get("attachments") or []:
        if not isinstance(attachment, dict):
            continue
        url = attachment.get("url") or ""
        if not url:
            continue
        url = absolute_url(url, ASSETS_BASE)
        title = " ".join(
            part for part in (attachment.get("title"), attachment.get("filename")) if part
        )
        if is_spreadsheet_url(url) or SPREADSHEET_RE.search(attachment.get("filename") or ""):
            links.append(DocumentLink(url=url, title=title))

    if include_documents:
        for fragment in details.get("documents") or []:
            if isinstance(fragment, str):
                links.extend(extract_spreadsheet_links(fragment, ASSETS_BASE))

    return dedupe_links(links)


def child_links(content: Any) -> list[DocumentLink]:
    """Publication pages linked as children/documents of a collection item."""
    if not isinstance(content, dict):
        return []
    links_section = content.get("links") or {}
    links: list[DocumentLink] = []
    for key in ("children", "documents"):
        for item in links_section.get(key) or []:
            if not isinstance(item, dict):
                continue
            path = item.get("base_path") or item.get("api_path") or ""
            if path.startswith("/api/content"):
                path = path[len("/api/content"):]
            if path:
                links.append(DocumentLink(url=GOVUK_BASE + path, title=item.get("title") or ""))
    return dedupe_links(links)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------
def _term_matches(term: RankTerm, text: str) -> bool:
    if isinstance(term, str):
        return term.lower() in text
    return all(word.lower() in text for word in term)


def rank_spreadsheet_links(
    links: Sequence[DocumentLink],
    exact: Sequence[RankTerm] = (),
    domain: Sequence[RankTerm] = (),
    spreadsheets_only: bool = True,
) -> list[DocumentLink]:
    """Order links: exact target-table terms, then domain terms, then the rest.

    Terms are tried in the order given, so earlier terms outrank later
    ones. Links within one tier keep their input order, which makes the
    result deterministic for a given input list.

    Args:
        links: Candidate links.
        exact: Target-table terms, e.g. ``("table 120", "livetable120")``.
        domain: Domain terms, e.g. ``(("renewable", "generation"), "renewable")``.
        spreadsheets_only: Drop links that do not point at a spreadsheet.

    Returns:
        The ranked links (the first element is the best choice).
    """
    pool = [link for link in links if link.is_spreadsheet or not spreadsheets_only]
    ranked: list[DocumentLink] = []
    for term in (*exact, *domain):
        for link in pool:
            if link not in ranked and _term_matches(term, link.search_text):
                ranked.append(link)
    ranked.extend(link for link in pool if link not in ranked)
    return ranked


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------
class SoftHttp(Protocol):
    """The soft-fail HTTP surface strategies rely on (see BaseConnector)."""

    async def _get_json_soft(self, url: str, **kwargs: Any) -> Any | None: ...

    async def _get_text_soft(self, url: str, **kwargs: Any) -> str | None: ...


class LocatorStrategy(abc.ABC):
    name: str = "strategy"

    @abc.abstractmethod
    async def locate(self, http: SoftHttp) -> list[DocumentLink]:
        """Return candidate links, or [] when this strategy finds nothing."""
        ...


@dataclass
class ContentApiStrategy(LocatorStrategy):
    """Query the content API at each known path.

    ``select`` turns a content item into links; it defaults to spreadsheet
    attachments. By default the first path with links wins; with
    ``collect_all`` the links of every path are pooled.
    """

    paths: Sequence[str]
    select: Callable[[Any], list[DocumentLink]] = attachment_links
    collect_all: bool = False
    timeout: Optional[float] = None
    name: str = "content_api"

    async def locate(self, http: SoftHttp) -> list[DocumentLink]:
        pooled: list[DocumentLink] = []
        for path in self.paths:
            content = await http._get_json_soft(content_api_url(path), timeout=self.timeout)
            if content is None:
                continue
            links = self.select(content)
            if links and not self.collect_all:
                return links
            pooled.extend(links)
        return dedupe_links(pooled)


@dataclass
class SearchApiStrategy(LocatorStrategy):
    """Full-text GOV.UK search, filtered by ``accept`` on each result.

    Without ``select`` the accepted results themselves are returned as
    publication links. With ``select`` each accepted result is looked up in
    the content API and the selected links of all of them are returned.
    """

    query: str
    filters: dict[str, str] = field(default_factory=dict)
    count: int = 5
    order: Optional[str] = None
    accept: Optional[Callable[[dict], bool]] = None
    select: Optional[Callable[[Any], list[DocumentLink]]] = None
    first_match_only: bool = False
    timeout: Optional[float] = None
    name: str = "search_api"

    def params(self) -> dict[str, str]:
        params = {"q": self.query, "count": str(self.count)}
        if self.order:
            params["order"] = self.order
        params.update(self.filters)
        return params

    async def locate(self, http: SoftHttp) -> list[DocumentLink]:
        data = await http._get_json_soft(SEARCH_API, params=self.params(), timeout=self.timeout)
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return []

        matched = [
            r for r in results
            if isinstance(r, dict) and r.get("link") and (self.accept is None or self.accept(r))
        ]
        if self.first_match_only:
            matched = matched[:1]

        if self.select is None:
            return dedupe_links(
                DocumentLink(url=absolute_url(r["link"]), title=r.get("title") or "")
                for r in matched
            )

        links: list[DocumentLink] = []
        for result in matched:
            content = await http._get_json_soft(content_api_url(result["link"]), timeout=self.timeout)
            if content is not None:
                links.extend(self.select(content))
        return dedupe_links(links)


@dataclass
class HtmlScrapeStrategy(LocatorStrategy):
    """Scrape spreadsheet links from human-facing page(s).

    When ``patterns`` is set, links are filtered by the first pattern (in
    order) that matches any link. With no pattern matching, all spreadsheet
    links are returned, or none when ``strict`` is set.
    """

    page_urls: Sequence[str]
    base_url: Optional[str] = None
    patterns: Sequence[str] = ()
    link_pattern: Optional[str] = None
    strict: bool = False
    timeout: Optional[float] = None
    name: str = "html_scrape"

    async def locate(self, http: SoftHttp) -> list[DocumentLink]:
        for page_url in self.page_urls:
            html = await http._get_text_soft(page_url, timeout=self.timeout)
            if not html:
                continue
            base = self.base_url or page_url
            if self.link_pattern:
                links = extract_links(html, self.link_pattern, base)
            else:
                links = extract_spreadsheet_links(html, base)
            links = self._filter(links)
            if links:
                return links
        return []

    def _filter(self, links: list[DocumentLink]) -> list[DocumentLink]:
        for pattern in self.patterns:
            regex = re.compile(pattern, re.IGNORECASE)
            matched = [link for link in links if regex.search(link.url) or regex.search(link.title)]
            if matched:
                return matched
        if self.strict and self.patterns:
            return []
        return links


@dataclass
class CandidatePathStrategy(LocatorStrategy):
    """Probe a list of candidate content paths with a per-request timeout.

    A path is a hit when the content API returns an item that ``accept``
    approves. Probing stops once ``max_hits`` hits are collected, which
    bounds total latency when most candidate slugs do not exist.
    """

    paths: Sequence[str]
    accept: Optional[Callable[[dict], bool]] = None
    timeout: float = 5.0
    max_hits: int = 2
    name: str = "candidate_paths"

    async def locate(self, http: SoftHttp) -> list[DocumentLink]:
        hits: list[DocumentLink] = []
        for path in self.paths:
            content = await http._get_json_soft(
                content_api_url(path), timeout=self.timeout, retries=1
            )
            if not isinstance(content, dict):
                continue
            if self.accept is not None and not self.accept(content):
                continue
            hits.append(DocumentLink(url=GOVUK_BASE + path, title=content.get("title") or ""))
            if len(hits) >= self.max_hits:
                break
        return hits


# ---------------------------------------------------------------------------
# Chain runner
# ---------------------------------------------------------------------------
async def run_fallback_chain(
    strategies: Sequence[LocatorStrategy],
    http: SoftHttp,
    source: str = "",
) -> list[DocumentLink]:
    """Run ``strategies`` in order and return the first non-empty result.

    Exceptions raised by a strategy are logged and the chain moves on; when
    every strategy comes back empty the result is [].
    """
    log = logger.bind(source=source)
    for strategy in strategies:
        try:
            links = await strategy.locate(http)
        except Exception as exc:
            log.warning("strategy_failed", strategy=strategy.name, error=str(exc))
            continue
        if links:
            log.info("strategy_succeeded", strategy=strategy.name, links=len(links))
            return links
        log.debug("strategy_empty", strategy=strategy.name)

    log.warning("all_strategies_exhausted", strategies=[s.name for s in strategies])
    return []
