"""
tools/search.py — Search Executor: one query in, combined page text out.

THE PIPELINE (per query):

  1. Load the search engine results page (DuckDuckGo HTML by default)
     in its own HTTP client with a hard timeout. Failure here fails the
     whole search — SearchError, surfaced as a session error.

  2. Extract the first N result links (N = max_search_results, default 3):
       - DuckDuckGo result anchors (a.result__a) and Google-style
         <a><h3>title</h3></a> headings
       - relative links and links back to the engine itself are skipped
       - redirect wrappers are unwrapped:
           /url?q=<target>            (Google)
           //duckduckgo.com/l/?uddg=  (DuckDuckGo)
       - a URL repeated on the same results page is kept once

  3. Admission filter per link (tools/admission.py) — extension/pattern
     check, then a HEAD content-type probe. Fail closed.

  4. Scrape admitted pages (tools/fetch.py), at most scrape_concurrency
     at a time. Order of the combined text always follows result order.

  5. Combine:
       --- Query: <query> ---

       --- Page Start ---
       Title: <title>
       SourceURL: <url>
       Content: <text>... | (Skipped: <reason>) | (Error: <reason>)

A page that fails or is skipped still appears, with its reason. One bad
page never aborts the search.

USAGE:
  executor = SearchExecutor()
  outcome = await executor.search("solid state battery 2025", token)
  print(outcome.text)
  for item in outcome.sources:
      print(item.title, item.url)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote_plus, urlsplit

import httpx
from bs4 import BeautifulSoup

from agent.cancellation import CancellationToken
from agent.errors import OperationCancelled, ScrapeError, SearchError
from config import settings
from tools.admission import check_url, probe_content_type
from tools.fetch import scrape_page

logger = logging.getLogger(__name__)

NO_RESULTS_TEXT = "No search results"


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass
class SearchItem:
    """One result link from the search engine results page."""
    title: str
    url: str


@dataclass
class PageBlock:
    """
    What happened to one result link.

    status is "scraped", "skipped" or "error".
    For "scraped", content holds the page text; otherwise reason explains.
    """
    item: SearchItem
    status: str
    content: str = ""
    reason: str = ""

    def render(self) -> str:
        lines = [
            "",
            "--- Page Start ---",
            f"Title: {self.item.title}",
            f"SourceURL: {self.item.url}",
        ]
        if self.status == "scraped":
            lines.append(f"Content: {self.content}...")
        elif self.status == "skipped":
            lines.append(f"Content: ({self.reason})")
        else:
            lines.append(f"Content: (Error: {self.reason})")
        return "\n".join(lines) + "\n"


@dataclass
class SearchOutcome:
    query: str
    text: str
    items: list[SearchItem] = field(default_factory=list)
    pages: list[PageBlock] = field(default_factory=list)

    @property
    def sources(self) -> list[SearchItem]:
        """Items whose page content actually made it into `text`."""
        return [p.item for p in self.pages if p.status == "scraped"]


# ── Search Executor ───────────────────────────────────────────────────────────

class SearchExecutor:
    """
    Executes one query: results page → links → admission → scrape → text.

    transport is injectable so tests can serve every HTTP call from an
    httpx.MockTransport.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_results: int | None = None,
        max_chars: int | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._transport = transport
        self._max_results = max_results or settings.max_search_results
        self._max_chars = max_chars or settings.max_scrape_chars
        self._concurrency = concurrency or settings.scrape_concurrency

    async def search(
        self,
        query: str,
        token: CancellationToken | None = None,
    ) -> SearchOutcome:
        query = (query or "").strip()
        if not query:
            return SearchOutcome(query="", text="")

        engine_url = settings.search_engine_url.format(query=quote_plus(query))
        html = await self._load_results_page(engine_url, token)
        items = extract_result_links(html, engine_url, self._max_results)
        if token is not None:
            token.raise_if_revoked()

        if not items:
            logger.info("No results for %r", query)
            return SearchOutcome(query=query, text=NO_RESULTS_TEXT)

        semaphore = asyncio.Semaphore(self._concurrency)
        pages = await asyncio.gather(
            *(self._process_item(item, semaphore, token) for item in items)
        )
        if token is not None:
            token.raise_if_revoked()

        text = f"--- Query: {query} ---\n" + "".join(p.render() for p in pages)
        scraped = sum(1 for p in pages if p.status == "scraped")
        logger.info("Search %r: %d links, %d scraped", query, len(items), scraped)
        return SearchOutcome(query=query, text=text, items=items, pages=list(pages))

    # ── Private ───────────────────────────────────────────────────────────────

    async def _load_results_page(
        self,
        engine_url: str,
        token: CancellationToken | None,
    ) -> str:
        if token is not None:
            token.raise_if_revoked()
        try:
            async with httpx.AsyncClient(
                timeout=settings.search_timeout_seconds,
                headers={"User-Agent": settings.user_agent},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(engine_url)
                response.raise_for_status()
                return response.text
        except httpx.TimeoutException:
            raise SearchError(
                f"Search engine timeout after {settings.search_timeout_seconds}s"
            ) from None
        except httpx.HTTPStatusError as e:
            raise SearchError(f"Search engine returned HTTP {e.response.status_code}") from None
        except httpx.HTTPError as e:
            raise SearchError(f"Search engine unreachable: {type(e).__name__}: {e}") from None

    async def _process_item(
        self,
        item: SearchItem,
        semaphore: asyncio.Semaphore,
        token: CancellationToken | None,
    ) -> PageBlock:
        """Admission + scrape for one link. Never raises — cancellation becomes a skip."""
        verdict = check_url(item.url)
        if not verdict.admitted:
            return PageBlock(item=item, status="skipped", reason=verdict.reason)

        async with semaphore:
            if token is not None and token.revoked:
                return PageBlock(item=item, status="skipped", reason="Skipped: cancelled")
            try:
                verdict = await probe_content_type(item.url, token=token, transport=self._transport)
                if not verdict.admitted:
                    return PageBlock(item=item, status="skipped", reason=verdict.reason)

                result = await scrape_page(
                    item.url,
                    max_chars=self._max_chars,
                    token=token,
                    transport=self._transport,
                )
            except OperationCancelled:
                return PageBlock(item=item, status="skipped", reason="Skipped: cancelled")
            except ScrapeError as e:
                return PageBlock(item=item, status="error", reason=str(e))
            except Exception as e:
                logger.warning("Scrape of %s failed: %s", item.url, e)
                return PageBlock(item=item, status="error", reason=f"{type(e).__name__}: {e}")

        if not result.content:
            return PageBlock(item=item, status="error", reason="no readable content")
        return PageBlock(item=item, status="scraped", content=result.content)


# ── Result link extraction ────────────────────────────────────────────────────

def extract_result_links(html: str, engine_url: str, limit: int) -> list[SearchItem]:
    """
    Pull up to `limit` external result links from a results page, in order.
    """
    if not html or limit <= 0:
        return []

    engine_host = _host(engine_url)
    soup = BeautifulSoup(html, "html.parser")

    items: list[SearchItem] = []
    seen: set[str] = set()
    for title, href in _candidate_anchors(soup):
        url = resolve_result_url(href, engine_url)
        if not url or url in seen:
            continue
        if _same_site(_host(url), engine_host):
            continue
        seen.add(url)
        items.append(SearchItem(title=title or url, url=url))
        if len(items) >= limit:
            break
    return items


def _candidate_anchors(soup: BeautifulSoup):
    """Yield (title, href) pairs in document order."""
    for anchor in soup.select("a.result__a"):
        if anchor.get("href"):
            yield anchor.get_text(" ", strip=True), anchor["href"]

    for heading in soup.find_all("h3"):
        anchor = heading.find_parent("a") or heading.find("a", href=True)
        if anchor is not None and anchor.get("href"):
            yield heading.get_text(" ", strip=True), anchor["href"]


def resolve_result_url(href: str, engine_url: str = "") -> str | None:
    """
    Turn a results-page href into the target URL, or None to skip it.

    Unwraps recognised redirect wrappers; drops other relative links.
    """
    href = (href or "").strip()
    if not href:
        return None

    if href.startswith("//"):
        href = "https:" + href

    parts = urlsplit(href)
    params = parse_qs(parts.query)

    # Google: /url?q=<target>&sa=...
    if parts.path == "/url" and (params.get("q") or params.get("url")):
        return _external((params.get("q") or params.get("url"))[0])

    # DuckDuckGo: //duckduckgo.com/l/?uddg=<target>
    if parts.path.rstrip("/") == "/l" and params.get("uddg"):
        return _external(params["uddg"][0])

    if not parts.scheme:
        # any other relative link is engine-internal
        return None

    return _external(href)


def _external(url: str) -> str | None:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        return None
    if "google.com/search" in url:
        return None
    return url


def _host(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _same_site(host: str, engine_host: str) -> bool:
    if not host or not engine_host:
        return False
    engine_root = ".".join(engine_host.split(".")[-2:])
    return host == engine_host or host == engine_root or host.endswith("." + engine_root)
