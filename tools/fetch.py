"""
tools/fetch.py — Scrape one admitted search result page.

ISOLATION:
  Every page gets its own httpx.AsyncClient — its own connection pool,
  cookies and redirect state — opened with `async with`, so it is closed
  on every exit path: success, timeout, HTTP error or cancellation.
  Nothing is shared across pages, searches or sessions.

BEST-EFFORT LOAD:
  The body is streamed. If render_timeout_seconds (10s) elapses before
  the body finishes, we stop reading and extract from whatever arrived.
  A slow page still contributes its first few KB — which is usually all
  we keep anyway (max_scrape_chars). Only a timeout with zero bytes
  received is a failure.

  The read also stops after max_download_bytes, so a mislabelled huge
  response can't eat memory.

NO JAVASCRIPT:
  Pages are read over plain HTTP, not a headless browser. A Chromium
  context per result page costs 100-200MB; the admission filter has
  already limited us to HTML/text documents, and for those the server
  HTML carries the content in the common case.

USAGE:
  from tools.fetch import scrape_page

  result = await scrape_page("https://example.com/article", token=token)
  print(result.content[:200])
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from agent.cancellation import CancellationToken
from agent.errors import ScrapeError
from config import settings
from tools.extract import truncate_chars, visible_text
from tools.retry import bounded_attempts

logger = logging.getLogger(__name__)


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass
class ScrapeResult:
    url: str
    content: str            # visible text, collapsed and truncated
    final_url: str
    timed_out: bool = False

    @property
    def char_count(self) -> int:
        return len(self.content)


# ── Main function ─────────────────────────────────────────────────────────────

async def scrape_page(
    url: str,
    *,
    max_chars: int | None = None,
    token: CancellationToken | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ScrapeResult:
    """
    Fetch `url` in an isolated client and return its visible text.

    Raises ScrapeError on HTTP errors, transport errors and empty
    timeouts. The Search Executor turns that into an inline marker.
    """
    limit = max_chars or settings.max_scrape_chars

    try:
        body, final_url, timed_out = await bounded_attempts(
            lambda: _read_body(url, transport),
            attempts=settings.scrape_attempts,
            retry_on=(httpx.TransportError,),
            token=token,
            describe=f"scrape {url}",
        )
    except httpx.TimeoutException:
        raise ScrapeError(f"timeout after {settings.render_timeout_seconds}s") from None
    except httpx.HTTPError as e:
        raise ScrapeError(f"{type(e).__name__}: {e}") from None

    if timed_out:
        logger.debug("Best-effort read of %s timed out with %d chars", url, len(body))

    return ScrapeResult(
        url=url,
        content=truncate_chars(visible_text(body), limit),
        final_url=final_url,
        timed_out=timed_out,
    )


# ── Private helpers ───────────────────────────────────────────────────────────

async def _read_body(
    url: str,
    transport: httpx.AsyncBaseTransport | None,
) -> tuple[str, str, bool]:
    """
    Stream the page body until it ends, the byte cap is hit, or the
    render timeout elapses. Returns (text, final_url, timed_out).
    """
    chunks: list[bytes] = []
    received = 0
    encoding = "utf-8"
    final_url = url
    timed_out = False

    async with httpx.AsyncClient(
        timeout=settings.render_timeout_seconds,
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
        transport=transport,
    ) as client:

        async def _stream() -> None:
            nonlocal received, encoding, final_url
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise ScrapeError(f"HTTP {response.status_code}")
                final_url = str(response.url)
                encoding = response.encoding or "utf-8"
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    received += len(chunk)
                    if received >= settings.max_download_bytes:
                        break

        try:
            await asyncio.wait_for(_stream(), timeout=settings.render_timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            if not chunks:
                raise ScrapeError(f"timeout after {settings.render_timeout_seconds}s") from None
            timed_out = True

    raw = b"".join(chunks)
    try:
        body = raw.decode(encoding, errors="replace")
    except LookupError:
        body = raw.decode("utf-8", errors="replace")
    return body, final_url, timed_out
