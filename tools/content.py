"""
tools/content.py — Read the page the user is looking at.

THE CONTRACT:
  fetch(page_ref, expected_location, token) -> PageContent

  page_ref is whatever identifies the observed page to the provider (a
  tab id in a browser host, the session id elsewhere). expected_location
  is the URL the session was started for.

  A page that is still navigating can report the previous location for
  a moment. So the provider re-reads until the reported location equals
  (or starts with) the expected one: up to 10 attempts, 0.5s apart, via
  tools.retry.bounded_attempts(). Exhausting the attempts raises
  ContentUnavailableError.

  Restricted locations are rejected before any extraction with
  PageNotAnalyzableError — the loop turns that into a quiet status.

TWO IMPLEMENTATIONS:
  ContentProvider       — base class. Subclasses implement _read(); the
                          base class owns the restriction check and the
                          retry-until-location-matches loop.
  HttpContentProvider   — reads the page over plain HTTP (httpx) and
                          extracts text with trafilatura. No JavaScript.
                          Good enough for articles and docs; a browser
                          host plugs in its own _read() instead.

USAGE:
  provider = HttpContentProvider()
  page = await provider.fetch("tab-1", "https://example.com/post", token)
  print(page.title, len(page.content))
"""

import logging
from dataclasses import dataclass

import httpx

from agent.cancellation import CancellationToken
from agent.errors import AttemptsExhausted, ContentUnavailableError, PageNotAnalyzableError
from agent.guardrails import is_restricted_location, location_matches
from config import settings
from tools.extract import extract_main_content, page_metadata
from tools.retry import bounded_attempts

logger = logging.getLogger(__name__)

NOT_ANALYZABLE_MESSAGE = "This page can't be analyzed."


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass
class PageContent:
    """What the content provider extracted from the observed page."""
    content: str
    title: str
    description: str
    location: str       # location the page reported when it was read


class TransientStatusError(Exception):
    """A 5xx response. Retried; mapped to ContentUnavailableError at the end."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


# ── Base provider ─────────────────────────────────────────────────────────────

class ContentProvider:
    """
    Owns the restriction check and the location-match retry loop.

    Subclasses implement _read(page_ref, expected_location) and may raise:
      PageNotAnalyzableError — permanent, never retried
      any exception in RETRY_ON — transient, retried
    """

    RETRY_ON: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        *,
        attempts: int | None = None,
        backoff: float | None = None,
    ) -> None:
        self._attempts = attempts or settings.content_fetch_attempts
        self._backoff = (
            settings.content_fetch_backoff_seconds if backoff is None else backoff
        )

    async def fetch(
        self,
        page_ref: str,
        expected_location: str,
        token: CancellationToken | None = None,
    ) -> PageContent:
        if is_restricted_location(expected_location):
            raise PageNotAnalyzableError(NOT_ANALYZABLE_MESSAGE)

        try:
            page = await bounded_attempts(
                lambda: self._read(page_ref, expected_location),
                attempts=self._attempts,
                backoff=self._backoff,
                accept=lambda p: p is not None and location_matches(p.location, expected_location),
                retry_on=self.RETRY_ON,
                token=token,
                describe=f"content of {expected_location}",
            )
        except AttemptsExhausted as exc:
            logger.warning("Location never matched %s: %s", expected_location, exc)
            raise ContentUnavailableError(
                "The page did not finish loading (location mismatch)."
            ) from None

        if is_restricted_location(page.location):
            raise PageNotAnalyzableError(NOT_ANALYZABLE_MESSAGE)
        return page

    async def _read(self, page_ref: str, expected_location: str) -> PageContent | None:
        raise NotImplementedError


# ── HTTP provider ─────────────────────────────────────────────────────────────

class HttpContentProvider(ContentProvider):
    """
    Reads the observed page over HTTP.

    401/403 mean the host does not let us in — that is "not analyzable",
    not a failure. 5xx responses and transport errors are retried; any
    other HTTP error fails at once. Whatever is left after the last
    attempt surfaces as a short ContentUnavailableError.

    Redirects are followed, so _read() always reports the requested
    location. The location-match retry in ContentProvider.fetch() never
    fires for this provider; it exists for hosts whose page can lag
    behind a navigation.
    """

    RETRY_ON = (httpx.TransportError, TransientStatusError)

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        attempts: int | None = None,
        backoff: float | None = None,
    ) -> None:
        super().__init__(attempts=attempts, backoff=backoff)
        self._transport = transport

    async def fetch(
        self,
        page_ref: str,
        expected_location: str,
        token: CancellationToken | None = None,
    ) -> PageContent:
        try:
            return await super().fetch(page_ref, expected_location, token)
        except TransientStatusError as e:
            raise ContentUnavailableError(f"The page returned HTTP {e.status_code}.") from None
        except httpx.TimeoutException:
            raise ContentUnavailableError(
                f"The page did not respond within {settings.content_timeout_seconds}s."
            ) from None
        except httpx.TransportError as e:
            raise ContentUnavailableError(f"Could not reach the page ({type(e).__name__}).") from None

    async def _read(self, page_ref: str, expected_location: str) -> PageContent:
        async with httpx.AsyncClient(
            timeout=settings.content_timeout_seconds,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(expected_location)

        status = response.status_code
        if status in (401, 403):
            raise PageNotAnalyzableError("Cannot access contents: host not permitted.")
        if status >= 500:
            raise TransientStatusError(status)
        if status >= 400:
            raise ContentUnavailableError(f"The page returned HTTP {status}.")

        # The resolved URL is only used for extraction.
        html = response.text
        resolved = str(response.url)
        title, description = page_metadata(html, resolved)
        return PageContent(
            content=extract_main_content(html, resolved),
            title=title,
            description=description,
            location=expected_location,
        )
