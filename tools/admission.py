"""
tools/admission.py — Decide whether a search result is safe to scrape.

THE TWO-STAGE FILTER:

  Stage 1 — check_url()  (no network)
    Reject outright:
      - unsafe URLs (non-http, localhost, private ranges)
      - known non-HTML file extensions (.pdf, .zip, .exe, .docx, ...)
      - bulk-download URL patterns (/download/, ?download=1, export=download)

  Stage 2 — probe_content_type()  (one HEAD request, ~2.5s timeout)
    Admit only if the server answers 2xx with a Content-Type of
    text/html, application/xhtml+xml or text/plain.

FAIL CLOSED:
  A probe that times out, errors, returns non-2xx or omits Content-Type
  skips the page. Some servers don't implement HEAD properly — we lose
  those pages. The alternative is opening a link that turns out to be a
  500MB download. Skipping is always the safe answer.

A rejected result is never silently dropped: the Search Executor writes
the verdict's reason into the combined text as "(Skipped: ...)".

USAGE:
  verdict = check_url(url)
  if verdict.admitted:
      verdict = await probe_content_type(url, token=token)
  if not verdict.admitted:
      print(verdict.reason)   # "Skipped: Invalid Content-Type application/pdf"
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

import httpx

from agent.cancellation import CancellationToken
from agent.errors import OperationCancelled
from agent.guardrails import is_safe_url
from config import settings
from tools.retry import bounded_attempts

logger = logging.getLogger(__name__)


DOWNLOADABLE_EXTENSIONS = frozenset({
    # documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
    ".odp", ".rtf", ".epub",
    # archives
    ".zip", ".rar", ".7z", ".tar", ".gz", ".tgz", ".bz2", ".xz",
    # executables and installers
    ".exe", ".msi", ".dmg", ".pkg", ".deb", ".rpm", ".apk", ".iso", ".bin", ".jar",
    # media
    ".mp3", ".mp4", ".avi", ".mov", ".mkv", ".wav", ".flac", ".webm",
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
    # data dumps
    ".csv", ".json", ".xml", ".parquet", ".sqlite",
})

DOWNLOAD_PATTERNS = re.compile(
    r"(/downloads?/|/attachments?/|[?&](download|dl)=|export=download|/raw/)",
    re.IGNORECASE,
)

SAFE_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "text/plain")


# ── Verdict ───────────────────────────────────────────────────────────────────

@dataclass
class Admission:
    """admitted=False always carries a human-readable reason."""
    admitted: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> "Admission":
        return cls(admitted=True)

    @classmethod
    def skip(cls, reason: str) -> "Admission":
        return cls(admitted=False, reason=f"Skipped: {reason}")


# ── Stage 1: URL check ────────────────────────────────────────────────────────

def check_url(url: str) -> Admission:
    """Extension / pattern / safety check. No network."""
    if not is_safe_url(url):
        return Admission.skip("unsafe URL")

    path = unquote(urlsplit(url).path).lower()
    if _extension(path) in DOWNLOADABLE_EXTENSIONS:
        return Admission.skip("downloadable")
    if DOWNLOAD_PATTERNS.search(url):
        return Admission.skip("downloadable")

    return Admission.ok()


def _extension(path: str) -> str:
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return ""
    return "." + last.rsplit(".", 1)[-1]


def is_safe_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in SAFE_CONTENT_TYPES


# ── Stage 2: HEAD probe ───────────────────────────────────────────────────────

async def probe_content_type(
    url: str,
    *,
    token: CancellationToken | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Admission:
    """
    Metadata-only request: is the target a renderable text document?

    Never raises except OperationCancelled.
    """

    async def _head() -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=settings.probe_timeout_seconds,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            transport=transport,
        ) as client:
            return await client.head(url)

    try:
        response = await bounded_attempts(
            _head,
            attempts=settings.probe_attempts,
            retry_on=(httpx.TransportError,),
            token=token,
            describe=f"HEAD {url}",
        )
    except OperationCancelled:
        raise
    except httpx.TimeoutException:
        return Admission.skip(f"Pre-check failed - timeout after {settings.probe_timeout_seconds}s")
    except Exception as e:
        return Admission.skip(f"Pre-check failed - {type(e).__name__}: {e}")

    if not response.is_success:
        return Admission.skip(f"HTTP {response.status_code}")

    content_type = response.headers.get("content-type")
    if not is_safe_content_type(content_type):
        return Admission.skip(f"Invalid Content-Type {content_type or 'unknown'}")

    return Admission.ok()
