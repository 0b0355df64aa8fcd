"""
agent/guardrails.py — Location and URL safety checks.

TWO DIFFERENT QUESTIONS:

  is_restricted_location(location)
    "Can the observed page be analyzed at all?"
    Browser-internal pages (chrome://, about:, view-source:), extension
    pages and extension galleries are off limits. Asked once, before any
    content extraction. A restricted page is not an error — the session
    just shows a quiet "not applicable" status.

  is_safe_url(url)
    "Is this search result safe to fetch?"
    Only http/https, and never localhost or a private address range.
    A search result pointing at 192.168.0.1 is skipped before the HEAD
    probe ever leaves the machine.

  same_page(a, b)
    "Is the newly focused location the page this session was built for?"
    Only the fragment is ignored. Used by focus() to decide on a reset;
    the lenient prefix check location_matches() is for page reads only.

USAGE:
  from agent.guardrails import is_restricted_location, is_safe_url

  if is_restricted_location(tab_url):
      raise PageNotAnalyzableError("This page can't be analyzed.")
  if not is_safe_url(result_url):
      skip()
"""

import re
from urllib.parse import urldefrag, urlsplit


# ── Observed page restrictions ────────────────────────────────────────────────

RESTRICTED_PREFIXES = (
    "chrome://",
    "edge://",
    "about:",
    "chrome-extension://",
    "moz-extension://",
    "view-source:",
)

RESTRICTED_HOSTS = (
    "addons.mozilla.org",
    "chromewebstore.google.com",
    "microsoftedge.microsoft.com",
)

RESTRICTED_PATH_PREFIXES = {
    "chrome.google.com": "/webstore",
}


def is_restricted_location(location: str) -> bool:
    """
    Return True if the observed page must not be analyzed.

    Empty and non-http locations are restricted too: there is nothing a
    search-and-summarize loop can do with file:// or data: pages.
    """
    if not location or not isinstance(location, str):
        return True

    location = location.strip()
    lowered = location.lower()

    if lowered.startswith(RESTRICTED_PREFIXES):
        return True
    if not lowered.startswith(("http://", "https://")):
        return True

    parts = urlsplit(lowered)
    host = parts.hostname or ""
    if host in RESTRICTED_HOSTS:
        return True

    path_prefix = RESTRICTED_PATH_PREFIXES.get(host)
    if path_prefix and parts.path.startswith(path_prefix):
        return True

    return False


# ── Search result URL safety ──────────────────────────────────────────────────

# Patterns that indicate an internal/unsafe URL target
_BLOCKED_HOSTS = re.compile(
    r"^(localhost|127\.\d+\.\d+\.\d+|0\.0\.0\.0"
    r"|10\.\d+\.\d+\.\d+|172\.(1[6-9]|2\d|3[01])\.\d+\.\d+"
    r"|192\.168\.\d+\.\d+|::1)$",
    re.IGNORECASE,
)


def is_safe_url(url: str) -> bool:
    """
    Return True if the URL is safe to fetch.

    Blocks:
      - Empty or non-string URLs
      - Non-http/https schemes (file://, ftp://, data://, etc.)
      - Localhost and private IP ranges (SSRF prevention)
    """
    if not url or not isinstance(url, str):
        return False

    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        return False

    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return False

    if not host:
        return False

    return not _BLOCKED_HOSTS.match(host)


def location_matches(actual: str, expected: str | None) -> bool:
    """
    True when the page reports the location we asked for.

    Exact match or prefix match: a page that appended a fragment or
    query string after load still counts. No expectation matches anything.
    """
    if not expected:
        return True
    if not actual:
        return False
    return actual == expected or actual.startswith(expected)


def same_page(a: str, b: str) -> bool:
    """
    True when two locations name the same page.

    Stricter than location_matches(): only the fragment is ignored, so
    /solid-state and /solid-state-recycling are different pages.
    """
    if not a or not b:
        return False
    return urldefrag(a.strip()).url == urldefrag(b.strip()).url
