"""
tools/extract.py — Turn raw HTML into text the model can read.

TWO EXTRACTION STYLES:

  visible_text()
    What a reader would see: the page body with script, style, noscript,
    iframe, svg and template elements removed and all whitespace
    collapsed to single spaces. This is what the Search Executor feeds
    the summarizer — predictable, never empty just because a heuristic
    decided the page had no "article".

  extract_main_content()
    trafilatura's boilerplate removal: navigation, ads, footers and
    sidebars dropped, main article text kept. The content provider uses
    it for the observed page, where the user is reading the article and
    the nav bar is noise for intent inference. Falls back to
    visible_text() when trafilatura finds nothing.

  page_metadata()
    Title and meta description via trafilatura's metadata extractor,
    with a BeautifulSoup fallback for pages trafilatura can't parse.

USAGE:
  from tools.extract import visible_text, truncate_chars

  text = truncate_chars(visible_text(html), 8192)
"""

import re

import trafilatura
from bs4 import BeautifulSoup

# Elements that never carry readable content
NON_CONTENT_TAGS = ("script", "style", "noscript", "iframe", "svg", "template")

_WHITESPACE = re.compile(r"\s+")
_INVISIBLE = re.compile(r"[\u00ad\u200b\u200c\u200d\ufeff]")


# ── Visible text ──────────────────────────────────────────────────────────────

def visible_text(html: str) -> str:
    """
    Return the visible text of an HTML document, whitespace-collapsed.

    Plain-text input (no tags) comes back collapsed as well, so
    text/plain pages go through the same path.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()

    root = soup.body or soup
    return collapse_whitespace(root.get_text(" "))


def collapse_whitespace(text: str) -> str:
    """Drop zero-width noise and squeeze every whitespace run to one space."""
    if not text:
        return ""
    text = _INVISIBLE.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def truncate_chars(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters."""
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


# ── Main content (observed page) ──────────────────────────────────────────────

def extract_main_content(html: str, url: str = "") -> str:
    """
    Main article text via trafilatura, visible text as the fallback.

    Returns "" only when the page has no readable text at all.
    """
    if not html:
        return ""

    try:
        content = trafilatura.extract(
            html,
            url=url or None,
            include_tables=True,
            include_links=False,
            include_images=False,
            output_format="txt",
            favor_recall=True,
        )
    except Exception:
        content = None

    if content and len(content) > 200:
        return collapse_whitespace(content)
    return visible_text(html)


# ── Metadata ──────────────────────────────────────────────────────────────────

def page_metadata(html: str, url: str = "") -> tuple[str, str]:
    """
    Return (title, description) for an HTML document.

    Either may be "" when the page doesn't declare it.
    """
    if not html:
        return "", ""

    title = ""
    description = ""
    try:
        metadata = trafilatura.extract_metadata(html, default_url=url or None)
    except Exception:
        metadata = None
    if metadata is not None:
        title = metadata.title or ""
        description = metadata.description or ""

    if not title or not description:
        soup = BeautifulSoup(html, "html.parser")
        if not title and soup.title and soup.title.string:
            title = soup.title.string
        if not description:
            meta = soup.find("meta", attrs={"name": "description"})
            if meta and meta.get("content"):
                description = meta["content"]

    return collapse_whitespace(title), collapse_whitespace(description)
