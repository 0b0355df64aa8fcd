"""
tests/unit/test_content.py — Unit tests for tools/content.py

Covers: restricted locations rejected before any read, location-match
        retry loop and exhaustion, HttpContentProvider extraction and
        401/403 → not analyzable.
"""

import httpx
import pytest

from agent.cancellation import CancellationToken
from agent.errors import ContentUnavailableError, OperationCancelled, PageNotAnalyzableError
from tools.content import ContentProvider, HttpContentProvider, PageContent


class ScriptedProvider(ContentProvider):
    """Reports the given locations in order, one per read."""

    def __init__(self, locations: list[str], **kwargs):
        super().__init__(**kwargs)
        self._locations = list(locations)
        self.reads = 0

    async def _read(self, page_ref, expected_location):
        self.reads += 1
        location = self._locations.pop(0) if self._locations else expected_location
        return PageContent(content="text", title="T", description="", location=location)


# ── ContentProvider (base) ────────────────────────────────────────────────────

class TestContentProvider:
    async def test_restricted_location_never_read(self):
        provider = ScriptedProvider([], backoff=0)
        with pytest.raises(PageNotAnalyzableError, match="can't be analyzed"):
            await provider.fetch("tab-1", "chrome://settings")
        assert provider.reads == 0

    async def test_retries_until_location_matches(self):
        provider = ScriptedProvider(
            ["https://old.com/", "https://old.com/", "https://new.com/post#top"], backoff=0
        )
        page = await provider.fetch("tab-1", "https://new.com/post")
        assert page.location == "https://new.com/post#top"
        assert provider.reads == 3

    async def test_exhaustion_is_content_unavailable(self):
        provider = ScriptedProvider(["https://old.com/"] * 5, attempts=3, backoff=0)
        with pytest.raises(ContentUnavailableError):
            await provider.fetch("tab-1", "https://new.com/")
        assert provider.reads == 3

    async def test_revoked_token(self):
        token = CancellationToken()
        token.revoke()
        provider = ScriptedProvider([], backoff=0)
        with pytest.raises(OperationCancelled):
            await provider.fetch("tab-1", "https://new.com/", token)
        assert provider.reads == 0


# ── HttpContentProvider ───────────────────────────────────────────────────────

PAGE = """
<html><head><title>Battery primer</title>
<meta name="description" content="Everything about cells."></head>
<body><p>Lithium cells store energy.</p></body></html>
"""


class TestHttpContentProvider:
    async def test_reads_title_description_content(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, html=PAGE))
        provider = HttpContentProvider(transport=transport, backoff=0)

        page = await provider.fetch("tab-1", "https://example.com/primer")

        assert page.title == "Battery primer"
        assert page.description == "Everything about cells."
        assert "Lithium cells store energy." in page.content
        assert page.location == "https://example.com/primer"

    @pytest.mark.parametrize("status", [401, 403])
    async def test_forbidden_is_not_analyzable(self, status):
        transport = httpx.MockTransport(lambda request: httpx.Response(status))
        provider = HttpContentProvider(transport=transport, backoff=0)
        with pytest.raises(PageNotAnalyzableError, match="host not permitted"):
            await provider.fetch("tab-1", "https://example.com/")

    async def test_server_error_retried_then_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        provider = HttpContentProvider(
            transport=httpx.MockTransport(handler), attempts=2, backoff=0
        )
        with pytest.raises(ContentUnavailableError, match="HTTP 500"):
            await provider.fetch("tab-1", "https://example.com/")
        assert len(calls) == 2

    @pytest.mark.parametrize("status", [404, 410])
    async def test_client_error_not_retried(self, status):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status)

        provider = HttpContentProvider(
            transport=httpx.MockTransport(handler), attempts=10, backoff=0
        )
        with pytest.raises(ContentUnavailableError) as exc_info:
            await provider.fetch("tab-1", "https://example.com/gone")
        assert str(exc_info.value) == f"The page returned HTTP {status}."
        assert len(calls) == 1

    async def test_transport_error_retried_then_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        provider = HttpContentProvider(
            transport=httpx.MockTransport(handler), attempts=3, backoff=0
        )
        with pytest.raises(ContentUnavailableError, match="Could not reach the page"):
            await provider.fetch("tab-1", "https://example.com/")
        assert len(calls) == 3

    async def test_recovers_after_transient_server_error(self):
        responses = iter([httpx.Response(503), httpx.Response(200, html=PAGE)])
        provider = HttpContentProvider(
            transport=httpx.MockTransport(lambda request: next(responses)),
            attempts=3,
            backoff=0,
        )
        page = await provider.fetch("tab-1", "https://example.com/primer")
        assert page.title == "Battery primer"
