"""
Tests for crawler preview extraction, fetching and rendering.
"""

import httpx
import pytest

from shortlink.services.link_preview import (
    LinkPreview,
    extract_preview,
    fetch_preview,
    render_preview_document,
)

DOCUMENT = """
<html><head>
<title>Ignored when og:title exists</title>
<meta property="og:title" content="Spring Sale &amp; More">
<meta property="og:image" content="https://cdn.example.com/sale.png">
<meta name="twitter:card" content="summary_large_image">
</head><body></body></html>
"""


class TestExtractPreview:

    def test_open_graph_and_twitter_tags(self):
        preview = extract_preview(DOCUMENT)
        assert preview.title == "Spring Sale & More"
        assert ("property", "og:image", "https://cdn.example.com/sale.png") in preview.tags
        assert ("name", "twitter:card", "summary_large_image") in preview.tags

    def test_falls_back_to_title_element(self):
        preview = extract_preview("<html><head><title> Plain page </title></head></html>")
        assert preview.title == "Plain page"
        assert preview.tags == [("property", "og:title", "Plain page")]

    def test_nothing_to_extract(self):
        preview = extract_preview("<html></html>")
        assert preview.title is None
        assert preview.tags == []


class TestFetchPreview:

    @pytest.mark.asyncio
    async def test_fetches_and_extracts(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=DOCUMENT, headers={"content-type": "text/html"})

        preview = await fetch_preview("https://example.com/sale", transport=httpx.MockTransport(handler))

        assert preview.title == "Spring Sale & More"
        assert requests[0].headers["user-agent"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_error_status_gives_empty_preview(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        preview = await fetch_preview("https://example.com/", transport=transport)
        assert preview == LinkPreview()

    @pytest.mark.asyncio
    async def test_network_failure_gives_empty_preview(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        preview = await fetch_preview("https://example.com/", transport=httpx.MockTransport(handler))
        assert preview == LinkPreview()


class TestRenderPreviewDocument:

    def test_contains_refresh_and_escaped_tags(self):
        preview = LinkPreview(title='Sale "now"', tags=[("property", "og:title", 'Sale "now"')])
        document = render_preview_document("https://example.com/?a=1&b=2", "promo", preview)

        assert '<meta http-equiv="refresh" content="0;url=https://example.com/?a=1&amp;b=2">' in document
        assert '<meta property="og:title" content="Sale &quot;now&quot;">' in document
        assert "<title>Sale &quot;now&quot;</title>" in document

    def test_uses_fallback_title(self):
        document = render_preview_document("https://example.com/", "promo", LinkPreview())
        assert "<title>promo</title>" in document
