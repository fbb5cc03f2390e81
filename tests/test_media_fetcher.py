"""
Test Media Fetcher

Tests for downloading URL media into base64 payloads, against an
httpx mock transport.
"""

import base64

import httpx
import pytest

from wa_connector.errors import MediaFetchError
from wa_connector.media import MediaFetcher, filename_from_url


def fetcher_for(handler) -> MediaFetcher:
    return MediaFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestFilenameFromUrl:
    def test_last_segment_without_query(self):
        assert filename_from_url("https://cdn.example.com/files/boleto.pdf?sig=abc") == "boleto.pdf"

    def test_default_name(self):
        assert filename_from_url("https://cdn.example.com/") == "file"


class TestMediaFetcher:
    """Tests for MediaFetcher.fetch"""

    @pytest.mark.asyncio
    async def test_uses_response_content_type(self):
        def handler(request):
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

        fetcher = fetcher_for(handler)
        media = await fetcher.fetch("https://cdn.example.com/logo.png")
        await fetcher.aclose()

        assert media.mimetype == "image/png"
        assert media.filename == "logo.png"
        assert base64.b64decode(media.data) == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_request_values_override_response(self):
        def handler(request):
            return httpx.Response(200, content=b"%PDF", headers={"content-type": "text/plain"})

        fetcher = fetcher_for(handler)
        media = await fetcher.fetch(
            "https://cdn.example.com/download",
            mimetype="application/pdf",
            filename="boleto.pdf",
        )

        assert media.mimetype == "application/pdf"
        assert media.filename == "boleto.pdf"

    @pytest.mark.asyncio
    async def test_defaults_without_content_type(self):
        def handler(request):
            return httpx.Response(200, content=b"raw")

        media = await fetcher_for(handler).fetch("https://cdn.example.com/")

        assert media.mimetype == "application/octet-stream"
        assert media.filename == "file"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        def handler(request):
            return httpx.Response(404)

        with pytest.raises(MediaFetchError) as exc_info:
            await fetcher_for(handler).fetch("https://cdn.example.com/missing.png")

        assert "HTTP 404" in str(exc_info.value)
        assert exc_info.value.url == "https://cdn.example.com/missing.png"

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MediaFetchError):
            await fetcher_for(handler).fetch("https://cdn.example.com/logo.png")
