"""
Unit tests for the server bridge, using httpx.MockTransport.
"""

import httpx
import pytest

from docconvert.config import DocumentFormat
from docconvert.utils.error_handling import ConversionError, ErrorCode
from docconvert.utils.http_client import HTTPClientFactory, ServiceType
from docconvert.utils.server_bridge import ServerBridge

BASE_URL = "http://convert.test"


def make_bridge(handler) -> ServerBridge:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ServerBridge(BASE_URL + "/", client=client)


class TestConvert:

    @pytest.mark.asyncio
    async def test_uploads_form_fields(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            seen["content_type"] = request.headers["content-type"]
            return httpx.Response(200, content=b"%PDF-converted")

        bridge = make_bridge(handler)
        result = await bridge.convert(b"hello", "notes.txt", DocumentFormat.TXT, DocumentFormat.PDF)
        await bridge.aclose()

        assert result == b"%PDF-converted"
        assert seen["url"] == "http://convert.test/convert"
        assert seen["content_type"].startswith("multipart/form-data")
        body = seen["body"]
        assert b'name="targetExt"' in body and b".pdf" in body
        assert b'name="sourceExt"' in body and b".txt" in body
        assert b'filename="notes.txt"' in body
        assert b"hello" in body

    @pytest.mark.asyncio
    async def test_error_body_with_hints(self):
        def handler(request):
            return httpx.Response(502, json={
                "error": "LibreOffice conversion failed: boom",
                "hints": ["Ensure LibreOffice is installed.", "Paths tried: /usr/bin/soffice"],
            })

        bridge = make_bridge(handler)
        with pytest.raises(ConversionError) as exc_info:
            await bridge.convert(b"x", "a.txt", DocumentFormat.TXT, DocumentFormat.PDF)
        await bridge.aclose()

        error = exc_info.value
        assert error.code is ErrorCode.SERVICE_ERROR
        assert error.message == "LibreOffice conversion failed: boom"
        assert str(error) == (
            "LibreOffice conversion failed: boom\n"
            "Ensure LibreOffice is installed.\n"
            "Paths tried: /usr/bin/soffice"
        )

    @pytest.mark.asyncio
    async def test_error_without_json_body(self):
        bridge = make_bridge(lambda request: httpx.Response(500, text="Internal Server Error"))
        with pytest.raises(ConversionError) as exc_info:
            await bridge.convert(b"x", "a.txt", DocumentFormat.TXT, DocumentFormat.PDF)
        await bridge.aclose()
        assert str(exc_info.value) == "Server conversion failed (500)"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        bridge = make_bridge(handler)
        with pytest.raises(ConversionError) as exc_info:
            await bridge.convert(b"x", "a.txt", DocumentFormat.TXT, DocumentFormat.PDF)
        await bridge.aclose()
        assert exc_info.value.code is ErrorCode.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_single_attempt_only(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503, json={"error": "busy"})

        bridge = make_bridge(handler)
        with pytest.raises(ConversionError):
            await bridge.convert(b"x", "a.txt", DocumentFormat.TXT, DocumentFormat.PDF)
        await bridge.aclose()
        assert len(attempts) == 1


class TestHealth:

    @pytest.mark.asyncio
    async def test_available(self):
        def handler(request):
            assert request.url.path == "/convert/health"
            return httpx.Response(200, json={
                "ok": True,
                "server": {"available": True, "message": "LibreOffice is available for server conversion."},
                "details": {"bin": None},
            })

        bridge = make_bridge(handler)
        status = await bridge.health()
        await bridge.aclose()
        assert status.available
        assert status.message == "LibreOffice is available for server conversion."

    @pytest.mark.asyncio
    async def test_unavailable_keeps_server_message(self):
        def handler(request):
            return httpx.Response(503, json={
                "ok": False,
                "server": {"available": False, "message": "LibreOffice convert failed: ENOENT"},
                "details": {"bin": "/opt/soffice"},
            })

        bridge = make_bridge(handler)
        status = await bridge.health()
        await bridge.aclose()
        assert not status.available
        assert status.message == "LibreOffice convert failed: ENOENT"
        assert status.binary == "/opt/soffice"

    @pytest.mark.asyncio
    async def test_non_json_answer(self):
        bridge = make_bridge(lambda request: httpx.Response(404, text="not here"))
        status = await bridge.health()
        await bridge.aclose()
        assert not status.available
        assert status.message == "Health check failed"


class TestServiceClients:
    """Health checks and uploads use separately configured clients."""

    @pytest.mark.asyncio
    async def test_upload_after_health_uses_conversion_timeouts(self, monkeypatch):
        monkeypatch.delenv("DOCCONVERT_HTTP_TIMEOUT", raising=False)
        factory = HTTPClientFactory()
        timeouts = {}

        def handler(request: httpx.Request):
            timeouts[request.url.path] = request.extensions["timeout"]
            if request.url.path.endswith("/health"):
                return httpx.Response(200, json={"ok": True, "server": {"available": True, "message": "up"}})
            return httpx.Response(200, content=b"%PDF")

        def create_client(service_type, **overrides):
            return factory.create_client(service_type, transport=httpx.MockTransport(handler), **overrides)

        monkeypatch.setattr("docconvert.utils.server_bridge.create_service_client", create_client)
        bridge = ServerBridge(BASE_URL)

        assert (await bridge.health()).available
        assert await bridge.convert(b"x", "a.txt", DocumentFormat.TXT, DocumentFormat.PDF) == b"%PDF"

        assert timeouts["/convert/health"]["read"] == 60.0
        assert timeouts["/convert"]["read"] is None
        assert timeouts["/convert"]["write"] == 600.0
        assert bridge._client_for(ServiceType.HEALTH) is not bridge._client_for(ServiceType.CONVERSION)

        await bridge.aclose()
        assert factory.get_client(ServiceType.CONVERSION).is_closed

    @pytest.mark.asyncio
    async def test_injected_client_serves_both(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
        bridge = ServerBridge(BASE_URL, client=client)
        assert bridge._client_for(ServiceType.HEALTH) is client
        assert bridge._client_for(ServiceType.CONVERSION) is client
        await bridge.aclose()
        assert client.is_closed
