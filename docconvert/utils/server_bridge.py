"""
Client for a remote docconvert service.

The bridge uploads a document to ``POST /convert`` and reads the health of
the remote office suite from ``GET /convert/health``. Failures are turned
into ConversionError (for conversions) or an unavailable HealthStatus (for
health checks); nothing is retried.
"""

from typing import Dict, Optional

import httpx

from ..config import DocumentFormat, get_server_url
from .error_handling import ConversionError, ErrorCode
from .http_client import ServiceType, create_service_client
from .logging_config import get_logger
from .office_suite import HealthStatus

logger = get_logger(__name__)

HEALTH_FAILED_MESSAGE = "Health check failed"


class ServerBridge:
    """
    Talks to the conversion endpoints of a docconvert server.

    Args:
        base_url: Server root, e.g. http://localhost:8000 (defaults to DOCCONVERT_SERVER_URL)
        client: Pre-built AsyncClient used for every request; when omitted, each
            service type gets its own client (and timeouts) from the HTTP client factory
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = (base_url or get_server_url()).rstrip("/")
        self._client = client
        self._clients: Dict[ServiceType, httpx.AsyncClient] = {}

    def _client_for(self, service_type: ServiceType) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        client = self._clients.get(service_type)
        if client is None or client.is_closed:
            client = create_service_client(service_type)
            self._clients[service_type] = client
        return client

    async def convert(self, data: bytes, filename: str, source: DocumentFormat,
                      target: DocumentFormat) -> bytes:
        """
        Upload a document for server-side conversion.

        Returns:
            The converted bytes

        Raises:
            ConversionError: On any non-2xx answer or transport failure
        """
        client = self._client_for(ServiceType.CONVERSION)
        url = f"{self.base_url}/convert"
        files = {"file": (filename, data, source.mime_type)}
        form = {"targetExt": target.extension, "sourceExt": source.extension}

        logger.info(f"Uploading {filename} to {url} ({source.key} -> {target.key})")
        try:
            response = await client.post(url, files=files, data=form)
        except httpx.TimeoutException as e:
            raise ConversionError(f"Server conversion timed out: {e}", code=ErrorCode.SERVICE_TIMEOUT)
        except httpx.HTTPError as e:
            raise ConversionError(f"Server conversion failed: {e}", code=ErrorCode.SERVICE_UNAVAILABLE)

        if response.is_success:
            return response.content

        message, hints = _parse_error_body(response)
        logger.warning(f"Server conversion failed with status {response.status_code}: {message}")
        raise ConversionError(message, code=ErrorCode.SERVICE_ERROR, hints=hints)

    async def health(self) -> HealthStatus:
        """Fetch the remote health status; any failure reads as unavailable."""
        client = self._client_for(ServiceType.HEALTH)
        url = f"{self.base_url}/convert/health"
        try:
            response = await client.get(url)
            payload = response.json()
            server = payload.get("server") or {}
            available = bool(payload.get("ok")) and bool(server.get("available", True))
            message = server.get("message") or (
                "Server conversion available." if available else HEALTH_FAILED_MESSAGE
            )
            details = payload.get("details") or {}
            return HealthStatus(available=available, message=message, binary=details.get("bin"))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Health check against {url} failed: {e}")
            return HealthStatus(available=False, message=HEALTH_FAILED_MESSAGE)

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()


def _parse_error_body(response: httpx.Response):
    fallback = f"Server conversion failed ({response.status_code})"
    try:
        body = response.json()
    except ValueError:
        return fallback, []
    if not isinstance(body, dict):
        return fallback, []

    message = body.get("error") if isinstance(body.get("error"), str) else fallback
    hints = body.get("hints")
    if not isinstance(hints, list):
        hints = []
    return message, [str(hint) for hint in hints]
