"""
HTTP client factory for talking to a docconvert conversion service.

Clients are created per service type with consistent timeouts and
connection limits. Requests are sent exactly once: a failed conversion is
reported to the caller, never retried behind its back.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional, Dict
from enum import Enum

import httpx

logger = logging.getLogger(__name__)


class ServiceType(Enum):
    """Service types for HTTP client configuration."""
    DEFAULT = "default"
    CONVERSION = "conversion"
    HEALTH = "health"


def _read_timeout_from_env() -> Optional[float]:
    # Empty means no read timeout; office conversions of large files can be slow
    value = os.getenv('DOCCONVERT_HTTP_TIMEOUT', '')
    if not value.strip():
        return None
    return float(value)


class HTTPClientFactory:
    """
    Factory for creating and managing HTTP clients.

    Provides consistent configuration for timeouts and connection pooling,
    with a longer write budget for uploads and a short budget for health checks.
    """

    def __init__(self):
        self._clients: Dict[ServiceType, httpx.AsyncClient] = {}
        self._limits = None

    def _get_connection_limits(self) -> httpx.Limits:
        if self._limits is None:
            self._limits = httpx.Limits(
                max_keepalive_connections=10,
                max_connections=50,
                keepalive_expiry=30.0
            )
        return self._limits

    def _get_timeout(self, service_type: ServiceType) -> httpx.Timeout:
        read_timeout = _read_timeout_from_env()

        if service_type == ServiceType.CONVERSION:
            return httpx.Timeout(connect=10.0, read=read_timeout, write=600.0, pool=10.0)
        if service_type == ServiceType.HEALTH:
            # The probe itself runs soffice with up to 20 x 0.5s of polling
            return httpx.Timeout(connect=5.0, read=read_timeout or 60.0, write=30.0, pool=5.0)
        return httpx.Timeout(connect=5.0, read=read_timeout, write=300.0, pool=5.0)

    def create_client(
        self,
        service_type: ServiceType = ServiceType.DEFAULT,
        **overrides
    ) -> httpx.AsyncClient:
        """
        Create an HTTP client for a service type.

        Args:
            service_type: Type of service the client will be used for
            **overrides: Override default client configuration (base_url, transport, ...)

        Returns:
            Configured AsyncClient instance
        """
        config = {
            'timeout': self._get_timeout(service_type),
            'limits': self._get_connection_limits(),
            'follow_redirects': False,
        }
        config.update(overrides)

        client = httpx.AsyncClient(**config)
        self._clients[service_type] = client
        return client

    def get_client(self, service_type: ServiceType) -> Optional[httpx.AsyncClient]:
        """Get an existing client for a service type."""
        return self._clients.get(service_type)

    async def close_all_clients(self):
        """Close all managed clients."""
        for client in self._clients.values():
            try:
                await client.aclose()
            except Exception as e:
                logger.warning(f"Error closing HTTP client: {e}")

        self._clients.clear()


# Global factory instance
_http_factory = HTTPClientFactory()


def create_service_client(service_type: ServiceType, **overrides) -> httpx.AsyncClient:
    """Convenience function to create a service-specific HTTP client."""
    return _http_factory.create_client(service_type, **overrides)


@asynccontextmanager
async def lifespan_http_clients():
    """
    Context manager for HTTP client lifecycle management.

    Use this in FastAPI lifespan events or around a CLI run to ensure
    proper client cleanup.
    """
    try:
        yield
    finally:
        await _http_factory.close_all_clients()
