"""
Core conversion dispatch for docconvert.

This module contains the conversion request types and the dispatcher that
applies the server-mode policy and routes each request to the local
factory or to the server bridge.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from .._local_ import LocalConversionFactory
from ..config import DocumentFormat, detect_format, is_server_blocked
from .error_handling import ConversionError, ErrorCode
from .logging_config import get_logger, log_performance
from .office_suite import HealthStatus
from .server_bridge import ServerBridge

logger = get_logger(__name__)

SERVER_UNAVAILABLE_MESSAGE = "Server conversion unavailable. See health check details."
SERVER_BLOCKED_MESSAGE = (
    'PDF → DOCX/ODT is not supported in server mode. Disable "Use server conversion" '
    'or enable "Preserve layout" for image-based DOCX.'
)


@dataclass
class SourceDocument:
    """An uploaded file: its bytes and original name."""
    data: bytes
    filename: str

    @property
    def inferred_format(self) -> Optional[DocumentFormat]:
        """Format implied by the filename extension (.doc counts as DOCX)."""
        return detect_format(self.filename)


@dataclass
class ConversionOptions:
    use_server: bool = False
    preserve_layout: bool = False


@dataclass
class ConvertedArtifact:
    """A finished conversion, ready to be saved or downloaded."""
    content: bytes
    mime_type: str
    filename: str


def download_name(filename: str, target: DocumentFormat) -> str:
    """Suggested name for a converted file: converted-<stem>.<ext>."""
    return f"converted-{filename.split('.')[0]}{target.extension}"


class ConversionDispatcher:
    """
    Routes conversion requests and enforces the server-mode policy.

    The last known server health is kept in ``health``; it is None until
    refresh_health() has run, and unknown health never blocks a request.

    Args:
        local_factory: Factory used for in-process conversions
        bridge: Server bridge used when ``use_server`` is set
    """

    def __init__(self, local_factory: Optional[LocalConversionFactory] = None,
                 bridge: Optional[ServerBridge] = None):
        self.local_factory = local_factory or LocalConversionFactory()
        self._bridge = bridge
        self.health: Optional[HealthStatus] = None

    @property
    def bridge(self) -> ServerBridge:
        if self._bridge is None:
            self._bridge = ServerBridge()
        return self._bridge

    async def refresh_health(self) -> HealthStatus:
        """Ask the server for its health and remember the answer."""
        status = await self.bridge.health()
        self.health = status
        logger.info(f"Server health: available={status.available} ({status.message})")
        return status

    def check_policy(self, source: DocumentFormat, target: DocumentFormat,
                     options: ConversionOptions):
        """
        Reject server-mode requests that cannot succeed.

        Raises:
            ConversionError: If the server is known to be down, or the pair is blocked
        """
        if not options.use_server:
            return
        if self.health is not None and not self.health.available:
            raise ConversionError(SERVER_UNAVAILABLE_MESSAGE, code=ErrorCode.SERVICE_UNAVAILABLE)
        if is_server_blocked(source, target):
            raise ConversionError(SERVER_BLOCKED_MESSAGE, code=ErrorCode.CONVERSION_NOT_SUPPORTED)

    @log_performance(logger)
    async def convert(self, document: SourceDocument, source: DocumentFormat,
                      target: DocumentFormat,
                      options: Optional[ConversionOptions] = None,
                      password_provider=None) -> ConvertedArtifact:
        """
        Convert a document.

        Args:
            document: The uploaded file
            source: Format to read the file as
            target: Format to produce
            options: Server mode and layout preservation flags
            password_provider: Prompt callback for encrypted PDFs (local mode)

        Returns:
            ConvertedArtifact with bytes, MIME type and download name

        Raises:
            ConversionError: For policy rejections and every conversion failure
        """
        options = options or ConversionOptions()
        self.check_policy(source, target, options)

        try:
            if options.use_server:
                content = await self.bridge.convert(document.data, document.filename, source, target)
            elif source is DocumentFormat.PDF and target is DocumentFormat.DOCX and options.preserve_layout:
                content = await asyncio.to_thread(
                    self.local_factory.convert_preserving_layout, document.data, password_provider
                )
            else:
                content = await asyncio.to_thread(
                    self.local_factory.convert, document.data, document.filename,
                    source, target, password_provider
                )
        except ConversionError:
            raise
        except Exception as e:
            logger.error(f"Conversion of {document.filename} failed: {e}")
            raise ConversionError(f"Conversion failed: {e}", code=ErrorCode.CONVERSION_FAILED) from e

        return ConvertedArtifact(
            content=content,
            mime_type=target.mime_type,
            filename=download_name(document.filename, target),
        )
