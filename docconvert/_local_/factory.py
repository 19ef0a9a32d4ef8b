"""
Local conversion factory for docconvert.

This module runs conversions in-process, without the office suite:
text is extracted from the source and regenerated in the target format,
or, for layout-preserving PDF to DOCX, each page is rendered and embedded
as a picture.
"""

import logging
from datetime import datetime
from typing import Callable, Iterator, Optional

from ..config import DocumentFormat, RENDER_SCALE
from ..utils.error_handling import ConversionError, ErrorCode
from .backends import PageImage, get_pdf_backend
from .builder import DocumentBuilder, build_header, build_layout_docx
from .extractor import PasswordCancelled, PasswordProvider, TextExtractor

logger = logging.getLogger(__name__)


class LocalConversionFactory:
    """
    Factory for local document conversions.

    Supports every pair of PDF, DOCX, TXT, RTF and ODT by text extraction and
    regeneration, plus PDF to DOCX with preserved page layout.

    Args:
        extractor: TextExtractor to use (a default one is created if omitted)
        builder: DocumentBuilder to use
        pdf_backend: PDF backend for the layout path
        clock: Callable returning the conversion timestamp for the header
    """

    def __init__(self, extractor: Optional[TextExtractor] = None,
                 builder: Optional[DocumentBuilder] = None,
                 pdf_backend=None,
                 clock: Optional[Callable[[], datetime]] = None):
        self._pdf_backend = pdf_backend
        self.extractor = extractor or TextExtractor(pdf_backend=pdf_backend)
        self.builder = builder or DocumentBuilder()
        self.clock = clock or datetime.now

    @property
    def pdf_backend(self):
        if self._pdf_backend is None:
            self._pdf_backend = get_pdf_backend()
        return self._pdf_backend

    def convert(self, file_content: bytes, filename: str, source: DocumentFormat,
                target: DocumentFormat,
                password_provider: Optional[PasswordProvider] = None) -> bytes:
        """
        Convert a document by extracting and regenerating its text.

        Args:
            file_content: Raw bytes of the input file
            filename: Original filename, shown in the header
            source: Format of the input
            target: Desired output format
            password_provider: Prompt callback for encrypted PDFs

        Returns:
            Bytes of the converted document
        """
        text = self.extractor.extract(file_content, source, password_provider)
        logger.debug(f"Extracted {len(text)} characters from {filename} ({source.key})")

        header = build_header(filename, source, target, self.clock())
        return self.builder.build(text, target, header)

    def convert_preserving_layout(self, file_content: bytes,
                                  password_provider: Optional[PasswordProvider] = None) -> bytes:
        """
        Convert a PDF to a DOCX made of page images.

        Raises:
            ConversionError: If the PDF is encrypted and no password was given
        """
        document = self.pdf_backend.open(file_content)
        try:
            try:
                self.extractor.unlock(document, password_provider)
            except PasswordCancelled:
                raise ConversionError("The PDF is password protected and no password was provided.",
                                      code=ErrorCode.INVALID_FILE)
            return build_layout_docx(self._render_pages(document))
        finally:
            document.close()

    def _render_pages(self, document) -> Iterator[PageImage]:
        for number, page in enumerate(document.pages(), start=1):
            logger.debug(f"Rendering page {number} for layout DOCX")
            yield page.render(RENDER_SCALE)
