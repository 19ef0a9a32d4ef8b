"""
Rendering and OCR backends used by local conversion.

The extractor and the layout path only talk to the small interfaces here,
so tests can substitute fakes and the heavy libraries are loaded on first
use rather than at import time.
"""

import io
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from ..config import get_ocr_language

logger = logging.getLogger(__name__)


@dataclass
class PageImage:
    """A rasterized page: PNG bytes and pixel dimensions."""
    png: bytes
    width: int
    height: int


class PdfPage:
    """One page of an opened PDF."""

    def __init__(self, page):
        self._page = page

    def text(self) -> str:
        return self._page.get_text("text")

    def render(self, scale: float) -> PageImage:
        import fitz

        pix = self._page.get_pixmap(matrix=fitz.Matrix(scale, scale))
        return PageImage(png=pix.tobytes("png"), width=pix.width, height=pix.height)


class PdfDocument:
    """An opened PDF, possibly still locked by a password."""

    def __init__(self, doc):
        self._doc = doc

    @property
    def needs_password(self) -> bool:
        return bool(self._doc.needs_pass)

    def authenticate(self, password: str) -> bool:
        return self._doc.authenticate(password) > 0

    def pages(self) -> Iterator[PdfPage]:
        for page in self._doc:
            yield PdfPage(page)

    def close(self):
        self._doc.close()


class PyMuPdfBackend:
    """Opens PDFs with PyMuPDF."""

    def open(self, data: bytes) -> PdfDocument:
        import fitz

        return PdfDocument(fitz.open(stream=data, filetype="pdf"))


class TesseractOcr:
    """OCR through pytesseract."""

    def __init__(self, language: Optional[str] = None):
        self.language = language or get_ocr_language()

    def recognize(self, image: PageImage) -> str:
        import pytesseract
        from PIL import Image

        with Image.open(io.BytesIO(image.png)) as img:
            return pytesseract.image_to_string(img, lang=self.language)


_pdf_backend = None
_ocr_engine = None


def get_pdf_backend() -> PyMuPdfBackend:
    """Return the shared PDF backend, creating it on first use."""
    global _pdf_backend
    if _pdf_backend is None:
        _pdf_backend = PyMuPdfBackend()
    return _pdf_backend


def get_ocr_engine() -> TesseractOcr:
    """Return the shared OCR engine, creating it on first use."""
    global _ocr_engine
    if _ocr_engine is None:
        _ocr_engine = TesseractOcr()
        logger.debug(f"OCR engine ready (lang={_ocr_engine.language})")
    return _ocr_engine
