"""
Plain-text extraction for local conversion.

Extraction is deliberately lightweight: office containers are scraped with
regular expressions and RTF control words are stripped, so the result is
the readable text without formatting. PDFs use their text layer, falling
back to OCR for pages that look scanned.
"""

import html
import io
import logging
import re
import zipfile
from typing import Callable, Optional

from ..config import (
    DocumentFormat,
    OCR_MIN_ALNUM_RATIO,
    OCR_MIN_TEXT_LENGTH,
    RENDER_SCALE,
)
from .backends import get_ocr_engine, get_pdf_backend

logger = logging.getLogger(__name__)

PasswordProvider = Callable[[str], Optional[str]]

PASSWORD_PROMPT = "This PDF is password protected. Enter password:"
PASSWORD_RETRY_PROMPT = "Incorrect password. Try again:"

PAGE_SEPARATOR = "\n\n"

# RTF control sequences, stripped in this order
RTF_SUBSTITUTIONS = [
    (re.compile(r"[{}]"), ""),
    (re.compile(r"\\par[d]?"), "\n"),
    (re.compile(r"\\'[0-9a-fA-F]{2}"), ""),
    (re.compile(r"\\u-?\d+\??"), ""),
    (re.compile(r"\\[a-zA-Z]+-?\d* ?"), ""),
]

DOCX_PARAGRAPH = re.compile(r"<w:p(?:\s[^>]*)?>(.*?)</w:p>", re.DOTALL)
DOCX_PARAGRAPH_TAG = re.compile(r"<w:p[\s>/]")
DOCX_TEXT_RUN = re.compile(r"<w:t(?:\s[^>]*)?>(.*?)</w:t>", re.DOTALL)
ODT_PARAGRAPH = re.compile(r"<text:p(?:\s[^>]*)?>(.*?)</text:p>", re.DOTALL)
XML_TAG = re.compile(r"<[^>]+>")
MULTI_WHITESPACE = re.compile(r"\s{2,}")
ALNUM = re.compile(r"[A-Za-z0-9]")


class PasswordCancelled(Exception):
    """The password prompt was dismissed without an answer."""
    pass


def strip_nul(text: str) -> str:
    return text.replace("\x00", "")


def needs_ocr(text: str) -> bool:
    """
    Whether a page's text layer is too thin to trust.

    True when the trimmed text is shorter than 20 characters, or fewer than
    20% of its characters are ASCII letters or digits.
    """
    if len(text.strip()) < OCR_MIN_TEXT_LENGTH:
        return True
    alnum_count = len(ALNUM.findall(text))
    return alnum_count < len(text) * OCR_MIN_ALNUM_RATIO


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _read_zip_part(data: bytes, part: str) -> Optional[str]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            if part not in archive.namelist():
                return None
            return archive.read(part).decode("utf-8", errors="replace")
    except zipfile.BadZipFile as e:
        logger.warning(f"Not a valid ZIP container, no text extracted: {e}")
        return None


def extract_txt(data: bytes) -> str:
    return _decode(data)


def extract_rtf(data: bytes) -> str:
    text = _decode(data)
    for pattern, replacement in RTF_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return strip_nul(text)


def extract_docx(data: bytes) -> str:
    document_xml = _read_zip_part(data, "word/document.xml")
    if not document_xml:
        return ""

    paragraphs = []
    for paragraph in DOCX_PARAGRAPH.findall(document_xml):
        runs = DOCX_TEXT_RUN.findall(paragraph)
        paragraphs.append(html.unescape("".join(runs)))

    content = "\n".join(paragraphs)
    if DOCX_PARAGRAPH_TAG.search(document_xml):
        content = MULTI_WHITESPACE.sub("\n", content)
    return strip_nul(content)


def extract_odt(data: bytes) -> str:
    content_xml = _read_zip_part(data, "content.xml")
    if not content_xml:
        return ""

    paragraphs = [
        html.unescape(XML_TAG.sub("", inner)).strip()
        for inner in ODT_PARAGRAPH.findall(content_xml)
    ]
    return strip_nul("\n".join(paragraphs))


class TextExtractor:
    """
    Extracts plain text from any supported format.

    Args:
        pdf_backend: Object with ``open(data)`` returning a PDF document
        ocr_engine: Object with ``recognize(page_image)`` returning text
    """

    def __init__(self, pdf_backend=None, ocr_engine=None):
        self._pdf_backend = pdf_backend
        self._ocr_engine = ocr_engine

    @property
    def pdf_backend(self):
        if self._pdf_backend is None:
            self._pdf_backend = get_pdf_backend()
        return self._pdf_backend

    @property
    def ocr_engine(self):
        if self._ocr_engine is None:
            self._ocr_engine = get_ocr_engine()
        return self._ocr_engine

    def extract(self, data: bytes, fmt: DocumentFormat,
                password_provider: Optional[PasswordProvider] = None) -> str:
        """
        Extract the text of a document.

        Args:
            data: Raw document bytes
            fmt: Format the bytes are in
            password_provider: Called with a prompt when a PDF is encrypted;
                returns the password, or None/"" to give up

        Returns:
            Extracted text, "" when nothing could be extracted
        """
        if fmt is DocumentFormat.TXT:
            return extract_txt(data)
        if fmt is DocumentFormat.RTF:
            return extract_rtf(data)
        if fmt is DocumentFormat.DOCX:
            return extract_docx(data)
        if fmt is DocumentFormat.ODT:
            return extract_odt(data)
        if fmt is DocumentFormat.PDF:
            return self.extract_pdf(data, password_provider)
        return ""

    def extract_pdf(self, data: bytes, password_provider: Optional[PasswordProvider] = None) -> str:
        document = self.pdf_backend.open(data)
        try:
            try:
                self.unlock(document, password_provider)
            except PasswordCancelled:
                logger.info("Password prompt cancelled, no text extracted")
                return ""

            page_texts = []
            for number, page in enumerate(document.pages(), start=1):
                page_texts.append(self._page_text(page, number))
            return strip_nul(PAGE_SEPARATOR.join(page_texts))
        finally:
            document.close()

    def unlock(self, document, password_provider: Optional[PasswordProvider]):
        """Prompt for passwords until the document opens or the user gives up."""
        if not document.needs_password:
            return

        prompt = PASSWORD_PROMPT
        while True:
            password = password_provider(prompt) if password_provider else None
            if not password:
                raise PasswordCancelled()
            if document.authenticate(password):
                return
            logger.debug("PDF password rejected")
            prompt = PASSWORD_RETRY_PROMPT

    def _page_text(self, page, number: int) -> str:
        text = page.text()
        if not needs_ocr(text):
            return text

        logger.debug(f"Page {number}: text layer too thin, trying OCR")
        try:
            image = page.render(RENDER_SCALE)
            recognized = self.ocr_engine.recognize(image)
        except Exception as e:
            logger.warning(f"OCR failed on page {number}, keeping text layer: {e}")
            return text

        if recognized and recognized.strip():
            return recognized.strip()
        return text
