"""
Output generation for local conversion.

Every text-based conversion produces the same composed text (a short
provenance header followed by the extracted text) and serializes it in the
target format.
"""

import io
import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional

from docx import Document
from docx.shared import Emu
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from ..config import (
    DocumentFormat,
    LAYOUT_IMAGE_WIDTH_PX,
    NO_TEXT_PLACEHOLDER,
    PDF_FONT_NAME,
    PDF_FONT_SIZE,
    PDF_LINE_HEIGHT,
    PDF_MARGIN,
    PDF_PAGE_HEIGHT,
    PDF_PAGE_WIDTH,
)
from .backends import PageImage

logger = logging.getLogger(__name__)

DATE_FORMAT = "%m/%d/%Y, %I:%M:%S %p"

EMU_PER_PIXEL = 9525

# Control characters XML 1.0 cannot carry (python-docx rejects them too)
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

ODT_PROLOGUE = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<office:document xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0">'
    '<office:body><office:text>'
)
ODT_EPILOGUE = '</office:text></office:body></office:document>'


def build_header(filename: str, source: DocumentFormat, target: DocumentFormat,
                 when: Optional[datetime] = None) -> str:
    """Provenance header placed above the converted text."""
    when = when or datetime.now()
    return (
        f"Converted from: {filename}\n"
        f"Original format: {source.label}\n"
        f"Target format: {target.label}\n"
        f"Conversion date: {when.strftime(DATE_FORMAT)}\n\n"
    )


def compose(text: str, header: str) -> str:
    """Header plus text, or plus a placeholder when the text is blank."""
    if text and text.strip():
        return header + text
    return header + NO_TEXT_PLACEHOLDER


def _rtf_escape(text: str) -> str:
    out = []
    for char in text:
        if char in "\\{}":
            out.append("\\" + char)
        elif ord(char) < 128:
            out.append(char)
        else:
            # \uN takes a signed 16-bit value; astral characters become surrogate pairs
            encoded = char.encode("utf-16-le")
            for i in range(0, len(encoded), 2):
                unit = int.from_bytes(encoded[i:i + 2], "little")
                if unit > 32767:
                    unit -= 65536
                out.append(f"\\u{unit}?")
    return "".join(out)


def _xml_text(line: str) -> str:
    return _XML_INVALID.sub("", line).replace("&", "&amp;").replace("<", "&lt;")


def _wrap_line(line: str, max_width: float) -> List[str]:
    """Greedy word wrap of one line to the printable width."""
    words = line.split()
    if not words:
        return [""]

    lines = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if stringWidth(candidate, PDF_FONT_NAME, PDF_FONT_SIZE) > max_width and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    lines.append(current)
    return lines


class DocumentBuilder:
    """Serializes composed text into each target format."""

    def build(self, text: str, target: DocumentFormat, header: str) -> bytes:
        """
        Produce the bytes of the output document.

        Args:
            text: Extracted text (may be empty)
            target: Output format
            header: Header from build_header()

        Returns:
            Encoded document
        """
        full = compose(text, header)

        if target is DocumentFormat.TXT:
            return full.encode("utf-8")
        if target is DocumentFormat.RTF:
            return self.build_rtf(full)
        if target is DocumentFormat.DOCX:
            return self.build_docx(full)
        if target is DocumentFormat.ODT:
            return self.build_odt(full)
        return self.build_pdf(full)

    def build_rtf(self, full: str) -> bytes:
        body = _rtf_escape(full).replace("\n", "\\par\n")
        return ("{\\rtf1\\ansi\n" + body + "\n}").encode("ascii")

    def build_docx(self, full: str) -> bytes:
        document = Document()
        for line in full.split("\n"):
            document.add_paragraph(_XML_INVALID.sub("", line))

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def build_odt(self, full: str) -> bytes:
        # Flat OpenDocument XML, not a zipped package
        paragraphs = "".join(
            f"<text:p>{_xml_text(line)}</text:p>" for line in full.split("\n")
        )
        return (ODT_PROLOGUE + paragraphs + ODT_EPILOGUE).encode("utf-8")

    def build_pdf(self, full: str) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(PDF_PAGE_WIDTH, PDF_PAGE_HEIGHT))
        pdf.setFont(PDF_FONT_NAME, PDF_FONT_SIZE)
        max_width = PDF_PAGE_WIDTH - 2 * PDF_MARGIN

        y = PDF_PAGE_HEIGHT - PDF_MARGIN
        for source_line in full.split("\n"):
            for line in _wrap_line(source_line, max_width):
                if y < PDF_MARGIN + PDF_FONT_SIZE:
                    pdf.showPage()
                    pdf.setFont(PDF_FONT_NAME, PDF_FONT_SIZE)
                    y = PDF_PAGE_HEIGHT - PDF_MARGIN
                pdf.drawString(PDF_MARGIN, y, line)
                y -= PDF_LINE_HEIGHT

        pdf.save()
        return buffer.getvalue()


def build_layout_docx(pages: Iterable[PageImage]) -> bytes:
    """
    DOCX with one full-width picture per page and a blank paragraph between pages.

    Images are scaled to 700 px wide, keeping their aspect ratio.
    """
    document = Document()
    previous = False
    count = 0
    for page in pages:
        if previous:
            document.add_paragraph("")
        ratio = LAYOUT_IMAGE_WIDTH_PX / page.width
        width = round(page.width * ratio)
        height = round(page.height * ratio)
        run = document.add_paragraph().add_run()
        run.add_picture(io.BytesIO(page.png),
                        width=Emu(width * EMU_PER_PIXEL),
                        height=Emu(height * EMU_PER_PIXEL))
        previous = True
        count += 1

    logger.debug(f"Built layout DOCX with {count} page image(s)")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
