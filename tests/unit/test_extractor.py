"""
Unit tests for plain-text extraction.
"""

import pytest

from docconvert._local_.extractor import (
    PASSWORD_PROMPT,
    PASSWORD_RETRY_PROMPT,
    TextExtractor,
    needs_ocr,
)
from docconvert.config import DocumentFormat

DOCX_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"><w:body>'
    '<w:p><w:r><w:t>Hello</w:t></w:r><w:r><w:t xml:space="preserve"> world</w:t></w:r></w:p>'
    '<w:p><w:pPr><w:tab/></w:pPr><w:r><w:t>Fish &amp; chips</w:t></w:r></w:p>'
    '</w:body></w:document>'
)

ODT_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<office:document-content xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0"><office:body><office:text>'
    '<text:p text:style-name="P1">  First <text:span>line</text:span> </text:p>'
    '<text:p>A &lt; B</text:p>'
    '</office:text></office:body></office:document-content>'
)


class TestSimpleFormats:
    """TXT, RTF, DOCX and ODT extraction."""

    def test_txt_is_returned_unchanged(self):
        assert TextExtractor().extract("line 1\nline 2 é".encode("utf-8"), DocumentFormat.TXT) == "line 1\nline 2 é"

    def test_txt_drops_bom(self):
        assert TextExtractor().extract(b"\xef\xbb\xbfhello", DocumentFormat.TXT) == "hello"

    def test_rtf_control_words_are_stripped(self):
        rtf = rb"{\rtf1\ansi{\fonttbl\f0\fswiss Helvetica;}\f0\pard Hello \b bold\b0\par World\'e9\u233?!}"
        text = TextExtractor().extract(rtf, DocumentFormat.RTF)
        assert "Hello" in text
        assert "bold" in text
        assert "World!" in text
        assert "é" not in text
        assert "\\" not in text
        assert "{" not in text

    def test_rtf_par_becomes_newline(self):
        text = TextExtractor().extract(rb"{\rtf1 one\par two\par three}", DocumentFormat.RTF)
        assert [line.strip() for line in text.split("\n")] == ["one", "two", "three"]

    def test_docx_paragraphs(self, zip_factory):
        data = zip_factory({"word/document.xml": DOCX_XML})
        assert TextExtractor().extract(data, DocumentFormat.DOCX) == "Hello world\nFish & chips"

    def test_docx_without_document_part(self, zip_factory):
        data = zip_factory({"word/styles.xml": "<w:styles/>"})
        assert TextExtractor().extract(data, DocumentFormat.DOCX) == ""

    def test_docx_collapses_whitespace_runs(self, zip_factory):
        xml = '<w:document><w:body><w:p><w:r><w:t>a    b</w:t></w:r></w:p></w:body></w:document>'
        data = zip_factory({"word/document.xml": xml})
        assert TextExtractor().extract(data, DocumentFormat.DOCX) == "a\nb"

    def test_odt_paragraphs(self, zip_factory):
        data = zip_factory({"content.xml": ODT_XML})
        assert TextExtractor().extract(data, DocumentFormat.ODT) == "First line\nA < B"

    def test_odt_without_content_part(self, zip_factory):
        data = zip_factory({"mimetype": "application/vnd.oasis.opendocument.text"})
        assert TextExtractor().extract(data, DocumentFormat.ODT) == ""

    @pytest.mark.parametrize("fmt", [DocumentFormat.DOCX, DocumentFormat.ODT])
    def test_corrupt_archive_yields_empty_text(self, fmt):
        assert TextExtractor().extract(b"definitely not a zip", fmt) == ""

    def test_nul_characters_are_removed(self, zip_factory):
        xml = '<w:document><w:body><w:p><w:r><w:t>a\x00b</w:t></w:r></w:p></w:body></w:document>'
        data = zip_factory({"word/document.xml": xml})
        assert TextExtractor().extract(data, DocumentFormat.DOCX) == "ab"

    def test_unknown_format_yields_empty_text(self):
        assert TextExtractor().extract(b"data", None) == ""


class TestOcrHeuristic:
    """Pages with thin text layers go through OCR."""

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "short text",
        "!!!!@@@@####$$$$%%%%^^^^&&&&****",
    ])
    def test_needs_ocr(self, text):
        assert needs_ocr(text)

    def test_dense_text_does_not_need_ocr(self):
        assert not needs_ocr("The quick brown fox jumps over the lazy dog.")

    def test_whitespace_counts_against_density(self):
        text = "abcdefghijklmnopqrstu" + " " * 200
        assert needs_ocr(text)


class TestPdfExtraction:
    """PDF text layers, OCR fallback and passwords."""

    PAGES = [
        "Page one has plenty of readable text.",
        "Page two also has plenty of readable text.",
        "Page three closes the document with text.",
    ]

    def test_pages_are_joined_by_blank_lines(self, pdf_backend_factory, ocr_factory):
        ocr = ocr_factory("should not be used")
        extractor = TextExtractor(pdf_backend=pdf_backend_factory(self.PAGES), ocr_engine=ocr)
        assert extractor.extract(b"%PDF", DocumentFormat.PDF) == "\n\n".join(self.PAGES)
        assert ocr.calls == 0

    def test_ocr_replaces_thin_page(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(["", "Readable text on the second page."])
        ocr = ocr_factory("  Scanned words  \n")
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr).extract(b"%PDF", DocumentFormat.PDF)
        assert text == "Scanned words\n\nReadable text on the second page."
        assert ocr.calls == 1
        assert backend.pages[0].render_scales == [2.0]

    def test_blank_ocr_keeps_text_layer(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(["tiny"])
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr_factory("   ")).extract(b"%PDF", DocumentFormat.PDF)
        assert text == "tiny"

    def test_ocr_errors_are_swallowed(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(["tiny"])
        ocr = ocr_factory(error=RuntimeError("tesseract missing"))
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr).extract(b"%PDF", DocumentFormat.PDF)
        assert text == "tiny"

    def test_render_errors_are_swallowed(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(["tiny"], render_error=True)
        ocr = ocr_factory("never")
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr).extract(b"%PDF", DocumentFormat.PDF)
        assert text == "tiny"
        assert ocr.calls == 0

    def test_document_is_closed(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(self.PAGES)
        TextExtractor(pdf_backend=backend, ocr_engine=ocr_factory()).extract(b"%PDF", DocumentFormat.PDF)
        assert backend.documents[0].closed

    def test_password_prompts(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(self.PAGES, password="secret")
        prompts = []
        answers = iter(["wrong", "secret"])

        def provider(prompt):
            prompts.append(prompt)
            return next(answers)

        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr_factory()).extract(
            b"%PDF", DocumentFormat.PDF, password_provider=provider
        )
        assert prompts == [PASSWORD_PROMPT, PASSWORD_RETRY_PROMPT]
        assert text.startswith("Page one")
        assert backend.documents[0].attempts == ["wrong", "secret"]

    def test_cancelled_password_yields_empty_text(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(self.PAGES, password="secret")
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr_factory()).extract(
            b"%PDF", DocumentFormat.PDF, password_provider=lambda prompt: None
        )
        assert text == ""
        assert backend.documents[0].closed

    def test_encrypted_pdf_without_provider(self, pdf_backend_factory, ocr_factory):
        backend = pdf_backend_factory(self.PAGES, password="secret")
        text = TextExtractor(pdf_backend=backend, ocr_engine=ocr_factory()).extract(b"%PDF", DocumentFormat.PDF)
        assert text == ""
