"""
Shared test configuration and fixtures for docconvert tests.

The PDF, OCR and office-suite collaborators are replaced by small fakes so
unit tests run without PyMuPDF documents, Tesseract or LibreOffice.
"""

import errno
import io
import zipfile
from datetime import datetime
from typing import Callable, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from docconvert.app import app
from docconvert.utils.office_suite import get_office_backend


# ===== FAKES =====

class FakePage:
    """A PDF page with a fixed text layer."""

    def __init__(self, text: str, width: int = 1224, height: int = 1584, render_error: bool = False):
        self._text = text
        self.width = width
        self.height = height
        self.render_error = render_error
        self.render_scales: List[float] = []

    def text(self) -> str:
        return self._text

    def render(self, scale: float):
        from docconvert._local_.backends import PageImage

        self.render_scales.append(scale)
        if self.render_error:
            raise RuntimeError("render failed")
        return PageImage(png=make_png(self.width, self.height), width=self.width, height=self.height)


class FakePdfDocument:
    def __init__(self, pages: List[FakePage], password: Optional[str] = None):
        self._pages = pages
        self._password = password
        self._unlocked = password is None
        self.attempts: List[str] = []
        self.closed = False

    @property
    def needs_password(self) -> bool:
        return not self._unlocked

    def authenticate(self, password: str) -> bool:
        self.attempts.append(password)
        self._unlocked = password == self._password
        return self._unlocked

    def pages(self):
        if not self._unlocked:
            raise RuntimeError("document is locked")
        return iter(self._pages)

    def close(self):
        self.closed = True


class FakePdfBackend:
    def __init__(self, pages: List[FakePage], password: Optional[str] = None):
        self.pages = pages
        self.password = password
        self.documents: List[FakePdfDocument] = []

    def open(self, data: bytes) -> FakePdfDocument:
        document = FakePdfDocument(self.pages, self.password)
        self.documents.append(document)
        return document


class FakeOcr:
    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = 0

    def recognize(self, image) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeOfficeBackend:
    """Office backend exposing convert_with_options (and optionally convert)."""

    def __init__(self, result: bytes = b"%PDF-1.4 converted", error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls = []

    def convert_with_options(self, data, target, filter_name=None, **options):
        self.calls.append({"data": data, "target": target, "filter": filter_name, **options})
        if self.error:
            raise self.error
        return self.result


class PlainOfficeBackend:
    """Office backend exposing only convert."""

    def __init__(self, result: bytes = b"converted"):
        self.result = result
        self.calls = []

    def convert(self, data, target, filter_name=None):
        self.calls.append((data, target, filter_name))
        return self.result


# ===== HELPERS =====

def make_png(width: int = 40, height: int = 60) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_zip(parts: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in parts.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def missing_binary_error() -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, "ENOENT: could not find soffice binary", "soffice")


# ===== FIXTURES =====

@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns 2024-01-02 15:04:05."""
    return lambda: datetime(2024, 1, 2, 15, 4, 5)


@pytest.fixture
def pdf_backend_factory():
    """Build a fake PDF backend from page texts."""
    def factory(texts: List[str], password: Optional[str] = None, **page_kwargs) -> FakePdfBackend:
        return FakePdfBackend([FakePage(text, **page_kwargs) for text in texts], password=password)
    return factory


@pytest.fixture
def ocr_factory():
    return FakeOcr


@pytest.fixture
def zip_factory():
    return make_zip


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def office_backend():
    return FakeOfficeBackend()


@pytest.fixture
def plain_office_backend():
    return PlainOfficeBackend()


@pytest.fixture
def missing_office_backend():
    """Office backend whose soffice binary cannot be found."""
    return FakeOfficeBackend(error=missing_binary_error())


@pytest.fixture
def client_with_backend():
    """Create a TestClient whose office backend is the given object."""
    clients = []

    def factory(backend) -> TestClient:
        app.dependency_overrides[get_office_backend] = lambda: backend
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_with_backend, office_backend):
    """FastAPI test client backed by a fake office suite."""
    return client_with_backend(office_backend)
