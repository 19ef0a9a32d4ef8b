"""
Conversion configuration for docconvert.

This module defines the supported document formats, the selection rules
that keep source and target apart, and the environment-driven settings for
the office suite, the server bridge and the text extraction heuristics.
"""

import os
import platform
import tempfile
from enum import Enum
from typing import Dict, List, Optional


class DocumentFormat(Enum):
    """Logical document formats understood by the converter."""
    PDF = ("pdf", ".pdf", "application/pdf", "PDF")
    DOCX = (
        "docx",
        ".docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "Word Document (DOCX)",
    )
    TXT = ("txt", ".txt", "text/plain", "Text File (TXT)")
    RTF = ("rtf", ".rtf", "application/rtf", "Rich Text (RTF)")
    ODT = ("odt", ".odt", "application/vnd.oasis.opendocument.text", "OpenDocument Text (ODT)")

    def __init__(self, key: str, extension: str, mime_type: str, label: str):
        self.key = key
        self.extension = extension
        self.mime_type = mime_type
        self.label = label

    def __str__(self):
        return self.label


# Display order used wherever a list of choices is presented
FORMAT_ORDER: List[DocumentFormat] = [
    DocumentFormat.PDF,
    DocumentFormat.DOCX,
    DocumentFormat.TXT,
    DocumentFormat.RTF,
    DocumentFormat.ODT,
]

# Upload extensions mapped onto logical formats (legacy .doc is treated as DOCX)
EXTENSION_ALIASES: Dict[str, DocumentFormat] = {
    "pdf": DocumentFormat.PDF,
    "docx": DocumentFormat.DOCX,
    "doc": DocumentFormat.DOCX,
    "txt": DocumentFormat.TXT,
    "rtf": DocumentFormat.RTF,
    "odt": DocumentFormat.ODT,
}

# Extensions the server endpoint accepts as conversion targets
SERVER_TARGET_EXTENSIONS = {".pdf", ".docx", ".doc", ".txt", ".rtf", ".odt"}

# Pairs the office suite cannot convert reliably; blocked in server mode
SERVER_BLOCKED_PAIRS = {
    (DocumentFormat.PDF, DocumentFormat.DOCX),
    (DocumentFormat.PDF, DocumentFormat.ODT),
}


def get_format(name: str) -> DocumentFormat:
    """
    Look up a format by key, extension or label.

    Args:
        name: 'pdf', '.pdf', 'PDF' or 'Word Document (DOCX)' style names

    Returns:
        The matching DocumentFormat

    Raises:
        ValueError: If the name matches no supported format
    """
    cleaned = name.strip()
    for fmt in DocumentFormat:
        if cleaned == fmt.label:
            return fmt
    key = cleaned.lower().lstrip(".")
    if key in EXTENSION_ALIASES:
        return EXTENSION_ALIASES[key]
    raise ValueError(f"Unsupported format: {name}. Supported formats: {[f.key for f in FORMAT_ORDER]}")


def detect_format(filename: Optional[str]) -> Optional[DocumentFormat]:
    """Detect a document format from a filename extension, or None if unknown."""
    if not filename or "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[-1].lower()
    return EXTENSION_ALIASES.get(extension)


def target_choices(source: DocumentFormat) -> List[DocumentFormat]:
    """Formats offered as targets once a source is selected (never the source itself)."""
    return [fmt for fmt in FORMAT_ORDER if fmt is not source]


def resolve_target(source: DocumentFormat, target: Optional[DocumentFormat]) -> DocumentFormat:
    """
    Keep the target selection different from the source.

    A missing target, or one that collides with the source, falls back to PDF,
    or to DOCX when the source itself is PDF.
    """
    if target is not None and target is not source:
        return target
    return DocumentFormat.DOCX if source is DocumentFormat.PDF else DocumentFormat.PDF


def is_server_blocked(source: DocumentFormat, target: DocumentFormat) -> bool:
    """Whether the pair is refused in server mode."""
    return (source, target) in SERVER_BLOCKED_PAIRS


# Office suite configuration
#-------------------------------------------------------------------------------
SOFFICE_ENV_VARS = ["LIBREOFFICE_BIN", "LIBRE_OFFICE_EXE", "LIBRE_OFFICE_BIN"]

SOFFICE_PLATFORM_PATHS = {
    "Windows": [
        r"C:\Program Files\LibreOffice\program\soffice.exe",
        r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
    ],
    "Darwin": [
        "/Applications/LibreOffice.app/Contents/MacOS/soffice",
    ],
    "Linux": [
        "/usr/bin/soffice",
        "/usr/local/bin/soffice",
    ],
}

# Polling applied while waiting for soffice output (attempts x seconds)
CONVERT_POLL_ATTEMPTS = 30
HEALTH_POLL_ATTEMPTS = 20
POLL_INTERVAL_SECONDS = 0.5


def resolve_soffice_binary_paths(system: Optional[str] = None) -> List[str]:
    """
    Build the ordered list of soffice binaries to try.

    Environment-configured paths come first, then the conventional install
    locations for the current operating system. Duplicates are dropped while
    keeping the first occurrence.
    """
    candidates = []
    for env_var in SOFFICE_ENV_VARS:
        value = os.getenv(env_var)
        if value:
            candidates.append(value)
            break

    system = system or platform.system()
    candidates.extend(SOFFICE_PLATFORM_PATHS.get(system, SOFFICE_PLATFORM_PATHS["Linux"]))

    return list(dict.fromkeys(path for path in candidates if path))


def get_soffice_timeout() -> float:
    """Seconds a single soffice run may take."""
    return float(os.getenv("DOCCONVERT_SOFFICE_TIMEOUT", "120"))


def get_temp_dir() -> str:
    """Base directory for conversion scratch space."""
    return os.getenv("DOCCONVERT_TEMP_DIR", os.path.join(tempfile.gettempdir(), "docconvert"))


# Server bridge configuration
#-------------------------------------------------------------------------------
DEFAULT_SERVER_URL = "http://localhost:8000"


def get_server_url() -> str:
    """Base URL of the conversion service used in server mode."""
    return os.getenv("DOCCONVERT_SERVER_URL", DEFAULT_SERVER_URL).rstrip("/")


# Text extraction and layout
#-------------------------------------------------------------------------------
# A PDF page whose text layer is shorter than this, or whose alphanumeric
# share is below the ratio, is sent through OCR
OCR_MIN_TEXT_LENGTH = 20
OCR_MIN_ALNUM_RATIO = 0.2
RENDER_SCALE = 2.0


def get_ocr_language() -> str:
    """Tesseract language used for the OCR fallback."""
    return os.getenv("DOCCONVERT_OCR_LANG", "eng")


# PDF output: US Letter in points
PDF_PAGE_WIDTH = 612
PDF_PAGE_HEIGHT = 792
PDF_MARGIN = 50
PDF_FONT_NAME = "Helvetica"
PDF_FONT_SIZE = 12
PDF_LINE_HEIGHT = PDF_FONT_SIZE * 1.4

# Layout-preserving DOCX: page images are scaled to this width in pixels
LAYOUT_IMAGE_WIDTH_PX = 700

NO_TEXT_PLACEHOLDER = "(No extractable text found)"
