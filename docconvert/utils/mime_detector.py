"""
MIME type lookup and content sniffing for uploaded documents.

Extension lookups cover the five document formats plus legacy ``.doc``.
When an upload carries no usable extension, the content is inspected:
ZIP containers are told apart by their main part, everything else goes
through python-magic.
"""

import io
import logging
import zipfile
from typing import Optional

# python-magic needs the libmagic shared library at import time
try:
    import magic
    MAGIC_AVAILABLE = True
except ImportError:
    magic = None
    MAGIC_AVAILABLE = False

from ..config import DocumentFormat, EXTENSION_ALIASES

logger = logging.getLogger(__name__)

# MIME types by extension, as served by the conversion endpoint
MIME_TYPE_MAPPINGS = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
    "rtf": "application/rtf",
    "odt": "application/vnd.oasis.opendocument.text",
}

# Content types reported by libmagic mapped onto logical formats
CONTENT_TYPE_TO_FORMAT = {
    "application/pdf": DocumentFormat.PDF,
    "text/rtf": DocumentFormat.RTF,
    "application/rtf": DocumentFormat.RTF,
    "text/plain": DocumentFormat.TXT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "application/msword": DocumentFormat.DOCX,
    "application/vnd.oasis.opendocument.text": DocumentFormat.ODT,
}

# Main part of each ZIP-based format
ZIP_MAIN_PARTS = {
    "word/document.xml": DocumentFormat.DOCX,
    "content.xml": DocumentFormat.ODT,
}


def get_mime_type(extension: str) -> str:
    """
    MIME type for a file extension.

    Args:
        extension: Extension with or without the leading dot

    Returns:
        MIME type, or application/octet-stream when unknown
    """
    return MIME_TYPE_MAPPINGS.get(extension.lower().lstrip("."), "application/octet-stream")


def is_supported_extension(extension: str) -> bool:
    return extension.lower().lstrip(".") in EXTENSION_ALIASES


def _detect_zip_format(content: bytes) -> Optional[DocumentFormat]:
    buffer = io.BytesIO(content)
    if not zipfile.is_zipfile(buffer):
        return None
    try:
        with zipfile.ZipFile(buffer) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile as e:
        logger.debug(f"ZIP inspection failed: {e}")
        return None

    for part, fmt in ZIP_MAIN_PARTS.items():
        if part in names:
            return fmt
    return None


def detect_format_from_content(content: bytes) -> Optional[DocumentFormat]:
    """
    Infer a document format from raw bytes.

    Args:
        content: Uploaded file content

    Returns:
        The detected DocumentFormat, or None when nothing matches
    """
    if not content:
        return None

    zip_format = _detect_zip_format(content)
    if zip_format is not None:
        logger.debug(f"Content-based detection (zip): {zip_format.key}")
        return zip_format

    if not MAGIC_AVAILABLE:
        logger.debug("python-magic unavailable, skipping content sniffing")
        return None

    try:
        detected_mime = magic.from_buffer(content, mime=True)
    except Exception as e:
        logger.debug(f"Content-based detection failed: {e}")
        return None

    fmt = CONTENT_TYPE_TO_FORMAT.get((detected_mime or "").lower().split(";")[0].strip())
    logger.debug(f"Content-based detection: {detected_mime} -> {fmt.key if fmt else None}")
    return fmt
