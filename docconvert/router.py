"""
Conversion router for the /convert endpoints.

POST /convert hands an uploaded document to the local LibreOffice
installation; GET /convert/health reports whether that works.
"""

import os
import re
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse

from .config import (
    CONVERT_POLL_ATTEMPTS,
    SERVER_TARGET_EXTENSIONS,
    resolve_soffice_binary_paths,
)
from .utils.error_handling import ErrorCode, create_error_response
from .utils.logging_config import get_logger
from .utils.mime_detector import detect_format_from_content, get_mime_type
from .utils.office_suite import (
    OfficeSuiteUnavailable,
    default_exec_options,
    failure_hints,
    get_office_backend,
    probe_office_suite,
    run_office_conversion,
)

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/convert", tags=["conversions"])

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")

PDF_TO_EDITABLE_MESSAGE = (
    "PDF to DOCX/ODT is not reliably supported by LibreOffice on the server. "
    "Use client conversion with Preserve layout or convert to TXT/RTF instead."
)


def _normalize_ext(value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    ext = sanitize_filename(value.strip().lower())
    return ext if ext.startswith(".") else f".{ext}"


def sanitize_filename(name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", name)


def split_upload_name(uploaded_name: str):
    """Return (base name, extension) of a sanitized upload name."""
    safe = sanitize_filename(uploaded_name or "")
    base, ext = os.path.splitext(safe)
    return (base or "source"), ext.lower()


#-- Document conversion
#-------------------------------------------------------------------------------
@router.post("")
async def convert_document(
    file: Optional[UploadFile] = File(None),
    target_ext: Optional[str] = Form(None, alias="targetExt"),
    source_ext: Optional[str] = Form(None, alias="sourceExt"),
    backend=Depends(get_office_backend),
):
    """Convert an uploaded document with LibreOffice."""
    try:
        target = _normalize_ext(target_ext)
        declared_source = _normalize_ext(source_ext)
        if file is None or target is None:
            return create_error_response(ErrorCode.INVALID_REQUEST, "Invalid request")
        if target not in SERVER_TARGET_EXTENSIONS:
            return create_error_response(
                ErrorCode.INVALID_FORMAT,
                f"Unsupported target format: {target}. Supported formats: {sorted(SERVER_TARGET_EXTENSIONS)}"
            )

        content = await file.read()
        uploaded_name = file.filename or ""
        base_name, uploaded_ext = split_upload_name(uploaded_name)

        effective_source = declared_source or uploaded_ext or None
        if effective_source is None:
            sniffed = detect_format_from_content(content)
            effective_source = sniffed.extension if sniffed else ".pdf"

        # Reject known-unsupported combinations before soffice runs
        is_pdf_source = effective_source == ".pdf" or uploaded_name.lower().endswith(".pdf")
        if is_pdf_source and target in (".docx", ".odt"):
            return create_error_response(ErrorCode.CONVERSION_NOT_SUPPORTED, PDF_TO_EDITABLE_MESSAGE)

        binary_paths = resolve_soffice_binary_paths()
        logger.info(f"Converting {base_name}{effective_source} to {target} with LibreOffice")

        try:
            result = await run_in_threadpool(
                run_office_conversion,
                backend,
                content,
                target.lstrip("."),
                file_name=f"{base_name}{effective_source}",
                binary_paths=binary_paths,
                poll_attempts=CONVERT_POLL_ATTEMPTS,
                exec_options=default_exec_options(),
            )
        except OfficeSuiteUnavailable as e:
            return create_error_response(ErrorCode.INTERNAL_ERROR, str(e))
        except Exception as e:
            logger.error(f"LibreOffice conversion failed: {e}")
            return create_error_response(
                ErrorCode.SERVICE_ERROR,
                f"LibreOffice conversion failed: {e}",
                hints=failure_hints(e, binary_paths),
            )

        return StreamingResponse(
            BytesIO(result),
            media_type=get_mime_type(target),
            headers={
                "Content-Disposition": f'attachment; filename="converted{target}"',
                "Content-Length": str(len(result))
            }
        )

    except Exception as e:
        logger.exception("Unexpected error in /convert")
        return create_error_response(ErrorCode.INTERNAL_ERROR, str(e) or "Unexpected error")


@router.get("")
async def convert_ready():
    return {"ok": True}


#-- Health
#-------------------------------------------------------------------------------
@router.get("/health")
async def convert_health(backend=Depends(get_office_backend)):
    """Probe the office suite with a tiny conversion."""
    status = await run_in_threadpool(probe_office_suite, backend)
    return JSONResponse(status.to_dict(), status_code=200 if status.available else 503)
