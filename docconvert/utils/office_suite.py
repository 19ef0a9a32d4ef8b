"""
LibreOffice integration for server-side conversion.

This module provides:
- SofficeProcess, which runs ``soffice --headless --convert-to`` in a
  scratch directory and collects the output file
- Selection between the two calling conventions an office backend may offer
- Remediation hints for failed conversions
- The health probe used by GET /convert/health
"""

import errno
import os
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import (
    CONVERT_POLL_ATTEMPTS,
    HEALTH_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    get_soffice_timeout,
    resolve_soffice_binary_paths,
)
from .logging_config import get_logger
from .temp_file_manager import get_temp_manager

logger = get_logger(__name__)

HEALTH_SAMPLE = b"health-check"
HEALTH_FILE_NAME = "health.txt"

AVAILABLE_MESSAGE = "LibreOffice is available for server conversion."
NOT_DETECTED_MESSAGE = (
    "LibreOffice not detected. Install LibreOffice and ensure soffice is on PATH "
    "or set LIBREOFFICE_BIN."
)
INSTALL_HINT = (
    "Install LibreOffice and ensure soffice is on PATH or set LIBREOFFICE_BIN "
    "to the full path of the soffice binary."
)

OUTPUT_NOT_FOUND_HINT = "Output file not found. This often means soffice did not run or failed."
PATH_HINT = (
    "Ensure LibreOffice is installed and soffice is on PATH, or set LIBREOFFICE_BIN "
    "to the full path to soffice.exe."
)
TIMEOUT_HINT = (
    "soffice did not finish in time. Large documents may need a higher "
    "DOCCONVERT_SOFFICE_TIMEOUT."
)


class OfficeSuiteError(Exception):
    """soffice ran but did not produce a result."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class OfficeSuiteUnavailable(Exception):
    """The office backend offers neither calling convention."""
    pass


def default_exec_options() -> Dict[str, Any]:
    """Extra subprocess arguments: no console window on Windows."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {}


def is_not_found_error(exc: BaseException) -> bool:
    if isinstance(exc, FileNotFoundError):
        return True
    return "ENOENT" in str(exc).upper()


class SofficeProcess:
    """Converts documents by running a local soffice binary."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def find_binary(self, binary_paths: Optional[List[str]] = None) -> str:
        """
        Pick the first usable soffice binary.

        Explicit paths are tried first, then soffice and libreoffice on PATH.

        Raises:
            FileNotFoundError: If no candidate exists
        """
        candidates = list(binary_paths or [])
        tried = []
        for candidate in candidates:
            tried.append(candidate)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
            resolved = shutil.which(candidate)
            if resolved:
                return resolved

        for name in ("soffice", "libreoffice"):
            resolved = shutil.which(name)
            if resolved:
                return resolved
            tried.append(name)

        raise FileNotFoundError(
            errno.ENOENT,
            "ENOENT: could not find soffice binary",
            ", ".join(tried)
        )

    def convert(self, data: bytes, target: str, filter_name: Optional[str] = None) -> bytes:
        """Convert with default settings and soffice looked up on PATH."""
        return self.convert_with_options(data, target, filter_name)

    def convert_with_options(
        self,
        data: bytes,
        target: str,
        filter_name: Optional[str] = None,
        *,
        file_name: str = "source",
        binary_paths: Optional[List[str]] = None,
        poll_attempts: int = CONVERT_POLL_ATTEMPTS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        exec_options: Optional[Dict[str, Any]] = None
    ) -> bytes:
        """
        Convert document bytes with soffice.

        Args:
            data: Input document
            target: Target extension without the dot ('pdf', 'docx', ...)
            filter_name: Optional export filter, appended as ``target:filter``
            file_name: Name the input is written under; the output keeps its stem
            binary_paths: soffice candidates tried before PATH
            poll_attempts: How many times to look for the output file
            poll_interval: Seconds between looks
            exec_options: Extra keyword arguments for subprocess.run

        Returns:
            Bytes of the converted document

        Raises:
            FileNotFoundError: soffice is missing or produced no output (ENOENT)
            OfficeSuiteError: soffice failed or timed out
        """
        binary = self.find_binary(binary_paths)
        timeout = self.timeout or get_soffice_timeout()
        convert_to = f"{target}:{filter_name}" if filter_name else target

        with get_temp_manager("office").scratch_directory() as scratch:
            input_path = scratch.write_input(data, file_name)
            output_path = scratch.output_path(Path(file_name).stem, target)

            cmd = [
                binary,
                "--headless",
                f"-env:UserInstallation={scratch.profile_dir.as_uri()}",
                "--convert-to",
                convert_to,
                "--outdir",
                str(scratch.output_dir),
                str(input_path),
            ]
            logger.debug(f"Running soffice: {' '.join(cmd)}")

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    **(exec_options or {})
                )
            except subprocess.TimeoutExpired:
                raise OfficeSuiteError(f"soffice timed out after {timeout:g}s", timed_out=True)

            if not self._wait_for_output(output_path, poll_attempts, poll_interval):
                if result.returncode != 0:
                    stderr = (result.stderr or "").strip()
                    raise OfficeSuiteError(f"soffice exited with status {result.returncode}: {stderr}")
                raise FileNotFoundError(
                    errno.ENOENT,
                    "ENOENT: no such file or directory",
                    str(output_path)
                )

            content = output_path.read_bytes()
            logger.info(f"soffice converted {file_name} to {target} ({len(content)} bytes)")
            return content

    def _wait_for_output(self, output_path: Path, attempts: int, interval: float) -> bool:
        for attempt in range(max(attempts, 1)):
            if output_path.exists() and output_path.stat().st_size > 0:
                return True
            if attempt < attempts - 1:
                time.sleep(interval)
        return False


def get_office_functions(backend) -> Tuple[Optional[Callable], Optional[Callable]]:
    """Return the (convert, convert_with_options) callables a backend offers."""
    if backend is None:
        return None, None
    if callable(backend) and not hasattr(backend, "convert") and not hasattr(backend, "convert_with_options"):
        return backend, None
    convert = getattr(backend, "convert", None)
    convert_with_options = getattr(backend, "convert_with_options", None)
    return (
        convert if callable(convert) else None,
        convert_with_options if callable(convert_with_options) else None,
    )


def run_office_conversion(
    backend,
    data: bytes,
    target: str,
    *,
    file_name: str,
    binary_paths: List[str],
    poll_attempts: int = CONVERT_POLL_ATTEMPTS,
    exec_options: Optional[Dict[str, Any]] = None
) -> bytes:
    """
    Run one conversion through whichever calling convention the backend has.

    convert_with_options is preferred; plain convert is the fallback.

    Raises:
        OfficeSuiteUnavailable: If the backend offers neither
    """
    convert, convert_with_options = get_office_functions(backend)
    if convert_with_options is not None:
        return convert_with_options(
            data,
            target,
            None,
            file_name=file_name,
            binary_paths=binary_paths,
            poll_attempts=poll_attempts,
            poll_interval=POLL_INTERVAL_SECONDS,
            exec_options=exec_options,
        )
    if convert is not None:
        return convert(data, target, None)
    raise OfficeSuiteUnavailable("office suite integration failed to load")


def failure_hints(exc: BaseException, binary_paths: List[str]) -> List[str]:
    """Remediation hints for a failed conversion; the paths tried are always last."""
    hints = []
    if is_not_found_error(exc):
        hints.append(OUTPUT_NOT_FOUND_HINT)
        hints.append(PATH_HINT)
    elif isinstance(exc, OfficeSuiteError) and exc.timed_out:
        hints.append(TIMEOUT_HINT)
    hints.append(f"Paths tried: {', '.join(binary_paths)}")
    return hints


@dataclass
class HealthStatus:
    """Whether server conversion is usable, with a human-readable reason."""
    available: bool
    message: str
    binary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.available,
            "server": {"available": self.available, "message": self.message},
            "details": {"bin": self.binary},
        }


def probe_office_suite(backend=None) -> HealthStatus:
    """
    Check the office suite by converting a tiny text document to PDF.

    Args:
        backend: Office backend to probe (defaults to the shared SofficeProcess)

    Returns:
        HealthStatus describing the outcome
    """
    backend = backend if backend is not None else get_office_backend()
    binary_env = os.getenv("LIBREOFFICE_BIN")
    available = False
    message = NOT_DETECTED_MESSAGE

    try:
        convert, convert_with_options = get_office_functions(backend)
        if convert or convert_with_options:
            try:
                run_office_conversion(
                    backend,
                    HEALTH_SAMPLE,
                    "pdf",
                    file_name=HEALTH_FILE_NAME,
                    binary_paths=resolve_soffice_binary_paths(),
                    poll_attempts=HEALTH_POLL_ATTEMPTS,
                )
                available = True
                message = AVAILABLE_MESSAGE
            except Exception as e:
                message = f"LibreOffice convert failed: {e}"
                if is_not_found_error(e):
                    message = f"{message}. {INSTALL_HINT}"
        else:
            message = "Office suite integration could not be loaded."
    except Exception as e:
        message = f"Health check error: {e}"

    if available:
        logger.info(message)
    else:
        logger.warning(message)
    return HealthStatus(available=available, message=message, binary=binary_env)


_office_backend = None


def get_office_backend() -> SofficeProcess:
    """Shared office backend; override via FastAPI dependency_overrides in tests."""
    global _office_backend
    if _office_backend is None:
        _office_backend = SofficeProcess()
    return _office_backend
