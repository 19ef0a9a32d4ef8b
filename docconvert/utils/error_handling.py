"""
Centralized error handling for docconvert.

This module provides the error codes shared by the library and the HTTP
service, the ConversionError raised by the conversion pipeline, and the
JSON error envelope returned by the /convert endpoints.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Service-specific errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_TIMEOUT = "SERVICE_TIMEOUT"
    SERVICE_ERROR = "SERVICE_ERROR"

    # Conversion-specific errors
    CONVERSION_NOT_SUPPORTED = "CONVERSION_NOT_SUPPORTED"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_FILE = "INVALID_FILE"


class ErrorSeverity(str, Enum):
    """Error severity levels for logging and response handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Error code to HTTP status code mapping
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    # 4xx Client Errors
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_FORMAT: 400,
    ErrorCode.INVALID_FILE: 400,
    ErrorCode.CONVERSION_NOT_SUPPORTED: 400,

    # 5xx Server Errors
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.CONVERSION_FAILED: 500,
    ErrorCode.SERVICE_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.SERVICE_TIMEOUT: 504,
}

# Error code to severity mapping
ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.CONVERSION_FAILED: ErrorSeverity.HIGH,
    ErrorCode.SERVICE_ERROR: ErrorSeverity.HIGH,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSeverity.HIGH,
    ErrorCode.SERVICE_TIMEOUT: ErrorSeverity.MEDIUM,
    ErrorCode.INVALID_REQUEST: ErrorSeverity.MEDIUM,
    ErrorCode.CONVERSION_NOT_SUPPORTED: ErrorSeverity.LOW,
    ErrorCode.INVALID_FORMAT: ErrorSeverity.LOW,
    ErrorCode.INVALID_FILE: ErrorSeverity.LOW,
}


class ConversionError(Exception):
    """
    Raised when a conversion request cannot be completed.

    Attributes:
        code: ErrorCode classifying the failure
        message: Human-readable message shown to the user
        hints: Remediation hints, possibly empty
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONVERSION_FAILED,
                 hints: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.hints = list(hints or [])

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_MAP.get(self.code, 500)

    def __str__(self):
        if not self.hints:
            return self.message
        return self.message + "\n" + "\n".join(self.hints)


def _log_at_severity(severity: ErrorSeverity, message: str) -> None:
    if severity == ErrorSeverity.CRITICAL:
        logger.critical(message)
    elif severity == ErrorSeverity.HIGH:
        logger.error(message)
    elif severity == ErrorSeverity.MEDIUM:
        logger.warning(message)
    else:
        logger.info(message)


def create_error_response(
    error_code: Union[ErrorCode, str],
    message: str,
    hints: Optional[List[str]] = None,
    status_code: Optional[int] = None,
    **kwargs
) -> JSONResponse:
    """
    Create a consistent JSON error response across all endpoints.

    The body always carries ``error`` (the user-facing message) and, when
    there are any, ``hints``. The code, timestamp and severity are added for
    log correlation.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        message: User-facing error message (truncated to 1000 chars)
        hints: Remediation hints
        status_code: Override the default HTTP status code
        **kwargs: Additional fields to include in the error response

    Returns:
        JSONResponse with standardized error format
    """
    if isinstance(error_code, ErrorCode):
        code_value = error_code.value
        if status_code is None:
            status_code = ERROR_STATUS_MAP.get(error_code, 500)
        severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
    else:
        code_value = str(error_code)
        if status_code is None:
            status_code = 500
        severity = ErrorSeverity.MEDIUM

    error_data = {
        "error": str(message)[:1000],
        "code": code_value,
        "timestamp": datetime.now().isoformat() + "Z",
        "status_code": status_code,
        "severity": severity.value
    }

    if hints:
        error_data["hints"] = list(hints)

    error_data.update(kwargs)

    _log_at_severity(severity, f"Error response: {error_data}")

    return JSONResponse(status_code=status_code, content=error_data)

