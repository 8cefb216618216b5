"""Typed failures raised by the extraction pipeline."""

from typing import Any, Dict, Optional


class ExtractionError(Exception):
    """Base failure with a machine-readable code and an actionable message."""

    code = "extraction_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.code}: {self.message} (status {self.status_code})"
        return f"{self.code}: {self.message}"


class InvalidURL(ExtractionError):
    code = "invalid_url"


class PreflightRejected(ExtractionError):
    code = "preflight_rejected"

    def __init__(self, message: str, preflight, *, override_available: bool = False):
        super().__init__(message)
        self.preflight = preflight
        self.override_available = override_available


class UploadFailed(ExtractionError):
    code = "upload_failed"


class TimedOut(ExtractionError):
    code = "timed_out"


class InvalidResponse(ExtractionError):
    code = "invalid_response"


class TransportError(ExtractionError):
    code = "transport_error"


class FetchFailed(ExtractionError):
    code = "fetch_failed"


class ParseDegraded(ExtractionError):
    """A single web layer could not produce fields. Never aborts the pipeline."""

    code = "parse_degraded"


class ExtractionCancelled(ExtractionError):
    code = "cancelled"
