"""Custom exceptions for the clip assembler.

Every pipeline stage raises one of these; the render orchestrator is the only
place that catches them. Each exception carries a machine-readable code whose
retryability and suggested fix live in ``assembler.constants.error_codes``.
"""

from typing import Any

from assembler.constants.error_codes import get_error_spec


class AssemblerError(Exception):
    """Base exception for all clip assembler errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the error body returned by the API."""
        data: dict[str, Any] = {
            "status": "error",
            "success": False,
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        suggested_fix = get_error_spec(self.code).get("suggested_fix")
        if suggested_fix:
            data["suggested_fix"] = suggested_fix
        return data


# =============================================================================
# Request Errors (400)
# =============================================================================


class RenderValidationError(AssemblerError):
    """Render request is missing a required field."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid render request"

    def __init__(self, message: str | None = None, *, field: str | None = None):
        self.field = field
        super().__init__(message)


# =============================================================================
# Capacity Errors (503)
# =============================================================================


class ServerBusyError(AssemblerError):
    """Admission ceiling reached."""

    code = "SERVER_BUSY"
    status_code = 503

    def __init__(self, active: int, max_active: int):
        self.active = active
        self.max_active = max_active
        super().__init__(f"Server busy: {active}/{max_active} renders active. Try again later.")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["active"] = self.active
        data["max"] = self.max_active
        return data


# =============================================================================
# Pipeline Errors (500)
# =============================================================================


class AcquisitionError(AssemblerError):
    """An asset could not be downloaded."""

    code = "DOWNLOAD_FAILED"
    message = "Download failed"

    def __init__(self, message: str | None = None, *, url: str | None = None):
        self.url = url
        super().__init__(message)


class TranscodeError(AssemblerError):
    """ffmpeg exited non-zero or timed out."""

    code = "FFMPEG_FAILED"
    message = "FFmpeg failed"

    def __init__(self, label: str, stderr_tail: str = "", *, command: str | None = None):
        self.label = label
        self.stderr_tail = stderr_tail
        self.command = command
        super().__init__(f"FFmpeg failed ({label}): {stderr_tail or 'no stderr'}")


class OutputValidationError(AssemblerError):
    """The final encode produced a missing or undersized file."""

    code = "OUTPUT_INVALID"
    message = "FFmpeg produced no output file"


class UploadError(AssemblerError):
    """Storage upload failed."""

    code = "UPLOAD_FAILED"
    message = "Upload failed"
