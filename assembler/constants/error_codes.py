"""Error codes dictionary for the render API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery actions. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request errors (fix the request, do not retry as-is)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Provide at least one scene, a narration_url and a b2_path",
    },
    # ==========================================================================
    # Capacity errors (retry later)
    # ==========================================================================
    "SERVER_BUSY": {
        "retryable": True,
        "suggested_fix": "Wait for an active render to finish and resubmit",
    },
    # ==========================================================================
    # Pipeline errors
    # ==========================================================================
    "DOWNLOAD_FAILED": {
        "retryable": True,
        "suggested_fix": "Check that every asset URL is reachable and returns HTTP 200",
    },
    "FFMPEG_FAILED": {
        "retryable": False,
        "suggested_fix": "Inspect the ffmpeg stderr tail and the render log for the failing step",
    },
    "OUTPUT_INVALID": {
        "retryable": False,
        "suggested_fix": "Check that the scene clips and narration contain decodable streams",
    },
    "UPLOAD_FAILED": {
        "retryable": True,
        "suggested_fix": "Check storage credentials and bucket configuration",
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification for a code, with fallback to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])
