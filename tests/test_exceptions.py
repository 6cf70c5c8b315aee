"""Tests for the error taxonomy and its response bodies."""

from assembler.constants.error_codes import ERROR_CODES, get_error_spec
from assembler.exceptions import (
    AcquisitionError,
    AssemblerError,
    OutputValidationError,
    RenderValidationError,
    ServerBusyError,
    TranscodeError,
    UploadError,
)


class TestErrorCodes:
    def test_every_exception_code_is_registered(self):
        for exc in (
            RenderValidationError(),
            ServerBusyError(1, 2),
            AcquisitionError(),
            TranscodeError("clip 001"),
            OutputValidationError(),
            UploadError(),
            AssemblerError(),
        ):
            assert exc.code in ERROR_CODES

    def test_unknown_code_falls_back(self):
        assert get_error_spec("NOPE") is ERROR_CODES["INTERNAL_ERROR"]


class TestErrorBodies:
    def test_validation_error(self):
        err = RenderValidationError("No scenes provided", field="scenes")

        body = err.to_dict()
        assert err.status_code == 400
        assert body["status"] == "error"
        assert body["success"] is False
        assert body["error"] == "No scenes provided"
        assert body["retryable"] is False
        assert "suggested_fix" in body

    def test_server_busy(self):
        body = ServerBusyError(2, 2).to_dict()

        assert body["error"] == "Server busy: 2/2 renders active. Try again later."
        assert body["active"] == 2
        assert body["max"] == 2
        assert body["retryable"] is True

    def test_transcode_error_without_stderr(self):
        err = TranscodeError("final assembly")

        assert err.message == "FFmpeg failed (final assembly): no stderr"
        assert err.status_code == 500
        assert err.command is None

    def test_default_messages(self):
        assert OutputValidationError().message == "FFmpeg produced no output file"
        assert UploadError("Upload failed: denied").retryable is True
