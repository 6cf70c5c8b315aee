"""Tests for render upload storage backends."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from assembler.exceptions import UploadError
from assembler.services.storage_service import B2StorageService, LocalStorageService, content_type_for


class TestContentType:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("final.mp4", "video/mp4"),
            ("FINAL.MP4", "video/mp4"),
            ("captions.srt", "text/plain"),
            ("archive.bin", "application/octet-stream"),
            ("noext", "application/octet-stream"),
        ],
    )
    def test_content_type_for(self, path: str, expected: str):
        assert content_type_for(path) == expected


class TestLocalStorageService:
    @pytest.mark.asyncio
    async def test_upload_copies_and_returns_url(self, temp_output_dir: Path):
        src = temp_output_dir / "output.mp4"
        src.write_bytes(b"video")
        storage = LocalStorageService(
            base_path=temp_output_dir / "store",
            public_url="http://localhost:3500/storage/files/",
        )

        url = await storage.upload(str(src), "videos/gen-1/final.mp4")

        assert url == "http://localhost:3500/storage/files/videos/gen-1/final.mp4"
        assert (temp_output_dir / "store/videos/gen-1/final.mp4").read_bytes() == b"video"

    @pytest.mark.asyncio
    async def test_missing_source_is_upload_error(self, temp_output_dir: Path):
        storage = LocalStorageService(base_path=temp_output_dir / "store", public_url="http://x")

        with pytest.raises(UploadError):
            await storage.upload(str(temp_output_dir / "nope.mp4"), "final.mp4")

    def test_path_traversal_rejected(self, temp_output_dir: Path):
        storage = LocalStorageService(base_path=temp_output_dir / "store", public_url="http://x")

        with pytest.raises(UploadError, match="Invalid storage key"):
            storage.get_file_path("../../etc/passwd")


class TestB2StorageService:
    @pytest.mark.asyncio
    async def test_put_object_with_content_type(self, temp_output_dir: Path):
        src = temp_output_dir / "output.mp4"
        src.write_bytes(b"video")
        storage = B2StorageService()
        storage.bucket = "renders"
        storage.public_url = "https://f000.backblazeb2.com/file/renders"
        storage._client = MagicMock()

        url = await storage.upload(str(src), "videos/gen-1/final.mp4")

        assert url == "https://f000.backblazeb2.com/file/renders/videos/gen-1/final.mp4"
        kwargs = storage._client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "renders"
        assert kwargs["Key"] == "videos/gen-1/final.mp4"
        assert kwargs["ContentType"] == "video/mp4"

    @pytest.mark.asyncio
    async def test_client_error_is_upload_error(self, temp_output_dir: Path):
        src = temp_output_dir / "output.mp4"
        src.write_bytes(b"video")
        storage = B2StorageService()
        storage._client = MagicMock()
        storage._client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        with pytest.raises(UploadError, match="Upload failed"):
            await storage.upload(str(src), "final.mp4")
