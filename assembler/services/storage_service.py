"""Object storage for finished renders.

Production stores to Backblaze B2 through its S3-compatible API; development
copies into a local directory served by ``assembler.api.storage``. Uploads are
not retried.
"""

import asyncio
import logging
import shutil
from functools import lru_cache
from pathlib import Path

from assembler.config import get_settings
from assembler.exceptions import UploadError

logger = logging.getLogger(__name__)

CONTENT_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".srt": "text/plain",
    ".vtt": "text/vtt",
    ".txt": "text/plain",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path: str | Path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


class LocalStorageService:
    """Local file storage for development without B2."""

    def __init__(self, base_path: str | Path | None = None, public_url: str | None = None) -> None:
        settings = get_settings()
        self.base_path = Path(base_path or settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url = (public_url or settings.local_storage_public_url).rstrip("/")

    def _get_full_path(self, storage_key: str, create_parents: bool = True) -> Path:
        full_path = (self.base_path / storage_key).resolve()
        if not full_path.is_relative_to(self.base_path.resolve()):
            raise UploadError(f"Invalid storage key: {storage_key}")
        if create_parents:
            full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str) -> str:
        """Get URL for accessing the file."""
        return f"{self.public_url}/{storage_key}"

    def get_file_path(self, storage_key: str) -> Path:
        """Get the actual file path for serving."""
        return self._get_full_path(storage_key, create_parents=False)

    def _upload_sync(self, local_path: str, storage_key: str) -> str:
        shutil.copy(local_path, str(self._get_full_path(storage_key)))
        logger.info(f"[STORAGE] Stored {storage_key} locally")
        return self.get_public_url(storage_key)

    async def upload(self, local_path: str, storage_key: str) -> str:
        """Copy from local path into storage and return its URL."""
        try:
            return await asyncio.to_thread(self._upload_sync, local_path, storage_key)
        except OSError as e:
            raise UploadError(f"Upload failed: {e}")


class B2StorageService:
    """Backblaze B2 storage via the S3-compatible endpoint."""

    def __init__(self) -> None:
        settings = get_settings()
        self.bucket = settings.b2_bucket
        self.public_url = settings.b2_public_url.rstrip("/")
        self._endpoint = settings.b2_endpoint
        self._region = settings.b2_region
        self._key_id = settings.b2_key_id
        self._app_key = settings.b2_app_key
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import boto3
            from botocore.client import Config as BotoConfig

            self._client = boto3.client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint,
                aws_access_key_id=self._key_id,
                aws_secret_access_key=self._app_key,
                config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        return self._client

    def get_public_url(self, storage_key: str) -> str:
        return f"{self.public_url}/{storage_key}"

    def _upload_sync(self, local_path: str, storage_key: str) -> str:
        content_type = content_type_for(local_path)
        with open(local_path, "rb") as f:
            self.client.put_object(
                Bucket=self.bucket,
                Key=storage_key,
                Body=f,
                ContentType=content_type,
            )
        logger.info(f"[STORAGE] Uploaded {storage_key} to bucket {self.bucket}")
        return self.get_public_url(storage_key)

    async def upload(self, local_path: str, storage_key: str) -> str:
        """Upload a local file to B2 and return its public URL."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            return await asyncio.to_thread(self._upload_sync, local_path, storage_key)
        except (BotoCoreError, ClientError, OSError) as e:
            raise UploadError(f"Upload failed: {e}")


StorageService = LocalStorageService | B2StorageService


@lru_cache
def get_storage_service() -> StorageService:
    """Use LocalStorageService or B2StorageService based on config."""
    if get_settings().use_local_storage:
        logger.info("[STORAGE] Using local storage")
        return LocalStorageService()
    return B2StorageService()
