"""Local storage API endpoints for development."""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from assembler.config import get_settings
from assembler.exceptions import UploadError
from assembler.services.storage_service import LocalStorageService, content_type_for, get_storage_service

router = APIRouter()


@router.get("/files/{storage_key:path}")
async def get_file(storage_key: str):
    """Serve rendered files from local storage."""
    storage = get_storage_service()
    if not get_settings().use_local_storage or not isinstance(storage, LocalStorageService):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Local storage not enabled",
        )

    try:
        file_path = storage.get_file_path(storage_key)
    except UploadError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not file_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return FileResponse(
        path=str(file_path),
        media_type=content_type_for(file_path),
        filename=file_path.name,
    )
