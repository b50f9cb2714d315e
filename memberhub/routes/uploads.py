"""Serve stored uploads"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ..dependencies import get_file_store
from ..services.storage import FileStore

router = APIRouter()


@router.get("/{folder}/{filename}")
async def download_upload(folder: str, filename: str, files: FileStore = Depends(get_file_store)):
    """Download an uploaded file"""
    path = files.resolve(folder, filename)
    return FileResponse(path=str(path), media_type=files.content_type(path))
