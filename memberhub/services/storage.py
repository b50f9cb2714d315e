"""Disk-backed blob store for avatars and other uploads"""

import logging
import mimetypes
import re
import uuid
from pathlib import Path

from ..errors import NotFoundError, UploadError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.webp'}
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    return Path(filename).suffix.lower()


def is_allowed_file(filename: str) -> bool:
    """Check if file extension is allowed"""
    return get_file_extension(filename) in ALLOWED_EXTENSIONS


class FileStore:
    """Writes uploads under ``root/<folder>/`` and hands back their URI"""

    def __init__(self, root: Path, base_url: str = "/uploads", max_size: int = 5 * 1024 * 1024):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_size = max_size

    def save(self, folder: str, filename: str, content: bytes) -> str:
        if not _SAFE_NAME.match(folder):
            raise UploadError("Invalid upload folder")

        if not filename:
            raise UploadError("No filename provided")

        if not is_allowed_file(filename):
            raise UploadError(f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

        if not content:
            raise UploadError("Empty file")

        if len(content) > self.max_size:
            raise UploadError(f"File too large. Maximum size: {self.max_size // (1024 * 1024)}MB")

        stored_filename = f"{uuid.uuid4().hex[:12]}{get_file_extension(filename)}"
        target_dir = self.root / folder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target_dir / stored_filename, "wb") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to store upload {filename}: {e}")
            raise UploadError("Could not store file") from e

        logger.info(f"Stored upload {folder}/{stored_filename} ({len(content)} bytes)")
        return f"{self.base_url}/{folder}/{stored_filename}"

    def resolve(self, folder: str, filename: str) -> Path:
        """Locate a stored file for download"""
        if not _SAFE_NAME.match(folder) or Path(filename).name != filename:
            raise NotFoundError("File not found")

        path = self.root / folder / filename
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    def content_type(self, path: Path) -> str:
        return mimetypes.guess_type(path.name)[0] or "application/octet-stream"
