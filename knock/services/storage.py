"""
Storage Service
Handles file storage for generated room images on the local filesystem.
"""

import logging
from pathlib import Path
from typing import Optional

from knock.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class StorageService:
    """Service for file storage operations."""

    def __init__(self, settings: Optional[Settings] = None, base_path: Optional[str] = None):
        settings = settings or default_settings
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"[Storage] Using local storage: {self.base_path}")

    async def upload_bytes(self, data: bytes, path: str, content_type: str = "image/png") -> str:
        """Save bytes under base_path and return a file:// URL."""
        file_path = self.base_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "wb") as f:
            f.write(data)

        return f"file://{file_path.absolute()}"

    async def get_file(self, path: str) -> bytes:
        """Get file contents."""
        with open(self.base_path / path, "rb") as f:
            return f.read()

