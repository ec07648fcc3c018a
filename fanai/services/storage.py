"""
Storage Service
Local filesystem storage for user uploads and pipeline intermediates.

Layout under LOCAL_STORAGE_PATH:
    {upload_id}.{ext}          user uploads
    generated/{job_id}.png     raw composites
    processed/{job_id}.png     trimmed + watermarked results (local fallback)
    celebs/{slug}.jpg          celebrity images materialized for synthesis
"""

import logging
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)


class StorageService:
    """Service for local file storage operations."""

    PUBLIC_PREFIX = "/uploads/"

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        for sub in ("", "generated", "processed", "celebs"):
            (self.base_path / sub).mkdir(parents=True, exist_ok=True)
        logger.info(f"[Storage] Using local storage: {self.base_path}")

    def path_for(self, path: str) -> Path:
        return self.base_path / path

    async def upload_bytes(self, data: bytes, path: str) -> Path:
        """Save bytes and return the absolute file path."""
        file_path = self.path_for(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(data)
        return file_path.absolute()

    async def get_file(self, path: str) -> bytes:
        """Get file contents."""
        with open(self.path_for(path), "rb") as f:
            return f.read()

    async def delete_file(self, path: str):
        """Delete a single file."""
        file_path = self.path_for(path)
        if file_path.exists() and file_path.is_file():
            file_path.unlink()
            logger.info(f"[Storage] Deleted file: {path}")

    def get_public_url(self, path: str) -> str:
        """Public URL served by the /uploads static mount."""
        return f"{self.PUBLIC_PREFIX}{path}"

    async def download_bytes(self, url: str) -> bytes:
        """
        Download file bytes from a URL.

        Args:
            url: /uploads/ public URL, http(s) URL, or path relative to storage

        Returns:
            File bytes
        """
        try:
            if url.startswith(self.PUBLIC_PREFIX):
                return await self.get_file(url[len(self.PUBLIC_PREFIX):])

            elif url.startswith(("http://", "https://")):
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=60.0)
                    response.raise_for_status()
                    return response.content

            else:
                return await self.get_file(url)
        except Exception as e:
            logger.error(f"[Storage] Error downloading {url}: {e}")
            raise
