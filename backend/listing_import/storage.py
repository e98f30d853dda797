"""
Object storage for re-hosted listing photos.

Two backends behind one interface:
- LocalFileStorage: files under a directory, served from a base URL
- SupabaseStorage: a Supabase Storage bucket
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from supabase import create_client

from .config import config
from .errors import StorageError
from .logger import get_strategy_logger

log = get_strategy_logger('storage')


class ObjectStorage(ABC):
    """Uploads bytes under a key and returns a public URL."""

    @abstractmethod
    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store data under key.

        Returns:
            public URL of the stored object

        Raises:
            StorageError: upload failed
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove an object. Missing keys are not an error."""


class LocalFileStorage(ObjectStorage):
    """Stores objects as files; public URL is base_url + key."""

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or config.STORAGE_DIR)
        self.base_url = (base_url or config.STORAGE_BASE_URL).rstrip('/')

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        return f"{self.base_url}/{key}"

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e


class SupabaseStorage(ObjectStorage):
    """Supabase Storage bucket; objects are cached for an hour and never overwritten."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None,
                 bucket: Optional[str] = None, client=None):
        self.bucket = bucket or config.SUPABASE_BUCKET
        if client is None:
            url = url or config.SUPABASE_URL
            key = key or config.SUPABASE_SERVICE_ROLE_KEY
            if not url or not key:
                raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
            client = create_client(url, key)
        self.client = client

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(key, data, {
                "content-type": content_type,
                "cache-control": "3600",
                "upsert": "false",
            })
        except Exception as e:
            raise StorageError(f"Upload failed for {key}: {e}") from e
        return bucket.get_public_url(key)

    def delete(self, key: str) -> None:
        try:
            self.client.storage.from_(self.bucket).remove([key])
        except Exception as e:
            raise StorageError(f"Delete failed for {key}: {e}") from e


def get_storage(mode: Optional[str] = None) -> ObjectStorage:
    """Storage backend for a mode ("files" or "supabase"); defaults to STORAGE_MODE."""
    mode = (mode or config.STORAGE_MODE).lower()
    if mode == 'files':
        return LocalFileStorage()
    if mode == 'supabase':
        return SupabaseStorage()
    raise StorageError(f"Unknown storage mode: {mode}")
