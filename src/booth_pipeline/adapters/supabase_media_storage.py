"""Supabase Storage-backed media store."""

import logging
from dataclasses import dataclass

from storage3.exceptions import StorageApiError
from supabase import Client

from booth_pipeline.domain.errors import TransientError
from booth_pipeline.services.outcomes import MediaStorage, StoredObject

logger = logging.getLogger(__name__)


def _is_not_found(error: StorageApiError) -> bool:
    return str(error.status) == "404" or "not found" in str(error.message).lower()


@dataclass
class SupabaseMediaStorage(MediaStorage):
    """Reads and writes media objects in one storage bucket."""

    client: Client
    bucket: str

    def download(self, storage_path: str) -> bytes:
        """Return the object's bytes; raises FileNotFoundError when absent."""
        try:
            return self.client.storage.from_(self.bucket).download(storage_path)
        except StorageApiError as exc:
            if _is_not_found(exc):
                raise FileNotFoundError(storage_path) from exc
            logger.error(
                "Storage download failed",
                extra={"path": storage_path, "error": exc.message},
            )
            raise TransientError(
                f"Storage download failed: {exc.message}", code="STORAGE_ERROR"
            ) from exc

    def upload(
        self, storage_path: str, content: bytes, content_type: str
    ) -> StoredObject:
        """Write an object, replacing any existing one."""
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(
                storage_path,
                content,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except StorageApiError as exc:
            logger.error(
                "Storage upload failed",
                extra={"path": storage_path, "error": exc.message},
            )
            raise TransientError(
                f"Storage upload failed: {exc.message}", code="STORAGE_ERROR"
            ) from exc
        return StoredObject(
            storage_path=storage_path, url=bucket.get_public_url(storage_path)
        )
