"""Size-aware uploads to a storage provider."""

import logging
from dataclasses import dataclass
from typing import Protocol

from booth_pipeline.domain.errors import ValidationError

logger = logging.getLogger(__name__)

SINGLE_UPLOAD_LIMIT = 157_286_400  # 150 MiB
MAX_UPLOAD_SIZE = 524_288_000  # 500 MiB
CHUNK_SIZE = 8 * 1024 * 1024


class UploadApi(Protocol):
    """Provider endpoints used for uploads."""

    async def upload(self, access_token: str, path: str, content: bytes) -> None:
        """Upload a file in a single request, overwriting any existing file."""

    async def start_session(self, access_token: str, chunk: bytes) -> str:
        """Open an upload session with the first chunk and return its id."""

    async def append(
        self, access_token: str, session_id: str, offset: int, chunk: bytes
    ) -> None:
        """Append a chunk at `offset`."""

    async def finish(
        self,
        access_token: str,
        session_id: str,
        offset: int,
        path: str,
        chunk: bytes,
    ) -> None:
        """Commit the session to `path`, sending the final chunk."""


@dataclass
class ChunkedUploadClient:
    """Routes uploads by size: one request, or a sequential upload session."""

    api: UploadApi
    chunk_size: int = CHUNK_SIZE
    single_upload_limit: int = SINGLE_UPLOAD_LIMIT
    max_size: int = MAX_UPLOAD_SIZE

    async def upload(self, access_token: str, path: str, content: bytes) -> None:
        size = len(content)
        if size > self.max_size:
            raise ValidationError("file_size_exceeded")
        if size <= self.single_upload_limit:
            await self.api.upload(access_token, path, content)
            return
        await self._upload_session(access_token, path, content)

    async def _upload_session(
        self, access_token: str, path: str, content: bytes
    ) -> None:
        chunks = [
            content[offset : offset + self.chunk_size]
            for offset in range(0, len(content), self.chunk_size)
        ]
        logger.info(
            "Starting chunked upload",
            extra={"path": path, "size_bytes": len(content), "chunks": len(chunks)},
        )
        session_id = await self.api.start_session(access_token, chunks[0])
        offset = len(chunks[0])
        # Appends are strictly ordered; the provider validates each offset.
        for chunk in chunks[1:-1]:
            await self.api.append(access_token, session_id, offset, chunk)
            offset += len(chunk)
        last = chunks[-1] if len(chunks) > 1 else b""
        await self.api.finish(access_token, session_id, offset, path, last)
