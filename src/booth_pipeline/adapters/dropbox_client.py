"""Dropbox HTTP API client."""

import json
import logging
from dataclasses import dataclass

import httpx

from booth_pipeline.domain.errors import (
    InsufficientSpaceError,
    RevokedGrantError,
    TransientError,
)
from booth_pipeline.services.export_worker import TokenProvider
from booth_pipeline.services.uploads import UploadApi

logger = logging.getLogger(__name__)

TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"
CONTENT_URL = "https://content.dropboxapi.com/2/files"
TOKEN_TIMEOUT = 30
UPLOAD_TIMEOUT = 120


@dataclass
class HttpxDropboxClient(UploadApi, TokenProvider):
    """Dropbox client for token refresh and file uploads."""

    app_key: str
    app_secret: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, app_key: str, app_secret: str) -> "HttpxDropboxClient":
        """Create a Dropbox client with a managed httpx session."""
        return cls(
            app_key=app_key, app_secret=app_secret, http_client=httpx.AsyncClient()
        )

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a short-lived access token."""
        try:
            response = await self.http_client.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.app_key,
                    "client_secret": self.app_secret,
                },
                timeout=TOKEN_TIMEOUT,
            )
        except httpx.TransportError as exc:
            raise TransientError("Dropbox token refresh did not complete") from exc
        if response.is_error:
            logger.error(
                "Dropbox token refresh failed",
                extra={"status": response.status_code, "body": response.text},
            )
            if response.status_code == 400 and "invalid_grant" in response.text:
                raise RevokedGrantError("Dropbox refresh token is invalid")
            raise TransientError(
                f"Dropbox token refresh failed: {response.status_code}"
            )
        return response.json()["access_token"]

    async def upload(self, access_token: str, path: str, content: bytes) -> None:
        await self._content_call(
            "upload",
            access_token,
            {"path": path, "mode": "overwrite", "autorename": False, "mute": True},
            content,
        )

    async def start_session(self, access_token: str, chunk: bytes) -> str:
        response = await self._content_call(
            "upload_session/start", access_token, {"close": False}, chunk
        )
        return response.json()["session_id"]

    async def append(
        self, access_token: str, session_id: str, offset: int, chunk: bytes
    ) -> None:
        await self._content_call(
            "upload_session/append_v2",
            access_token,
            {"cursor": {"session_id": session_id, "offset": offset}, "close": False},
            chunk,
        )

    async def finish(  # noqa: PLR0913
        self,
        access_token: str,
        session_id: str,
        offset: int,
        path: str,
        chunk: bytes,
    ) -> None:
        await self._content_call(
            "upload_session/finish",
            access_token,
            {
                "cursor": {"session_id": session_id, "offset": offset},
                "commit": {
                    "path": path,
                    "mode": "overwrite",
                    "autorename": False,
                    "mute": True,
                },
            },
            chunk,
        )

    async def _content_call(
        self,
        endpoint: str,
        access_token: str,
        arg: dict[str, object],
        content: bytes,
    ) -> httpx.Response:
        try:
            response = await self.http_client.post(
                f"{CONTENT_URL}/{endpoint}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/octet-stream",
                    "Dropbox-API-Arg": json.dumps(arg),
                },
                content=content,
                timeout=UPLOAD_TIMEOUT,
            )
        except httpx.TransportError as exc:
            raise TransientError(f"Dropbox {endpoint} did not complete") from exc
        if response.is_error:
            logger.error(
                "Dropbox upload call failed",
                extra={
                    "endpoint": endpoint,
                    "status": response.status_code,
                    "body": response.text,
                },
            )
            if response.status_code == 409 and "insufficient_space" in response.text:
                raise InsufficientSpaceError(
                    "Dropbox account has insufficient storage space"
                )
            raise TransientError(
                f"Dropbox {endpoint} failed: {response.status_code}"
            )
        return response

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
