"""Per-destination delivery of a finished result to a storage provider."""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from booth_pipeline.domain.errors import (
    InsufficientSpaceError,
    PipelineError,
    RevokedGrantError,
    ValidationError,
)
from booth_pipeline.domain.exports import (
    DeliveryTask,
    ExportLog,
    ExportStatus,
    IntegrationStatus,
    StorageIntegration,
)
from booth_pipeline.services.exports import ProjectExportRepository
from booth_pipeline.services.outcomes import MediaStorage
from booth_pipeline.services.sessions import now_ms
from booth_pipeline.services.snapshots import ExperienceRepository
from booth_pipeline.services.uploads import MAX_UPLOAD_SIZE, ChunkedUploadClient

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r'[/\\:*?"<>|]')

REAUTH_MESSAGE = "Connection lost, token is invalid. Reconnection required."
INSUFFICIENT_SPACE_MESSAGE = "Account has insufficient storage space"


class IntegrationRepository(Protocol):
    """Workspace connections to storage providers."""

    def get_integration(
        self, workspace_id: str, provider: str
    ) -> StorageIntegration | None:
        """Return the workspace's integration for a provider, if present."""

    def set_status(
        self, workspace_id: str, provider: str, status: IntegrationStatus
    ) -> None:
        """Update the integration status."""


class ExportLogRepository(Protocol):
    """Append-only export audit log."""

    def append(self, project_id: str, log: ExportLog) -> None:
        """Write one log entry."""


class TokenProvider(Protocol):
    """Exchanges a stored refresh token for a short-lived access token."""

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Return a fresh access token."""


def sanitize_path_segment(name: str) -> str:
    return _UNSAFE_PATH_CHARS.sub("_", name).strip() or "Untitled"


def file_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return "jpg"
    return name.rsplit(".", 1)[-1] or "jpg"


def build_destination_path(
    project_name: str,
    experience_name: str,
    session_id: str,
    source_path: str,
    timestamp_ms: int,
) -> str:
    """Deterministic destination path for a delivery.

    `/<Project>/<Experience>/<YYYY-MM-DD>_<HH-MM-SS>_session-<CODE>_result.<ext>`
    """
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    short_code = session_id[:4].upper()
    file_name = (
        f"{moment:%Y-%m-%d}_{moment:%H-%M-%S}_session-{short_code}"
        f"_result.{file_extension(source_path)}"
    )
    return (
        f"/{sanitize_path_segment(project_name)}"
        f"/{sanitize_path_segment(experience_name)}/{file_name}"
    )


@dataclass
class ExportWorker:
    """Delivers results to one provider and records every attempt."""

    provider: str
    projects: ProjectExportRepository
    experiences: ExperienceRepository
    integrations: IntegrationRepository
    export_logs: ExportLogRepository
    tokens: TokenProvider
    uploader: ChunkedUploadClient
    storage: MediaStorage
    clock: Callable[[], int] = field(default=now_ms)

    async def deliver(self, task: DeliveryTask, attempt: int) -> ExportLog | None:
        """Run one delivery attempt.

        Returns None when the export no longer applies (integration not
        connected or export disabled). Failures are logged and re-raised so
        the task runner can decide on a retry.
        """
        logger.info(
            "Processing export",
            extra={"task_key": task.key, "attempt": attempt},
        )
        destination_path: str | None = None
        try:
            if task.size_bytes > MAX_UPLOAD_SIZE:
                raise ValidationError("file_size_exceeded")
            integration = self._connected_integration(task)
            if integration is None:
                return None
            project = self.projects.get_project_exports(task.project_id)
            destination = project.destination(self.provider) if project else None
            if project is None or destination is None or not destination.enabled:
                logger.info("Export disabled, skipping", extra={"task_key": task.key})
                return None

            access_token = await self._access_token(task, integration)
            content = await self._read_source(task.source_path)
            experience_name = self.experiences.get_experience_name(
                task.project_id, task.experience_id
            )
            destination_path = build_destination_path(
                project.name or "Untitled Project",
                experience_name or "Untitled Experience",
                task.session_id,
                task.source_path,
                task.created_at,
            )
            await self.uploader.upload(access_token, destination_path, content)
        except Exception as exc:
            self._write_log(
                task,
                ExportStatus.FAILED,
                destination_path,
                error=_log_message(exc),
            )
            raise

        log = self._write_log(task, ExportStatus.SUCCESS, destination_path)
        logger.info(
            "Export complete",
            extra={"task_key": task.key, "destination_path": destination_path},
        )
        return log

    def _connected_integration(self, task: DeliveryTask) -> StorageIntegration | None:
        integration = self.integrations.get_integration(
            task.destination.workspace_id, self.provider
        )
        if integration is None or integration.status != IntegrationStatus.CONNECTED:
            logger.warning(
                "Workspace not connected, skipping",
                extra={
                    "workspace_id": task.destination.workspace_id,
                    "status": integration.status if integration else None,
                },
            )
            return None
        return integration

    async def _access_token(
        self, task: DeliveryTask, integration: StorageIntegration
    ) -> str:
        try:
            return await self.tokens.refresh_access_token(integration.refresh_token)
        except RevokedGrantError:
            logger.warning(
                "Token invalid, marking needs_reauth",
                extra={"workspace_id": integration.workspace_id},
            )
            self.integrations.set_status(
                integration.workspace_id,
                self.provider,
                IntegrationStatus.NEEDS_REAUTH,
            )
            raise

    async def _read_source(self, source_path: str) -> bytes:
        try:
            content = await asyncio.to_thread(self.storage.download, source_path)
        except FileNotFoundError as exc:
            raise ValidationError("source_file_missing") from exc
        if not content:
            raise ValidationError("source_file_empty")
        return content

    def _write_log(
        self,
        task: DeliveryTask,
        status: ExportStatus,
        destination_path: str | None,
        error: str | None = None,
    ) -> ExportLog:
        log = ExportLog(
            id=str(uuid4()),
            job_id=task.job_id,
            session_id=task.session_id,
            provider=self.provider,
            status=status,
            destination_path=destination_path,
            error=error,
            created_at=self.clock(),
        )
        self.export_logs.append(task.project_id, log)
        return log


def _log_message(error: BaseException) -> str:
    if isinstance(error, RevokedGrantError):
        return REAUTH_MESSAGE
    if isinstance(error, InsufficientSpaceError):
        return INSUFFICIENT_SPACE_MESSAGE
    if isinstance(error, PipelineError):
        return error.message
    return str(error) or "Unknown error"
