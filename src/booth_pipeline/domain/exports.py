"""Domain models for result delivery to external storage providers."""

from dataclasses import dataclass
from enum import StrEnum


class ExportStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


class IntegrationStatus(StrEnum):
    CONNECTED = "connected"
    NEEDS_REAUTH = "needs_reauth"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ExportDestination:
    """An export target enabled for a project."""

    provider: str
    workspace_id: str
    enabled: bool = True


@dataclass(frozen=True)
class ProjectExports:
    """A project's name and its configured export destinations."""

    project_id: str
    name: str
    destinations: tuple[ExportDestination, ...] = ()

    def destination(self, provider: str) -> ExportDestination | None:
        for destination in self.destinations:
            if destination.provider == provider:
                return destination
        return None


@dataclass(frozen=True)
class StorageIntegration:
    """A workspace's connection to a storage provider."""

    workspace_id: str
    provider: str
    status: IntegrationStatus
    refresh_token: str


@dataclass(frozen=True)
class DeliveryTask:
    """One delivery of a finished job's result to one destination."""

    job_id: str
    project_id: str
    session_id: str
    experience_id: str
    destination: ExportDestination
    source_path: str
    size_bytes: int
    created_at: int

    @property
    def key(self) -> str:
        """Idempotency key; retries of the same delivery share it."""
        return f"{self.job_id}:{self.destination.provider}"


@dataclass(frozen=True)
class ExportLog:
    """Append-only audit entry written once per delivery attempt."""

    id: str
    job_id: str
    session_id: str
    provider: str
    status: ExportStatus
    created_at: int
    destination_path: str | None = None
    error: str | None = None
