"""Supabase-backed repositories for export settings, integrations, and logs."""

from dataclasses import dataclass

from supabase import Client

from booth_pipeline.domain.exports import (
    ExportDestination,
    ExportLog,
    IntegrationStatus,
    ProjectExports,
    StorageIntegration,
)
from booth_pipeline.services.export_worker import (
    ExportLogRepository,
    IntegrationRepository,
)
from booth_pipeline.services.exports import ProjectExportRepository


@dataclass
class SupabaseProjectExportRepository(ProjectExportRepository):
    """Project names and their export destinations."""

    client: Client

    def get_project_exports(self, project_id: str) -> ProjectExports | None:
        """Return the project's name and destinations, if the project exists."""
        project = (
            self.client.table("projects")
            .select("id, name")
            .eq("id", project_id)
            .limit(1)
            .execute()
        )
        if not project.data:
            return None
        destinations = (
            self.client.table("project_exports")
            .select("provider, workspace_id, enabled")
            .eq("project_id", project_id)
            .execute()
        )
        return ProjectExports(
            project_id=project_id,
            name=project.data[0].get("name") or "",
            destinations=tuple(
                ExportDestination(
                    provider=row["provider"],
                    workspace_id=row["workspace_id"],
                    enabled=bool(row.get("enabled")),
                )
                for row in destinations.data or []
            ),
        )


@dataclass
class SupabaseIntegrationRepository(IntegrationRepository):
    """Workspace storage provider connections."""

    client: Client

    def get_integration(
        self, workspace_id: str, provider: str
    ) -> StorageIntegration | None:
        """Return the integration for a workspace and provider, if present."""
        response = (
            self.client.table("workspace_integrations")
            .select("workspace_id, provider, status, refresh_token")
            .eq("workspace_id", workspace_id)
            .eq("provider", provider)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return StorageIntegration(
            workspace_id=row["workspace_id"],
            provider=row["provider"],
            status=IntegrationStatus(row["status"]),
            refresh_token=row.get("refresh_token") or "",
        )

    def set_status(
        self, workspace_id: str, provider: str, status: IntegrationStatus
    ) -> None:
        """Update the integration status."""
        (
            self.client.table("workspace_integrations")
            .update({"status": status.value})
            .eq("workspace_id", workspace_id)
            .eq("provider", provider)
            .execute()
        )


@dataclass
class SupabaseExportLogRepository(ExportLogRepository):
    """Append-only export log table."""

    client: Client

    def append(self, project_id: str, log: ExportLog) -> None:
        """Insert one export log row."""
        (
            self.client.table("export_logs")
            .insert(
                {
                    "id": log.id,
                    "project_id": project_id,
                    "job_id": log.job_id,
                    "session_id": log.session_id,
                    "provider": log.provider,
                    "status": log.status.value,
                    "destination_path": log.destination_path,
                    "error": log.error,
                    "created_at": log.created_at,
                }
            )
            .execute()
        )
