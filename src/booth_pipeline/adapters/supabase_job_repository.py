"""Supabase-backed job repository."""

from dataclasses import dataclass

from supabase import Client

from booth_pipeline.domain.jobs import (
    ErrorRecord,
    JobProgress,
    JobRecord,
    JobSnapshot,
    JobStatus,
    MediaOutput,
)
from booth_pipeline.services.jobs import JobRepository

_ACTIVE_STATUSES = [JobStatus.PENDING.value, JobStatus.RUNNING.value]


def _serialize(value: object) -> object:
    if isinstance(value, JobProgress | MediaOutput | ErrorRecord):
        return value.to_dict()
    if isinstance(value, JobStatus):
        return value.value
    return value


def _row_to_job(row: dict[str, object]) -> JobRecord:
    progress = row.get("progress")
    output = row.get("output")
    error = row.get("error")
    return JobRecord(
        id=str(row["id"]),
        project_id=str(row["project_id"]),
        session_id=str(row["session_id"]),
        experience_id=str(row["experience_id"]),
        status=JobStatus(str(row["status"])),
        snapshot=JobSnapshot.from_dict(row["snapshot"]),  # type: ignore[arg-type]
        created_at=int(row["created_at"]),  # type: ignore[arg-type]
        updated_at=int(row["updated_at"]),  # type: ignore[arg-type]
        progress=(
            JobProgress.from_dict(progress) if isinstance(progress, dict) else None
        ),
        output=MediaOutput.from_dict(output) if isinstance(output, dict) else None,
        error=ErrorRecord.from_dict(error) if isinstance(error, dict) else None,
        started_at=row.get("started_at"),  # type: ignore[arg-type]
        completed_at=row.get("completed_at"),  # type: ignore[arg-type]
    )


@dataclass
class SupabaseJobRepository(JobRepository):
    """Supabase implementation for transform jobs."""

    client: Client

    def create_job(self, job: JobRecord) -> JobRecord:
        """Insert a job row and return it."""
        response = (
            self.client.table("jobs")
            .insert(
                {
                    "id": job.id,
                    "project_id": job.project_id,
                    "session_id": job.session_id,
                    "experience_id": job.experience_id,
                    "status": job.status.value,
                    "snapshot": job.snapshot.to_dict(),
                    "progress": _serialize(job.progress),
                    "created_at": job.created_at,
                    "updated_at": job.updated_at,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create job")
        return _row_to_job(response.data[0])

    def get_job(self, project_id: str, job_id: str) -> JobRecord | None:
        """Return a job by id, if present."""
        response = (
            self.client.table("jobs")
            .select("*")
            .eq("project_id", project_id)
            .eq("id", job_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_job(response.data[0])

    def find_active_job(self, project_id: str, session_id: str) -> JobRecord | None:
        """Return a pending or running job for the session, if any."""
        response = (
            self.client.table("jobs")
            .select("*")
            .eq("project_id", project_id)
            .eq("session_id", session_id)
            .in_("status", _ACTIVE_STATUSES)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_job(response.data[0])

    def transition(
        self,
        project_id: str,
        job_id: str,
        status: JobStatus,
        allowed_from: frozenset[JobStatus],
        fields: dict[str, object],
    ) -> JobRecord | None:
        """Conditionally update status; no row back means the guard failed."""
        payload = {key: _serialize(value) for key, value in fields.items()}
        payload["status"] = status.value
        response = (
            self.client.table("jobs")
            .update(payload)
            .eq("project_id", project_id)
            .eq("id", job_id)
            .in_("status", sorted(item.value for item in allowed_from))
            .execute()
        )
        if not response.data:
            return None
        return _row_to_job(response.data[0])

    def update_progress(
        self, project_id: str, job_id: str, progress: JobProgress, updated_at: int
    ) -> None:
        """Overwrite progress while the job is still active."""
        (
            self.client.table("jobs")
            .update({"progress": progress.to_dict(), "updated_at": updated_at})
            .eq("project_id", project_id)
            .eq("id", job_id)
            .in_("status", _ACTIVE_STATUSES)
            .execute()
        )
