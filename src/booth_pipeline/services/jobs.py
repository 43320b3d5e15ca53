"""Job persistence and status transitions."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol
from uuid import uuid4

from booth_pipeline.domain.errors import PipelineError, is_retryable
from booth_pipeline.domain.jobs import (
    ALLOWED_TRANSITIONS,
    ErrorRecord,
    JobProgress,
    JobRecord,
    JobSnapshot,
    JobStatus,
    MediaOutput,
)
from booth_pipeline.services.sessions import now_ms

logger = logging.getLogger(__name__)

ERROR_MESSAGES: dict[str, str] = {
    "INVALID_INPUT": "The provided input was invalid. Please try again.",
    "PROCESSING_FAILED": "Something went wrong while processing. Please try again.",
    "AI_MODEL_ERROR": "The AI service is temporarily unavailable. Please try again.",
    "STORAGE_ERROR": "Failed to save your result. Please try again.",
    "TIMEOUT": "Processing took too long. Please try again.",
    "CANCELLED": "Processing was cancelled.",
    "UNKNOWN": "An unexpected error occurred. Please try again.",
}


def public_error_message(code: str) -> str:
    """Guest-safe message for an error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES["UNKNOWN"])


class JobRepository(Protocol):
    """Persistence interface for transform jobs."""

    def create_job(self, job: JobRecord) -> JobRecord:
        """Persist a new job and return it."""

    def get_job(self, project_id: str, job_id: str) -> JobRecord | None:
        """Return a job by id, if present."""

    def transition(
        self,
        project_id: str,
        job_id: str,
        status: JobStatus,
        allowed_from: frozenset[JobStatus],
        fields: dict[str, object],
    ) -> JobRecord | None:
        """Atomically move a job to `status` if its current status is allowed.

        Returns the updated job, or None when the condition did not match.
        """

    def find_active_job(self, project_id: str, session_id: str) -> JobRecord | None:
        """Return a pending or running job for the session, if any."""

    def update_progress(
        self, project_id: str, job_id: str, progress: JobProgress, updated_at: int
    ) -> None:
        """Overwrite the progress of a non-terminal job."""


@dataclass
class JobService:
    """Creates jobs and applies monotonic status transitions."""

    repository: JobRepository
    clock: Callable[[], int] = field(default=now_ms)

    def create_job(
        self,
        project_id: str,
        session_id: str,
        experience_id: str,
        snapshot: JobSnapshot,
    ) -> JobRecord:
        """Persist a pending job carrying its snapshot."""
        timestamp = self.clock()
        job = JobRecord(
            id=str(uuid4()),
            project_id=project_id,
            session_id=session_id,
            experience_id=experience_id,
            status=JobStatus.PENDING,
            snapshot=snapshot,
            created_at=timestamp,
            updated_at=timestamp,
            progress=JobProgress(step="queued", percent=0),
        )
        return self.repository.create_job(job)

    def get_job(self, project_id: str, job_id: str) -> JobRecord | None:
        return self.repository.get_job(project_id, job_id)

    def find_active_job(self, project_id: str, session_id: str) -> JobRecord | None:
        return self.repository.find_active_job(project_id, session_id)

    def mark_running(self, job: JobRecord) -> JobRecord | None:
        timestamp = self.clock()
        return self._transition(
            job,
            JobStatus.RUNNING,
            {
                "started_at": timestamp,
                "progress": JobProgress(
                    step="processing", percent=20, message="Processing"
                ),
            },
        )

    def mark_completed(self, job: JobRecord, output: MediaOutput) -> JobRecord | None:
        timestamp = self.clock()
        return self._transition(
            job,
            JobStatus.COMPLETED,
            {
                "output": output,
                "completed_at": timestamp,
                "progress": JobProgress(step="completed", percent=100),
            },
        )

    def mark_failed(
        self, job: JobRecord, error: BaseException, step: str | None = None
    ) -> JobRecord | None:
        """Fail a job with an error record derived from the exception."""
        record = self.error_record(error, step)
        return self._transition(
            job,
            JobStatus.FAILED,
            {"error": record, "completed_at": record.timestamp},
        )

    def cancel_job(self, project_id: str, job_id: str) -> JobRecord | None:
        """Cancel a non-terminal job; terminal jobs are returned unchanged."""
        job = self.repository.get_job(project_id, job_id)
        if job is None:
            return None
        if job.status.is_terminal:
            return job
        cancelled = self._transition(
            job, JobStatus.CANCELLED, {"completed_at": self.clock()}
        )
        return cancelled or self.repository.get_job(project_id, job_id)

    def update_progress(
        self,
        job: JobRecord,
        step: str,
        percent: int,
        message: str | None = None,
    ) -> None:
        self.repository.update_progress(
            job.project_id,
            job.id,
            JobProgress(step=step, percent=percent, message=message),
            self.clock(),
        )

    def error_record(
        self, error: BaseException, step: str | None = None
    ) -> ErrorRecord:
        """Build a sanitized error record; raw exception text stays in logs."""
        code = error.code if isinstance(error, PipelineError) else "UNKNOWN"
        if code not in ERROR_MESSAGES:
            code = "UNKNOWN"
        return ErrorRecord(
            code=code,
            message=public_error_message(code),
            step=step,
            is_retryable=is_retryable(error),
            timestamp=self.clock(),
        )

    def _transition(
        self, job: JobRecord, status: JobStatus, fields: dict[str, object]
    ) -> JobRecord | None:
        fields["updated_at"] = self.clock()
        updated = self.repository.transition(
            job.project_id,
            job.id,
            status,
            ALLOWED_TRANSITIONS[status],
            fields,
        )
        if updated is None:
            logger.info(
                "Job transition rejected",
                extra={"job_id": job.id, "target_status": status.value},
            )
        return updated
