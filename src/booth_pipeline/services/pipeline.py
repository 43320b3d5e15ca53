"""Transform pipeline orchestration."""

import asyncio
import logging
from dataclasses import dataclass, field

from booth_pipeline.domain.errors import (
    ConfigurationError,
    GenerationTimeoutError,
    ValidationError,
)
from booth_pipeline.domain.experiences import ExperienceType
from booth_pipeline.domain.jobs import JobRecord, JobStatus
from booth_pipeline.services.exports import ExportDispatcher
from booth_pipeline.services.jobs import JobService
from booth_pipeline.services.outcomes import (
    MediaStorage,
    OutcomeContext,
    OutcomeExecutorRegistry,
)
from booth_pipeline.services.sessions import SessionRepository
from booth_pipeline.services.snapshots import ExperienceRepository, build_snapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS: dict[ExperienceType, float] = {
    ExperienceType.PHOTO: 30.0,
    ExperienceType.AI_IMAGE: 60.0,
    ExperienceType.AI_VIDEO: 300.0,
}


@dataclass
class TransformPipeline:
    """Drives a job from snapshot to terminal state and hands off delivery."""

    session_repository: SessionRepository
    experience_repository: ExperienceRepository
    job_service: JobService
    registry: OutcomeExecutorRegistry
    storage: MediaStorage
    export_dispatcher: ExportDispatcher
    timeouts: dict[ExperienceType, float] = field(
        default_factory=lambda: dict(DEFAULT_TIMEOUTS)
    )

    def start_job(self, project_id: str, session_id: str) -> JobRecord:
        """Snapshot the session and persist a pending job."""
        session = self.session_repository.get_session(project_id, session_id)
        if session is None:
            raise ValidationError(f"Session {session_id} not found")
        if not session.responses:
            raise ValidationError(f"Session {session_id} has no responses")
        active = self.job_service.find_active_job(project_id, session_id)
        if active is not None:
            raise ValidationError(
                f"Session {session_id} already has an active job {active.id}"
            )
        experience = self.experience_repository.get_experience(
            project_id, session.experience_id, session.config_source
        )
        if experience is None:
            raise ConfigurationError(
                f"Experience {session.experience_id} has no "
                f"{session.config_source} configuration"
            )
        snapshot = build_snapshot(session, experience)
        job = self.job_service.create_job(
            project_id=project_id,
            session_id=session_id,
            experience_id=experience.id,
            snapshot=snapshot,
        )
        logger.info(
            "Job created",
            extra={"job_id": job.id, "session_id": session_id, "type": snapshot.type},
        )
        return job

    async def run_job(self, project_id: str, job_id: str) -> JobRecord | None:
        """Execute a pending job. Returns the job as last seen."""
        job = self.job_service.get_job(project_id, job_id)
        if job is None:
            logger.warning("Job not found", extra={"job_id": job_id})
            return None
        if job.status.is_terminal:
            logger.info(
                "Skipping job already in terminal state",
                extra={"job_id": job_id, "status": job.status.value},
            )
            return job

        try:
            executor = self.registry.select(job.snapshot)
        except ConfigurationError as exc:
            logger.warning(
                "No executor for job", extra={"job_id": job_id, "error": exc.message}
            )
            failed = self.job_service.mark_failed(job, exc, step="select")
            return failed or self.job_service.get_job(project_id, job_id)

        running = self.job_service.mark_running(job)
        if running is None:
            return self.job_service.get_job(project_id, job_id)

        context = OutcomeContext(
            job=running,
            snapshot=running.snapshot,
            storage=self.storage,
            report_progress=lambda step, percent: self.job_service.update_progress(
                running, step, percent
            ),
        )
        timeout = self.timeouts.get(running.snapshot.type, 60.0)
        try:
            output = await asyncio.wait_for(executor.execute(context), timeout)
        except TimeoutError:
            error = GenerationTimeoutError(
                f"Outcome did not finish within {timeout:.0f}s"
            )
            logger.warning("Job timed out", extra={"job_id": job_id})
            failed = self.job_service.mark_failed(running, error, step="execute")
            return failed or self.job_service.get_job(project_id, job_id)
        except Exception as exc:
            logger.exception("Job failed", extra={"job_id": job_id})
            failed = self.job_service.mark_failed(running, exc, step="execute")
            return failed or self.job_service.get_job(project_id, job_id)

        current = self.job_service.get_job(project_id, job_id)
        if current is not None and current.status == JobStatus.CANCELLED:
            logger.info("Discarding result of cancelled job", extra={"job_id": job_id})
            return current

        self.job_service.update_progress(running, "finalizing", 90)
        completed = self.job_service.mark_completed(running, output)
        if completed is None:
            logger.info("Discarding result of cancelled job", extra={"job_id": job_id})
            return self.job_service.get_job(project_id, job_id)

        logger.info(
            "Job completed",
            extra={"job_id": job_id, "processing_time_ms": output.processing_time_ms},
        )
        # The job is already terminal; follow-up failures are logged only.
        try:
            self.session_repository.set_result_media(
                project_id, completed.session_id, output
            )
        except Exception:
            logger.exception("Result write-back failed", extra={"job_id": job_id})
        try:
            await self.export_dispatcher.dispatch(completed)
        except Exception:
            logger.exception("Export dispatch failed", extra={"job_id": job_id})
        return completed

    def cancel_job(self, project_id: str, job_id: str) -> JobRecord | None:
        """Cancel a job that has not reached a terminal state."""
        return self.job_service.cancel_job(project_id, job_id)
