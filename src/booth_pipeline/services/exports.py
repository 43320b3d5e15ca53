"""Fan-out of finished results to export destinations."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from booth_pipeline.domain.exports import DeliveryTask, ExportLog, ProjectExports
from booth_pipeline.domain.jobs import JobRecord
from booth_pipeline.services.sessions import now_ms
from booth_pipeline.services.tasks import TaskRunner

logger = logging.getLogger(__name__)


class ProjectExportRepository(Protocol):
    """Read access to per-project export settings."""

    def get_project_exports(self, project_id: str) -> ProjectExports | None:
        """Return the project's name and export destinations, if present."""


class DeliveryWorker(Protocol):
    """Delivers one task to one provider."""

    async def deliver(self, task: DeliveryTask, attempt: int) -> ExportLog | None:
        """Run one attempt; returns the log entry, or None when skipped."""


@dataclass(frozen=True)
class DeliveryResult:
    task: DeliveryTask
    log: ExportLog | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ExportDispatcher:
    """Creates one delivery task per enabled destination and runs them.

    Delivery failures are isolated from each other and from the job.
    """

    projects: ProjectExportRepository
    workers: dict[str, DeliveryWorker]
    runner: TaskRunner = field(default_factory=TaskRunner)
    clock: Callable[[], int] = field(default=now_ms)

    def build_tasks(self, job: JobRecord) -> list[DeliveryTask]:
        if job.output is None:
            return []
        project = self.projects.get_project_exports(job.project_id)
        if project is None:
            return []
        created_at = self.clock()
        tasks = []
        for destination in project.destinations:
            if not destination.enabled:
                continue
            if destination.provider not in self.workers:
                logger.warning(
                    "No delivery worker for provider",
                    extra={"provider": destination.provider},
                )
                continue
            tasks.append(
                DeliveryTask(
                    job_id=job.id,
                    project_id=job.project_id,
                    session_id=job.session_id,
                    experience_id=job.experience_id,
                    destination=destination,
                    source_path=job.output.storage_path,
                    size_bytes=job.output.size_bytes,
                    created_at=created_at,
                )
            )
        return tasks

    async def dispatch(self, job: JobRecord) -> list[DeliveryResult]:
        """Deliver a completed job's output to every enabled destination."""
        tasks = self.build_tasks(job)
        if not tasks:
            return []
        return list(await asyncio.gather(*(self._run(task) for task in tasks)))

    async def _run(self, task: DeliveryTask) -> DeliveryResult:
        worker = self.workers[task.destination.provider]
        try:
            log = await self.runner.run(
                task.key, lambda attempt: worker.deliver(task, attempt)
            )
        except Exception as exc:
            logger.warning(
                "Delivery failed",
                extra={"task_key": task.key, "error": str(exc)},
            )
            return DeliveryResult(task=task, error=exc)
        return DeliveryResult(task=task, log=log)
