"""Tests for export dispatch and delivery."""

import asyncio
from dataclasses import dataclass, field, replace

import pytest

from booth_pipeline.domain.errors import (
    RevokedGrantError,
    TransientError,
    ValidationError,
)
from booth_pipeline.domain.exports import (
    DeliveryTask,
    ExportDestination,
    ExportLog,
    ExportStatus,
    IntegrationStatus,
    ProjectExports,
)
from booth_pipeline.services.export_worker import (
    REAUTH_MESSAGE,
    build_destination_path,
    sanitize_path_segment,
)
from booth_pipeline.services.exports import ExportDispatcher
from booth_pipeline.services.tasks import TaskRunner
from booth_pipeline.services.uploads import MAX_UPLOAD_SIZE
from tests.conftest import (
    EXPERIENCE_ID,
    PROJECT_ID,
    SESSION_ID,
    ExportHarness,
    InMemoryProjectExportRepository,
    build_export_harness,
    completed_job,
    image_output,
    jpeg_bytes,
    make_experience,
    no_sleep,
    photo_config,
)

TIMESTAMP_MS = 1_700_000_000_000


def _task(
    source_path: str = "outputs/output.jpg", size_bytes: int = 1024
) -> DeliveryTask:
    return DeliveryTask(
        job_id="job-1",
        project_id=PROJECT_ID,
        session_id=SESSION_ID,
        experience_id=EXPERIENCE_ID,
        destination=ExportDestination(provider="dropbox", workspace_id="ws-1"),
        source_path=source_path,
        size_bytes=size_bytes,
        created_at=TIMESTAMP_MS,
    )


def _harness() -> ExportHarness:
    harness = build_export_harness()
    harness.storage.objects["outputs/output.jpg"] = jpeg_bytes()
    harness.experiences.add(make_experience(photo_config()))
    return harness


@dataclass
class RecordingWorker:
    error: Exception | None = None
    tasks: list[DeliveryTask] = field(default_factory=list)

    async def deliver(self, task: DeliveryTask, attempt: int) -> ExportLog | None:
        self.tasks.append(task)
        if self.error is not None:
            raise self.error
        return ExportLog(
            id="log-1",
            job_id=task.job_id,
            session_id=task.session_id,
            provider=task.destination.provider,
            status=ExportStatus.SUCCESS,
            created_at=TIMESTAMP_MS,
        )


def test_build_destination_path_is_deterministic() -> None:
    path = build_destination_path(
        "Summer: Launch", "Neon/Booth", SESSION_ID, "outputs/output.mp4", TIMESTAMP_MS
    )

    assert path == (
        "/Summer_ Launch/Neon_Booth/2023-11-14_22-13-20_session-ABCD_result.mp4"
    )


def test_sanitize_path_segment_falls_back_for_empty_names() -> None:
    assert sanitize_path_segment("  ") == "Untitled"
    assert sanitize_path_segment('a*b?"c') == "a_b__c"


def test_worker_uploads_and_logs_success() -> None:
    harness = _harness()

    log = asyncio.run(harness.worker.deliver(_task(), 1))

    assert log is not None
    assert log.status == ExportStatus.SUCCESS
    assert log.destination_path == (
        "/Summer_ Launch/Neon Booth/2023-11-14_22-13-20_session-ABCD_result.jpg"
    )
    assert harness.upload_api.uploaded_paths == [log.destination_path]
    assert harness.logs.logs == [log]


def test_worker_marks_revoked_grant_for_reauth() -> None:
    harness = _harness()
    harness.tokens.error = RevokedGrantError("invalid_grant")

    with pytest.raises(RevokedGrantError):
        asyncio.run(harness.worker.deliver(_task(), 1))

    integration = harness.integrations.integrations[("ws-1", "dropbox")]
    assert integration.status == IntegrationStatus.NEEDS_REAUTH
    assert harness.logs.logs[0].status == ExportStatus.FAILED
    assert harness.logs.logs[0].error == REAUTH_MESSAGE
    assert harness.upload_api.calls == []


def test_worker_skips_disconnected_workspace() -> None:
    harness = _harness()
    harness.integrations.set_status("ws-1", "dropbox", IntegrationStatus.NEEDS_REAUTH)

    assert asyncio.run(harness.worker.deliver(_task(), 1)) is None
    assert harness.tokens.calls == 0
    assert harness.logs.logs == []


def test_worker_skips_disabled_export() -> None:
    harness = _harness()
    harness.projects.projects[PROJECT_ID] = ProjectExports(
        project_id=PROJECT_ID,
        name="Summer",
        destinations=(
            ExportDestination(provider="dropbox", workspace_id="ws-1", enabled=False),
        ),
    )

    assert asyncio.run(harness.worker.deliver(_task(), 1)) is None
    assert harness.upload_api.calls == []


def test_worker_reports_missing_source() -> None:
    harness = _harness()

    with pytest.raises(ValidationError, match="source_file_missing"):
        asyncio.run(harness.worker.deliver(_task("outputs/missing.jpg"), 1))
    assert harness.logs.logs[0].error == "source_file_missing"


def test_worker_rejects_oversized_result_without_network() -> None:
    harness = _harness()

    with pytest.raises(ValidationError, match="file_size_exceeded"):
        asyncio.run(harness.worker.deliver(_task(size_bytes=MAX_UPLOAD_SIZE + 1), 1))
    assert harness.tokens.calls == 0
    assert harness.logs.logs[0].status == ExportStatus.FAILED


def test_dispatch_retries_transient_failure_and_logs_each_attempt() -> None:
    harness = _harness()
    harness.upload_api.errors.append(TransientError("rate limited"))
    dispatcher = ExportDispatcher(
        projects=harness.projects,
        workers={"dropbox": harness.worker},
        runner=TaskRunner(sleep=no_sleep),
    )

    results = asyncio.run(dispatcher.dispatch(completed_job(image_output())))

    assert [result.succeeded for result in results] == [True]
    assert [log.status for log in harness.logs.logs] == [
        ExportStatus.FAILED,
        ExportStatus.SUCCESS,
    ]
    assert len({log.destination_path for log in harness.logs.logs}) == 1


def test_dispatch_isolates_destination_failures() -> None:
    projects = InMemoryProjectExportRepository(
        projects={
            PROJECT_ID: ProjectExports(
                project_id=PROJECT_ID,
                name="Summer",
                destinations=(
                    ExportDestination(provider="dropbox", workspace_id="ws-1"),
                    ExportDestination(provider="drive", workspace_id="ws-1"),
                    ExportDestination(
                        provider="box", workspace_id="ws-1", enabled=False
                    ),
                ),
            )
        }
    )
    failing = RecordingWorker(error=RevokedGrantError("invalid_grant"))
    healthy = RecordingWorker()
    unused = RecordingWorker()
    dispatcher = ExportDispatcher(
        projects=projects,
        workers={"dropbox": failing, "drive": healthy, "box": unused},
        runner=TaskRunner(sleep=no_sleep),
    )

    results = asyncio.run(dispatcher.dispatch(completed_job(image_output())))

    by_provider = {result.task.destination.provider: result for result in results}
    assert set(by_provider) == {"dropbox", "drive"}
    assert not by_provider["dropbox"].succeeded
    assert by_provider["drive"].succeeded
    assert len(failing.tasks) == 1
    assert unused.tasks == []


def test_dispatch_skips_job_without_output() -> None:
    harness = _harness()
    dispatcher = ExportDispatcher(
        projects=harness.projects, workers={"dropbox": harness.worker}
    )
    job = completed_job(image_output())

    assert dispatcher.build_tasks(replace(job, output=None)) == []
