"""Shared test fixtures."""

import io
from dataclasses import dataclass, field, replace

import pytest
from PIL import Image

from booth_pipeline.config import Settings
from booth_pipeline.containers import AppContainer, build_registry
from booth_pipeline.domain.experiences import (
    AIImageConfig,
    AIVideoConfig,
    ExperienceConfig,
    ExperienceRecord,
    ExperienceType,
    ImageGenerationConfig,
    PhotoConfig,
    VideoGenerationConfig,
)
from booth_pipeline.domain.exports import (
    ExportDestination,
    ExportLog,
    IntegrationStatus,
    ProjectExports,
    StorageIntegration,
)
from booth_pipeline.domain.jobs import (
    Dimensions,
    JobProgress,
    JobRecord,
    JobSnapshot,
    JobStatus,
    MediaFormat,
    MediaOutput,
)
from booth_pipeline.domain.notifications import NotificationTask
from booth_pipeline.domain.sessions import (
    ConfigSource,
    MediaReference,
    SessionMode,
    SessionRecord,
    SessionStatus,
    StepResponse,
)
from booth_pipeline.services.export_worker import (
    ExportLogRepository,
    ExportWorker,
    IntegrationRepository,
    TokenProvider,
)
from booth_pipeline.services.exports import ExportDispatcher, ProjectExportRepository
from booth_pipeline.services.jobs import JobRepository, JobService
from booth_pipeline.services.notifications import (
    NotificationComposer,
    NotificationQueue,
    NotificationService,
)
from booth_pipeline.services.outcomes import (
    GeneratedImage,
    GeneratedVideo,
    ImageGenerationClient,
    ImageGenerationRequest,
    MediaStorage,
    StoredObject,
    VideoGenerationClient,
    VideoGenerationRequest,
)
from booth_pipeline.services.pipeline import TransformPipeline
from booth_pipeline.services.sessions import SessionRepository, SessionService
from booth_pipeline.services.snapshots import ExperienceRepository
from booth_pipeline.services.tasks import TaskRunner
from booth_pipeline.services.uploads import ChunkedUploadClient, UploadApi

PROJECT_ID = "project-1"
SESSION_ID = "abcd1234-session"
EXPERIENCE_ID = "experience-1"
CAPTURE_STEP_ID = "step-capture"
CAPTURE_PATH = "captures/session/photo.jpg"


def jpeg_bytes(
    size: tuple[int, int] = (64, 48), color: tuple[int, ...] = (200, 30, 30)
) -> bytes:
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format="JPEG")
    return output.getvalue()


def png_bytes(
    size: tuple[int, int] = (32, 32), color: tuple[int, ...] = (0, 0, 255, 128)
) -> bytes:
    output = io.BytesIO()
    Image.new("RGBA", size, color).save(output, format="PNG")
    return output.getvalue()


def media_ref(asset_id: str, display_name: str = "", path: str = "") -> MediaReference:
    return MediaReference(
        asset_id=asset_id,
        url=f"https://cdn.example.com/{asset_id}.jpg",
        storage_path=path or f"media/{asset_id}.jpg",
        display_name=display_name,
    )


def capture_response(
    step_id: str = CAPTURE_STEP_ID,
    step_name: str = "photo",
    path: str = CAPTURE_PATH,
) -> StepResponse:
    return StepResponse(
        step_id=step_id,
        step_name=step_name,
        step_type="capture.photo",
        value=None,
        context=[
            {
                "mediaAssetId": "capture-asset",
                "url": "https://cdn.example.com/capture.jpg",
                "filePath": path,
                "displayName": "Capture",
            }
        ],
        created_at=1,
        updated_at=1,
    )


def text_response(step_id: str, step_name: str, value: object) -> StepResponse:
    return StepResponse(
        step_id=step_id,
        step_name=step_name,
        step_type="input.shortText",
        value=value,  # type: ignore[arg-type]
        context=None,
        created_at=1,
        updated_at=1,
    )


def make_session(
    responses: tuple[StepResponse, ...] = (),
    config_source: ConfigSource = ConfigSource.PUBLISHED,
) -> SessionRecord:
    return SessionRecord(
        id=SESSION_ID,
        project_id=PROJECT_ID,
        experience_id=EXPERIENCE_ID,
        status=SessionStatus.COMPLETED,
        mode=SessionMode.GUEST,
        config_source=config_source,
        responses=responses,
    )


def photo_config(overlay: MediaReference | None = None) -> ExperienceConfig:
    return ExperienceConfig(
        type=ExperienceType.PHOTO,
        photo=PhotoConfig(capture_step_id=CAPTURE_STEP_ID, overlay=overlay),
    )


def ai_image_config(
    prompt: str, ref_media: list[MediaReference] | None = None
) -> ExperienceConfig:
    return ExperienceConfig(
        type=ExperienceType.AI_IMAGE,
        ai_image=AIImageConfig(
            image_generation=ImageGenerationConfig(
                prompt=prompt, ref_media=ref_media or []
            ),
        ),
    )


def ai_video_config(
    task: str, ref_media: list[MediaReference] | None = None
) -> ExperienceConfig:
    return ExperienceConfig(
        type=ExperienceType.AI_VIDEO,
        ai_video=AIVideoConfig.model_validate(
            {
                "task": task,
                "captureStepId": CAPTURE_STEP_ID,
                "videoGeneration": VideoGenerationConfig(
                    prompt="Make @{step:photo} dance", ref_media=ref_media or []
                ),
            }
        ),
    )


def make_experience(config: ExperienceConfig, version: int = 3) -> ExperienceRecord:
    return ExperienceRecord(
        id=EXPERIENCE_ID, name="Neon Booth", version=version, config=config
    )


def completed_job(output: MediaOutput, job_id: str = "job-1") -> JobRecord:
    return JobRecord(
        id=job_id,
        project_id=PROJECT_ID,
        session_id=SESSION_ID,
        experience_id=EXPERIENCE_ID,
        status=JobStatus.COMPLETED,
        snapshot=JobSnapshot(
            type=ExperienceType.PHOTO, experience_version=1, active_config=None
        ),
        created_at=1,
        updated_at=2,
        output=output,
    )


def image_output(
    storage_path: str = "outputs/output.jpg", size_bytes: int = 1024
) -> MediaOutput:
    return MediaOutput(
        asset_id=f"{SESSION_ID}-output",
        url="https://cdn.example.com/output.jpg",
        storage_path=storage_path,
        format=MediaFormat.IMAGE,
        dimensions=Dimensions(width=64, height=48),
        size_bytes=size_bytes,
        processing_time_ms=10,
        thumbnail_url="https://cdn.example.com/thumb.jpg",
    )


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[str, SessionRecord] = field(default_factory=dict)
    result_media: dict[str, MediaOutput] = field(default_factory=dict)

    def add(self, session: SessionRecord) -> None:
        self.sessions[session.id] = session

    def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None or session.project_id != project_id:
            return None
        return session

    def save_responses(
        self, project_id: str, session_id: str, responses: list[StepResponse]
    ) -> None:
        session = self.sessions[session_id]
        self.sessions[session_id] = replace(session, responses=tuple(responses))

    def set_result_media(
        self, project_id: str, session_id: str, output: MediaOutput
    ) -> None:
        self.result_media[session_id] = output


@dataclass
class InMemoryExperienceRepository(ExperienceRepository):
    """In-memory experience repository keyed by config source."""

    experiences: dict[tuple[str, ConfigSource], ExperienceRecord] = field(
        default_factory=dict
    )

    def add(
        self,
        experience: ExperienceRecord,
        source: ConfigSource = ConfigSource.PUBLISHED,
    ) -> None:
        self.experiences[(experience.id, source)] = experience

    def get_experience(
        self, project_id: str, experience_id: str, source: ConfigSource
    ) -> ExperienceRecord | None:
        return self.experiences.get((experience_id, source))

    def get_experience_name(self, project_id: str, experience_id: str) -> str | None:
        for (stored_id, _source), experience in self.experiences.items():
            if stored_id == experience_id:
                return experience.name
        return None


@dataclass
class InMemoryJobRepository(JobRepository):
    """In-memory job repository with conditional transitions."""

    jobs: dict[str, JobRecord] = field(default_factory=dict)

    def create_job(self, job: JobRecord) -> JobRecord:
        self.jobs[job.id] = job
        return job

    def get_job(self, project_id: str, job_id: str) -> JobRecord | None:
        job = self.jobs.get(job_id)
        if job is None or job.project_id != project_id:
            return None
        return job

    def find_active_job(self, project_id: str, session_id: str) -> JobRecord | None:
        for job in self.jobs.values():
            if (
                job.project_id == project_id
                and job.session_id == session_id
                and not job.status.is_terminal
            ):
                return job
        return None

    def transition(
        self,
        project_id: str,
        job_id: str,
        status: JobStatus,
        allowed_from: frozenset[JobStatus],
        fields: dict[str, object],
    ) -> JobRecord | None:
        job = self.get_job(project_id, job_id)
        if job is None or job.status not in allowed_from:
            return None
        updated = replace(job, status=status, **fields)  # type: ignore[arg-type]
        self.jobs[job_id] = updated
        return updated

    def update_progress(
        self, project_id: str, job_id: str, progress: JobProgress, updated_at: int
    ) -> None:
        job = self.get_job(project_id, job_id)
        if job is None or job.status.is_terminal:
            return
        self.jobs[job_id] = replace(job, progress=progress, updated_at=updated_at)


@dataclass
class InMemoryMediaStorage(MediaStorage):
    """In-memory media store for tests."""

    objects: dict[str, bytes] = field(default_factory=dict)
    uploads: list[tuple[str, str]] = field(default_factory=list)

    def download(self, storage_path: str) -> bytes:
        if storage_path not in self.objects:
            raise FileNotFoundError(storage_path)
        return self.objects[storage_path]

    def upload(
        self, storage_path: str, content: bytes, content_type: str
    ) -> StoredObject:
        self.objects[storage_path] = content
        self.uploads.append((storage_path, content_type))
        return StoredObject(
            storage_path=storage_path,
            url=f"https://cdn.example.com/{storage_path}",
        )


@dataclass
class FakeImageClient(ImageGenerationClient):
    """Fake image generator that records requests."""

    requests: list[ImageGenerationRequest] = field(default_factory=list)
    reference_counts: list[int] = field(default_factory=list)

    async def generate_image(
        self, request: ImageGenerationRequest, reference_images: list[bytes]
    ) -> GeneratedImage:
        self.requests.append(request)
        self.reference_counts.append(len(reference_images))
        return GeneratedImage(content=png_bytes((40, 40)))


@dataclass
class FakeVideoClient(VideoGenerationClient):
    """Fake video generator that records requests."""

    requests: list[VideoGenerationRequest] = field(default_factory=list)

    async def generate_video(self, request: VideoGenerationRequest) -> GeneratedVideo:
        self.requests.append(request)
        return GeneratedVideo(
            content=b"fake-mp4", dimensions=Dimensions(width=720, height=1280)
        )


@dataclass
class InMemoryProjectExportRepository(ProjectExportRepository):
    projects: dict[str, ProjectExports] = field(default_factory=dict)

    def get_project_exports(self, project_id: str) -> ProjectExports | None:
        return self.projects.get(project_id)


@dataclass
class InMemoryIntegrationRepository(IntegrationRepository):
    integrations: dict[tuple[str, str], StorageIntegration] = field(
        default_factory=dict
    )

    def get_integration(
        self, workspace_id: str, provider: str
    ) -> StorageIntegration | None:
        return self.integrations.get((workspace_id, provider))

    def set_status(
        self, workspace_id: str, provider: str, status: IntegrationStatus
    ) -> None:
        current = self.integrations[(workspace_id, provider)]
        self.integrations[(workspace_id, provider)] = replace(current, status=status)


@dataclass
class InMemoryExportLogRepository(ExportLogRepository):
    logs: list[ExportLog] = field(default_factory=list)

    def append(self, project_id: str, log: ExportLog) -> None:
        self.logs.append(log)


@dataclass
class FakeTokenProvider(TokenProvider):
    error: Exception | None = None
    calls: int = 0

    async def refresh_access_token(self, refresh_token: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "access-token"


@dataclass
class FakeUploadApi(UploadApi):
    """Records provider calls in order."""

    calls: list[tuple[str, int, int]] = field(default_factory=list)
    uploaded_paths: list[str] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)

    async def upload(self, access_token: str, path: str, content: bytes) -> None:
        if self.errors:
            raise self.errors.pop(0)
        self.calls.append(("upload", 0, len(content)))
        self.uploaded_paths.append(path)

    async def start_session(self, access_token: str, chunk: bytes) -> str:
        self.calls.append(("start", 0, len(chunk)))
        return "session-1"

    async def append(
        self, access_token: str, session_id: str, offset: int, chunk: bytes
    ) -> None:
        self.calls.append(("append", offset, len(chunk)))

    async def finish(  # noqa: PLR0913
        self,
        access_token: str,
        session_id: str,
        offset: int,
        path: str,
        chunk: bytes,
    ) -> None:
        self.calls.append(("finish", offset, len(chunk)))
        self.uploaded_paths.append(path)


@dataclass
class InMemoryNotificationQueue(NotificationQueue):
    tasks: list[NotificationTask] = field(default_factory=list)

    def enqueue(self, project_id: str, task: NotificationTask) -> None:
        self.tasks.append(task)


async def no_sleep(_delay: float) -> None:
    return None


@dataclass
class ExportHarness:
    """Export worker wired to in-memory collaborators."""

    storage: InMemoryMediaStorage
    projects: InMemoryProjectExportRepository
    experiences: InMemoryExperienceRepository
    integrations: InMemoryIntegrationRepository
    logs: InMemoryExportLogRepository
    tokens: FakeTokenProvider
    upload_api: FakeUploadApi
    worker: ExportWorker


def build_export_harness(
    storage: InMemoryMediaStorage | None = None,
    experiences: InMemoryExperienceRepository | None = None,
) -> ExportHarness:
    storage = storage or InMemoryMediaStorage()
    experiences = experiences or InMemoryExperienceRepository()
    projects = InMemoryProjectExportRepository(
        projects={
            PROJECT_ID: ProjectExports(
                project_id=PROJECT_ID,
                name="Summer: Launch",
                destinations=(
                    ExportDestination(provider="dropbox", workspace_id="ws-1"),
                ),
            )
        }
    )
    integrations = InMemoryIntegrationRepository(
        integrations={
            ("ws-1", "dropbox"): StorageIntegration(
                workspace_id="ws-1",
                provider="dropbox",
                status=IntegrationStatus.CONNECTED,
                refresh_token="refresh-token",
            )
        }
    )
    logs = InMemoryExportLogRepository()
    tokens = FakeTokenProvider()
    upload_api = FakeUploadApi()
    worker = ExportWorker(
        provider="dropbox",
        projects=projects,
        experiences=experiences,
        integrations=integrations,
        export_logs=logs,
        tokens=tokens,
        uploader=ChunkedUploadClient(upload_api),
        storage=storage,
        clock=lambda: 1_700_000_000_000,
    )
    return ExportHarness(
        storage=storage,
        projects=projects,
        experiences=experiences,
        integrations=integrations,
        logs=logs,
        tokens=tokens,
        upload_api=upload_api,
        worker=worker,
    )


@dataclass
class PipelineHarness:
    """Transform pipeline wired to in-memory collaborators."""

    sessions: InMemorySessionRepository
    experiences: InMemoryExperienceRepository
    jobs: InMemoryJobRepository
    storage: InMemoryMediaStorage
    image_client: FakeImageClient
    video_client: FakeVideoClient
    exports: ExportHarness
    job_service: JobService
    pipeline: TransformPipeline


def build_pipeline_harness() -> PipelineHarness:
    sessions = InMemorySessionRepository()
    experiences = InMemoryExperienceRepository()
    jobs = InMemoryJobRepository()
    storage = InMemoryMediaStorage(objects={CAPTURE_PATH: jpeg_bytes()})
    image_client = FakeImageClient()
    video_client = FakeVideoClient()
    exports = build_export_harness(storage=storage, experiences=experiences)
    job_service = JobService(jobs)
    dispatcher = ExportDispatcher(
        projects=exports.projects,
        workers={"dropbox": exports.worker},
        runner=TaskRunner(sleep=no_sleep),
    )
    pipeline = TransformPipeline(
        session_repository=sessions,
        experience_repository=experiences,
        job_service=job_service,
        registry=build_registry(image_client, video_client),
        storage=storage,
        export_dispatcher=dispatcher,
    )
    return PipelineHarness(
        sessions=sessions,
        experiences=experiences,
        jobs=jobs,
        storage=storage,
        image_client=image_client,
        video_client=video_client,
        exports=exports,
        job_service=job_service,
        pipeline=pipeline,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        openai_api_key="openai-key",
        replicate_api_token="replicate-token",
        dropbox_app_key="dropbox-key",
        dropbox_app_secret="dropbox-secret",
        result_page_base_url="https://booth.example.com",
        notification_placeholder_url="https://booth.example.com/video.png",
    )


@pytest.fixture
def harness() -> PipelineHarness:
    return build_pipeline_harness()


@pytest.fixture
def notification_queue() -> InMemoryNotificationQueue:
    return InMemoryNotificationQueue()


@pytest.fixture
def container(
    settings: Settings,
    harness: PipelineHarness,
    notification_queue: InMemoryNotificationQueue,
) -> AppContainer:
    notification_service = NotificationService(
        job_service=harness.job_service,
        composer=NotificationComposer(
            result_page_base_url=settings.result_page_base_url,
            placeholder_image_url=settings.notification_placeholder_url,
        ),
        queue=notification_queue,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=SessionService(harness.sessions),
        job_service=harness.job_service,
        pipeline=harness.pipeline,
        notification_service=notification_service,
        close_resources=close_resources,
    )
