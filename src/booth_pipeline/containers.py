"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from booth_pipeline.adapters.dropbox_client import HttpxDropboxClient
from booth_pipeline.adapters.openai_image_client import OpenAIImageClient
from booth_pipeline.adapters.replicate_video_client import ReplicateVideoClient
from booth_pipeline.adapters.supabase_experience_repository import (
    SupabaseExperienceRepository,
)
from booth_pipeline.adapters.supabase_export_repositories import (
    SupabaseExportLogRepository,
    SupabaseIntegrationRepository,
    SupabaseProjectExportRepository,
)
from booth_pipeline.adapters.supabase_job_repository import SupabaseJobRepository
from booth_pipeline.adapters.supabase_media_storage import SupabaseMediaStorage
from booth_pipeline.adapters.supabase_notification_queue import (
    SupabaseNotificationQueue,
)
from booth_pipeline.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from booth_pipeline.config import Settings
from booth_pipeline.domain.experiences import ExperienceType
from booth_pipeline.services.export_worker import ExportWorker
from booth_pipeline.services.exports import ExportDispatcher
from booth_pipeline.services.jobs import JobService
from booth_pipeline.services.notifications import (
    NotificationComposer,
    NotificationService,
)
from booth_pipeline.services.outcome_ai_image import AIImageOutcomeExecutor
from booth_pipeline.services.outcome_ai_video import AIVideoOutcomeExecutor
from booth_pipeline.services.outcome_photo import PhotoOutcomeExecutor
from booth_pipeline.services.outcomes import (
    ImageGenerationClient,
    OutcomeExecutorRegistry,
    VideoGenerationClient,
)
from booth_pipeline.services.pipeline import TransformPipeline
from booth_pipeline.services.sessions import SessionService
from booth_pipeline.services.tasks import TaskRunner
from booth_pipeline.services.uploads import ChunkedUploadClient


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    job_service: JobService
    pipeline: TransformPipeline
    notification_service: NotificationService
    close_resources: Callable[[], Awaitable[None]]


def build_registry(
    image_client: ImageGenerationClient, video_client: VideoGenerationClient
) -> OutcomeExecutorRegistry:
    """Register the executors for every supported outcome type."""
    registry = OutcomeExecutorRegistry()
    registry.register(ExperienceType.PHOTO, PhotoOutcomeExecutor())
    registry.register(ExperienceType.AI_IMAGE, AIImageOutcomeExecutor(image_client))
    registry.register(ExperienceType.AI_VIDEO, AIVideoOutcomeExecutor(video_client))
    return registry


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    experience_repository = SupabaseExperienceRepository(supabase_client)
    project_export_repository = SupabaseProjectExportRepository(supabase_client)
    storage = SupabaseMediaStorage(supabase_client, resolved_settings.media_bucket)

    image_client = OpenAIImageClient.create(resolved_settings.openai_api_key)
    video_client = ReplicateVideoClient.create(resolved_settings.replicate_api_token)
    dropbox_client = HttpxDropboxClient.create(
        app_key=resolved_settings.dropbox_app_key,
        app_secret=resolved_settings.dropbox_app_secret,
    )

    session_service = SessionService(session_repository)
    job_service = JobService(SupabaseJobRepository(supabase_client))
    dropbox_worker = ExportWorker(
        provider="dropbox",
        projects=project_export_repository,
        experiences=experience_repository,
        integrations=SupabaseIntegrationRepository(supabase_client),
        export_logs=SupabaseExportLogRepository(supabase_client),
        tokens=dropbox_client,
        uploader=ChunkedUploadClient(dropbox_client),
        storage=storage,
    )
    dispatcher = ExportDispatcher(
        projects=project_export_repository,
        workers={"dropbox": dropbox_worker},
        runner=TaskRunner(
            max_attempts=resolved_settings.export_max_attempts,
            backoff_base=resolved_settings.export_backoff_base_seconds,
            backoff_cap=resolved_settings.export_backoff_cap_seconds,
        ),
    )
    pipeline = TransformPipeline(
        session_repository=session_repository,
        experience_repository=experience_repository,
        job_service=job_service,
        registry=build_registry(image_client, video_client),
        storage=storage,
        export_dispatcher=dispatcher,
        timeouts=resolved_settings.outcome_timeouts(),
    )
    notification_service = NotificationService(
        job_service=job_service,
        composer=NotificationComposer(
            result_page_base_url=resolved_settings.result_page_base_url,
            placeholder_image_url=resolved_settings.notification_placeholder_url,
        ),
        queue=SupabaseNotificationQueue(supabase_client),
    )

    async def close_resources() -> None:
        await image_client.close()
        await video_client.close()
        await dropbox_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        job_service=job_service,
        pipeline=pipeline,
        notification_service=notification_service,
        close_resources=close_resources,
    )
