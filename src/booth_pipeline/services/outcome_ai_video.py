"""AI video outcome."""

import asyncio
import logging
from dataclasses import dataclass

from booth_pipeline.domain.errors import ConfigurationError, ValidationError
from booth_pipeline.domain.experiences import (
    MAX_VIDEO_REFERENCE_IMAGES,
    AIVideoConfig,
    AIVideoTask,
)
from booth_pipeline.domain.jobs import MediaFormat, MediaOutput
from booth_pipeline.domain.sessions import MediaReference
from booth_pipeline.services import media
from booth_pipeline.services.mentions import resolve_mentions
from booth_pipeline.services.outcomes import (
    OutcomeContext,
    VideoGenerationClient,
    VideoGenerationRequest,
    capture_media,
)

logger = logging.getLogger(__name__)


def build_video_request(
    config: AIVideoConfig, prompt: str, source: MediaReference
) -> VideoGenerationRequest:
    """Shape the generation request for the configured task."""
    generation = config.video_generation
    aspect_ratio = generation.aspect_ratio or config.aspect_ratio
    if config.task == AIVideoTask.IMAGE_TO_VIDEO:
        return VideoGenerationRequest(
            prompt=prompt,
            model=generation.model,
            aspect_ratio=aspect_ratio,
            duration=generation.duration,
            source_media=source,
        )
    if config.task == AIVideoTask.REF_IMAGES_TO_VIDEO:
        extra = generation.ref_media[:MAX_VIDEO_REFERENCE_IMAGES]
        return VideoGenerationRequest(
            prompt=prompt,
            model=generation.model,
            aspect_ratio=aspect_ratio,
            duration=generation.duration,
            reference_media=[source, *extra],
        )
    raise ConfigurationError(f'Task "{config.task}" is not yet supported')


@dataclass
class AIVideoOutcomeExecutor:
    """Generates a video seeded by the guest's capture."""

    client: VideoGenerationClient

    async def execute(self, context: OutcomeContext) -> MediaOutput:
        config = context.snapshot.active_config
        if not isinstance(config, AIVideoConfig):
            raise ConfigurationError("AI video outcome configuration is required")
        generation = config.video_generation
        if not generation.prompt.strip():
            raise ConfigurationError("AI video outcome has an empty prompt")

        source = capture_media(context.snapshot, config.capture_step_id)
        # Reference labels mean nothing to the video model; only step
        # mentions are resolved.
        resolved = resolve_mentions(generation.prompt, context.snapshot.responses, [])
        request = build_video_request(config, resolved.text, source)
        logger.info(
            "Generating video",
            extra={
                "job_id": context.job.id,
                "task": config.task.value,
                "model": request.model,
                "duration": request.duration,
            },
        )
        context.report_progress("generating", 40)
        generated = await self.client.generate_video(request)
        context.report_progress("uploading", 80)

        stored = await asyncio.to_thread(
            context.storage.upload,
            context.output_path("output", "mp4"),
            generated.content,
            generated.content_type,
        )
        thumbnail_url = await self._store_thumbnail(context, source)
        return MediaOutput(
            asset_id=context.output_asset_id,
            url=stored.url,
            storage_path=stored.storage_path,
            format=MediaFormat.VIDEO,
            dimensions=generated.dimensions,
            size_bytes=len(generated.content),
            processing_time_ms=context.elapsed_ms(),
            thumbnail_url=thumbnail_url,
        )

    async def _store_thumbnail(
        self, context: OutcomeContext, source: MediaReference
    ) -> str | None:
        """Store a JPEG still of the seed capture as the video thumbnail.

        The still is the input capture, not a frame of the generated video.
        Returns None when the capture cannot be decoded.
        """
        content = await asyncio.to_thread(
            context.storage.download, source.storage_path
        )
        try:
            thumbnail = media.make_thumbnail(content)
        except ValidationError:
            logger.warning(
                "Skipping video thumbnail", extra={"job_id": context.job.id}
            )
            return None
        stored = await asyncio.to_thread(
            context.storage.upload,
            context.output_path("thumb", "jpg"),
            thumbnail,
            "image/jpeg",
        )
        return stored.url
