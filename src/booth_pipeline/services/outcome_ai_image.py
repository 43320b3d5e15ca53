"""AI image outcome."""

import asyncio
import logging
from dataclasses import dataclass

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import AIImageConfig
from booth_pipeline.domain.jobs import MediaOutput
from booth_pipeline.domain.sessions import MediaReference
from booth_pipeline.services import media
from booth_pipeline.services.mentions import resolve_mentions
from booth_pipeline.services.outcomes import (
    ImageGenerationClient,
    ImageGenerationRequest,
    OutcomeContext,
    capture_media,
    store_image_output,
)

logger = logging.getLogger(__name__)


@dataclass
class AIImageOutcomeExecutor:
    """Generates an image from the resolved prompt and reference media."""

    client: ImageGenerationClient

    async def execute(self, context: OutcomeContext) -> MediaOutput:
        config = context.snapshot.active_config
        if not isinstance(config, AIImageConfig):
            raise ConfigurationError("AI image outcome configuration is required")
        generation = config.image_generation
        if not generation.prompt.strip():
            raise ConfigurationError("AI image outcome has an empty prompt")

        resolved = resolve_mentions(
            generation.prompt, context.snapshot.responses, generation.ref_media
        )
        references: list[MediaReference] = []
        if config.capture_step_id:
            references.append(
                capture_media(context.snapshot, config.capture_step_id)
            )
        seen = {ref.asset_id for ref in references}
        references.extend(ref for ref in resolved.media_refs if ref.asset_id not in seen)

        request = ImageGenerationRequest(
            prompt=resolved.text,
            model=generation.model,
            aspect_ratio=generation.aspect_ratio or config.aspect_ratio,
            reference_media=references,
        )
        reference_images = [
            await asyncio.to_thread(context.storage.download, ref.storage_path)
            for ref in references
        ]
        logger.info(
            "Generating image",
            extra={
                "job_id": context.job.id,
                "model": request.model,
                "reference_count": len(references),
                "warnings": resolved.warnings,
            },
        )
        context.report_progress("generating", 40)
        generated = await self.client.generate_image(request, reference_images)
        context.report_progress("uploading", 80)

        content_type, extension = media.image_type(generated.content)
        return await store_image_output(
            context, generated.content, content_type, extension
        )
