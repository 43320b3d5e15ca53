"""Passthrough photo outcome."""

import asyncio
import logging
from dataclasses import dataclass

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import PhotoConfig
from booth_pipeline.domain.jobs import MediaOutput
from booth_pipeline.services import media
from booth_pipeline.services.outcomes import (
    OutcomeContext,
    capture_media,
    store_image_output,
)

logger = logging.getLogger(__name__)


@dataclass
class PhotoOutcomeExecutor:
    """Returns the captured photo, composited with the overlay when one is set."""

    async def execute(self, context: OutcomeContext) -> MediaOutput:
        config = context.snapshot.active_config
        if not isinstance(config, PhotoConfig):
            raise ConfigurationError("Photo outcome configuration is required")

        source = capture_media(context.snapshot, config.capture_step_id)
        content = await asyncio.to_thread(
            context.storage.download, source.storage_path
        )
        context.report_progress("compositing", 50)

        if config.overlay is not None:
            logger.info(
                "Applying overlay",
                extra={"job_id": context.job.id, "overlay": config.overlay.asset_id},
            )
            overlay = await asyncio.to_thread(
                context.storage.download, config.overlay.storage_path
            )
            content = media.composite_overlay(content, overlay)

        content_type, extension = media.image_type(content)
        output = await store_image_output(context, content, content_type, extension)
        logger.info(
            "Photo outcome completed",
            extra={
                "job_id": context.job.id,
                "processing_time_ms": output.processing_time_ms,
            },
        )
        return output
