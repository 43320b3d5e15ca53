"""Replicate-hosted Veo client for AI video outcomes."""

import asyncio
import logging
from dataclasses import dataclass

import httpx
import replicate
from replicate.exceptions import ReplicateError

from booth_pipeline.domain.errors import PipelineError, TransientError
from booth_pipeline.domain.jobs import Dimensions
from booth_pipeline.services.outcomes import (
    GeneratedVideo,
    VideoGenerationClient,
    VideoGenerationRequest,
)

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {"succeeded", "failed", "canceled"}
_TRANSIENT_MARKERS = ("rate limit", "429", "unavailable", "timed out", "try again")

_DIMENSIONS = {
    "9:16": Dimensions(width=720, height=1280),
    "16:9": Dimensions(width=1280, height=720),
}


def build_input(request: VideoGenerationRequest) -> dict[str, object]:
    """Model input for a generation request."""
    payload: dict[str, object] = {
        "prompt": request.prompt,
        "duration": request.duration,
        "aspect_ratio": request.aspect_ratio,
    }
    if request.source_media is not None:
        payload["image"] = request.source_media.url
    if request.reference_media:
        payload["reference_images"] = [ref.url for ref in request.reference_media]
    return payload


def _is_transient(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _TRANSIENT_MARKERS)


@dataclass
class ReplicateVideoClient(VideoGenerationClient):
    """Video generation through Replicate predictions."""

    client: replicate.Client
    http_client: httpx.AsyncClient
    poll_interval: float = 5.0

    @classmethod
    def create(cls, api_token: str) -> "ReplicateVideoClient":
        """Create a Replicate client with a managed httpx session for downloads."""
        return cls(
            client=replicate.Client(api_token=api_token),
            http_client=httpx.AsyncClient(),
        )

    async def generate_video(self, request: VideoGenerationRequest) -> GeneratedVideo:
        try:
            prediction = await self.client.predictions.async_create(
                model=request.model, input=build_input(request)
            )
            logger.info(
                "Replicate prediction created",
                extra={"prediction_id": prediction.id, "model": request.model},
            )
            while prediction.status not in _TERMINAL_STATES:
                await asyncio.sleep(self.poll_interval)
                await prediction.async_reload()
        except ReplicateError as exc:
            if exc.status is not None and (exc.status >= 500 or exc.status == 429):
                raise TransientError(str(exc), code="AI_MODEL_ERROR") from exc
            raise PipelineError(str(exc), code="AI_MODEL_ERROR") from exc

        if prediction.status != "succeeded":
            message = f"Video generation {prediction.status}: {prediction.error}"
            if _is_transient(str(prediction.error or "")):
                raise TransientError(message, code="AI_MODEL_ERROR")
            raise PipelineError(message, code="AI_MODEL_ERROR")

        content = await self._read_output(prediction.output)
        return GeneratedVideo(
            content=content,
            dimensions=_DIMENSIONS.get(
                request.aspect_ratio, Dimensions(width=720, height=1280)
            ),
        )

    async def _read_output(self, output: object) -> bytes:
        if isinstance(output, list):
            if not output:
                raise PipelineError("Replicate returned no video", code="AI_MODEL_ERROR")
            output = output[0]
        if not isinstance(output, str):
            output = getattr(output, "url", None)
        if not isinstance(output, str) or not output:
            raise PipelineError("Unexpected Replicate output", code="AI_MODEL_ERROR")
        try:
            response = await self.http_client.get(output, timeout=60)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientError(
                f"Video download failed: {exc}", code="STORAGE_ERROR"
            ) from exc
        return response.content

    async def close(self) -> None:
        await self.http_client.aclose()
