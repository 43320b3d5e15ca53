"""OpenAI Images API client for AI image outcomes."""

import base64
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from booth_pipeline.domain.errors import PipelineError, TransientError
from booth_pipeline.services.outcomes import (
    GeneratedImage,
    ImageGenerationClient,
    ImageGenerationRequest,
)

_PORTRAIT = "1024x1536"
_LANDSCAPE = "1536x1024"
_SQUARE = "1024x1024"


def image_size(aspect_ratio: str) -> str:
    """Map an aspect ratio like "9:16" to the closest supported size."""
    try:
        width, height = (float(part) for part in aspect_ratio.split(":"))
    except ValueError:
        return _SQUARE
    if width == height or width <= 0 or height <= 0:
        return _SQUARE
    return _PORTRAIT if height > width else _LANDSCAPE


@dataclass
class OpenAIImageClient(ImageGenerationClient):
    """Image generation backed by the OpenAI Images API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIImageClient":
        """Create an OpenAI image client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate_image(
        self, request: ImageGenerationRequest, reference_images: list[bytes]
    ) -> GeneratedImage:
        """Generate from the prompt, editing from references when present."""
        size = image_size(request.aspect_ratio)
        try:
            if reference_images:
                response = await self.client.images.edit(
                    model=request.model,
                    prompt=request.prompt,
                    image=[
                        (f"reference-{index}.png", content, "image/png")
                        for index, content in enumerate(reference_images)
                    ],
                    size=size,
                )
            else:
                response = await self.client.images.generate(
                    model=request.model,
                    prompt=request.prompt,
                    size=size,
                )
        except (openai.APIConnectionError, openai.RateLimitError) as exc:
            raise TransientError(str(exc), code="AI_MODEL_ERROR") from exc
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise TransientError(str(exc), code="AI_MODEL_ERROR") from exc
            raise PipelineError(str(exc), code="AI_MODEL_ERROR") from exc

        if not response.data or not response.data[0].b64_json:
            raise PipelineError("OpenAI returned no image", code="AI_MODEL_ERROR")
        return GeneratedImage(content=base64.b64decode(response.data[0].b64_json))

    async def close(self) -> None:
        await self.client.close()
