"""Outcome executor registry and the ports executors depend on."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import ExperienceType
from booth_pipeline.domain.jobs import (
    Dimensions,
    JobRecord,
    JobSnapshot,
    MediaFormat,
    MediaOutput,
)
from booth_pipeline.domain.sessions import MediaReference
from booth_pipeline.services import media


@dataclass(frozen=True)
class StoredObject:
    """Location of an object written to the media store."""

    storage_path: str
    url: str


class MediaStorage(Protocol):
    """Object storage for captured and generated media."""

    def download(self, storage_path: str) -> bytes:
        """Return the object's bytes."""

    def upload(
        self, storage_path: str, content: bytes, content_type: str
    ) -> StoredObject:
        """Write an object, replacing any existing one, and return its location."""


@dataclass(frozen=True)
class ImageGenerationRequest:
    prompt: str
    model: str
    aspect_ratio: str
    reference_media: list[MediaReference] = field(default_factory=list)


@dataclass(frozen=True)
class VideoGenerationRequest:
    """Input for a video generation call.

    A request animates `source_media` or guides generation with
    `reference_media`, never both.
    """

    prompt: str
    model: str
    aspect_ratio: str
    duration: int
    source_media: MediaReference | None = None
    reference_media: list[MediaReference] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.source_media is not None and self.reference_media:
            raise ConfigurationError(
                "Video request cannot combine source media and reference media"
            )
        if self.source_media is None and not self.reference_media:
            raise ConfigurationError("Video request needs source or reference media")


@dataclass(frozen=True)
class GeneratedImage:
    content: bytes
    content_type: str = "image/png"


@dataclass(frozen=True)
class GeneratedVideo:
    content: bytes
    dimensions: Dimensions
    content_type: str = "video/mp4"


class ImageGenerationClient(Protocol):
    """Client for an image generation API."""

    async def generate_image(
        self, request: ImageGenerationRequest, reference_images: list[bytes]
    ) -> GeneratedImage:
        """Generate one image."""


class VideoGenerationClient(Protocol):
    """Client for a video generation API."""

    async def generate_video(self, request: VideoGenerationRequest) -> GeneratedVideo:
        """Generate one video."""


ProgressCallback = Callable[[str, int], None]


def _ignore_progress(step: str, percent: int) -> None:
    return None


@dataclass
class OutcomeContext:
    """Everything an executor receives for one job run."""

    job: JobRecord
    snapshot: JobSnapshot
    storage: MediaStorage
    report_progress: ProgressCallback = field(default=_ignore_progress)
    started_monotonic: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_monotonic) * 1000)

    def output_path(self, name: str, extension: str) -> str:
        return (
            f"projects/{self.job.project_id}/sessions/{self.job.session_id}"
            f"/outputs/{self.job.id}/{name}.{extension}"
        )

    @property
    def output_asset_id(self) -> str:
        return f"{self.job.session_id}-output"


class OutcomeExecutor(Protocol):
    """Produces the final media for one outcome type."""

    async def execute(self, context: OutcomeContext) -> MediaOutput:
        """Run the outcome and return the stored result."""


@dataclass
class OutcomeExecutorRegistry:
    """Single dispatch point from snapshot type to executor."""

    executors: dict[ExperienceType, OutcomeExecutor] = field(default_factory=dict)

    def register(self, outcome_type: ExperienceType, executor: OutcomeExecutor) -> None:
        self.executors[outcome_type] = executor

    def select(self, snapshot: JobSnapshot) -> OutcomeExecutor:
        """Return the executor for the snapshot type.

        Raises ConfigurationError for unregistered types and for snapshots that
        carry no active configuration.
        """
        executor = self.executors.get(snapshot.type)
        if executor is None:
            raise ConfigurationError(f"No outcome executor for type {snapshot.type}")
        if snapshot.active_config is None:
            raise ConfigurationError(f"Snapshot has no {snapshot.type} configuration")
        return executor


def capture_media(snapshot: JobSnapshot, capture_step_id: str) -> MediaReference:
    """Return the first media item captured by the bound step."""
    if not capture_step_id:
        raise ConfigurationError("No capture step is bound")
    response = snapshot.find_response(capture_step_id)
    if response is None:
        raise ConfigurationError(f"Capture step not found: {capture_step_id}")
    refs = response.media_references()
    if not refs:
        raise ConfigurationError(f"Capture step has no media: {response.step_name}")
    return refs[0]


async def store_image_output(
    context: OutcomeContext, content: bytes, content_type: str, extension: str
) -> MediaOutput:
    """Upload an image result with its thumbnail and describe it."""
    dimensions = media.image_dimensions(content)
    thumbnail = media.make_thumbnail(content)
    stored = await asyncio.to_thread(
        context.storage.upload,
        context.output_path("output", extension),
        content,
        content_type,
    )
    stored_thumbnail = await asyncio.to_thread(
        context.storage.upload,
        context.output_path("thumb", "jpg"),
        thumbnail,
        "image/jpeg",
    )
    return MediaOutput(
        asset_id=context.output_asset_id,
        url=stored.url,
        storage_path=stored.storage_path,
        format=MediaFormat.IMAGE,
        dimensions=dimensions,
        size_bytes=len(content),
        processing_time_ms=context.elapsed_ms(),
        thumbnail_url=stored_thumbnail.url,
    )
