"""Experience output configuration models.

An experience configuration carries a `type` and exactly one populated
type-specific slot. Parsing is lenient about legacy values (the `animate`
video task) but strict about stale slots left behind by a type switch.
"""

from dataclasses import dataclass
from enum import StrEnum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from booth_pipeline.domain.sessions import MediaReference

DEFAULT_IMAGE_MODEL = "gpt-image-1"
DEFAULT_VIDEO_MODEL = "google/veo-3.1-fast"
VALID_VIDEO_DURATIONS = (4, 6, 8)
MAX_VIDEO_REFERENCE_IMAGES = 2


class ExperienceType(StrEnum):
    """Kind of experience; every type but survey produces media."""

    PHOTO = "photo"
    GIF = "gif"
    VIDEO = "video"
    AI_IMAGE = "ai.image"
    AI_VIDEO = "ai.video"
    SURVEY = "survey"


class AIImageTask(StrEnum):
    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_IMAGE = "image-to-image"


class AIVideoTask(StrEnum):
    IMAGE_TO_VIDEO = "image-to-video"
    REF_IMAGES_TO_VIDEO = "ref-images-to-video"
    TRANSFORM = "transform"
    REIMAGINE = "reimagine"


_LEGACY_VIDEO_TASKS = {"animate": AIVideoTask.IMAGE_TO_VIDEO}


def _parse_media_list(value: object) -> object:
    if not isinstance(value, list):
        return value
    return [
        MediaReference.from_dict(item) if isinstance(item, dict) else item
        for item in value
    ]


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class ImageGenerationConfig(_ConfigModel):
    """Parameters for an image generation call."""

    prompt: str = ""
    model: str = DEFAULT_IMAGE_MODEL
    ref_media: list[MediaReference] = Field(default_factory=list)
    aspect_ratio: str | None = None

    @field_validator("ref_media", mode="before")
    @classmethod
    def _parse_ref_media(cls, value: object) -> object:
        return _parse_media_list(value)

    @field_serializer("ref_media")
    def _dump_ref_media(self, value: list[MediaReference]) -> list[dict[str, object]]:
        return [ref.to_dict() for ref in value]


class VideoGenerationConfig(_ConfigModel):
    """Parameters for a video generation call."""

    prompt: str = ""
    model: str = DEFAULT_VIDEO_MODEL
    duration: int = 6
    aspect_ratio: str | None = None
    ref_media: list[MediaReference] = Field(default_factory=list)

    @field_validator("ref_media", mode="before")
    @classmethod
    def _parse_ref_media(cls, value: object) -> object:
        return _parse_media_list(value)

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: object) -> int:
        """Snap any number to the nearest supported duration."""
        if not isinstance(value, int | float):
            raise ValueError("duration must be a number")
        clamped = max(4.0, min(8.0, float(value)))
        best = VALID_VIDEO_DURATIONS[0]
        for candidate in VALID_VIDEO_DURATIONS:
            if abs(candidate - clamped) <= abs(best - clamped):
                best = candidate
        return best

    @field_serializer("ref_media")
    def _dump_ref_media(self, value: list[MediaReference]) -> list[dict[str, object]]:
        return [ref.to_dict() for ref in value]


class PhotoConfig(_ConfigModel):
    """Passthrough capture with an optional overlay."""

    capture_step_id: str = ""
    aspect_ratio: str = "1:1"
    overlay: MediaReference | None = None

    @field_validator("overlay", mode="before")
    @classmethod
    def _parse_overlay(cls, value: object) -> object:
        if isinstance(value, dict):
            return MediaReference.from_dict(value)
        return value

    @field_serializer("overlay")
    def _dump_overlay(self, value: MediaReference | None) -> dict[str, object] | None:
        return value.to_dict() if value else None


class GifConfig(_ConfigModel):
    capture_step_id: str = ""
    aspect_ratio: str = "1:1"


class VideoConfig(_ConfigModel):
    capture_step_id: str = ""
    aspect_ratio: str = "9:16"


class AIImageConfig(_ConfigModel):
    """AI-generated image from a prompt and, optionally, the capture."""

    task: AIImageTask = AIImageTask.TEXT_TO_IMAGE
    capture_step_id: str | None = None
    aspect_ratio: str = "1:1"
    image_generation: ImageGenerationConfig = Field(
        default_factory=ImageGenerationConfig
    )


class AIVideoConfig(_ConfigModel):
    """AI-generated video seeded by the capture."""

    task: AIVideoTask = AIVideoTask.IMAGE_TO_VIDEO
    capture_step_id: str = ""
    aspect_ratio: str = "9:16"
    video_generation: VideoGenerationConfig = Field(
        default_factory=VideoGenerationConfig
    )

    @field_validator("task", mode="before")
    @classmethod
    def _normalize_legacy_task(cls, value: object) -> object:
        if isinstance(value, str):
            return _LEGACY_VIDEO_TASKS.get(value, value)
        return value


OutputConfig = PhotoConfig | GifConfig | VideoConfig | AIImageConfig | AIVideoConfig

SLOT_BY_TYPE: dict[ExperienceType, str] = {
    ExperienceType.PHOTO: "photo",
    ExperienceType.GIF: "gif",
    ExperienceType.VIDEO: "video",
    ExperienceType.AI_IMAGE: "ai_image",
    ExperienceType.AI_VIDEO: "ai_video",
}

CONFIG_MODEL_BY_TYPE: dict[ExperienceType, type[_ConfigModel]] = {
    ExperienceType.PHOTO: PhotoConfig,
    ExperienceType.GIF: GifConfig,
    ExperienceType.VIDEO: VideoConfig,
    ExperienceType.AI_IMAGE: AIImageConfig,
    ExperienceType.AI_VIDEO: AIVideoConfig,
}


class ExperienceConfig(_ConfigModel):
    """Type plus the single active type-specific output configuration."""

    type: ExperienceType
    photo: PhotoConfig | None = None
    gif: GifConfig | None = None
    video: VideoConfig | None = None
    ai_image: AIImageConfig | None = None
    ai_video: AIVideoConfig | None = None

    @model_validator(mode="after")
    def _single_active_slot(self) -> "ExperienceConfig":
        active = SLOT_BY_TYPE.get(self.type)
        for slot in SLOT_BY_TYPE.values():
            if slot != active and getattr(self, slot) is not None:
                raise ValueError(
                    f"Experience of type {self.type} has a stale '{slot}' config"
                )
        return self

    @property
    def active_config(self) -> OutputConfig | None:
        """Return the config slot matching `type`, if populated."""
        slot = SLOT_BY_TYPE.get(self.type)
        if slot is None:
            return None
        return getattr(self, slot)


def switch_output_type(
    config: ExperienceConfig,
    new_type: ExperienceType,
    capture_step_id: str | None = None,
) -> ExperienceConfig:
    """Return a config switched to `new_type`.

    The previous slot is cleared and the new one populated with defaults;
    `capture_step_id` binds the capture step when the new type needs one.
    """
    slots: dict[str, object] = {slot: None for slot in SLOT_BY_TYPE.values()}
    factory = CONFIG_MODEL_BY_TYPE.get(new_type)
    if factory is not None:
        defaults: dict[str, object] = {}
        if capture_step_id is not None:
            defaults["capture_step_id"] = capture_step_id
        slots[SLOT_BY_TYPE[new_type]] = factory(**defaults)
    return config.model_copy(update={"type": new_type, **slots})


@dataclass(frozen=True)
class ExperienceRecord:
    """A versioned experience configuration as read from the store."""

    id: str
    name: str
    version: int
    config: ExperienceConfig
