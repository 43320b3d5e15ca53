"""Domain models for transform jobs."""

from dataclasses import dataclass, field
from enum import StrEnum

import pydantic

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import (
    CONFIG_MODEL_BY_TYPE,
    ExperienceType,
    OutputConfig,
)
from booth_pipeline.domain.sessions import StepResponse


class JobStatus(StrEnum):
    """Lifecycle state of a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)

# Allowed source statuses for each target status.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.RUNNING: frozenset({JobStatus.PENDING}),
    JobStatus.COMPLETED: frozenset({JobStatus.RUNNING}),
    JobStatus.FAILED: frozenset({JobStatus.PENDING, JobStatus.RUNNING}),
    JobStatus.CANCELLED: frozenset({JobStatus.PENDING, JobStatus.RUNNING}),
}


class MediaFormat(StrEnum):
    IMAGE = "image"
    GIF = "gif"
    VIDEO = "video"


@dataclass(frozen=True)
class JobProgress:
    """Progress indicator shown to the guest while a job runs."""

    step: str
    percent: int
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {"step": self.step, "percent": self.percent, "message": self.message}

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "JobProgress":
        return cls(
            step=str(raw.get("step") or ""),
            percent=int(raw.get("percent") or 0),
            message=raw.get("message"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int


@dataclass(frozen=True)
class MediaOutput:
    """Finished media artifact produced by an outcome executor."""

    asset_id: str
    url: str
    storage_path: str
    format: MediaFormat
    dimensions: Dimensions
    size_bytes: int
    processing_time_ms: int
    thumbnail_url: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "assetId": self.asset_id,
            "url": self.url,
            "storagePath": self.storage_path,
            "format": self.format.value,
            "dimensions": {
                "width": self.dimensions.width,
                "height": self.dimensions.height,
            },
            "sizeBytes": self.size_bytes,
            "processingTimeMs": self.processing_time_ms,
            "thumbnailUrl": self.thumbnail_url,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "MediaOutput":
        dimensions = raw.get("dimensions") or {}
        if not isinstance(dimensions, dict):
            dimensions = {}
        return cls(
            asset_id=str(raw["assetId"]),
            url=str(raw["url"]),
            storage_path=str(raw.get("storagePath") or ""),
            format=MediaFormat(str(raw["format"])),
            dimensions=Dimensions(
                width=int(dimensions.get("width", 0)),
                height=int(dimensions.get("height", 0)),
            ),
            size_bytes=int(raw.get("sizeBytes") or 0),
            processing_time_ms=int(raw.get("processingTimeMs") or 0),
            thumbnail_url=raw.get("thumbnailUrl"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class ErrorRecord:
    """Terminal error written on a failed job."""

    code: str
    message: str
    is_retryable: bool
    timestamp: int
    step: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "step": self.step,
            "isRetryable": self.is_retryable,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "ErrorRecord":
        return cls(
            code=str(raw["code"]),
            message=str(raw.get("message") or ""),
            step=raw.get("step"),  # type: ignore[arg-type]
            is_retryable=bool(raw.get("isRetryable")),
            timestamp=int(raw.get("timestamp") or 0),
        )


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable copy of a job's inputs, taken once at job creation."""

    type: ExperienceType
    experience_version: int
    active_config: OutputConfig | None
    responses: tuple[StepResponse, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "experienceVersion": self.experience_version,
            "activeConfig": (
                self.active_config.model_dump(by_alias=True, mode="json")
                if self.active_config is not None
                else None
            ),
            "responses": [response.to_dict() for response in self.responses],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "JobSnapshot":
        snapshot_type = ExperienceType(str(raw["type"]))
        raw_config = raw.get("activeConfig")
        model = CONFIG_MODEL_BY_TYPE.get(snapshot_type)
        active_config: OutputConfig | None = None
        if model is not None and isinstance(raw_config, dict):
            try:
                active_config = model.model_validate(raw_config)
            except pydantic.ValidationError as exc:
                raise ConfigurationError(
                    f"Stored snapshot has an invalid {snapshot_type} configuration"
                ) from exc
        raw_responses = raw.get("responses") or []
        responses = tuple(
            StepResponse.from_dict(item)
            for item in raw_responses  # type: ignore[union-attr]
            if isinstance(item, dict)
        )
        return cls(
            type=snapshot_type,
            experience_version=int(raw.get("experienceVersion") or 1),
            active_config=active_config,
            responses=responses,
        )

    def find_response(self, step_id: str) -> StepResponse | None:
        for response in self.responses:
            if response.step_id == step_id:
                return response
        return None


@dataclass(frozen=True)
class JobRecord:
    """Represents a persisted transform job."""

    id: str
    project_id: str
    session_id: str
    experience_id: str
    status: JobStatus
    snapshot: JobSnapshot
    created_at: int
    updated_at: int
    progress: JobProgress | None = None
    output: MediaOutput | None = None
    error: ErrorRecord | None = None
    started_at: int | None = None
    completed_at: int | None = None
