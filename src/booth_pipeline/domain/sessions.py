"""Domain models for guest sessions and their step responses."""

from dataclasses import dataclass, field
from enum import StrEnum

ResponseValue = str | int | float | bool | list[str] | None


class SessionStatus(StrEnum):
    """Lifecycle state of a session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    ERROR = "error"


class SessionMode(StrEnum):
    """Whether a session is an admin preview or a real guest run."""

    PREVIEW = "preview"
    GUEST = "guest"


class ConfigSource(StrEnum):
    """Which experience configuration a session runs against."""

    DRAFT = "draft"
    PUBLISHED = "published"


@dataclass(frozen=True)
class MediaReference:
    """Pointer to an asset owned by the media store."""

    asset_id: str
    url: str
    storage_path: str
    display_name: str

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "MediaReference":
        """Build a reference from a stored JSON payload."""
        asset_id = raw.get("assetId") or raw.get("mediaAssetId")
        if not asset_id:
            raise ValueError("Media reference is missing an asset id")
        return cls(
            asset_id=str(asset_id),
            url=str(raw.get("url") or ""),
            storage_path=str(raw.get("storagePath") or raw.get("filePath") or ""),
            display_name=str(raw.get("displayName") or ""),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "assetId": self.asset_id,
            "url": self.url,
            "storagePath": self.storage_path,
            "displayName": self.display_name,
        }


@dataclass(frozen=True)
class StepResponse:
    """A guest's answer or capture for a single step."""

    step_id: str
    step_name: str
    step_type: str
    value: ResponseValue
    context: object | None
    created_at: int
    updated_at: int

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "StepResponse":
        return cls(
            step_id=str(raw["stepId"]),
            step_name=str(raw.get("stepName") or ""),
            step_type=str(raw.get("stepType") or ""),
            value=raw.get("value"),  # type: ignore[arg-type]
            context=raw.get("context"),
            created_at=int(raw.get("createdAt") or 0),
            updated_at=int(raw.get("updatedAt") or 0),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "stepId": self.step_id,
            "stepName": self.step_name,
            "stepType": self.step_type,
            "value": self.value,
            "context": self.context,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def media_references(self) -> list[MediaReference]:
        """Return media references held in the response context, if any."""
        if not isinstance(self.context, list):
            return []
        refs: list[MediaReference] = []
        for entry in self.context:
            if isinstance(entry, dict) and (
                "assetId" in entry or "mediaAssetId" in entry
            ):
                refs.append(MediaReference.from_dict(entry))
        return refs


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted guest session."""

    id: str
    project_id: str
    experience_id: str
    status: SessionStatus
    mode: SessionMode
    config_source: ConfigSource
    responses: tuple[StepResponse, ...] = field(default_factory=tuple)

    def find_response(self, step_id: str) -> StepResponse | None:
        for response in self.responses:
            if response.step_id == step_id:
                return response
        return None
