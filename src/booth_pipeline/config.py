"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from booth_pipeline.domain.experiences import ExperienceType

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    media_bucket: str = "media"
    openai_api_key: str
    replicate_api_token: str
    dropbox_app_key: str
    dropbox_app_secret: str
    result_page_base_url: str
    notification_placeholder_url: str
    photo_timeout_seconds: float = 30.0
    ai_image_timeout_seconds: float = 60.0
    ai_video_timeout_seconds: float = 300.0
    export_max_attempts: int = 3
    export_backoff_base_seconds: float = 30.0
    export_backoff_cap_seconds: float = 300.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def outcome_timeouts(self) -> dict[ExperienceType, float]:
        """Per-type executor deadlines in seconds."""
        return {
            ExperienceType.PHOTO: self.photo_timeout_seconds,
            ExperienceType.AI_IMAGE: self.ai_image_timeout_seconds,
            ExperienceType.AI_VIDEO: self.ai_video_timeout_seconds,
        }
