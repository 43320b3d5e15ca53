"""Supabase-backed experience repository."""

from dataclasses import dataclass

from pydantic import ValidationError
from supabase import Client

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import ExperienceConfig, ExperienceRecord
from booth_pipeline.domain.sessions import ConfigSource
from booth_pipeline.services.snapshots import ExperienceRepository


@dataclass
class SupabaseExperienceRepository(ExperienceRepository):
    """Reads draft and published experience configurations."""

    client: Client

    def get_experience(
        self, project_id: str, experience_id: str, source: ConfigSource
    ) -> ExperienceRecord | None:
        """Return the configuration selected by `source`, if present."""
        config_column = source.value
        version_column = f"{source.value}_version"
        response = (
            self.client.table("experiences")
            .select(f"id, name, {config_column}, {version_column}")
            .eq("project_id", project_id)
            .eq("id", experience_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        raw_config = row.get(config_column)
        if not raw_config:
            return None
        try:
            config = ExperienceConfig.model_validate(raw_config)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Experience {experience_id} has an invalid {source} configuration"
            ) from exc
        return ExperienceRecord(
            id=row["id"],
            name=row.get("name") or "",
            version=int(row.get(version_column) or 1),
            config=config,
        )

    def get_experience_name(self, project_id: str, experience_id: str) -> str | None:
        """Return the experience display name, if present."""
        response = (
            self.client.table("experiences")
            .select("name")
            .eq("project_id", project_id)
            .eq("id", experience_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("name")
