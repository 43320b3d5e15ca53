"""Supabase-backed session repository."""

from dataclasses import dataclass

from supabase import Client

from booth_pipeline.domain.jobs import MediaOutput
from booth_pipeline.domain.sessions import (
    ConfigSource,
    SessionMode,
    SessionRecord,
    SessionStatus,
    StepResponse,
)
from booth_pipeline.services.sessions import SessionRepository

_SESSION_COLUMNS = (
    "id, project_id, experience_id, status, mode, config_source, responses"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for guest sessions."""

    client: Client

    def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("project_id", project_id)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return SessionRecord(
            id=row["id"],
            project_id=row["project_id"],
            experience_id=row["experience_id"],
            status=SessionStatus(row["status"]),
            mode=SessionMode(row["mode"]),
            config_source=ConfigSource(row["config_source"]),
            responses=tuple(
                StepResponse.from_dict(item) for item in row.get("responses") or []
            ),
        )

    def save_responses(
        self, project_id: str, session_id: str, responses: list[StepResponse]
    ) -> None:
        """Replace the ordered response list of a session."""
        (
            self.client.table("sessions")
            .update({"responses": [item.to_dict() for item in responses]})
            .eq("project_id", project_id)
            .eq("id", session_id)
            .execute()
        )

    def set_result_media(
        self, project_id: str, session_id: str, output: MediaOutput
    ) -> None:
        """Attach finished media to the session."""
        (
            self.client.table("sessions")
            .update({"result_media": output.to_dict()})
            .eq("project_id", project_id)
            .eq("id", session_id)
            .execute()
        )
