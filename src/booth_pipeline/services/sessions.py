"""Guest session responses."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Protocol

from booth_pipeline.domain.errors import ValidationError
from booth_pipeline.domain.jobs import MediaOutput
from booth_pipeline.domain.sessions import ResponseValue, SessionRecord, StepResponse


class SessionRepository(Protocol):
    """Persistence interface for guest sessions."""

    def get_session(self, project_id: str, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""

    def save_responses(
        self, project_id: str, session_id: str, responses: list[StepResponse]
    ) -> None:
        """Replace the ordered response list of a session."""

    def set_result_media(
        self, project_id: str, session_id: str, output: MediaOutput
    ) -> None:
        """Attach finished media to the session for the share screen."""


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def upsert_response(
    responses: tuple[StepResponse, ...] | list[StepResponse],
    incoming: StepResponse,
) -> list[StepResponse]:
    """Insert or replace the response for `incoming.step_id`.

    A replaced response keeps its position and its original `created_at`.
    """
    updated: list[StepResponse] = []
    replaced = False
    for existing in responses:
        if existing.step_id != incoming.step_id:
            updated.append(existing)
            continue
        if not replaced:
            updated.append(replace(incoming, created_at=existing.created_at))
            replaced = True
    if not replaced:
        updated.append(incoming)
    return updated


@dataclass
class SessionService:
    """Records step responses on guest sessions."""

    repository: SessionRepository
    clock: Callable[[], int] = field(default=now_ms)

    def set_response(  # noqa: PLR0913
        self,
        project_id: str,
        session_id: str,
        step_id: str,
        step_name: str,
        step_type: str,
        value: ResponseValue,
        context: object | None = None,
    ) -> StepResponse:
        """Upsert a step response; the last write for a step wins."""
        session = self.repository.get_session(project_id, session_id)
        if session is None:
            raise ValidationError(f"Session {session_id} not found")
        timestamp = self.clock()
        incoming = StepResponse(
            step_id=step_id,
            step_name=step_name,
            step_type=step_type,
            value=value,
            context=context,
            created_at=timestamp,
            updated_at=timestamp,
        )
        responses = upsert_response(session.responses, incoming)
        self.repository.save_responses(project_id, session_id, responses)
        stored = next(item for item in responses if item.step_id == step_id)
        return stored
