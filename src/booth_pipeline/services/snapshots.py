"""Job snapshot construction."""

from copy import deepcopy
from typing import Protocol

from booth_pipeline.domain.errors import ConfigurationError
from booth_pipeline.domain.experiences import ExperienceRecord, ExperienceType
from booth_pipeline.domain.jobs import JobSnapshot
from booth_pipeline.domain.sessions import ConfigSource, SessionRecord


class ExperienceRepository(Protocol):
    """Read access to experience configurations."""

    def get_experience(
        self, project_id: str, experience_id: str, source: ConfigSource
    ) -> ExperienceRecord | None:
        """Return the draft or published configuration of an experience."""

    def get_experience_name(self, project_id: str, experience_id: str) -> str | None:
        """Return the display name of an experience, if present."""


def build_snapshot(
    session: SessionRecord, experience: ExperienceRecord
) -> JobSnapshot:
    """Capture everything a job needs to run, independent of later edits.

    Only the active type configuration is copied; inactive slots never reach
    the job.
    """
    config = experience.config
    if config.type == ExperienceType.SURVEY:
        raise ConfigurationError(
            f"Experience {experience.id} is a survey and produces no media"
        )
    active_config = config.active_config
    if active_config is None:
        raise ConfigurationError(
            f"Experience {experience.id} has no {config.type} configuration"
        )
    return JobSnapshot(
        type=config.type,
        experience_version=experience.version,
        active_config=deepcopy(active_config),
        responses=tuple(deepcopy(session.responses)),
    )
