"""Request payloads accepted by the HTTP API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from booth_pipeline.domain.sessions import ResponseValue


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SetResponseRequest(_RequestModel):
    step_id: str
    step_name: str
    step_type: str
    value: ResponseValue = None
    context: object | None = None


class StartJobRequest(_RequestModel):
    session_id: str


class NotifyRequest(_RequestModel):
    email: str
