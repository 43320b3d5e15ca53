"""ASGI entrypoint for the booth pipeline API."""

from booth_pipeline.api.app import create_app
from booth_pipeline.containers import build_container

app = create_app(build_container())
