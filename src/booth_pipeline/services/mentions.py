"""Prompt mention resolution.

Prompts reference session data with two token families:

- ``@{step:<stepName>}`` is replaced by the step's response.
- ``@{ref:<displayName>}`` names a reference image. The image itself is
  collected for the generation request and the token becomes an
  ``[IMAGE: <displayName>]`` label.

Unknown tokens are left as written and reported as warnings; they never block
a job.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from booth_pipeline.domain.sessions import MediaReference, StepResponse

logger = logging.getLogger(__name__)

_STEP_PATTERN = re.compile(r"@\{step:([^}]+)\}")
_REF_PATTERN = re.compile(r"@\{ref:([^}]+)\}")


@dataclass(frozen=True)
class ResolvedPrompt:
    """Prompt text with mentions substituted."""

    text: str
    media_refs: list[MediaReference] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class _MediaCollector:
    refs: list[MediaReference] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)

    def add(self, ref: MediaReference) -> None:
        if ref.asset_id in self.seen:
            return
        self.seen.add(ref.asset_id)
        self.refs.append(ref)


def resolve_mentions(
    template: str,
    responses: Iterable[StepResponse],
    reference_media: Iterable[MediaReference],
) -> ResolvedPrompt:
    """Resolve step and reference mentions in a prompt template."""
    by_step_name = {response.step_name: response for response in responses}
    by_display_name: dict[str, MediaReference] = {}
    for ref in reference_media:
        by_display_name.setdefault(ref.display_name, ref)

    collector = _MediaCollector()
    warnings: list[str] = []

    # Both families are matched in a single left-to-right pass so media refs
    # keep first-occurrence order across token kinds.
    combined = re.compile(f"{_STEP_PATTERN.pattern}|{_REF_PATTERN.pattern}")

    def _replace(match: re.Match[str]) -> str:
        step_name, display_name = match.group(1), match.group(2)
        if step_name is not None:
            response = by_step_name.get(step_name)
            if response is None:
                warnings.append(f"Unknown step mention: {step_name}")
                return match.group(0)
            return _resolve_step(response, collector, warnings)
        ref = by_display_name.get(display_name)
        if ref is None:
            warnings.append(f"Unknown reference mention: {display_name}")
            return match.group(0)
        collector.add(ref)
        return f"[IMAGE: {display_name}]"

    text = combined.sub(_replace, template)
    if warnings:
        logger.warning(
            "Unresolved prompt mentions",
            extra={"warnings": warnings},
        )
    return ResolvedPrompt(text=text, media_refs=collector.refs, warnings=warnings)


def _resolve_step(
    response: StepResponse,
    collector: _MediaCollector,
    warnings: list[str],
) -> str:
    media = response.media_references()
    if media or response.step_type.startswith("capture."):
        for ref in media:
            collector.add(ref)
        return f"[IMAGE: {response.step_name}]"

    value = response.value
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(_option_fragments(value, response.context))
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, str | int | float):
        return str(value)

    warnings.append(f"Unsupported value for step {response.step_name}")
    return ""


def _option_fragments(selected: list[str], context: object | None) -> list[str]:
    """Map selected option values to their prompt fragments."""
    fragments: dict[str, str] = {}
    if isinstance(context, list):
        for option in context:
            if not isinstance(option, dict):
                continue
            fragment = option.get("promptFragment")
            if option.get("value") is not None and fragment:
                fragments[str(option["value"])] = str(fragment)
    return [fragments.get(str(value), str(value)) for value in selected]
