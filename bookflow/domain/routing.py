"""Route parsing and canonical URL building for booking flows.

Paths map to ``(service, step, resource_id)`` using the step templates of
:mod:`bookflow.domain.step_topology`. Anything that cannot be classified
resolves to ``None`` rather than raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from bookflow.domain.step_topology import (
    RESOURCE_PLACEHOLDER,
    Service,
    ServiceFlow,
    Step,
    StepDefinition,
    get_flow,
    is_valid_id,
)


@dataclass(frozen=True)
class RouteMatch:
    """Result of classifying a path."""

    path: str
    service: Service | None = None
    step: Step | None = None
    resource_id: str | None = None

    @property
    def resolved(self) -> bool:
        return self.service is not None and self.step is not None


def _segments(path: str) -> list[str]:
    return [part for part in urlsplit(path or "").path.split("/") if part]


def _flow_for(segments: list[str]) -> ServiceFlow | None:
    if not segments:
        return None
    return get_flow(segments[0])


def _match_step(flow: ServiceFlow, segments: list[str]) -> tuple[StepDefinition, str | None] | None:
    rest = segments[1:]
    for definition in flow.steps:
        template_rest = definition.segments[1:]
        if len(template_rest) != len(rest):
            continue
        resource_id = None
        for expected, actual in zip(template_rest, rest):
            if expected == RESOURCE_PLACEHOLDER:
                resource_id = actual
            elif expected != actual:
                break
        else:
            return definition, resource_id
    return None


def get_service_type(path: str) -> Service | None:
    """Service named by the leading path segment, or None."""
    flow = _flow_for(_segments(path))
    return flow.service if flow else None


def get_booking_step(path: str) -> Step | None:
    """Step a path points at, or None for unrecognized paths."""
    segments = _segments(path)
    flow = _flow_for(segments)
    if flow is None:
        return None
    matched = _match_step(flow, segments)
    return matched[0].step if matched else None


def get_resource_id_from_route(path: str) -> str | None:
    """Resource id segment for resource-scoped services."""
    segments = _segments(path)
    flow = _flow_for(segments)
    if flow is None or not flow.resource_scoped:
        return None
    if len(segments) >= 2:
        return segments[1]
    return None


def parse_route(path: str) -> RouteMatch:
    return RouteMatch(
        path=path,
        service=get_service_type(path),
        step=get_booking_step(path),
        resource_id=get_resource_id_from_route(path),
    )


def is_booking_route(path: str) -> bool:
    """True when the path is a step past the service's entry step."""
    match = parse_route(path)
    if not match.resolved:
        return False
    return match.step != get_flow(match.service).entry_step


def get_service_root(service: Service | str) -> str:
    flow = get_flow(service)
    if flow is None:
        return "/"
    return flow.root_path


def get_step_url(service: Service | str, step: Step | str, resource_id: str | None = None) -> str:
    """Build the canonical path for a step.

    Resource-dependent steps degrade to the service root when the resource
    id is missing or not a valid id segment, as do steps outside the
    service's flow.
    """
    flow = get_flow(service)
    if flow is None:
        return "/"
    definition = flow.definition(step)
    if definition is None:
        return flow.root_path
    return definition.build_url(resource_id) or flow.root_path
