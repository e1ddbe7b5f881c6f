"""Step topology for every booking service.

One table describes, per service, the ordered steps, the URL template of each
step and the data a step needs before it can be entered. The router, the
navigation guard and the next/previous helpers all read from it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

RESOURCE_PLACEHOLDER = "{resource_id}"


class Service(str, Enum):
    """Supported booking services."""

    LODGING = "lodging"
    VEHICLE_RENTAL = "vehicle-rental"
    VISA = "visa"
    INSURANCE = "insurance"


class Step(str, Enum):
    """Booking steps across all services."""

    SEARCH = "search"
    DETAILS = "details"
    GUESTS = "guests"
    CONTACT = "contact"
    START = "start"
    PERSONAL = "personal"
    PASSPORT = "passport"
    APPOINTMENT = "appointment"
    PLANS = "plans"
    TRIP_DETAILS = "trip-details"
    TRAVELERS = "travelers"
    REVIEW = "review"
    PAYMENT = "payment"
    SUCCESS = "success"


def is_present(value: Any) -> bool:
    """A field counts as filled when it is not None and not an empty container."""
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


_VALID_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_id(value: str | None) -> bool:
    """Validate a resource id segment."""
    return bool(value) and _VALID_ID.match(value) is not None


@dataclass(frozen=True)
class StepDefinition:
    """A single step: where it lives and what it needs."""

    step: Step
    template: str
    requires: tuple[str, ...] = ()
    expects: tuple[tuple[str, Any], ...] = ()

    @property
    def requires_resource(self) -> bool:
        return RESOURCE_PLACEHOLDER in self.template

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(part for part in self.template.split("/") if part)

    def is_satisfied(self, data: Mapping[str, Any], resource_id: str | None = None) -> bool:
        """Check the step's completeness predicate against booking data."""
        if self.requires_resource and not resource_id:
            return False
        if not all(is_present(data.get(field)) for field in self.requires):
            return False
        return all(data.get(field) == value for field, value in self.expects)

    def build_url(self, resource_id: str | None = None) -> str | None:
        if self.requires_resource:
            if not is_valid_id(resource_id):
                return None
            return self.template.replace(RESOURCE_PLACEHOLDER, resource_id)
        return self.template


@dataclass(frozen=True)
class ServiceFlow:
    """Ordered steps of one service."""

    service: Service
    steps: tuple[StepDefinition, ...]
    aliases: tuple[str, ...] = ()

    @property
    def root_path(self) -> str:
        return f"/{self.service.value}"

    @property
    def prefixes(self) -> tuple[str, ...]:
        return (self.service.value, *self.aliases)

    @property
    def order(self) -> tuple[Step, ...]:
        return tuple(definition.step for definition in self.steps)

    @property
    def entry_step(self) -> Step:
        return self.steps[0].step

    @property
    def resource_scoped(self) -> bool:
        return any(definition.requires_resource for definition in self.steps)

    def definition(self, step: Step | str) -> StepDefinition | None:
        for definition in self.steps:
            if definition.step == step:
                return definition
        return None

    def index(self, step: Step | str) -> int:
        """Position of the step in the flow, -1 if it is not part of it."""
        for position, definition in enumerate(self.steps):
            if definition.step == step:
                return position
        return -1

    def next_step(self, step: Step | str) -> Step | None:
        position = self.index(step)
        if 0 <= position < len(self.steps) - 1:
            return self.steps[position + 1].step
        return None

    def previous_step(self, step: Step | str) -> Step | None:
        position = self.index(step)
        if position > 0:
            return self.steps[position - 1].step
        return None

    def progress_percentage(self, step: Step | str) -> float:
        position = self.index(step)
        if position < 0:
            return 0.0
        return (position + 1) / len(self.steps) * 100

    def is_step_accessible(self, target: Step | str, current: Step | str) -> bool:
        """Going back is always fine, going forward only one step at a time."""
        target_index = self.index(target)
        current_index = self.index(current)
        if target_index < 0 or current_index < 0:
            return False
        if target_index <= current_index:
            return True
        return target_index == current_index + 1


SERVICE_FLOWS: dict[Service, ServiceFlow] = {
    Service.LODGING: ServiceFlow(
        service=Service.LODGING,
        aliases=("hotels",),
        steps=(
            StepDefinition(Step.SEARCH, "/lodging"),
            StepDefinition(Step.DETAILS, "/lodging/{resource_id}"),
            StepDefinition(
                Step.GUESTS,
                "/lodging/{resource_id}/guests",
                requires=("search_criteria",),
            ),
            StepDefinition(
                Step.PAYMENT,
                "/lodging/{resource_id}/payment",
                requires=("search_criteria", "guests"),
            ),
            StepDefinition(
                Step.SUCCESS,
                "/lodging/{resource_id}/success",
                requires=("search_criteria", "guests", "payment_details"),
            ),
        ),
    ),
    Service.VEHICLE_RENTAL: ServiceFlow(
        service=Service.VEHICLE_RENTAL,
        aliases=("car-hire",),
        steps=(
            StepDefinition(Step.SEARCH, "/vehicle-rental"),
            StepDefinition(Step.DETAILS, "/vehicle-rental/{resource_id}"),
            StepDefinition(
                Step.CONTACT,
                "/vehicle-rental/{resource_id}/contact",
                requires=("search_criteria",),
            ),
            StepDefinition(
                Step.PAYMENT,
                "/vehicle-rental/{resource_id}/payment",
                requires=("driver_info",),
            ),
            StepDefinition(
                Step.SUCCESS,
                "/vehicle-rental/{resource_id}/success",
                requires=("driver_info", "payment_details"),
            ),
        ),
    ),
    Service.VISA: ServiceFlow(
        service=Service.VISA,
        aliases=("visa-application",),
        steps=(
            StepDefinition(Step.START, "/visa"),
            StepDefinition(Step.PERSONAL, "/visa/personal", requires=("application",)),
            StepDefinition(
                Step.PASSPORT,
                "/visa/passport",
                requires=("application", "personal"),
            ),
            StepDefinition(
                Step.APPOINTMENT,
                "/visa/appointment",
                requires=("application", "personal", "passport"),
            ),
            StepDefinition(
                Step.REVIEW,
                "/visa/review",
                requires=("personal", "passport", "appointment"),
            ),
            StepDefinition(
                Step.PAYMENT,
                "/visa/payment",
                requires=("personal", "passport", "appointment"),
            ),
            StepDefinition(
                Step.SUCCESS,
                "/visa/success",
                expects=(("status", "submitted"),),
            ),
        ),
    ),
    Service.INSURANCE: ServiceFlow(
        service=Service.INSURANCE,
        aliases=("travel-insurance",),
        steps=(
            StepDefinition(Step.PLANS, "/insurance"),
            StepDefinition(Step.TRIP_DETAILS, "/insurance/details", requires=("policy",)),
            StepDefinition(
                Step.TRAVELERS,
                "/insurance/travelers",
                requires=("policy", "trip_details"),
            ),
            StepDefinition(
                Step.REVIEW,
                "/insurance/review",
                requires=("policy", "trip_details", "travelers"),
            ),
            StepDefinition(
                Step.PAYMENT,
                "/insurance/payment",
                requires=("policy", "trip_details", "travelers"),
            ),
            StepDefinition(
                Step.SUCCESS,
                "/insurance/success",
                requires=("policy", "trip_details", "travelers", "payment_details"),
            ),
        ),
    ),
}


def get_flow(service: Service | str) -> ServiceFlow | None:
    """Look up a flow by service enum, value or legacy path alias."""
    if isinstance(service, Service):
        return SERVICE_FLOWS[service]
    for flow in SERVICE_FLOWS.values():
        if service in flow.prefixes:
            return flow
    return None


def coerce_step(service: Service | str, step: Step | str) -> Step | None:
    """Return the Step if it belongs to the service's flow."""
    flow = get_flow(service)
    if flow is None:
        return None
    try:
        candidate = Step(step)
    except ValueError:
        return None
    return candidate if flow.index(candidate) >= 0 else None


def has_required_data(
    service: Service,
    step: Step | str,
    data: Mapping[str, Any],
    resource_id: str | None = None,
) -> bool:
    """Evaluate a step's completeness predicate.

    Steps that are not part of the service's flow never pass.
    """
    definition = SERVICE_FLOWS[service].definition(step)
    if definition is None:
        return False
    return definition.is_satisfied(data, resource_id)
