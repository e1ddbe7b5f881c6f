"""Booking flow Pydantic schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from bookflow.domain.step_topology import Service, Step


class RouteRequest(BaseModel):
    """Schema for resolving a front-end route."""

    path: str = Field(..., min_length=1, max_length=2048)
    allowed_steps: list[Step] | None = None


class RouteResolution(BaseModel):
    """Schema for the guard's decision on a route."""

    path: str
    service: Service | None
    step: Step | None
    resource_id: str | None
    allowed: bool
    redirect_to: str | None = None
    blocked_step: Step | None = None
    last_accessible_step: Step | None = None
    progress: float = 0.0


class NavigateRequest(BaseModel):
    """Schema for a navigation request from the current route."""

    path: str = Field(..., min_length=1, max_length=2048)
    direction: Literal["next", "previous", "step"] = "next"
    step: Step | None = None
    force: bool = False

    @model_validator(mode="after")
    def validate_target(self) -> "NavigateRequest":
        if self.direction == "step" and self.step is None:
            raise ValueError("step is required when direction is 'step'")
        return self


class NavigateResponse(BaseModel):
    """Schema for a navigation result."""

    navigated: bool
    location: str | None = None
    blocked_step: Step | None = None


class BookingDataResponse(BaseModel):
    """Schema for a service's booking data."""

    service: Service
    data: dict[str, Any]
    steps: dict[str, bool] = Field(
        default_factory=dict,
        description="Whether each step's data requirements are met",
    )
