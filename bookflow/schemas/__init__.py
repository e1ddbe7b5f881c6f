"""Pydantic schemas for API validation."""

from bookflow.schemas.flow import (
    BookingDataResponse,
    NavigateRequest,
    NavigateResponse,
    RouteRequest,
    RouteResolution,
)
from bookflow.schemas.payment import (
    ActiveVerificationsResponse,
    VerificationAction,
    VerificationStart,
    VerificationStatusResponse,
)

__all__ = [
    # Flow
    "RouteRequest",
    "RouteResolution",
    "NavigateRequest",
    "NavigateResponse",
    "BookingDataResponse",
    # Payment
    "VerificationStart",
    "VerificationAction",
    "VerificationStatusResponse",
    "ActiveVerificationsResponse",
]
