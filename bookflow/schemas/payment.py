"""Payment confirmation Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, Field


class VerificationStart(BaseModel):
    """Schema for starting payment confirmation.

    The reference may arrive as ``reference`` or ``trxref`` depending on the
    gateway; when both are missing the session's stored reference is used.
    """

    service_type: str = Field(default="general", max_length=50)
    reference: str | None = Field(None, max_length=200)
    trxref: str | None = Field(None, max_length=200)
    booking_id: str | None = Field(None, max_length=200)


class VerificationAction(BaseModel):
    """Follow-up action offered to the user."""

    action: str
    label: str
    url: str | None = None


class VerificationStatusResponse(BaseModel):
    """Schema for payment confirmation status."""

    verification_id: str
    reference: str
    service_type: str
    status: str
    message: str
    actions: list[VerificationAction] = Field(default_factory=list)
    attempt_count: int | None = None
    max_attempts: int | None = None
    data: dict[str, Any] | None = None
    error: str | None = None
    redirect_to: str | None = None


class ActiveVerificationsResponse(BaseModel):
    """Schema for running verifications."""

    active: int
    verifications: list[dict[str, Any]]
