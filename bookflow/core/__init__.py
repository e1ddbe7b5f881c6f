"""Core exceptions, middleware and scheduling."""

from bookflow.core.exceptions import (
    AppException,
    InvalidStepError,
    NotFoundError,
    UnknownServiceError,
    ValidationError,
    VerificationFailedError,
    VerificationGatewayError,
)
from bookflow.core.scheduler import AsyncioScheduler, ScheduledTask, Scheduler

__all__ = [
    "AppException",
    "InvalidStepError",
    "NotFoundError",
    "UnknownServiceError",
    "ValidationError",
    "VerificationFailedError",
    "VerificationGatewayError",
    "AsyncioScheduler",
    "ScheduledTask",
    "Scheduler",
]
