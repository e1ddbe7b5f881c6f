"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnknownServiceError(NotFoundError):
    """Booking service name does not match any known flow."""

    def __init__(self, service: str) -> None:
        super().__init__("Booking service", service)


class InvalidStepError(ValidationError):
    """Step is not part of the service's booking flow."""

    def __init__(self, step: str, service: str) -> None:
        super().__init__(f"Step '{step}' is not part of the {service} booking flow")


class VerificationGatewayError(AppException):
    """Payment verification backend could not be reached or answered badly."""

    def __init__(self, detail: str | None = None, status_code: int | None = None) -> None:
        self.upstream_status = status_code
        message = "Payment verification service is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class VerificationFailedError(AppException):
    """Gateway reported the payment as failed."""

    def __init__(self, reference: str, detail: str | None = None) -> None:
        self.reference = reference
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail or "Payment verification failed",
        )
