"""Base payment verification gateway interface.

Adapters only talk to the payment backend. Retry, timeout and cancellation
policy live in the poller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from bookflow.domain.verification_state import VerificationStatus, classify_gateway_status


class GatewayType(str, Enum):
    """Supported verification gateways."""

    HTTP = "http"
    STATIC = "static"


@dataclass
class VerificationResult:
    """Answer of one verification request."""

    reference: str
    status: VerificationStatus
    data: dict | None = None
    message: str | None = None
    raw_response: dict | None = None

    @classmethod
    def from_response(cls, reference: str, payload: dict) -> "VerificationResult":
        """Build a result from a ``{status, data?, message?}`` payload."""
        data = payload.get("data")
        return cls(
            reference=reference,
            status=classify_gateway_status(payload.get("status")),
            data=data if isinstance(data, dict) else None,
            message=payload.get("message"),
            raw_response=payload,
        )

    def to_dict(self) -> dict:
        return {
            "reference": self.reference,
            "status": self.status.value,
            "data": self.data,
            "message": self.message,
        }


class VerificationGateway(ABC):
    """Abstract base class for verification gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""
        pass

    @abstractmethod
    async def verify(
        self,
        reference: str,
        service_type: str,
        booking_id: str | None = None,
    ) -> VerificationResult:
        """Ask the backend for the status of a payment.

        Args:
            reference: Gateway payment reference
            service_type: Service value or "general"
            booking_id: Application/policy id for services that need one

        Returns:
            VerificationResult with the reported status

        Raises:
            VerificationGatewayError: If the backend cannot be reached or
                answers with an error status
        """
        pass

    async def close(self) -> None:
        """Release gateway resources."""
        return None
