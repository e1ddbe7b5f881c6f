"""Static verification gateway for local development.

Answers from a script of statuses instead of calling a payment backend, so
the confirmation flow can be exercised without gateway credentials.
"""

from collections.abc import Iterable

from bookflow.gateways.base import GatewayType, VerificationGateway, VerificationResult
from bookflow.domain.verification_state import VerificationStatus


class StaticGateway(VerificationGateway):
    """Replays a fixed sequence of statuses.

    Once the script is exhausted the last status repeats. Requests are
    recorded in ``calls``.
    """

    def __init__(self, statuses: Iterable[str | VerificationStatus] = ("success",)) -> None:
        self._script = [VerificationStatus(status) for status in statuses] or [
            VerificationStatus.PENDING
        ]
        self.calls: list[tuple[str, str, str | None]] = []

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STATIC

    async def verify(
        self,
        reference: str,
        service_type: str,
        booking_id: str | None = None,
    ) -> VerificationResult:
        self.calls.append((reference, service_type, booking_id))
        position = min(len(self.calls), len(self._script)) - 1
        status = self._script[position]
        data = None
        if status == VerificationStatus.SUCCESS:
            data = {"bookingReference": f"static_{reference}", "serviceType": service_type}
        return VerificationResult(
            reference=reference,
            status=status,
            data=data,
            message=f"Static gateway reported {status.value}",
            raw_response={"status": status.value, "data": data},
        )
