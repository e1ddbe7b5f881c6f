"""HTTP verification gateway adapter.

Posts the payment reference to the booking backend, which checks the payment
with the payment provider and answers ``{status, data?, message?}``.
"""

import logging

import httpx

from bookflow.config import settings
from bookflow.core.exceptions import ValidationError, VerificationGatewayError
from bookflow.gateways.base import GatewayType, VerificationGateway, VerificationResult

logger = logging.getLogger(__name__)

# Verification endpoint per service, relative to the backend base URL
VERIFY_ENDPOINTS: dict[str, str] = {
    "lodging": "/products/hotels/verify-payment",
    "vehicle-rental": "/car-hire/verify-payment",
    "visa": "/products/visa/{booking_id}/verify-payment",
    "insurance": "/products/travel-insurance/policy/{booking_id}/verify-payment",
    "general": "/payments/verify",
}


def resolve_verify_path(service_type: str, booking_id: str | None = None) -> str:
    """Endpoint path for a service.

    Raises:
        ValidationError: If the endpoint needs a booking id that was not
            supplied
    """
    template = VERIFY_ENDPOINTS.get(service_type, VERIFY_ENDPOINTS["general"])
    if "{booking_id}" in template:
        if not booking_id:
            raise ValidationError(
                f"{service_type} payment verification requires a booking id"
            )
        return template.format(booking_id=booking_id)
    return template


class HttpVerificationGateway(VerificationGateway):
    """Verification gateway over the booking backend's REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.payment_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.payment_api_timeout_seconds
        self._client = client
        self._owns_client = client is None

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.HTTP

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def verify(
        self,
        reference: str,
        service_type: str,
        booking_id: str | None = None,
    ) -> VerificationResult:
        """Verify a payment via the backend."""
        path = resolve_verify_path(service_type, booking_id)
        client = self._get_client()

        try:
            response = await client.post(path, json={"reference": reference})
        except httpx.HTTPError as e:
            logger.warning(f"Verification request for {reference} failed: {e!r}")
            raise VerificationGatewayError(str(e) or e.__class__.__name__)

        if response.status_code >= 400:
            raise VerificationGatewayError(
                f"API returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            raise VerificationGatewayError("API returned a non-JSON response")

        if not isinstance(payload, dict):
            raise VerificationGatewayError("API returned an unexpected payload")

        return VerificationResult.from_response(reference, payload)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
