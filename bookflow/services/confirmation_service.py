"""Confirmation page flow.

Resolves the payment reference after a gateway redirect, runs the poller and
stores the terminal outcome so the page can pick it up, possibly after a
full reload. A successful payment completes the booking: its data and
references are cleared and the page is sent to the universal success view.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

from bookflow.config import settings
from bookflow.core.exceptions import ValidationError
from bookflow.domain.routing import get_service_root
from bookflow.domain.step_topology import Service, get_flow
from bookflow.domain.verification_state import VerificationStatus
from bookflow.gateways.base import VerificationResult
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.payment_poller import PaymentConfirmationPoller, normalize_service_type

logger = logging.getLogger(__name__)

# Gateways name the reference parameter differently
REFERENCE_QUERY_PARAMS = ("reference", "trxref")

STATUS_MESSAGES = {
    VerificationStatus.PENDING: "We're confirming your payment. This usually takes a few seconds.",
    VerificationStatus.SUCCESS: "Payment confirmed. Your booking is complete.",
    VerificationStatus.FAILED: (
        "We couldn't confirm your payment. You can try again or start a new search."
    ),
    VerificationStatus.TIMEOUT: (
        "Your payment is still processing and may already have gone through. "
        "Check your email for a confirmation before paying again, or continue anyway."
    ),
}


def extract_reference(query: Mapping[str, Any]) -> str | None:
    """Payment reference from redirect query parameters."""
    for name in REFERENCE_QUERY_PARAMS:
        value = query.get(name)
        if value:
            return str(value)
    return None


def build_success_url(reference: str, service_type: str) -> str:
    query = urlencode({"reference": reference, "service": service_type})
    return f"{settings.success_view_path}?{query}"


def describe_outcome(status: VerificationStatus, service_type: str) -> dict[str, Any]:
    """User-facing wording and follow-up actions for a verification status."""
    flow = get_flow(service_type)
    search_url = get_service_root(flow.service) if flow else "/"
    actions: list[dict[str, str]] = []
    if status == VerificationStatus.FAILED:
        actions = [
            {"action": "retry", "label": "Try again"},
            {"action": "search", "label": "Back to search", "url": search_url},
        ]
    elif status == VerificationStatus.TIMEOUT:
        actions = [
            {"action": "retry", "label": "Check again"},
            {"action": "continue", "label": "Continue anyway", "url": search_url},
        ]
    return {"message": STATUS_MESSAGES[status], "actions": actions}


class ConfirmationService:
    """Runs payment confirmation for confirmation pages."""

    def __init__(self, poller: PaymentConfirmationPoller) -> None:
        self.poller = poller

    async def resolve_reference(
        self,
        store: BookingDataStore,
        query: Mapping[str, Any],
        service: Service | None = None,
    ) -> str | None:
        """Reference from the query string, else the one stored before redirect."""
        reference = extract_reference(query)
        if reference:
            return reference
        return await store.recall_reference("payment", service)

    async def begin(
        self,
        store: BookingDataStore,
        service_type: Service | str | None,
        query: Mapping[str, Any],
        booking_id: str | None = None,
    ) -> dict[str, Any]:
        """Start confirming a payment for the session.

        Raises:
            ValidationError: If no reference is available
        """
        service_value = normalize_service_type(service_type)
        flow = get_flow(service_value)
        service = flow.service if flow else None

        reference = await self.resolve_reference(store, query, service)
        if not reference:
            raise ValidationError("No payment reference provided")

        await store.remember_reference("payment", reference, service)
        if booking_id is None:
            booking_id = await store.recall_reference("booking", service)

        async def on_success(result: VerificationResult) -> None:
            # The outcome must survive a failed cleanup
            await self._record(
                store,
                reference,
                service_value,
                VerificationStatus.SUCCESS,
                data=result.data,
                redirect_to=build_success_url(reference, service_value),
            )
            await self._complete_booking(store, service, reference)

        async def on_failure(error: Exception) -> None:
            await self._record(
                store,
                reference,
                service_value,
                VerificationStatus.FAILED,
                error=getattr(error, "detail", None) or str(error),
            )

        async def on_timeout() -> None:
            await self._record(store, reference, service_value, VerificationStatus.TIMEOUT)

        verification_id = self.poller.start(
            reference=reference,
            service_type=service_value,
            on_success=on_success,
            on_failure=on_failure,
            on_timeout=on_timeout,
            booking_id=booking_id,
        )
        return {
            "verification_id": verification_id,
            "reference": reference,
            "service_type": service_value,
            "status": VerificationStatus.PENDING.value,
            **describe_outcome(VerificationStatus.PENDING, service_value),
        }

    async def _record(
        self,
        store: BookingDataStore,
        reference: str,
        service_type: str,
        status: VerificationStatus,
        data: dict | None = None,
        error: str | None = None,
        redirect_to: str | None = None,
    ) -> None:
        outcome = {
            "reference": reference,
            "service_type": service_type,
            "status": status.value,
            "data": data,
            "error": error,
            "redirect_to": redirect_to,
            "completed_at": datetime.now(UTC).isoformat(),
        }
        await store.record_verification_outcome(reference, outcome)
        logger.info(f"Recorded {status.value} outcome for payment {reference}")

    async def _complete_booking(
        self,
        store: BookingDataStore,
        service: Service | None,
        reference: str,
    ) -> None:
        """Drop the finished booking's data and references."""
        try:
            if service is not None:
                await store.clear(service)
            await store.forget_references(service)
        except Exception:
            logger.exception(f"Cleanup after confirmed payment {reference} failed")

    async def status(
        self,
        store: BookingDataStore,
        verification_id: str,
        reference: str | None = None,
    ) -> dict[str, Any] | None:
        """Live status of a running verification, or its recorded outcome."""
        record = self.poller.get_verification(verification_id)
        if record is not None:
            return {
                **record.to_dict(),
                **describe_outcome(record.status, record.service_type),
                "data": None,
                "redirect_to": None,
            }

        if not reference:
            return None
        outcome = await store.get_verification_outcome(reference)
        if outcome is None:
            return None
        status = VerificationStatus(outcome.get("status", VerificationStatus.FAILED.value))
        return {
            "verification_id": verification_id,
            **outcome,
            **describe_outcome(status, outcome.get("service_type", "general")),
        }

    def cancel(self, verification_id: str) -> bool:
        return self.poller.stop(verification_id)
