"""Payment confirmation polling.

After a payment the confirmation page starts a verification for the payment
reference. The poller asks the gateway until it reports success or failure,
or until the attempt budget runs out (timeout). Each verification has at
most one request in flight and exactly one terminal callback.

Timeout is not failure: the payment may still have gone through, and callers
should say so instead of showing an error.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from typing import Any
from uuid import uuid4

from bookflow.config import settings
from bookflow.core.exceptions import ValidationError, VerificationFailedError, VerificationGatewayError
from bookflow.core.scheduler import AsyncioScheduler, ScheduledTask, Scheduler
from bookflow.domain.step_topology import Service, get_flow
from bookflow.domain.verification_state import VerificationStatus, assert_verification_transition
from bookflow.gateways.base import VerificationGateway, VerificationResult

logger = logging.getLogger(__name__)

GENERAL_SERVICE_TYPE = "general"

SuccessCallback = Callable[[VerificationResult], Any]
FailureCallback = Callable[[Exception], Any]
TimeoutCallback = Callable[[], Any]


def normalize_service_type(service_type: Service | str | None) -> str:
    """Service value for known services, "general" for everything else."""
    if isinstance(service_type, Service):
        return service_type.value
    flow = get_flow(service_type) if service_type else None
    return flow.service.value if flow else GENERAL_SERVICE_TYPE


@dataclass
class PaymentVerification:
    """One running confirmation poll."""

    verification_id: str
    reference: str
    service_type: str
    max_attempts: int
    interval_seconds: float
    booking_id: str | None = None
    status: VerificationStatus = VerificationStatus.PENDING
    attempt_count: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_checked_at: datetime | None = None
    result: VerificationResult | None = None
    error: str | None = None
    on_success: SuccessCallback | None = field(default=None, repr=False)
    on_failure: FailureCallback | None = field(default=None, repr=False)
    on_timeout: TimeoutCallback | None = field(default=None, repr=False)
    handle: ScheduledTask | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "verification_id": self.verification_id,
            "reference": self.reference,
            "service_type": self.service_type,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "max_attempts": self.max_attempts,
            "interval_seconds": self.interval_seconds,
            "started_at": self.started_at.isoformat(),
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "error": self.error,
        }


class PaymentConfirmationPoller:
    """Registry of running verifications and their scheduled retries."""

    def __init__(
        self,
        gateway: VerificationGateway,
        scheduler: Scheduler | None = None,
        max_attempts: int | None = None,
        interval_seconds: float | None = None,
        retry_on_network_error: bool | None = None,
    ) -> None:
        self.gateway = gateway
        self.scheduler = scheduler or AsyncioScheduler()
        self.max_attempts = max_attempts or settings.verification_max_attempts
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.verification_interval_seconds
        )
        self.retry_on_network_error = (
            retry_on_network_error
            if retry_on_network_error is not None
            else settings.verification_retry_on_network_error
        )
        self._verifications: dict[str, PaymentVerification] = {}

    # ==================== LIFECYCLE ====================

    def start(
        self,
        reference: str,
        service_type: Service | str | None = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_timeout: TimeoutCallback | None = None,
        booking_id: str | None = None,
        max_attempts: int | None = None,
        interval_seconds: float | None = None,
    ) -> str:
        """Start polling for a payment reference.

        The first request goes out right away; the returned id can be passed
        to :meth:`stop`.
        """
        if not reference:
            raise ValidationError("Payment reference is required")

        service_value = normalize_service_type(service_type)
        verification_id = f"{service_value}-{reference}-{uuid4().hex[:12]}"
        record = PaymentVerification(
            verification_id=verification_id,
            reference=reference,
            service_type=service_value,
            booking_id=booking_id,
            max_attempts=max_attempts or self.max_attempts,
            interval_seconds=(
                interval_seconds if interval_seconds is not None else self.interval_seconds
            ),
            on_success=on_success,
            on_failure=on_failure,
            on_timeout=on_timeout,
        )
        self._verifications[verification_id] = record
        record.handle = self.scheduler.call_later(0, partial(self._attempt, verification_id))

        logger.info(
            f"Started payment verification {verification_id} "
            f"(max_attempts={record.max_attempts}, interval={record.interval_seconds}s)"
        )
        return verification_id

    def stop(self, verification_id: str) -> bool:
        """Stop a verification without firing any callback.

        Returns False when it was not running (already stopped or finished).
        """
        record = self._verifications.pop(verification_id, None)
        if record is None:
            return False
        if record.handle is not None:
            record.handle.cancel()
            record.handle = None
        logger.info(f"Stopped payment verification {verification_id}")
        return True

    def stop_all(self) -> int:
        stopped = 0
        for verification_id in list(self._verifications):
            if self.stop(verification_id):
                stopped += 1
        return stopped

    # ==================== INSPECTION ====================

    def get_verification(self, verification_id: str) -> PaymentVerification | None:
        return self._verifications.get(verification_id)

    def is_verifying(self, verification_id: str) -> bool:
        return verification_id in self._verifications

    def active_verifications(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._verifications.values()]

    async def verify_once(
        self,
        reference: str,
        service_type: Service | str | None = None,
        booking_id: str | None = None,
    ) -> VerificationResult:
        """Single check without polling; gateway errors propagate."""
        return await self.gateway.verify(
            reference, normalize_service_type(service_type), booking_id
        )

    # ==================== POLLING ====================

    def _is_live(self, record: PaymentVerification) -> bool:
        return self._verifications.get(record.verification_id) is record

    async def _attempt(self, verification_id: str) -> None:
        record = self._verifications.get(verification_id)
        if record is None:
            return
        record.handle = None

        try:
            result = await self.gateway.verify(
                record.reference, record.service_type, record.booking_id
            )
        except Exception as e:
            if not self._is_live(record):
                return
            record.attempt_count += 1
            record.last_checked_at = datetime.now(UTC)
            if self.retry_on_network_error and self._is_transient(e):
                logger.warning(
                    f"Verification {verification_id} attempt {record.attempt_count} "
                    f"hit a transient error, will retry: {e}"
                )
                await self._retry_or_timeout(record)
                return
            logger.error(f"Verification {verification_id} failed with error: {e!r}")
            await self._finish(record, VerificationStatus.FAILED, error=e)
            return

        if not self._is_live(record):
            logger.debug(f"Ignoring response for stopped verification {verification_id}")
            return

        record.attempt_count += 1
        record.last_checked_at = datetime.now(UTC)

        if result.status == VerificationStatus.SUCCESS:
            await self._finish(record, VerificationStatus.SUCCESS, result=result)
        elif result.status == VerificationStatus.FAILED:
            error = VerificationFailedError(record.reference, result.message)
            await self._finish(record, VerificationStatus.FAILED, result=result, error=error)
        else:
            logger.debug(
                f"Payment {record.reference} still pending "
                f"({record.attempt_count}/{record.max_attempts})"
            )
            await self._retry_or_timeout(record)

    @staticmethod
    def _is_transient(error: Exception) -> bool:
        if not isinstance(error, VerificationGatewayError):
            return False
        return error.upstream_status is None or error.upstream_status >= 500

    async def _retry_or_timeout(self, record: PaymentVerification) -> None:
        if record.attempt_count < record.max_attempts:
            record.handle = self.scheduler.call_later(
                record.interval_seconds,
                partial(self._attempt, record.verification_id),
            )
            return
        await self._finish(record, VerificationStatus.TIMEOUT)

    async def _finish(
        self,
        record: PaymentVerification,
        status: VerificationStatus,
        result: VerificationResult | None = None,
        error: Exception | None = None,
    ) -> None:
        assert_verification_transition(record.status, status)
        self._verifications.pop(record.verification_id, None)
        if record.handle is not None:
            record.handle.cancel()
            record.handle = None

        record.status = status
        record.result = result
        if error is not None:
            record.error = getattr(error, "detail", None) or str(error) or error.__class__.__name__

        logger.info(
            f"Payment verification {record.verification_id} finished: {status.value} "
            f"after {record.attempt_count} attempt(s)"
        )

        if status == VerificationStatus.SUCCESS:
            await self._invoke(record.on_success, result)
        elif status == VerificationStatus.FAILED:
            await self._invoke(record.on_failure, error or VerificationFailedError(record.reference))
        else:
            await self._invoke(record.on_timeout)

    async def _invoke(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            outcome = callback(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Payment verification callback raised")
