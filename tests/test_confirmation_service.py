"""Tests for the confirmation page flow."""

import pytest

from bookflow.core.exceptions import ValidationError, VerificationGatewayError
from bookflow.domain.step_topology import Service
from bookflow.domain.verification_state import VerificationStatus
from bookflow.services.confirmation_service import (
    ConfirmationService,
    build_success_url,
    describe_outcome,
    extract_reference,
)
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.payment_poller import PaymentConfirmationPoller
from bookflow.services.storage_backends import MemoryStorage
from tests.conftest import ScriptedGateway


def make_service(scheduler, *script, max_attempts=10) -> tuple[ConfirmationService, ScriptedGateway]:
    gateway = ScriptedGateway(*script)
    poller = PaymentConfirmationPoller(
        gateway,
        scheduler,
        max_attempts=max_attempts,
        interval_seconds=5.0,
        retry_on_network_error=False,
    )
    return ConfirmationService(poller), gateway


def test_extract_reference():
    assert extract_reference({"reference": "PAY-1", "trxref": "PAY-2"}) == "PAY-1"
    assert extract_reference({"trxref": "PAY-2"}) == "PAY-2"
    assert extract_reference({"reference": ""}) is None
    assert extract_reference({}) is None


def test_build_success_url():
    assert build_success_url("PAY 1", "visa") == "/booking/confirmation?reference=PAY+1&service=visa"


def test_timeout_is_not_presented_as_failure():
    timeout = describe_outcome(VerificationStatus.TIMEOUT, "lodging")
    failed = describe_outcome(VerificationStatus.FAILED, "lodging")

    assert "may already have gone through" in timeout["message"]
    assert [a["action"] for a in timeout["actions"]] == ["retry", "continue"]
    assert [a["action"] for a in failed["actions"]] == ["retry", "search"]
    assert failed["actions"][1]["url"] == "/lodging"
    assert describe_outcome(VerificationStatus.SUCCESS, "general")["actions"] == []


async def test_success_completes_booking(store, scheduler):
    service, gateway = make_service(scheduler, "pending", "success")
    await store.save(Service.LODGING, {"search_criteria": {"city": "Lagos"}, "guests": [1]})
    await store.remember_reference("booking", "BK-1", Service.LODGING)

    started = await service.begin(store, "hotels", {"trxref": "PAY-1"})

    assert started["status"] == "pending"
    assert started["service_type"] == "lodging"
    assert started["reference"] == "PAY-1"
    live = await service.status(store, started["verification_id"])
    assert live["status"] == "pending"

    await scheduler.run_until_idle()

    assert gateway.calls[0] == ("PAY-1", "lodging", "BK-1")
    assert await store.load(Service.LODGING) == {}
    assert await store.recall_reference("payment", Service.LODGING) is None
    assert await store.recall_reference("booking", Service.LODGING) is None

    outcome = await service.status(store, started["verification_id"], "PAY-1")
    assert outcome["status"] == "success"
    assert outcome["data"] == {"bookingReference": "BK-PAY-1"}
    assert outcome["redirect_to"] == "/booking/confirmation?reference=PAY-1&service=lodging"


async def test_uses_stored_reference_when_query_is_empty(store, scheduler):
    service, gateway = make_service(scheduler, "success")
    await store.remember_reference("payment", "PAY-STORED", Service.VISA)

    started = await service.begin(store, Service.VISA, {}, booking_id="APP-1")
    await scheduler.run_until_idle()

    assert started["reference"] == "PAY-STORED"
    assert gateway.calls == [("PAY-STORED", "visa", "APP-1")]


async def test_missing_reference_is_rejected(store, scheduler):
    service, _ = make_service(scheduler, "success")
    with pytest.raises(ValidationError):
        await service.begin(store, "insurance", {})


async def test_failure_keeps_booking_data(store, scheduler):
    service, _ = make_service(scheduler, VerificationGatewayError("down"))
    await store.save(Service.VEHICLE_RENTAL, {"driver_info": {"name": "Ada"}})

    started = await service.begin(store, "vehicle-rental", {"reference": "PAY-9"})
    await scheduler.run_until_idle()

    outcome = await service.status(store, started["verification_id"], "PAY-9")
    assert outcome["status"] == "failed"
    assert "unavailable" in outcome["error"]
    assert [a["action"] for a in outcome["actions"]] == ["retry", "search"]
    assert (await store.load(Service.VEHICLE_RENTAL))["driver_info"] == {"name": "Ada"}
    assert await store.recall_reference("payment", Service.VEHICLE_RENTAL) == "PAY-9"


async def test_timeout_outcome(store, scheduler):
    service, _ = make_service(scheduler, "pending", max_attempts=3)

    started = await service.begin(store, None, {"reference": "PAY-T"})
    await scheduler.run_until_idle()

    outcome = await service.status(store, started["verification_id"], "PAY-T")
    assert outcome["status"] == "timeout"
    assert outcome["service_type"] == "general"


async def test_status_unknown_without_reference(store, scheduler):
    service, _ = make_service(scheduler, "pending")
    assert await service.status(store, "nope") is None
    assert await service.status(store, "nope", "PAY-X") is None


async def test_cancel_stops_polling(store, scheduler):
    service, gateway = make_service(scheduler, "pending")
    started = await service.begin(store, "visa", {"reference": "PAY-C"}, booking_id="APP-1")

    assert service.cancel(started["verification_id"])
    assert not service.cancel(started["verification_id"])
    await scheduler.run_until_idle()

    assert gateway.calls == []
    assert await store.get_verification_outcome("PAY-C") is None


class DeleteFailingStorage(MemoryStorage):
    async def delete(self, *keys: str) -> None:
        raise ConnectionError("redis down")


async def test_success_is_recorded_when_cleanup_fails(scheduler):
    store = BookingDataStore(DeleteFailingStorage(), "session-1")
    service, _ = make_service(scheduler, "success")
    await store.save(Service.LODGING, {"guests": [1]})

    started = await service.begin(store, "lodging", {"reference": "PAY-1"})
    await scheduler.run_until_idle()

    outcome = await service.status(store, started["verification_id"], "PAY-1")
    assert outcome["status"] == "success"
    assert outcome["redirect_to"] == "/booking/confirmation?reference=PAY-1&service=lodging"
