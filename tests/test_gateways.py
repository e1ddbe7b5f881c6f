"""Tests for verification gateways and gateway selection."""

import json

import httpx
import pytest

from bookflow.config import Settings
from bookflow.core.exceptions import ValidationError, VerificationGatewayError
from bookflow.domain.verification_state import VerificationStatus, classify_gateway_status
from bookflow.gateways.base import GatewayType, VerificationResult
from bookflow.gateways.http_gateway import HttpVerificationGateway, resolve_verify_path
from bookflow.gateways.static import StaticGateway
from bookflow.services.gateway_service import create_verification_gateway

BASE_URL = "http://payments.test/api/v1"


def make_gateway(handler) -> HttpVerificationGateway:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpVerificationGateway(base_url=BASE_URL, client=client)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("success", VerificationStatus.SUCCESS),
        ("SUCCESS ", VerificationStatus.SUCCESS),
        ("failed", VerificationStatus.FAILED),
        ("pending", VerificationStatus.PENDING),
        ("processing", VerificationStatus.PENDING),
        (None, VerificationStatus.PENDING),
    ],
)
def test_classify_gateway_status(raw, expected):
    assert classify_gateway_status(raw) == expected


class TestResolveVerifyPath:
    def test_service_paths(self):
        assert resolve_verify_path("lodging") == "/products/hotels/verify-payment"
        assert resolve_verify_path("vehicle-rental") == "/car-hire/verify-payment"
        assert resolve_verify_path("general") == "/payments/verify"
        assert resolve_verify_path("flights") == "/payments/verify"

    def test_booking_id_paths(self):
        assert resolve_verify_path("visa", "APP-1") == "/products/visa/APP-1/verify-payment"
        assert (
            resolve_verify_path("insurance", "POL-1")
            == "/products/travel-insurance/policy/POL-1/verify-payment"
        )

    def test_missing_booking_id(self):
        with pytest.raises(ValidationError):
            resolve_verify_path("visa")


class TestHttpVerificationGateway:
    async def test_posts_reference_and_parses_status(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(
                200,
                json={"status": "success", "data": {"bookingReference": "BK-1"}, "message": "ok"},
            )

        gateway = make_gateway(handler)
        result = await gateway.verify("PAY-1", "lodging")

        assert seen == [("/api/v1/products/hotels/verify-payment", {"reference": "PAY-1"})]
        assert result.status == VerificationStatus.SUCCESS
        assert result.data == {"bookingReference": "BK-1"}
        assert result.message == "ok"
        assert gateway.gateway_type == GatewayType.HTTP

    async def test_unknown_status_is_pending(self):
        gateway = make_gateway(lambda request: httpx.Response(200, json={"status": "queued"}))
        result = await gateway.verify("PAY-1", "general")
        assert result.status == VerificationStatus.PENDING
        assert result.data is None

    async def test_error_status_raises(self):
        gateway = make_gateway(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(VerificationGatewayError) as exc_info:
            await gateway.verify("PAY-1", "general")
        assert exc_info.value.upstream_status == 502

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(VerificationGatewayError) as exc_info:
            await gateway.verify("PAY-1", "general")
        assert exc_info.value.upstream_status is None

    async def test_non_json_response_raises(self):
        gateway = make_gateway(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(VerificationGatewayError):
            await gateway.verify("PAY-1", "general")

    async def test_non_object_response_raises(self):
        gateway = make_gateway(lambda request: httpx.Response(200, json=["success"]))
        with pytest.raises(VerificationGatewayError):
            await gateway.verify("PAY-1", "general")

    async def test_close_keeps_injected_client_open(self):
        client = httpx.AsyncClient(
            base_url=BASE_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )
        gateway = HttpVerificationGateway(base_url=BASE_URL, client=client)
        await gateway.close()
        assert not client.is_closed
        await client.aclose()


class TestStaticGateway:
    async def test_replays_script_then_repeats_last(self):
        gateway = StaticGateway(["pending", "success"])
        statuses = [(await gateway.verify("PAY-1", "visa", "APP-1")).status for _ in range(3)]
        assert statuses == [
            VerificationStatus.PENDING,
            VerificationStatus.SUCCESS,
            VerificationStatus.SUCCESS,
        ]
        assert gateway.calls[0] == ("PAY-1", "visa", "APP-1")

    async def test_success_data(self):
        result = await StaticGateway().verify("PAY-1", "lodging")
        assert result.data["bookingReference"] == "static_PAY-1"


def test_result_from_response_ignores_non_dict_data():
    result = VerificationResult.from_response("PAY-1", {"status": "success", "data": "x"})
    assert result.status == VerificationStatus.SUCCESS
    assert result.data is None
    assert result.to_dict()["status"] == "success"


class TestCreateVerificationGateway:
    def test_http_by_default(self):
        gateway = create_verification_gateway(Settings(payment_api_base_url=BASE_URL))
        assert isinstance(gateway, HttpVerificationGateway)
        assert gateway.base_url == BASE_URL

    def test_static_in_development(self):
        config = Settings(verification_gateway="static", static_gateway_statuses=["failed"])
        gateway = create_verification_gateway(config)
        assert isinstance(gateway, StaticGateway)

    def test_static_blocked_in_production(self):
        config = Settings(verification_gateway="static", environment="production")
        with pytest.raises(RuntimeError):
            create_verification_gateway(config)
