"""Verification gateway selection.

Builds the gateway adapter configured for the environment.
No polling logic here - only gateway construction.
"""

import logging

from bookflow.config import Settings, settings
from bookflow.gateways.base import GatewayType, VerificationGateway
from bookflow.gateways.http_gateway import HttpVerificationGateway
from bookflow.gateways.static import StaticGateway

logger = logging.getLogger(__name__)


def _assert_real_gateway_in_production(gateway_type: GatewayType, config: Settings) -> None:
    """Block the static gateway in production.

    Raises:
        RuntimeError: If the static gateway is configured in production
    """
    if gateway_type == GatewayType.STATIC and config.environment == "production":
        raise RuntimeError(
            "Cannot use the static verification gateway in production. "
            "Set VERIFICATION_GATEWAY=http."
        )


def create_verification_gateway(config: Settings | None = None) -> VerificationGateway:
    """Create the verification gateway selected in settings."""
    config = config or settings
    try:
        gateway_type = GatewayType(config.verification_gateway)
    except ValueError:
        gateway_type = GatewayType.HTTP

    _assert_real_gateway_in_production(gateway_type, config)

    if gateway_type == GatewayType.STATIC:
        logger.warning(
            f"Using static verification gateway with script {config.static_gateway_statuses}"
        )
        return StaticGateway(config.static_gateway_statuses)

    return HttpVerificationGateway(
        base_url=config.payment_api_base_url,
        timeout=config.payment_api_timeout_seconds,
    )
