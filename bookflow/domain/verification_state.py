"""Payment verification state machine."""

from enum import Enum

from bookflow.core.exceptions import ValidationError


class VerificationStatus(str, Enum):
    """Lifecycle of a payment confirmation poll."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


VERIFICATION_TRANSITIONS = {
    VerificationStatus.PENDING: {
        VerificationStatus.PENDING,
        VerificationStatus.SUCCESS,
        VerificationStatus.FAILED,
        VerificationStatus.TIMEOUT,
    },
    VerificationStatus.SUCCESS: set(),
    VerificationStatus.FAILED: set(),
    VerificationStatus.TIMEOUT: set(),
}


def is_terminal(status: VerificationStatus) -> bool:
    return not VERIFICATION_TRANSITIONS.get(status)


def assert_verification_transition(current: VerificationStatus, target: VerificationStatus) -> None:
    allowed = VERIFICATION_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid verification transition: {current.value} → {target.value}"
        )


def classify_gateway_status(raw_status: str | None) -> VerificationStatus:
    """Map a gateway status string onto the poller's states.

    Anything other than an explicit success or failure keeps polling.
    """
    normalized = (raw_status or "").strip().lower()
    if normalized == VerificationStatus.SUCCESS.value:
        return VerificationStatus.SUCCESS
    if normalized == VerificationStatus.FAILED.value:
        return VerificationStatus.FAILED
    return VerificationStatus.PENDING
