"""Payment confirmation endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from bookflow.api.deps import get_confirmation_service, get_store
from bookflow.core.exceptions import NotFoundError
from bookflow.schemas.payment import (
    ActiveVerificationsResponse,
    VerificationStart,
    VerificationStatusResponse,
)
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.confirmation_service import ConfirmationService

router = APIRouter()


@router.post(
    "/verifications",
    response_model=VerificationStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_verification(
    request: VerificationStart,
    store: Annotated[BookingDataStore, Depends(get_store)],
    confirmation: Annotated[ConfirmationService, Depends(get_confirmation_service)],
) -> dict:
    """Start confirming a payment after the gateway redirect.

    Poll the returned verification id until the status leaves ``pending``.
    """
    query = request.model_dump(include={"reference", "trxref"}, exclude_none=True)
    return await confirmation.begin(
        store,
        request.service_type,
        query,
        booking_id=request.booking_id,
    )


@router.get("/verifications", response_model=ActiveVerificationsResponse)
async def list_verifications(
    confirmation: Annotated[ConfirmationService, Depends(get_confirmation_service)],
) -> ActiveVerificationsResponse:
    verifications = confirmation.poller.active_verifications()
    return ActiveVerificationsResponse(active=len(verifications), verifications=verifications)


@router.get("/verifications/{verification_id}", response_model=VerificationStatusResponse)
async def get_verification_status(
    verification_id: str,
    store: Annotated[BookingDataStore, Depends(get_store)],
    confirmation: Annotated[ConfirmationService, Depends(get_confirmation_service)],
    reference: Annotated[str | None, Query(max_length=200)] = None,
) -> dict:
    """Get a verification's status.

    Finished verifications are looked up by payment reference, so pass
    ``reference`` to read the outcome after polling has ended.
    """
    result = await confirmation.status(store, verification_id, reference)
    if result is None:
        raise NotFoundError("Verification", verification_id)
    return result


@router.delete("/verifications/{verification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_verification(
    verification_id: str,
    confirmation: Annotated[ConfirmationService, Depends(get_confirmation_service)],
) -> None:
    """Stop polling, e.g. when the confirmation page is left."""
    confirmation.cancel(verification_id)
