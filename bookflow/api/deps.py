"""API dependencies for sessions and shared services."""

from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Response

from bookflow.config import settings
from bookflow.core.exceptions import UnknownServiceError
from bookflow.domain.step_topology import Service, get_flow
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.confirmation_service import ConfirmationService
from bookflow.services.storage_backends import StorageBackend


async def get_session_id(request: Request, response: Response) -> str:
    """Browser session id from the session cookie, issuing one if absent."""
    session_id = request.cookies.get(settings.session_cookie_name)
    if not session_id:
        session_id = uuid4().hex
        response.set_cookie(
            settings.session_cookie_name,
            session_id,
            max_age=settings.session_cookie_max_age,
            httponly=True,
            samesite="lax",
            secure=settings.environment == "production",
        )
    return session_id


def get_storage(request: Request) -> StorageBackend:
    return request.app.state.storage


async def get_store(
    session_id: Annotated[str, Depends(get_session_id)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
) -> BookingDataStore:
    """Booking data store bound to the caller's session."""
    return BookingDataStore(storage, session_id)


def get_confirmation_service(request: Request) -> ConfirmationService:
    return request.app.state.confirmation_service


def get_service(service: str) -> Service:
    """Resolve the ``{service}`` path parameter."""
    flow = get_flow(service)
    if flow is None:
        raise UnknownServiceError(service)
    return flow.service
