"""Booking flow endpoints.

The front end calls these on every route change and step submission; the
guard's decision comes back as data and the front end performs the redirect.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, status

from bookflow.api.deps import get_service, get_store
from bookflow.domain.step_topology import SERVICE_FLOWS, Service, Step
from bookflow.schemas.flow import (
    BookingDataResponse,
    NavigateRequest,
    NavigateResponse,
    RouteRequest,
    RouteResolution,
)
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.navigation_guard import NavigationGuard, RecordingNavigator

router = APIRouter()


def _step_readiness(
    store: BookingDataStore, service: Service, resource_id: str | None
) -> dict[str, bool]:
    return {
        step.value: store.has_required_data_for_step(step, service, resource_id)
        for step in SERVICE_FLOWS[service].order
    }


@router.post("/resolve", response_model=RouteResolution)
async def resolve_route(
    request: RouteRequest,
    store: Annotated[BookingDataStore, Depends(get_store)],
) -> RouteResolution:
    """Validate a route and return the redirect to perform, if any."""
    blocked: list[Step] = []
    guard = await NavigationGuard.for_route(
        request.path,
        store,
        RecordingNavigator(),
        allowed_steps=request.allowed_steps,
        on_navigation_blocked=lambda target, current: blocked.append(target),
    )
    redirect_to = guard.validate_route()

    return RouteResolution(
        path=request.path,
        service=guard.service,
        step=guard.current_step,
        resource_id=guard.resource_id,
        allowed=redirect_to is None,
        redirect_to=redirect_to,
        blocked_step=blocked[0] if blocked else None,
        last_accessible_step=guard.find_last_accessible_step(),
        progress=guard.progress(),
    )


@router.post("/navigate", response_model=NavigateResponse)
async def navigate(
    request: NavigateRequest,
    store: Annotated[BookingDataStore, Depends(get_store)],
) -> NavigateResponse:
    """Move forward, back or to a given step from the current route."""
    blocked: list[Step] = []
    navigator = RecordingNavigator()
    guard = await NavigationGuard.for_route(
        request.path,
        store,
        navigator,
        on_navigation_blocked=lambda target, current: blocked.append(target),
    )

    if request.direction == "next":
        navigated = guard.navigate_to_next_step()
    elif request.direction == "previous":
        navigated = guard.navigate_to_previous_step()
    else:
        navigated = guard.navigate_to_step(request.step, force=request.force)

    return NavigateResponse(
        navigated=navigated,
        location=navigator.last[1] if navigated and navigator.last else None,
        blocked_step=blocked[0] if blocked else None,
    )


@router.get("/{service}/data", response_model=BookingDataResponse)
async def get_booking_data(
    service: Annotated[Service, Depends(get_service)],
    store: Annotated[BookingDataStore, Depends(get_store)],
    resource_id: Annotated[str | None, Query(max_length=200)] = None,
) -> BookingDataResponse:
    """Get the session's booking data for a service."""
    data = await store.load(service)
    return BookingDataResponse(
        service=service,
        data=data,
        steps=_step_readiness(store, service, resource_id),
    )


@router.patch("/{service}/data", response_model=BookingDataResponse)
async def update_booking_data(
    service: Annotated[Service, Depends(get_service)],
    store: Annotated[BookingDataStore, Depends(get_store)],
    data: Annotated[dict[str, Any], Body()],
    resource_id: Annotated[str | None, Query(max_length=200)] = None,
) -> BookingDataResponse:
    """Merge submitted step data into the session's booking data."""
    merged = await store.save(service, data)
    return BookingDataResponse(
        service=service,
        data=merged,
        steps=_step_readiness(store, service, resource_id),
    )


@router.delete("/{service}/data", status_code=status.HTTP_204_NO_CONTENT)
async def clear_booking_data(
    service: Annotated[Service, Depends(get_service)],
    store: Annotated[BookingDataStore, Depends(get_store)],
) -> None:
    """Start a new search: drop booking data and stored references."""
    await store.clear(service)
    await store.forget_references(service)
