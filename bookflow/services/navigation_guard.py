"""Navigation guard for booking flows.

The guard decides whether the step a route points at may be shown given the
booking data collected so far, and redirects to the furthest reachable step
when it may not. It never raises: every failure mode ends in a no-op or a
single redirect.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from bookflow.domain.routing import (
    get_service_root,
    get_step_url,
    is_valid_id,
    parse_route,
)
from bookflow.domain.step_topology import Service, ServiceFlow, Step, get_flow
from bookflow.services.booking_store import BookingDataStore

logger = logging.getLogger(__name__)

NavigationBlockedCallback = Callable[[Step, Step | None], None]


class Navigator(ABC):
    """Where the guard sends the user."""

    @abstractmethod
    def push(self, url: str) -> None:
        """Navigate forward, keeping history."""
        pass

    @abstractmethod
    def replace(self, url: str) -> None:
        """Replace the current history entry."""
        pass


class RecordingNavigator(Navigator):
    """Navigator that records requested navigations.

    Used by the HTTP layer, which returns the decision to the front end
    instead of performing it.
    """

    def __init__(self) -> None:
        self.history: list[tuple[str, str]] = []

    def push(self, url: str) -> None:
        self.history.append(("push", url))

    def replace(self, url: str) -> None:
        self.history.append(("replace", url))

    @property
    def last(self) -> tuple[str, str] | None:
        return self.history[-1] if self.history else None


class NavigationGuard:
    """Reachability checks and redirects for one route."""

    def __init__(
        self,
        path: str,
        store: BookingDataStore,
        navigator: Navigator,
        allowed_steps: Iterable[Step | str] | None = None,
        on_navigation_blocked: NavigationBlockedCallback | None = None,
        redirect_to: str | None = None,
    ) -> None:
        self.store = store
        self.navigator = navigator
        self.allowed_steps = {Step(step) for step in allowed_steps} if allowed_steps else set()
        self.on_navigation_blocked = on_navigation_blocked
        self.redirect_to = redirect_to
        self._set_path(path)

    @classmethod
    async def for_route(
        cls,
        path: str,
        store: BookingDataStore,
        navigator: Navigator,
        **options,
    ) -> "NavigationGuard":
        """Load the route's booking data, then build a guard for it."""
        service = parse_route(path).service
        if service is not None:
            await store.load(service)
        return cls(path, store, navigator, **options)

    def _set_path(self, path: str) -> None:
        self.path = path
        self.route = parse_route(path)

    @property
    def service(self) -> Service | None:
        return self.route.service

    @property
    def current_step(self) -> Step | None:
        return self.route.step

    @property
    def resource_id(self) -> str | None:
        return self.route.resource_id

    @property
    def flow(self) -> ServiceFlow | None:
        return get_flow(self.service) if self.service else None

    @property
    def fallback_url(self) -> str:
        if self.redirect_to:
            return self.redirect_to
        return get_service_root(self.service) if self.service else "/"

    def _notify_blocked(self, target: Step, current: Step | None) -> None:
        if self.on_navigation_blocked is None:
            return
        try:
            self.on_navigation_blocked(target, current)
        except Exception:
            logger.exception(f"Navigation-blocked callback failed for {target.value}")

    def _go(self, url: str, replace: bool = False) -> None:
        try:
            if replace:
                self.navigator.replace(url)
            else:
                self.navigator.push(url)
        except Exception:
            logger.exception(f"Navigator failed to open {url}")

    # ==================== CHECKS ====================

    def can_navigate_to_step(self, step: Step | str) -> bool:
        """Whether the step may be entered with the current booking data."""
        flow = self.flow
        if flow is None:
            return False
        if flow.index(step) < 0:
            return False
        if step == flow.entry_step:
            return True
        if self.allowed_steps and Step(step) not in self.allowed_steps:
            return False
        return self.store.has_required_data_for_step(step, flow.service, self.resource_id)

    def find_last_accessible_step(self) -> Step | None:
        """Furthest step in the flow that can currently be entered."""
        flow = self.flow
        if flow is None:
            return None
        for step in reversed(flow.order):
            if self.can_navigate_to_step(step):
                return step
        return None

    def get_step_url(self, step: Step | str) -> str:
        if self.service is None:
            return self.fallback_url
        return get_step_url(self.service, step, self.resource_id)

    def progress(self) -> float:
        if self.flow is None or self.current_step is None:
            return 0.0
        return self.flow.progress_percentage(self.current_step)

    # ==================== ROUTE VALIDATION ====================

    def validate_route(self) -> str | None:
        """Redirect away from the current route if it cannot be shown.

        Returns the redirect target, or None when the route is fine or
        cannot be classified.
        """
        service, step = self.service, self.current_step
        if service is None or step is None:
            return None

        if self.resource_id is not None and not is_valid_id(self.resource_id):
            logger.info(f"Invalid resource id in {self.path}, redirecting to service root")
            target = get_service_root(service)
            self._go(target, replace=True)
            return target

        if self.can_navigate_to_step(step):
            return None

        self._notify_blocked(step, step)
        accessible = self.find_last_accessible_step()
        target = self.get_step_url(accessible) if accessible else self.fallback_url
        logger.info(f"Step {step.value} of {service.value} not reachable, redirecting to {target}")
        self._go(target, replace=True)
        return target

    async def on_route_change(self, path: str) -> str | None:
        """Re-resolve the route, reload its service's data and validate it."""
        self._set_path(path)
        if self.service is not None:
            await self.store.load(self.service)
        return self.validate_route()

    # ==================== NAVIGATION ====================

    def navigate_to_step(self, step: Step | str, force: bool = False) -> bool:
        """Open a step, checking reachability unless forced."""
        flow = self.flow
        if flow is None or flow.index(step) < 0:
            return False
        step = Step(step)
        if not force and not self.can_navigate_to_step(step):
            self._notify_blocked(step, self.current_step)
            return False
        self._go(self.get_step_url(step))
        return True

    def navigate_to_next_step(self) -> bool:
        if self.flow is None or self.current_step is None:
            return False
        next_step = self.flow.next_step(self.current_step)
        if next_step is None:
            return False
        return self.navigate_to_step(next_step)

    def navigate_to_previous_step(self) -> bool:
        """Step back one position; going back is never gated."""
        if self.flow is None or self.current_step is None:
            return False
        previous_step = self.flow.previous_step(self.current_step)
        if previous_step is None:
            return False
        return self.navigate_to_step(previous_step, force=True)

    def go_to_service_start(self) -> bool:
        if self.service is None:
            return False
        self._go(get_service_root(self.service))
        return True
