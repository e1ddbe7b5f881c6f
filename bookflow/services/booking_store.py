"""Per-session booking data storage.

Each service keeps one JSON record per browser session. Records are merged
additively as steps are submitted and cleared on completion or restart.
Loading never fails: missing or corrupted records read as empty.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, Literal

from bookflow.config import settings
from bookflow.core.exceptions import ValidationError
from bookflow.domain.step_topology import Service, Step, has_required_data
from bookflow.services.storage_backends import StorageBackend

logger = logging.getLogger(__name__)

BookingData = dict[str, Any]
ReferenceKind = Literal["payment", "booking"]

GENERAL_SCOPE = "general"
REFERENCE_KINDS: tuple[str, ...] = ("payment", "booking")


class BookingDataStore:
    """Booking data for one browser session."""

    def __init__(
        self,
        backend: StorageBackend,
        session_id: str,
        data_ttl: int | None = None,
        reference_ttl: int | None = None,
        key_prefix: str | None = None,
    ) -> None:
        self.backend = backend
        self.session_id = session_id
        self.data_ttl = data_ttl if data_ttl is not None else settings.booking_data_ttl_seconds
        self.reference_ttl = (
            reference_ttl if reference_ttl is not None else settings.reference_ttl_seconds
        )
        self.key_prefix = key_prefix or settings.storage_key_prefix
        self._loaded: dict[Service, BookingData] = {}

    # ==================== KEYS ====================

    def _data_key(self, service: Service) -> str:
        return f"{self.key_prefix}:{self.session_id}:booking:{service.value}"

    def _reference_key(self, kind: str, service: Service | None) -> str:
        scope = service.value if service else GENERAL_SCOPE
        return f"{self.key_prefix}:{self.session_id}:ref:{scope}:{kind}"

    def _outcome_key(self, reference: str) -> str:
        return f"{self.key_prefix}:{self.session_id}:outcome:{reference}"

    # ==================== BOOKING DATA ====================

    async def _read(self, service: Service) -> BookingData:
        raw = await self.backend.get(self._data_key(service))
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                f"Discarding corrupted booking data for {service.value} "
                f"(session {self.session_id}): {e}"
            )
            return {}
        if not isinstance(parsed, dict):
            logger.warning(
                f"Discarding non-object booking data for {service.value} "
                f"(session {self.session_id})"
            )
            return {}
        return parsed

    async def load(self, service: Service) -> BookingData:
        """Load booking data; absent or unreadable data is an empty record."""
        data = await self._read(service)
        self._loaded[service] = data
        return dict(data)

    async def save(self, service: Service, partial: BookingData) -> BookingData:
        """Merge fields into the stored record, last write wins."""
        key = self._data_key(service)
        async with self.backend.lock(key):
            current = await self._read(service)
            now = datetime.now(UTC).isoformat()
            merged = {**current, **partial, "updated_at": now}
            merged.setdefault("created_at", now)
            try:
                payload = json.dumps(merged)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Booking data must be JSON serializable: {e}")
            await self.backend.set(key, payload, ttl=self.data_ttl)
            self._loaded[service] = merged
        logger.debug(f"Saved {sorted(partial)} for {service.value} (session {self.session_id})")
        return dict(merged)

    async def clear(self, service: Service) -> None:
        """Remove the service's booking data."""
        await self.backend.delete(self._data_key(service))
        self._loaded[service] = {}
        logger.info(f"Cleared {service.value} booking data (session {self.session_id})")

    def snapshot(self, service: Service) -> BookingData:
        """Most recently loaded or saved data for the service."""
        return dict(self._loaded.get(service, {}))

    def has_required_data_for_step(
        self,
        step: Step | str,
        service: Service,
        resource_id: str | None = None,
    ) -> bool:
        """Check the step's completeness predicate against loaded data."""
        return has_required_data(service, step, self._loaded.get(service, {}), resource_id)

    # ==================== REFERENCES ====================

    async def remember_reference(
        self,
        kind: ReferenceKind,
        reference: str,
        service: Service | None = None,
    ) -> None:
        """Keep a payment/booking reference across a gateway round trip."""
        await self.backend.set(
            self._reference_key(kind, service),
            reference,
            ttl=self.reference_ttl,
        )

    async def recall_reference(
        self,
        kind: ReferenceKind,
        service: Service | None = None,
    ) -> str | None:
        return await self.backend.get(self._reference_key(kind, service))

    async def forget_references(self, service: Service | None = None) -> None:
        await self.backend.delete(
            *(self._reference_key(kind, service) for kind in REFERENCE_KINDS)
        )

    # ==================== VERIFICATION OUTCOMES ====================

    async def record_verification_outcome(self, reference: str, outcome: dict[str, Any]) -> None:
        await self.backend.set(
            self._outcome_key(reference),
            json.dumps(outcome, default=str),
            ttl=self.reference_ttl,
        )

    async def get_verification_outcome(self, reference: str) -> dict[str, Any] | None:
        raw = await self.backend.get(self._outcome_key(reference))
        if not raw:
            return None
        try:
            outcome = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding corrupted verification outcome for {reference}")
            return None
        return outcome if isinstance(outcome, dict) else None
