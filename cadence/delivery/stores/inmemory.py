"""In-memory implementation of TrackingStore."""

from datetime import datetime
from typing import Any
from uuid import UUID

from cadence.delivery.models import (
    ACTIVE_STATUSES,
    DeliveryFilter,
    TrackingRecord,
    TrackingStatus,
    can_transition,
)
from cadence.delivery.store import TrackingStore


class InMemoryTrackingStore(TrackingStore):
    """In-memory implementation of TrackingStore for testing and development.

    Uses dict storage with linear scan for queries. No method awaits between
    its check and its write, so each conditional update is atomic with
    respect to other coroutines on the same event loop. Records handed out
    are copies.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._records: dict[UUID, TrackingRecord] = {}
        self.status_changes: list[tuple[UUID, TrackingStatus, TrackingStatus]] = []

    def _set_status(
        self,
        record: TrackingRecord,
        status: TrackingStatus,
        now: datetime,
        **fields: Any,
    ) -> TrackingRecord:
        if not can_transition(record.status, status):
            raise ValueError(
                f"Illegal status change {record.status.value} -> {status.value}"
            )
        self.status_changes.append((record.id, record.status, status))
        record.status = status
        record.updated_at = now
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    def _active_for(
        self, scenario_id: UUID, contact_id: UUID, step_id: UUID
    ) -> TrackingRecord | None:
        for record in self._records.values():
            if (
                record.scenario_id == scenario_id
                and record.contact_id == contact_id
                and record.step_id == step_id
                and record.status in ACTIVE_STATUSES
            ):
                return record
        return None

    async def upsert_active(self, record: TrackingRecord) -> TrackingRecord | None:
        """Create or reschedule the active record for record's triple."""
        existing = self._active_for(record.scenario_id, record.contact_id, record.step_id)
        if existing is None:
            stored = record.model_copy(deep=True)
            self._records[stored.id] = stored
            return stored.model_copy()

        if existing.status == TrackingStatus.WAITING:
            existing.scheduled_at = record.scheduled_at
            existing.next_check_at = record.next_check_at
            existing.updated_at = record.updated_at
            if record.status == TrackingStatus.READY:
                self._set_status(existing, TrackingStatus.READY, record.updated_at)

        return existing.model_copy()

    async def get(self, record_id: UUID) -> TrackingRecord | None:
        """Get a tracking record by ID."""
        record = self._records.get(record_id)
        return record.model_copy() if record else None

    async def get_status(self, record_id: UUID) -> TrackingStatus | None:
        """Get the current status of a record."""
        record = self._records.get(record_id)
        return record.status if record else None

    async def list_records(
        self,
        scenario_id: UUID | None = None,
        contact_id: UUID | None = None,
        status: TrackingStatus | None = None,
    ) -> list[TrackingRecord]:
        """List records ordered by created_at ascending."""
        results = []

        for record in self._records.values():
            if scenario_id is not None and record.scenario_id != scenario_id:
                continue
            if contact_id is not None and record.contact_id != contact_id:
                continue
            if status is not None and record.status != status:
                continue
            results.append(record.model_copy())

        results.sort(key=lambda r: r.created_at)
        return results

    async def flip_due(self, now: datetime, filters: DeliveryFilter) -> int:
        """Promote due waiting records to ready."""
        flipped = 0
        for record in self._records.values():
            if record.status != TrackingStatus.WAITING:
                continue
            if record.scheduled_at > now or not filters.matches(record):
                continue
            self._set_status(record, TrackingStatus.READY, now)
            flipped += 1
        return flipped

    def _due_ready(self, now: datetime, filters: DeliveryFilter) -> list[TrackingRecord]:
        due = [
            record
            for record in self._records.values()
            if record.status == TrackingStatus.READY
            and record.scheduled_at <= now
            and filters.matches(record)
        ]
        due.sort(key=lambda r: r.scheduled_at)
        return due

    async def claim_due(
        self,
        now: datetime,
        limit: int,
        filters: DeliveryFilter,
    ) -> list[TrackingRecord]:
        """Atomically claim due ready records."""
        claimed = []
        for record in self._due_ready(now, filters)[:limit]:
            self._set_status(record, TrackingStatus.DELIVERING, now, claimed_at=now)
            claimed.append(record.model_copy())
        return claimed

    async def claim_next_ready(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
    ) -> TrackingRecord | None:
        """Claim the earliest due ready record of one (scenario, contact)."""
        scope = DeliveryFilter(scenario_id=scenario_id, contact_ids=[contact_id])
        due = self._due_ready(now, scope)
        if not due:
            return None
        record = self._set_status(
            due[0], TrackingStatus.DELIVERING, now, claimed_at=now
        )
        return record.model_copy()

    def _transition_delivering(
        self,
        record_id: UUID,
        status: TrackingStatus,
        now: datetime,
        **fields: Any,
    ) -> bool:
        record = self._records.get(record_id)
        if record is None or record.status != TrackingStatus.DELIVERING:
            return False
        self._set_status(record, status, now, **fields)
        return True

    async def mark_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        """Move a delivering record to delivered."""
        return self._transition_delivering(
            record_id,
            TrackingStatus.DELIVERED,
            delivered_at,
            delivered_at=delivered_at,
            last_error=None,
        )

    async def mark_retry(
        self,
        record_id: UUID,
        retry_at: datetime,
        error: str,
        now: datetime,
        next_check_at: datetime | None = None,
    ) -> bool:
        """Return a delivering record to ready with a new scheduled_at."""
        record = self._records.get(record_id)
        error_count = record.error_count + 1 if record else 0
        return self._transition_delivering(
            record_id,
            TrackingStatus.READY,
            now,
            scheduled_at=retry_at,
            next_check_at=next_check_at or retry_at,
            last_error=error,
            error_count=error_count,
            claimed_at=None,
        )

    async def mark_failed(self, record_id: UUID, error: str, now: datetime) -> bool:
        """Move a delivering record to failed."""
        record = self._records.get(record_id)
        error_count = record.error_count + 1 if record else 0
        return self._transition_delivering(
            record_id,
            TrackingStatus.FAILED,
            now,
            last_error=error,
            error_count=error_count,
        )

    async def record_error(self, record_id: UUID, error: str, now: datetime) -> None:
        """Set last_error without changing status."""
        record = self._records.get(record_id)
        if record is None:
            return
        record.last_error = error
        record.error_count += 1
        record.updated_at = now

    async def exit_active(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> int:
        """Mark every active record of (scenario, contact) exited."""
        exited = 0
        for record in self._records.values():
            if record.id == exclude_id or record.status not in ACTIVE_STATUSES:
                continue
            if record.scenario_id != scenario_id or record.contact_id != contact_id:
                continue
            self._set_status(record, TrackingStatus.EXITED, now)
            exited += 1
        return exited

    async def reclaim_stale(self, claimed_before: datetime, now: datetime) -> int:
        """Return stale delivering records to ready."""
        reclaimed = 0
        for record in self._records.values():
            if record.status != TrackingStatus.DELIVERING:
                continue
            if record.claimed_at is not None and record.claimed_at >= claimed_before:
                continue
            self._set_status(
                record,
                TrackingStatus.READY,
                now,
                claimed_at=None,
                last_error="reclaimed after claim timeout",
            )
            reclaimed += 1
        return reclaimed

    async def next_waiting_due(
        self,
        horizon: datetime,
        filters: DeliveryFilter,
    ) -> datetime | None:
        """Get the earliest scheduled_at of waiting records due by horizon."""
        candidates = [
            record.scheduled_at
            for record in self._records.values()
            if record.status == TrackingStatus.WAITING
            and record.scheduled_at <= horizon
            and filters.matches(record)
        ]
        return min(candidates) if candidates else None
