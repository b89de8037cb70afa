"""TrackingStore abstract interface for delivery state persistence."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from cadence.delivery.models import DeliveryFilter, TrackingRecord, TrackingStatus


class TrackingStore(ABC):
    """Abstract interface for tracking record storage.

    Every status change is a conditional write scoped by the current
    status. Methods that change status return False (or None, or 0) when
    the row was not in the expected state, which callers treat as
    "handled by someone else".
    """

    @abstractmethod
    async def upsert_active(self, record: TrackingRecord) -> TrackingRecord | None:
        """Create or reschedule the active record for record's triple.

        If no active record exists for (scenario, contact, step) the record
        is inserted. If a waiting one exists its schedule is replaced by
        record's. A ready or delivering one is left untouched.

        Args:
            record: Seeded record

        Returns:
            The active record after the write, or None if a concurrent
            writer completed it in between
        """
        pass

    @abstractmethod
    async def get(self, record_id: UUID) -> TrackingRecord | None:
        """Get a tracking record by ID."""
        pass

    @abstractmethod
    async def get_status(self, record_id: UUID) -> TrackingStatus | None:
        """Get the current status of a record."""
        pass

    @abstractmethod
    async def list_records(
        self,
        scenario_id: UUID | None = None,
        contact_id: UUID | None = None,
        status: TrackingStatus | None = None,
    ) -> list[TrackingRecord]:
        """List records ordered by created_at ascending.

        Args:
            scenario_id: Optional scenario filter
            contact_id: Optional contact filter
            status: Optional status filter

        Returns:
            Matching records
        """
        pass

    @abstractmethod
    async def flip_due(self, now: datetime, filters: DeliveryFilter) -> int:
        """Promote waiting records with scheduled_at <= now to ready.

        Returns:
            Number of records promoted
        """
        pass

    @abstractmethod
    async def claim_due(
        self,
        now: datetime,
        limit: int,
        filters: DeliveryFilter,
    ) -> list[TrackingRecord]:
        """Atomically claim due ready records.

        Ready records with scheduled_at <= now are moved to delivering in
        scheduled_at order. Concurrent callers never receive the same row.

        Args:
            now: Current time
            limit: Maximum records to claim
            filters: Row restrictions

        Returns:
            Claimed records (status delivering)
        """
        pass

    @abstractmethod
    async def claim_next_ready(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
    ) -> TrackingRecord | None:
        """Claim the earliest due ready record of one (scenario, contact)."""
        pass

    @abstractmethod
    async def mark_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        """Move a delivering record to delivered."""
        pass

    @abstractmethod
    async def mark_retry(
        self,
        record_id: UUID,
        retry_at: datetime,
        error: str,
        now: datetime,
        next_check_at: datetime | None = None,
    ) -> bool:
        """Return a delivering record to ready with a new scheduled_at."""
        pass

    @abstractmethod
    async def mark_failed(self, record_id: UUID, error: str, now: datetime) -> bool:
        """Move a delivering record to failed."""
        pass

    @abstractmethod
    async def record_error(self, record_id: UUID, error: str, now: datetime) -> None:
        """Set last_error without changing status."""
        pass

    @abstractmethod
    async def exit_active(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> int:
        """Mark every active record of (scenario, contact) exited.

        Returns:
            Number of records exited
        """
        pass

    @abstractmethod
    async def reclaim_stale(self, claimed_before: datetime, now: datetime) -> int:
        """Return delivering records claimed before claimed_before to ready.

        Returns:
            Number of records reclaimed
        """
        pass

    @abstractmethod
    async def next_waiting_due(
        self,
        horizon: datetime,
        filters: DeliveryFilter,
    ) -> datetime | None:
        """Get the earliest scheduled_at of waiting records due by horizon."""
        pass
