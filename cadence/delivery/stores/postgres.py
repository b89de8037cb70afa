"""PostgreSQL implementation of TrackingStore.

Uses asyncpg for async database access. Status changes are single
conditional statements; claims use FOR UPDATE SKIP LOCKED so concurrent
engine runs never receive the same row.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from cadence.db.errors import ConnectionError
from cadence.db.pool import PostgresPool
from cadence.delivery.models import DeliveryFilter, TrackingRecord, TrackingStatus
from cadence.delivery.store import TrackingStore
from cadence.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = """
    id, scenario_id, contact_id, step_id, status, scheduled_at,
    next_check_at, delivered_at, last_error, campaign_id,
    registration_source, enrolled_at, claimed_at, error_count,
    created_at, updated_at
"""

_ACTIVE_PREDICATE = "status IN ('waiting', 'ready', 'delivering')"


def _filter_clause(filters: DeliveryFilter, first_index: int) -> tuple[str, list[Any]]:
    """Build an AND-prefixed WHERE fragment for a filter.

    Args:
        filters: Row restrictions
        first_index: Positional parameter number of the first placeholder

    Returns:
        SQL fragment and its parameters
    """
    clauses: list[str] = []
    params: list[Any] = []

    if filters.scenario_id is not None:
        params.append(filters.scenario_id)
        clauses.append(f"scenario_id = ${first_index + len(params) - 1}")
    if filters.contact_ids is not None:
        params.append(list(filters.contact_ids))
        clauses.append(f"contact_id = ANY(${first_index + len(params) - 1}::uuid[])")
    if filters.updated_since is not None:
        params.append(filters.updated_since)
        clauses.append(f"updated_at >= ${first_index + len(params) - 1}")

    sql = "".join(f" AND {clause}" for clause in clauses)
    return sql, params


class PostgresTrackingStore(TrackingStore):
    """PostgreSQL implementation of TrackingStore.

    Relies on the partial unique index over active statuses created by
    the step_delivery_tracking migration.
    """

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def upsert_active(self, record: TrackingRecord) -> TrackingRecord | None:
        """Create or reschedule the active record for record's triple."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO step_delivery_tracking ({_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                            $11, $12, $13, $14, $15, $16)
                    ON CONFLICT (scenario_id, contact_id, step_id)
                        WHERE {_ACTIVE_PREDICATE}
                    DO UPDATE SET
                        status = EXCLUDED.status,
                        scheduled_at = EXCLUDED.scheduled_at,
                        next_check_at = EXCLUDED.next_check_at,
                        updated_at = EXCLUDED.updated_at
                    WHERE step_delivery_tracking.status = 'waiting'
                    RETURNING {_COLUMNS}
                    """,
                    record.id,
                    record.scenario_id,
                    record.contact_id,
                    record.step_id,
                    record.status.value,
                    record.scheduled_at,
                    record.next_check_at,
                    record.delivered_at,
                    record.last_error,
                    record.campaign_id,
                    record.registration_source,
                    record.enrolled_at,
                    record.claimed_at,
                    record.error_count,
                    record.created_at,
                    record.updated_at,
                )
                if row is None:
                    # Conflict with a ready or delivering record: keep it as is
                    row = await conn.fetchrow(
                        f"""
                        SELECT {_COLUMNS}
                        FROM step_delivery_tracking
                        WHERE scenario_id = $1 AND contact_id = $2 AND step_id = $3
                          AND {_ACTIVE_PREDICATE}
                        """,
                        record.scenario_id,
                        record.contact_id,
                        record.step_id,
                    )
                return self._row_to_record(row) if row else None
        except Exception as e:
            logger.error(
                "postgres_upsert_tracking_error",
                scenario_id=str(record.scenario_id),
                step_id=str(record.step_id),
                error=str(e),
            )
            raise ConnectionError(f"Failed to upsert tracking record: {e}", cause=e) from e

    async def get(self, record_id: UUID) -> TrackingRecord | None:
        """Get a tracking record by ID."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM step_delivery_tracking WHERE id = $1",
                    record_id,
                )
                return self._row_to_record(row) if row else None
        except Exception as e:
            logger.error("postgres_get_tracking_error", record_id=str(record_id), error=str(e))
            raise ConnectionError(f"Failed to get tracking record: {e}", cause=e) from e

    async def get_status(self, record_id: UUID) -> TrackingStatus | None:
        """Get the current status of a record."""
        try:
            async with self._pool.acquire() as conn:
                status = await conn.fetchval(
                    "SELECT status FROM step_delivery_tracking WHERE id = $1",
                    record_id,
                )
                return TrackingStatus(status) if status else None
        except Exception as e:
            logger.error(
                "postgres_get_tracking_status_error", record_id=str(record_id), error=str(e)
            )
            raise ConnectionError(f"Failed to get tracking status: {e}", cause=e) from e

    async def list_records(
        self,
        scenario_id: UUID | None = None,
        contact_id: UUID | None = None,
        status: TrackingStatus | None = None,
    ) -> list[TrackingRecord]:
        """List records ordered by created_at ascending."""
        conditions = ["TRUE"]
        params: list[Any] = []
        if scenario_id is not None:
            params.append(scenario_id)
            conditions.append(f"scenario_id = ${len(params)}")
        if contact_id is not None:
            params.append(contact_id)
            conditions.append(f"contact_id = ${len(params)}")
        if status is not None:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")
        where = " AND ".join(conditions)

        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS}
                    FROM step_delivery_tracking
                    WHERE {where}
                    ORDER BY created_at ASC
                    """,
                    *params,
                )
                return [self._row_to_record(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_tracking_error", error=str(e))
            raise ConnectionError(f"Failed to list tracking records: {e}", cause=e) from e

    async def flip_due(self, now: datetime, filters: DeliveryFilter) -> int:
        """Promote due waiting records to ready."""
        filter_sql, filter_params = _filter_clause(filters, first_index=2)
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    f"""
                    UPDATE step_delivery_tracking
                    SET status = 'ready', updated_at = $1
                    WHERE status = 'waiting' AND scheduled_at <= $1{filter_sql}
                    """,
                    now,
                    *filter_params,
                )
                return self._affected(result)
        except Exception as e:
            logger.error("postgres_flip_due_error", error=str(e))
            raise ConnectionError(f"Failed to flip waiting records: {e}", cause=e) from e

    async def claim_due(
        self,
        now: datetime,
        limit: int,
        filters: DeliveryFilter,
    ) -> list[TrackingRecord]:
        """Atomically claim due ready records."""
        filter_sql, filter_params = _filter_clause(filters, first_index=3)
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    UPDATE step_delivery_tracking
                    SET status = 'delivering', claimed_at = $1, updated_at = $1
                    WHERE id IN (
                        SELECT id FROM step_delivery_tracking
                        WHERE status = 'ready' AND scheduled_at <= $1{filter_sql}
                        ORDER BY scheduled_at ASC
                        LIMIT $2
                        FOR UPDATE SKIP LOCKED
                    )
                    AND status = 'ready'
                    RETURNING {_COLUMNS}
                    """,
                    now,
                    limit,
                    *filter_params,
                )
                records = [self._row_to_record(row) for row in rows]
                records.sort(key=lambda r: r.scheduled_at)
                return records
        except Exception as e:
            logger.error("postgres_claim_due_error", error=str(e))
            raise ConnectionError(f"Failed to claim tracking records: {e}", cause=e) from e

    async def claim_next_ready(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
    ) -> TrackingRecord | None:
        """Claim the earliest due ready record of one (scenario, contact)."""
        scope = DeliveryFilter(scenario_id=scenario_id, contact_ids=[contact_id])
        records = await self.claim_due(now, 1, scope)
        return records[0] if records else None

    async def _update_delivering(self, sql: str, *args: Any) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(sql, *args)
                return self._affected(result) == 1
        except Exception as e:
            logger.error("postgres_update_tracking_error", error=str(e))
            raise ConnectionError(f"Failed to update tracking record: {e}", cause=e) from e

    async def mark_delivered(self, record_id: UUID, delivered_at: datetime) -> bool:
        """Move a delivering record to delivered."""
        return await self._update_delivering(
            """
            UPDATE step_delivery_tracking
            SET status = 'delivered', delivered_at = $2, last_error = NULL,
                updated_at = $2
            WHERE id = $1 AND status = 'delivering'
            """,
            record_id,
            delivered_at,
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
        return await self._update_delivering(
            """
            UPDATE step_delivery_tracking
            SET status = 'ready', scheduled_at = $2, next_check_at = $3,
                last_error = $4, error_count = error_count + 1,
                claimed_at = NULL, updated_at = $5
            WHERE id = $1 AND status = 'delivering'
            """,
            record_id,
            retry_at,
            next_check_at or retry_at,
            error,
            now,
        )

    async def mark_failed(self, record_id: UUID, error: str, now: datetime) -> bool:
        """Move a delivering record to failed."""
        return await self._update_delivering(
            """
            UPDATE step_delivery_tracking
            SET status = 'failed', last_error = $2,
                error_count = error_count + 1, updated_at = $3
            WHERE id = $1 AND status = 'delivering'
            """,
            record_id,
            error,
            now,
        )

    async def record_error(self, record_id: UUID, error: str, now: datetime) -> None:
        """Set last_error without changing status."""
        await self._update_delivering(
            """
            UPDATE step_delivery_tracking
            SET last_error = $2, error_count = error_count + 1, updated_at = $3
            WHERE id = $1
            """,
            record_id,
            error,
            now,
        )

    async def exit_active(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> int:
        """Mark every active record of (scenario, contact) exited."""
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    f"""
                    UPDATE step_delivery_tracking
                    SET status = 'exited', updated_at = $3
                    WHERE scenario_id = $1 AND contact_id = $2
                      AND {_ACTIVE_PREDICATE}
                      AND ($4::uuid IS NULL OR id <> $4)
                    """,
                    scenario_id,
                    contact_id,
                    now,
                    exclude_id,
                )
                return self._affected(result)
        except Exception as e:
            logger.error(
                "postgres_exit_active_error",
                scenario_id=str(scenario_id),
                contact_id=str(contact_id),
                error=str(e),
            )
            raise ConnectionError(f"Failed to exit tracking records: {e}", cause=e) from e

    async def reclaim_stale(self, claimed_before: datetime, now: datetime) -> int:
        """Return stale delivering records to ready."""
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    """
                    UPDATE step_delivery_tracking
                    SET status = 'ready', claimed_at = NULL,
                        last_error = 'reclaimed after claim timeout', updated_at = $2
                    WHERE status = 'delivering'
                      AND (claimed_at IS NULL OR claimed_at < $1)
                    """,
                    claimed_before,
                    now,
                )
                return self._affected(result)
        except Exception as e:
            logger.error("postgres_reclaim_stale_error", error=str(e))
            raise ConnectionError(f"Failed to reclaim tracking records: {e}", cause=e) from e

    async def next_waiting_due(
        self,
        horizon: datetime,
        filters: DeliveryFilter,
    ) -> datetime | None:
        """Get the earliest scheduled_at of waiting records due by horizon."""
        filter_sql, filter_params = _filter_clause(filters, first_index=2)
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    f"""
                    SELECT MIN(scheduled_at)
                    FROM step_delivery_tracking
                    WHERE status = 'waiting' AND scheduled_at <= $1{filter_sql}
                    """,
                    horizon,
                    *filter_params,
                )
        except Exception as e:
            logger.error("postgres_next_waiting_due_error", error=str(e))
            raise ConnectionError(f"Failed to query waiting records: {e}", cause=e) from e

    @staticmethod
    def _affected(command_tag: str) -> int:
        """Parse the row count from an asyncpg command tag like 'UPDATE 3'."""
        try:
            return int(command_tag.split()[-1])
        except (ValueError, IndexError):
            return 0

    def _row_to_record(self, row: asyncpg.Record) -> TrackingRecord:
        """Convert database row to TrackingRecord model."""
        return TrackingRecord(
            id=row["id"],
            scenario_id=row["scenario_id"],
            contact_id=row["contact_id"],
            step_id=row["step_id"],
            status=TrackingStatus(row["status"]),
            scheduled_at=row["scheduled_at"],
            next_check_at=row["next_check_at"],
            delivered_at=row["delivered_at"],
            last_error=row["last_error"],
            campaign_id=row["campaign_id"],
            registration_source=row["registration_source"],
            enrolled_at=row["enrolled_at"],
            claimed_at=row["claimed_at"],
            error_count=row["error_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
