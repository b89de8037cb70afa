"""PostgreSQL implementations of the catalog interfaces.

Uses asyncpg for async database access. Step policies and messages are
stored as JSONB and validated into models on read.
"""

import json
from typing import Any
from uuid import UUID

import asyncpg
from pydantic import ValidationError

from cadence.catalog.models import Contact, Scenario, Step, Transition
from cadence.catalog.store import ContactDirectory, CredentialResolver, ScenarioCatalog
from cadence.db.errors import ConnectionError
from cadence.db.pool import PostgresPool
from cadence.delivery.errors import InvalidStepError
from cadence.observability.logging import get_logger

logger = get_logger(__name__)


def _load_json(value: Any) -> Any:
    """Decode a JSONB value that arrived as text (connection without the pool codec)."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class PostgresScenarioCatalog(ScenarioCatalog):
    """PostgreSQL scenario catalog."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def get_scenario(self, scenario_id: UUID) -> Scenario | None:
        """Get a scenario by ID."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, account_id, name, allow_re_registration
                    FROM scenarios
                    WHERE id = $1
                    """,
                    scenario_id,
                )
                if row is None:
                    return None
                return Scenario(
                    id=row["id"],
                    account_id=row["account_id"],
                    name=row["name"],
                    allow_re_registration=row["allow_re_registration"],
                )
        except Exception as e:
            logger.error("postgres_get_scenario_error", scenario_id=str(scenario_id), error=str(e))
            raise ConnectionError(f"Failed to get scenario: {e}", cause=e) from e

    async def get_step(self, step_id: UUID) -> Step | None:
        """Get a step by ID."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, scenario_id, step_order, name, policy, messages
                    FROM steps
                    WHERE id = $1
                    """,
                    step_id,
                )
                return self._row_to_step(row) if row else None
        except InvalidStepError:
            raise
        except Exception as e:
            logger.error("postgres_get_step_error", step_id=str(step_id), error=str(e))
            raise ConnectionError(f"Failed to get step: {e}", cause=e) from e

    async def list_steps(self, scenario_id: UUID) -> list[Step]:
        """List steps of a scenario in order."""
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT id, scenario_id, step_order, name, policy, messages
                    FROM steps
                    WHERE scenario_id = $1
                    ORDER BY step_order ASC
                    """,
                    scenario_id,
                )
                return [self._row_to_step(row) for row in rows]
        except InvalidStepError:
            raise
        except Exception as e:
            logger.error("postgres_list_steps_error", scenario_id=str(scenario_id), error=str(e))
            raise ConnectionError(f"Failed to list steps: {e}", cause=e) from e

    async def get_next_step(self, scenario_id: UUID, after_order: int) -> Step | None:
        """Get the step following after_order."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, scenario_id, step_order, name, policy, messages
                    FROM steps
                    WHERE scenario_id = $1 AND step_order > $2
                    ORDER BY step_order ASC
                    LIMIT 1
                    """,
                    scenario_id,
                    after_order,
                )
                return self._row_to_step(row) if row else None
        except InvalidStepError:
            raise
        except Exception as e:
            logger.error("postgres_get_next_step_error", scenario_id=str(scenario_id), error=str(e))
            raise ConnectionError(f"Failed to get next step: {e}", cause=e) from e

    async def get_transition(self, from_scenario_id: UUID) -> Transition | None:
        """Get the earliest-defined transition out of a scenario."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, from_scenario_id, to_scenario_id, created_at
                    FROM scenario_transitions
                    WHERE from_scenario_id = $1
                    ORDER BY created_at ASC, id ASC
                    LIMIT 1
                    """,
                    from_scenario_id,
                )
                if row is None:
                    return None
                return Transition(
                    id=row["id"],
                    from_scenario_id=row["from_scenario_id"],
                    to_scenario_id=row["to_scenario_id"],
                    created_at=row["created_at"],
                )
        except Exception as e:
            logger.error(
                "postgres_get_transition_error",
                from_scenario_id=str(from_scenario_id),
                error=str(e),
            )
            raise ConnectionError(f"Failed to get transition: {e}", cause=e) from e

    def _row_to_step(self, row: asyncpg.Record) -> Step:
        """Convert database row to Step model.

        Raises:
            InvalidStepError: If the stored definition does not validate
        """
        try:
            return Step.model_validate({
                "id": row["id"],
                "scenario_id": row["scenario_id"],
                "order": row["step_order"],
                "name": row["name"],
                "policy": _load_json(row["policy"]),
                "messages": _load_json(row["messages"]),
            })
        except ValidationError as e:
            logger.error("invalid_step_definition", step_id=str(row["id"]), error=str(e))
            raise InvalidStepError(row["id"], cause=e) from e


class PostgresContactDirectory(ContactDirectory):
    """PostgreSQL contact registry."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get_contact(self, contact_id: UUID) -> Contact | None:
        """Get a contact by ID."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, account_id, external_id, registered_at,
                           display_name, short_uid
                    FROM contacts
                    WHERE id = $1
                    """,
                    contact_id,
                )
                return self._row_to_contact(row) if row else None
        except Exception as e:
            logger.error("postgres_get_contact_error", contact_id=str(contact_id), error=str(e))
            raise ConnectionError(f"Failed to get contact: {e}", cause=e) from e

    async def find_by_external_id(self, external_id: str) -> list[Contact]:
        """Find contacts by messaging identity."""
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT id, account_id, external_id, registered_at,
                           display_name, short_uid
                    FROM contacts
                    WHERE external_id = $1
                    """,
                    external_id,
                )
                return [self._row_to_contact(row) for row in rows]
        except Exception as e:
            logger.error("postgres_find_contact_error", error=str(e))
            raise ConnectionError(f"Failed to find contacts: {e}", cause=e) from e

    def _row_to_contact(self, row: asyncpg.Record) -> Contact:
        return Contact(
            id=row["id"],
            account_id=row["account_id"],
            external_id=row["external_id"],
            registered_at=row["registered_at"],
            display_name=row["display_name"],
            short_uid=row["short_uid"],
        )


class PostgresCredentialResolver(CredentialResolver):
    """Reads channel access tokens from account_credentials."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def resolve(self, account_id: UUID) -> str | None:
        """Get the channel access token for an account."""
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    """
                    SELECT channel_access_token
                    FROM account_credentials
                    WHERE account_id = $1
                    """,
                    account_id,
                )
        except Exception as e:
            logger.error("postgres_resolve_credential_error", account_id=str(account_id), error=str(e))
            raise ConnectionError(f"Failed to resolve credential: {e}", cause=e) from e
