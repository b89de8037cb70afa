"""Read interfaces over collaborator-owned data.

Scenario definitions, contacts and account credentials are maintained
elsewhere; the scheduler only reads them.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from cadence.catalog.models import Contact, Scenario, Step, Transition


class ScenarioCatalog(ABC):
    """Scenario, step and transition definitions."""

    @abstractmethod
    async def get_scenario(self, scenario_id: UUID) -> Scenario | None:
        """Get a scenario by ID."""
        pass

    @abstractmethod
    async def get_step(self, step_id: UUID) -> Step | None:
        """Get a step (with its messages) by ID."""
        pass

    @abstractmethod
    async def list_steps(self, scenario_id: UUID) -> list[Step]:
        """List steps of a scenario ordered by step order ascending."""
        pass

    async def get_first_step(self, scenario_id: UUID) -> Step | None:
        """Get the lowest-ordered step of a scenario."""
        steps = await self.list_steps(scenario_id)
        return steps[0] if steps else None

    async def get_next_step(self, scenario_id: UUID, after_order: int) -> Step | None:
        """Get the step following after_order, or None if it was the last."""
        for step in await self.list_steps(scenario_id):
            if step.order > after_order:
                return step
        return None

    @abstractmethod
    async def get_transition(self, from_scenario_id: UUID) -> Transition | None:
        """Get the effective outgoing transition of a scenario.

        When several are configured the earliest-defined one wins.
        """
        pass


class ContactDirectory(ABC):
    """Contact registry."""

    @abstractmethod
    async def get_contact(self, contact_id: UUID) -> Contact | None:
        """Get a contact by ID."""
        pass

    @abstractmethod
    async def find_by_external_id(self, external_id: str) -> list[Contact]:
        """Find contacts by messaging identity (one per owning account)."""
        pass


class CredentialResolver(ABC):
    """Resolves the outbound access credential of an account."""

    @abstractmethod
    async def resolve(self, account_id: UUID) -> str | None:
        """Get the channel access token for an account, if configured."""
        pass
