"""In-memory implementations of the catalog interfaces."""

from uuid import UUID

from cadence.catalog.models import Contact, Scenario, Step, Transition
from cadence.catalog.store import ContactDirectory, CredentialResolver, ScenarioCatalog


class InMemoryScenarioCatalog(ScenarioCatalog):
    """In-memory scenario catalog for testing and development."""

    def __init__(self) -> None:
        self._scenarios: dict[UUID, Scenario] = {}
        self._steps: dict[UUID, Step] = {}
        self._transitions: list[Transition] = []

    def add_scenario(self, scenario: Scenario, steps: list[Step] | None = None) -> None:
        """Register a scenario and optionally its steps."""
        self._scenarios[scenario.id] = scenario
        for step in steps or []:
            self.add_step(step)

    def add_step(self, step: Step) -> None:
        self._steps[step.id] = step

    def add_transition(self, transition: Transition) -> None:
        self._transitions.append(transition)

    async def get_scenario(self, scenario_id: UUID) -> Scenario | None:
        return self._scenarios.get(scenario_id)

    async def get_step(self, step_id: UUID) -> Step | None:
        return self._steps.get(step_id)

    async def list_steps(self, scenario_id: UUID) -> list[Step]:
        steps = [s for s in self._steps.values() if s.scenario_id == scenario_id]
        steps.sort(key=lambda s: s.order)
        return steps

    async def get_transition(self, from_scenario_id: UUID) -> Transition | None:
        candidates = [
            t for t in self._transitions if t.from_scenario_id == from_scenario_id
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda t: t.created_at)


class InMemoryContactDirectory(ContactDirectory):
    """In-memory contact registry for testing and development."""

    def __init__(self) -> None:
        self._contacts: dict[UUID, Contact] = {}

    def add_contact(self, contact: Contact) -> None:
        self._contacts[contact.id] = contact

    async def get_contact(self, contact_id: UUID) -> Contact | None:
        return self._contacts.get(contact_id)

    async def find_by_external_id(self, external_id: str) -> list[Contact]:
        return [c for c in self._contacts.values() if c.external_id == external_id]


class InMemoryCredentialResolver(CredentialResolver):
    """In-memory credential map for testing and development."""

    def __init__(self, credentials: dict[UUID, str] | None = None) -> None:
        self._credentials: dict[UUID, str] = dict(credentials or {})

    def set_credential(self, account_id: UUID, token: str) -> None:
        self._credentials[account_id] = token

    async def resolve(self, account_id: UUID) -> str | None:
        return self._credentials.get(account_id)
