"""Tests for TransitionHandler."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from cadence.catalog.models import (
    ImmediatePolicy,
    RelativeOffsetPolicy,
    Scenario,
    Transition,
)
from cadence.delivery.errors import ScenarioNotFoundError
from cadence.delivery.models import DeliveryFilter, TrackingStatus


async def _deliver(tracking_store, record, at):
    """Drive a seeded record through claim and delivery."""
    await tracking_store.claim_due(at, 100, DeliveryFilter(contact_ids=[record.contact_id]))
    await tracking_store.mark_delivered(record.id, at)
    return await tracking_store.get(record.id)


@pytest.fixture
def linked_scenarios(make_scenario, catalog, clock):
    """Two-step source scenario linked to a target starting an hour later."""
    source, source_steps = make_scenario([ImmediatePolicy(), ImmediatePolicy()], name="source")
    target, target_steps = make_scenario([RelativeOffsetPolicy(hours=1)], name="target")
    catalog.add_transition(
        Transition(
            from_scenario_id=source.id,
            to_scenario_id=target.id,
            created_at=clock.now - timedelta(days=1),
        )
    )
    return source, source_steps, target, target_steps


@pytest.mark.asyncio
class TestOnScenarioCompleted:
    """Tests for applying a transition after the last step."""

    async def test_seeds_target_first_step(
        self, transition_handler, tracking_store, seed_record, contact, clock, linked_scenarios
    ) -> None:
        _, source_steps, target, target_steps = linked_scenarios
        last = await seed_record(
            source_steps[1], contact.id, campaign_id="spring", registration_source="qr"
        )
        last = await _deliver(tracking_store, last, clock.now)

        seeded = await transition_handler.on_scenario_completed(last, clock.now)

        assert seeded is not None
        assert seeded.scenario_id == target.id
        assert seeded.step_id == target_steps[0].id
        assert seeded.status == TrackingStatus.WAITING
        assert seeded.scheduled_at == clock.now + timedelta(hours=1)
        assert seeded.enrolled_at == clock.now
        assert seeded.campaign_id == "spring"
        assert seeded.registration_source == "qr"

    async def test_exits_remaining_source_records(
        self, transition_handler, tracking_store, seed_record, contact, clock, linked_scenarios
    ) -> None:
        _, source_steps, _, _ = linked_scenarios
        leftover = await seed_record(
            source_steps[0], contact.id, due_at=clock.now + timedelta(days=3)
        )
        last = await _deliver(
            tracking_store, await seed_record(source_steps[1], contact.id), clock.now
        )

        await transition_handler.on_scenario_completed(last, clock.now)

        assert await tracking_store.get_status(leftover.id) == TrackingStatus.EXITED
        assert await tracking_store.get_status(last.id) == TrackingStatus.DELIVERED

    async def test_no_transition_returns_none(
        self, transition_handler, tracking_store, seed_record, contact, clock, make_scenario
    ) -> None:
        _, steps = make_scenario()
        last = await _deliver(tracking_store, await seed_record(steps[0], contact.id), clock.now)

        assert await transition_handler.on_scenario_completed(last, clock.now) is None

    async def test_earliest_transition_wins(
        self, transition_handler, tracking_store, seed_record, contact, clock, catalog,
        make_scenario, linked_scenarios,
    ) -> None:
        source, source_steps, target, _ = linked_scenarios
        newer, _ = make_scenario(name="newer")
        catalog.add_transition(
            Transition(from_scenario_id=source.id, to_scenario_id=newer.id, created_at=clock.now)
        )
        last = await _deliver(
            tracking_store, await seed_record(source_steps[1], contact.id), clock.now
        )

        seeded = await transition_handler.on_scenario_completed(last, clock.now)

        assert seeded.scenario_id == target.id
        assert await tracking_store.list_records(scenario_id=newer.id) == []

    async def test_concurrent_completion_yields_one_active_record(
        self, transition_handler, tracking_store, seed_record, contact, clock, linked_scenarios
    ) -> None:
        _, source_steps, target, _ = linked_scenarios
        last = await _deliver(
            tracking_store, await seed_record(source_steps[1], contact.id), clock.now
        )

        results = await asyncio.gather(
            transition_handler.on_scenario_completed(last, clock.now),
            transition_handler.on_scenario_completed(last, clock.now),
        )

        active = [
            r for r in await tracking_store.list_records(scenario_id=target.id) if r.is_active
        ]
        assert len(active) == 1
        assert {r.id for r in results} == {active[0].id}

    async def test_target_without_steps(
        self, transition_handler, tracking_store, seed_record, contact, clock, catalog,
        account_id, make_scenario,
    ) -> None:
        source, steps = make_scenario(name="source")
        empty = Scenario(account_id=account_id, name="empty")
        catalog.add_scenario(empty)
        catalog.add_transition(Transition(from_scenario_id=source.id, to_scenario_id=empty.id))
        last = await _deliver(tracking_store, await seed_record(steps[0], contact.id), clock.now)

        assert await transition_handler.on_scenario_completed(last, clock.now) is None


@pytest.mark.asyncio
class TestBackfill:
    """Tests for moving already-completed contacts."""

    async def test_moves_completed_contacts_once(
        self, transition_handler, tracking_store, seed_record, contact, make_contact, clock,
        linked_scenarios,
    ) -> None:
        source, source_steps, target, _ = linked_scenarios
        await _deliver(tracking_store, await seed_record(source_steps[1], contact.id), clock.now)
        midway = make_contact("U-midway")
        await seed_record(source_steps[0], midway.id, due_at=clock.now + timedelta(days=1))

        result = await transition_handler.backfill(source.id, target.id)

        assert result.moved == 1
        assert result.skipped == 0
        [moved] = await tracking_store.list_records(scenario_id=target.id)
        assert moved.contact_id == contact.id

        again = await transition_handler.backfill(source.id, target.id)

        assert again.moved == 0
        assert again.skipped == 1
        assert len(await tracking_store.list_records(scenario_id=target.id)) == 1

    async def test_unknown_scenario_raises(self, transition_handler, linked_scenarios) -> None:
        source, _, _, _ = linked_scenarios

        with pytest.raises(ScenarioNotFoundError):
            await transition_handler.backfill(source.id, uuid4())
