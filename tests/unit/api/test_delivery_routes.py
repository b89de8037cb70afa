"""Unit tests for the step delivery endpoints."""

from uuid import uuid4

from fastapi.testclient import TestClient

from cadence.catalog.models import RelativeOffsetPolicy, Step, TextMessage, Transition
from cadence.delivery.models import TrackingRecord, TrackingStatus, utc_now


async def _seed_ready(tracking_store, step, contact_id, campaign_id=None) -> TrackingRecord:
    now = utc_now()
    record = TrackingRecord.seed(
        scenario_id=step.scenario_id,
        contact_id=contact_id,
        step_id=step.id,
        due_at=now,
        now=now,
        enrolled_at=now,
        campaign_id=campaign_id,
    )
    return await tracking_store.upsert_active(record)


class TestTriggerEndpoint:
    """Tests for POST /v1/step-delivery/trigger."""

    async def test_empty_body_runs_timer(
        self, client: TestClient, tracking_store, contact, transport, make_scenario
    ) -> None:
        _, step = make_scenario()
        await _seed_ready(tracking_store, step, contact.id)

        response = client.post("/v1/step-delivery/trigger")

        assert response.status_code == 200
        data = response.json()
        assert data["delivered"] == 1
        assert data["errors"] == 0
        assert data["totalChecked"] == 1
        assert "timestamp" in data
        assert transport.messages_for("U-api")[0].text == "welcome, Ken"

    async def test_login_trigger_for_unknown_identity(
        self, client: TestClient, tracking_store, contact, make_scenario
    ) -> None:
        _, step = make_scenario()
        record = await _seed_ready(tracking_store, step, contact.id)

        response = client.post(
            "/v1/step-delivery/trigger",
            json={"externalIdentity": "U-nobody", "trigger": "login_success"},
        )

        assert response.status_code == 200
        assert response.json()["delivered"] == 0
        assert await tracking_store.get_status(record.id) == TrackingStatus.READY

    async def test_login_trigger_for_contact(
        self, client: TestClient, tracking_store, contact, make_scenario
    ) -> None:
        _, step = make_scenario()
        await _seed_ready(tracking_store, step, contact.id)

        response = client.post(
            "/v1/step-delivery/trigger",
            json={"externalIdentity": "U-api", "trigger": "login_success"},
        )

        assert response.json()["delivered"] == 1

    def test_invalid_trigger_rejected(self, client: TestClient) -> None:
        response = client.post("/v1/step-delivery/trigger", json={"trigger": "cron"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


class TestRegistrationEndpoint:
    """Tests for POST /v1/scenarios/{scenario_id}/registrations."""

    def test_registers_and_delivers(
        self, client: TestClient, contact, transport, make_scenario
    ) -> None:
        scenario, _ = make_scenario()

        response = client.post(
            f"/v1/scenarios/{scenario.id}/registrations",
            json={"contactId": str(contact.id), "campaignId": "spring"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["outcome"] == "registered"
        assert data["scenarioId"] == str(scenario.id)
        assert data["trackingId"] is not None
        assert data["delivery"]["delivered"] == 1
        assert len(transport.messages_for("U-api")) == 1

    def test_registration_while_active(
        self, client: TestClient, catalog, contact, make_scenario
    ) -> None:
        scenario, _ = make_scenario()
        catalog.add_step(
            Step(
                scenario_id=scenario.id,
                order=1,
                policy=RelativeOffsetPolicy(days=1),
                messages=[TextMessage(text="tomorrow")],
            )
        )
        client.post(
            f"/v1/scenarios/{scenario.id}/registrations",
            json={"contactId": str(contact.id)},
        )

        response = client.post(
            f"/v1/scenarios/{scenario.id}/registrations",
            json={"contactId": str(contact.id)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["outcome"] == "already_active"
        assert data["status"] == "waiting"
        assert data["delivery"] is None

    def test_re_registration_after_completion(
        self, client: TestClient, contact, make_scenario
    ) -> None:
        scenario, _ = make_scenario()
        url = f"/v1/scenarios/{scenario.id}/registrations"
        client.post(url, json={"contactId": str(contact.id)})

        response = client.post(url, json={"contactId": str(contact.id)})

        assert response.json()["outcome"] == "registered"

    def test_unknown_scenario(self, client: TestClient, contact) -> None:
        response = client.post(
            f"/v1/scenarios/{uuid4()}/registrations",
            json={"contactId": str(contact.id)},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "REGISTRATION_FAILED"

    def test_missing_contact_id(self, client: TestClient, make_scenario) -> None:
        scenario, _ = make_scenario()

        response = client.post(f"/v1/scenarios/{scenario.id}/registrations", json={})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REQUEST"
        assert error["details"]


class TestBackfillEndpoint:
    """Tests for POST /v1/transitions/backfill."""

    async def test_backfill_skips_contacts_already_moved(
        self, client: TestClient, catalog, tracking_store, contact, make_scenario
    ) -> None:
        source, step = make_scenario("source")
        target, _ = make_scenario("target")
        catalog.add_transition(Transition(from_scenario_id=source.id, to_scenario_id=target.id))
        client.post(
            f"/v1/scenarios/{source.id}/registrations",
            json={"contactId": str(contact.id)},
        )
        # Registration already delivered the step and applied the transition
        response = client.post(
            "/v1/transitions/backfill",
            json={"fromScenarioId": str(source.id), "toScenarioId": str(target.id)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["moved"] == 0
        assert data["skipped"] == 1

    def test_unknown_scenario(self, client: TestClient, make_scenario) -> None:
        source, _ = make_scenario("source")

        response = client.post(
            "/v1/transitions/backfill",
            json={"fromScenarioId": str(source.id), "toScenarioId": str(uuid4())},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SCENARIO_NOT_FOUND"

    def test_same_source_and_target_rejected(self, client: TestClient, make_scenario) -> None:
        source, _ = make_scenario("source")

        response = client.post(
            "/v1/transitions/backfill",
            json={"fromScenarioId": str(source.id), "toScenarioId": str(source.id)},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


class TestDeliveryStatsEndpoint:
    async def test_counts(
        self, client: TestClient, tracking_store, contact, make_scenario
    ) -> None:
        scenario, step = make_scenario()
        await _seed_ready(tracking_store, step, contact.id, campaign_id="spring")

        response = client.get(f"/v1/scenarios/{scenario.id}/delivery-stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["byStatus"] == {"ready": 1}
        assert data["byCampaign"] == {"spring": 1}
        assert data["bySource"] == {}
