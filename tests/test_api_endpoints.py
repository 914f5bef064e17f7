import pytest

from app.repositories.contact_repository import ContactRepository
from app.repositories.opportunity_repository import OpportunityRepository


async def _open_opportunity(db_session, **fields):
    contact = await ContactRepository(db_session).create(email="client@example.com")
    data = {"contact_id": contact.id, "title": "Harbour cruise", "value": 900.0}
    data.update(fields)
    opportunity = await OpportunityRepository(db_session).create(**data)
    await db_session.commit()
    # A 409 rolls the shared session back and expires loaded rows
    return opportunity.id


RULE_BODY = {
    "name": "Quote requests",
    "priority": 5,
    "conditions": [{"type": "subject_contains", "value": "quote"}],
    "actions": [
        {"type": "create_contact"},
        {"type": "assign_category", "category": "Quotes"},
    ],
}


class TestCORSMiddleware:
    """Verify that CORS headers are present on responses."""

    @pytest.mark.asyncio
    async def test_cors_headers_on_preflight(self, async_client):
        response = await async_client.options(
            "/api/v1/health",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert "access-control-allow-origin" in response.headers

    @pytest.mark.asyncio
    async def test_cors_headers_on_get(self, async_client):
        response = await async_client.get(
            "/api/v1/health", headers={"Origin": "http://localhost:3000"}
        )
        assert response.status_code == 200
        assert (
            response.headers.get("access-control-allow-origin")
            == "http://localhost:3000"
        )


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_reports_database_and_cache(self, async_client):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "database": "ok",
            "cache": "unavailable",
        }


class TestEmailRuleEndpoints:
    @pytest.mark.asyncio
    async def test_create_get_update_delete(self, async_client):
        created = await async_client.post("/api/v1/email-rules", json=RULE_BODY)
        assert created.status_code == 201
        rule = created.json()
        assert rule["error"] is None
        assert [a["type"] for a in rule["actions"]] == ["create_contact", "assign_category"]

        fetched = await async_client.get(f"/api/v1/email-rules/{rule['id']}")
        assert fetched.json()["name"] == "Quote requests"

        updated = await async_client.put(
            f"/api/v1/email-rules/{rule['id']}", json={**RULE_BODY, "enabled": False}
        )
        assert updated.status_code == 200
        assert updated.json()["enabled"] is False

        deleted = await async_client.delete(f"/api/v1/email-rules/{rule['id']}")
        assert deleted.status_code == 204
        missing = await async_client.get(f"/api/v1/email-rules/{rule['id']}")
        assert missing.status_code == 404
        assert missing.json()["type"] == "not_found"

    @pytest.mark.asyncio
    async def test_rule_needs_an_action(self, async_client):
        response = await async_client.post(
            "/api/v1/email-rules", json={**RULE_BODY, "actions": []}
        )
        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_unknown_condition_type_is_rejected(self, async_client):
        response = await async_client.post(
            "/api/v1/email-rules",
            json={**RULE_BODY, "conditions": [{"type": "sent_on_tuesday", "value": "x"}]},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, async_client):
        rule = (await async_client.post("/api/v1/email-rules", json=RULE_BODY)).json()

        response = await async_client.post(
            f"/api/v1/email-rules/{rule['id']}/test",
            json={"subject": "Quote for 12 guests", "from_address": "a@example.com"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["matches"] is True
        assert body["evaluated_conditions"][0]["result"] is True

    @pytest.mark.asyncio
    async def test_category_routes_are_not_rule_ids(self, async_client):
        saved = await async_client.post(
            "/api/v1/email-rules/categories",
            json={
                "category_name": "Source – Social",
                "crm_field_type": "source",
                "crm_field_value": "social",
            },
        )
        assert saved.status_code == 200
        mapping_id = saved.json()["id"]

        listed = await async_client.get("/api/v1/email-rules/categories")
        assert [m["category_name"] for m in listed.json()] == ["Source – Social"]

        deleted = await async_client.delete(f"/api/v1/email-rules/categories/{mapping_id}")
        assert deleted.json() == {"success": True, "message": "Category mapping deleted"}


class TestEmailEndpoints:
    @pytest.mark.asyncio
    async def test_sync_processes_batch(self, async_client):
        await async_client.post("/api/v1/email-rules", json=RULE_BODY)

        response = await async_client.post(
            "/api/v1/emails/sync",
            json={
                "emails": [
                    {
                        "external_id": "sync-1",
                        "subject": "Quote please",
                        "from_address": "guest@example.com",
                    },
                    {"external_id": "sync-2", "subject": "Newsletter"},
                ]
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["processed"], body["succeeded"], body["failed"]) == (2, 2, 0)
        first = body["results"][0]
        assert first["contact_id"] is not None
        assert first["rule_results"]["matched_rules"][0]["rule_name"] == "Quote requests"

    @pytest.mark.asyncio
    async def test_sync_requires_emails(self, async_client):
        response = await async_client.post("/api/v1/emails/sync", json={"emails": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_sync_rejects_records_without_external_id(self, async_client):
        response = await async_client.post(
            "/api/v1/emails/sync",
            json={"emails": [{"subject": "Web General Enquiry - villa booking"}]},
        )
        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_process_unknown_communication(self, async_client):
        response = await async_client.post("/api/v1/emails/999/process")
        assert response.status_code == 404
        assert response.json()["type"] == "not_found"


class TestOpportunityEndpoints:
    @pytest.mark.asyncio
    async def test_won_then_won_again_conflicts(self, async_client, db_session):
        opportunity_id = await _open_opportunity(db_session)
        url = f"/api/v1/opportunities/{opportunity_id}/status"

        won = await async_client.put(url, json={"status": "won", "changed_by": "sam"})
        assert won.status_code == 200
        assert won.json()["opportunity"]["status"] == "won"
        assert won.json()["commission_snapshot_id"] is not None

        again = await async_client.put(url, json={"status": "won"})
        assert again.status_code == 409
        assert again.json()["type"] == "conflict"

        snapshot = await async_client.get(f"/api/v1/commission/snapshots/{opportunity_id}")
        assert snapshot.json()["final_value"] == 900.0

    @pytest.mark.asyncio
    async def test_reversal_requires_reason(self, async_client, db_session):
        opportunity_id = await _open_opportunity(db_session, status="won")
        response = await async_client.put(
            f"/api/v1/opportunities/{opportunity_id}/status", json={"status": "reversed"}
        )
        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_audit_trail(self, async_client, db_session):
        opportunity_id = await _open_opportunity(db_session)
        await async_client.put(
            f"/api/v1/opportunities/{opportunity_id}/status",
            json={"status": "lost", "changed_by": "sam"},
        )

        response = await async_client.get(f"/api/v1/opportunities/{opportunity_id}/audit-trail")

        assert [(e["field_name"], e["new_value"]) for e in response.json()] == [
            ("status", "lost")
        ]

    @pytest.mark.asyncio
    async def test_unknown_opportunity(self, async_client):
        response = await async_client.put(
            "/api/v1/opportunities/404/status", json={"status": "lost"}
        )
        assert response.status_code == 404
        assert set(response.json()) == {"detail", "type"}


class TestCommissionAndDisputes:
    @pytest.mark.asyncio
    async def test_evidence_report(self, async_client, db_session):
        opportunity_id = await _open_opportunity(db_session)
        await async_client.put(
            f"/api/v1/opportunities/{opportunity_id}/status", json={"status": "won"}
        )

        response = await async_client.get(f"/api/v1/commission/evidence/{opportunity_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["opportunity"]["id"] == opportunity_id
        assert body["snapshot"]["opportunity_id"] == opportunity_id

    @pytest.mark.asyncio
    async def test_dispute_lifecycle(self, async_client, db_session):
        opportunity_id = await _open_opportunity(db_session)
        created = await async_client.post(
            "/api/v1/disputes",
            json={
                "opportunity_id": opportunity_id,
                "nature": "owner",
                "description": "Booked by Alex, not Sam",
            },
        )
        assert created.status_code == 201
        dispute_id = created.json()["id"]

        resolved = await async_client.put(
            f"/api/v1/disputes/{dispute_id}",
            json={"status": "resolved", "resolution": "Owner corrected"},
        )
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "resolved"

        again = await async_client.put(
            f"/api/v1/disputes/{dispute_id}", json={"status": "rejected"}
        )
        assert again.status_code == 409

        listed = await async_client.get("/api/v1/disputes", params={"status": "resolved"})
        assert [d["id"] for d in listed.json()] == [dispute_id]
