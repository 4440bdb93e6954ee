"""
Tests for the HTTP API.
"""
import pytest

DISPUTE = {
    "id": "d1",
    "reason": "Item not received",
    "status": "OPEN",
    "priority": "HIGH",
    "raised_by": "buyer_42",
    "raised_against": "seller_7",
    "transaction_id": "txn_9001",
}


async def _create_dispute(client):
    response = await client.post("/tracking/signals/created", json={"dispute": DISPUTE})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health endpoint returns 200."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["tracking_events"] == "0"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["modules"]["tracking"]["prefix"] == "/tracking"


class TestTrackingRoutes:
    @pytest.mark.asyncio
    async def test_created_signal_records_and_notifies(self, client):
        data = await _create_dispute(client)

        assert len(data["events"]) == 1
        assert data["events"][0]["type"] == "STATUS_CHANGE"
        assert data["notifications_created"] == 1

    @pytest.mark.asyncio
    async def test_updated_signal_without_previous_is_a_no_op(self, client):
        response = await client.post("/tracking/signals/updated", json={"dispute": DISPUTE})

        assert response.status_code == 200
        assert response.json() == {"events": [], "notifications_created": 0}

    @pytest.mark.asyncio
    async def test_updated_signal_diffs_snapshots(self, client):
        response = await client.post("/tracking/signals/updated", json={
            "dispute": {**DISPUTE, "status": "IN_REVIEW", "priority": "URGENT"},
            "previous": DISPUTE,
        })

        events = response.json()["events"]
        assert [e["type"] for e in events] == ["STATUS_CHANGE", "PRIORITY_CHANGE"]
        assert [e["severity"] for e in events] == ["CRITICAL", "HIGH"]

    @pytest.mark.asyncio
    async def test_escalated_signal(self, client):
        response = await client.post("/tracking/signals/escalated", json={
            "dispute": DISPUTE, "reason": "Seller unresponsive"
        })

        assert response.status_code == 200
        data = response.json()
        assert data["events"][0]["severity"] == "CRITICAL"
        assert data["notifications_created"] == 1

    @pytest.mark.asyncio
    async def test_invalid_signal_is_rejected(self, client):
        response = await client.post("/tracking/signals/created", json={
            "dispute": {**DISPUTE, "priority": "SOMEDAY"}
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_query_events(self, client):
        await _create_dispute(client)
        await client.post("/tracking/events", json={
            "dispute_id": "d2", "type": "EVIDENCE_ADDED", "title": "Evidence Added"
        })

        all_events = (await client.get("/tracking/events")).json()
        only_d1 = (await client.get("/tracking/events", params={"dispute_id": "d1"})).json()
        evidence = (await client.get("/tracking/events", params={"type": "EVIDENCE_ADDED"})).json()
        paged = (await client.get("/tracking/events", params={"limit": 1})).json()

        assert all_events["count"] == 2
        assert only_d1["count"] == 1
        assert evidence["events"][0]["dispute_id"] == "d2"
        assert paged["events"][0]["dispute_id"] == "d2"

    @pytest.mark.asyncio
    async def test_custom_event(self, client):
        response = await client.post("/tracking/events", json={
            "dispute_id": "d1",
            "type": "RESOLUTION_PROPOSED",
            "title": "Resolution Proposed",
            "severity": "HIGH",
            "metadata": {"resolution": "PARTIAL_REFUND"},
            "user_id": "seller_7",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["id"].startswith("event_")
        assert data["metadata"] == {"resolution": "PARTIAL_REFUND"}

    @pytest.mark.asyncio
    async def test_custom_event_with_unknown_type(self, client):
        response = await client.post("/tracking/events", json={
            "dispute_id": "d1", "type": "SOMETHING", "title": "Nope"
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_metrics_and_dashboard(self, client):
        await _create_dispute(client)
        await client.post("/tracking/signals/escalated", json={"dispute": DISPUTE, "reason": "No reply"})

        metrics = (await client.get("/tracking/metrics")).json()
        dashboard = (await client.get("/tracking/dashboard")).json()

        assert metrics["total_events"] == 2
        assert metrics["escalation_rate"] == 50.0
        assert dashboard["active_disputes"] == 1
        assert dashboard["escalations_today"] == 1
        assert len(dashboard["urgent_alerts"]) == 1

    @pytest.mark.asyncio
    async def test_manual_monitor_run(self, client):
        await client.post("/tracking/signals/created", json={
            "dispute": {**DISPUTE, "priority": "URGENT", "created_at": "2020-01-01T00:00:00Z"}
        })

        response = await client.post("/tracking/monitor/run")

        assert response.status_code == 200
        data = response.json()
        assert data["disputes_scanned"] == 1
        assert data["sla_breaches"] == 1
        assert data["auto_actions"] == 2


class TestNotificationRoutes:
    @pytest.mark.asyncio
    async def test_list_notifications(self, client):
        await _create_dispute(client)

        response = await client.get("/notifications", params={"user_id": "buyer_42"})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["notifications"][0]["status"] == "PENDING"
        assert data["notifications"][0]["title"] == "New Dispute: Item not received"

    @pytest.mark.asyncio
    async def test_acknowledgement_flow(self, client):
        await _create_dispute(client)
        notification_id = (await client.get("/notifications")).json()["notifications"][0]["id"]

        early = await client.post(f"/notifications/{notification_id}/read")
        assert early.status_code == 409
        assert early.json()["error_type"] == "InvalidTransitionException"

        dispatch = await client.post("/notifications/dispatch/run")
        assert dispatch.json() == {"processed": 1, "sent": 1, "failed": 0, "deferred": 0}

        delivered = await client.post(f"/notifications/{notification_id}/delivered")
        assert delivered.status_code == 200
        assert delivered.json()["status"] == "DELIVERED"

        read = await client.post(f"/notifications/{notification_id}/read")
        assert read.json()["status"] == "READ"

        backwards = await client.post(f"/notifications/{notification_id}/delivered")
        assert backwards.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_notification(self, client):
        response = await client.post("/notifications/notif_missing/read")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client):
        await _create_dispute(client)

        pending = (await client.get("/notifications", params={"status": "PENDING"})).json()
        sent = (await client.get("/notifications", params={"status": "SENT"})).json()

        assert pending["count"] == 1
        assert sent["count"] == 0

    @pytest.mark.asyncio
    async def test_fire_trigger(self, client):
        response = await client.post("/notifications/trigger", json={
            "type": "SLA_BREACH",
            "payload": {"disputeId": "d9", "disputeReason": "Late delivery", "timeElapsed": 80.456},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["notifications"][0]["message"] == (
            "Dispute d9 has exceeded its SLA threshold. Time elapsed: 80.46 hours."
        )


class TestTemplateRoutes:
    @pytest.mark.asyncio
    async def test_list_contains_defaults(self, client):
        response = await client.get("/notifications/templates")

        ids = {t["id"] for t in response.json()}
        assert {"dispute_created", "sla_breach", "security_alert"} <= ids

    @pytest.mark.asyncio
    async def test_crud(self, client):
        created = await client.post("/notifications/templates", json={
            "id": "payment_held",
            "name": "Payment Held",
            "type": "PAYMENT",
            "category": "WARNING",
            "title": "Payment held for {{disputeId}}",
            "message": "Funds for {{transactionId}} are on hold.",
            "channels": ["EMAIL"],
        })
        assert created.status_code == 201

        duplicate = await client.post("/notifications/templates", json={
            "id": "payment_held", "name": "Again", "title": "t", "message": "m"
        })
        assert duplicate.status_code == 422

        patched = await client.patch("/notifications/templates/payment_held", json={"enabled": False})
        assert patched.json()["enabled"] is False
        assert patched.json()["title"] == "Payment held for {{disputeId}}"

        deleted = await client.delete("/notifications/templates/payment_held")
        assert deleted.status_code == 204

        missing = await client.get("/notifications/templates/payment_held")
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_channel_is_rejected(self, client):
        response = await client.post("/notifications/templates", json={
            "name": "Fax", "title": "t", "message": "m", "channels": ["FAX"]
        })

        assert response.status_code == 422


class TestRuleRoutes:
    @pytest.mark.asyncio
    async def test_crud(self, client):
        created = await client.post("/notifications/rules", json={
            "id": "urgent_sms",
            "name": "Urgent disputes by SMS",
            "conditions": [
                {"field": "type", "operator": "equals", "value": "DISPUTE_CREATED"},
                {"field": "dispute.priority", "operator": "in", "value": ["HIGH", "URGENT"]},
            ],
            "template_id": "dispute_created",
            "channels": ["SMS"],
            "priority": 0,
        })
        assert created.status_code == 201
        assert created.json()["conditions"][1]["value"] == ["HIGH", "URGENT"]

        listed = (await client.get("/notifications/rules")).json()
        assert listed[0]["id"] == "urgent_sms"

        signal = await _create_dispute(client)
        assert signal["notifications_created"] == 2

        patched = await client.patch("/notifications/rules/urgent_sms", json={"enabled": False})
        assert patched.json()["enabled"] is False

        assert (await client.delete("/notifications/rules/urgent_sms")).status_code == 204
        assert (await client.get("/notifications/rules/urgent_sms")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_operator(self, client):
        response = await client.post("/notifications/rules", json={
            "name": "Bad",
            "conditions": [{"field": "type", "operator": "matches", "value": "x"}],
            "template_id": "dispute_created",
        })

        assert response.status_code == 422


class TestPreferenceRoutes:
    @pytest.mark.asyncio
    async def test_default_preferences(self, client):
        response = await client.get("/notifications/preferences/new_user")

        assert response.status_code == 200
        data = response.json()
        assert data["email"] is True
        assert data["quiet_hours"]["enabled"] is False

    @pytest.mark.asyncio
    async def test_partial_update(self, client):
        await client.patch("/notifications/preferences/buyer_42", json={
            "quiet_hours": {"enabled": True, "start": "21:30"}
        })
        response = await client.patch("/notifications/preferences/buyer_42", json={
            "sms": False, "categories": {"PAYMENT": False}
        })

        data = response.json()
        assert data["sms"] is False
        assert data["quiet_hours"] == {
            "enabled": True, "start": "21:30", "end": "08:00", "timezone": "UTC"
        }
        assert data["categories"]["PAYMENT"] is False
        assert data["categories"]["DISPUTE"] is True

    @pytest.mark.asyncio
    async def test_invalid_quiet_hours(self, client):
        response = await client.patch("/notifications/preferences/buyer_42", json={
            "quiet_hours": {"start": "25:00"}
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_digest(self, client):
        await _create_dispute(client)

        response = await client.get("/notifications/digest/buyer_42", params={"type": "WEEKLY"})

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "WEEKLY"
        assert data["summary"]["total"] == 1
        assert data["summary"]["by_category"] == {"WARNING": 1}
