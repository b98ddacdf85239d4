"""Tests for the billing cycle HTTP routes."""

from core.exceptions import StoreError


def _open(client, customer_id=7, start="2026-02-28", total=2500, **extra):
    response = client.post("/api/cycles", json={
        "customer_id": customer_id, "start_date": start, "total_amount": total, **extra,
    })
    assert response.status_code == 200, response.text
    return response.json()["data"]


class TestCreateCycle:

    def test_creates_initial_cycle(self, client):
        data = _open(client)

        assert data["id"] == 1
        assert data["cycle_start_date"] == "2026-02-28"
        assert data["cycle_end_date"] == "2026-03-29"
        assert data["amount_pending"] == 2500
        assert data["status"] == "pending"
        assert data["is_renewal"] is False
        assert data["facts"] == {"expired": False, "unpaid": True, "days_left": 9}
        assert data["outstanding"] == 2500

    def test_renewal_flag(self, client):
        data = _open(client, renewal=True)
        assert data["is_renewal"] is True

    def test_metadata_passes_through(self, client):
        data = _open(client, metadata={"breakdown": {"package": 2000, "router": 500}})
        assert data["breakdown"] == {"package": 2000, "router": 500}

    def test_negative_total_is_400(self, client):
        response = client.post("/api/cycles", json={
            "customer_id": 7, "start_date": "2026-02-28", "total_amount": -1,
        })
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_REQUEST"

    def test_malformed_date_is_422(self, client):
        response = client.post("/api/cycles", json={
            "customer_id": 7, "start_date": "2026-02-30", "total_amount": 100,
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestReadCycles:

    def test_get_cycle(self, client):
        created = _open(client)
        response = client.get(f"/api/cycles/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == created["id"]

    def test_get_missing_cycle_is_404(self, client):
        response = client.get("/api/cycles/999")

        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": "NOT_FOUND", "message": "Billing cycle 999 not found",
        }

    def test_list_filters_by_customer(self, client):
        _open(client, customer_id=7)
        _open(client, customer_id=8)

        response = client.get("/api/cycles", params={"customer_id": "7"})
        cycles = response.json()["data"]

        assert [c["customer_id"] for c in cycles] == [7]

    def test_list_is_newest_first(self, client):
        _open(client, start="2026-01-01")
        _open(client, start="2026-02-28")

        starts = [c["cycle_start_date"] for c in client.get("/api/cycles").json()["data"]]
        assert starts == ["2026-02-28", "2026-01-01"]

    def test_active_cycle_with_display_status(self, client):
        _open(client, start="2026-01-01")
        latest = _open(client, start="2026-02-28")

        data = client.get("/api/customers/7/active-cycle").json()["data"]

        assert data["cycle"]["id"] == latest["id"]
        assert data["display_status"] == "pending"

    def test_active_cycle_for_suspended_customer(self, client):
        _open(client)
        data = client.get("/api/customers/7/active-cycle", params={"status": "suspended"}).json()["data"]

        assert data["display_status"] == "suspended"
        assert data["facts"]["unpaid"] is True

    def test_active_cycle_none(self, client):
        data = client.get("/api/customers/42/active-cycle").json()["data"]

        assert data["cycle"] is None
        assert data["display_status"] == "pending"
        assert data["facts"] == {"expired": False, "unpaid": False, "days_left": None}


class TestInstallments:

    def test_records_payment(self, client):
        cycle = _open(client)

        response = client.post(f"/api/cycles/{cycle['id']}/installments", json={
            "amount_paid": 1000, "date_paid": "2026-03-01", "note": "cash",
        })
        data = response.json()["data"]

        assert response.status_code == 200
        assert data["amount_paid"] == 1000
        assert data["amount_pending"] == 1500
        assert data["installments"][0]["note"] == "cash"

    def test_zero_amount_is_400(self, client):
        cycle = _open(client)
        response = client.post(f"/api/cycles/{cycle['id']}/installments", json={
            "amount_paid": 0, "date_paid": "2026-03-01",
        })
        assert response.status_code == 400

    def test_future_date_is_400(self, client):
        cycle = _open(client)
        response = client.post(f"/api/cycles/{cycle['id']}/installments", json={
            "amount_paid": 100, "date_paid": "2026-03-21",
        })
        assert response.status_code == 400
        assert "future" in response.json()["error"]["message"]

    def test_missing_cycle_is_404(self, client):
        response = client.post("/api/cycles/999/installments", json={
            "amount_paid": 100, "date_paid": "2026-03-01",
        })
        assert response.status_code == 404

    def test_history_lists_audit_entries(self, client):
        cycle = _open(client)
        client.post(f"/api/cycles/{cycle['id']}/installments", json={
            "amount_paid": 100, "date_paid": "2026-03-01",
        })

        history = client.get(f"/api/cycles/{cycle['id']}/history").json()["data"]

        assert [h["action"] for h in history] == ["update", "create"]

    def test_recent_activity_spans_cycles(self, client):
        first = _open(client, customer_id=7)
        second = _open(client, customer_id=8)
        client.post(f"/api/cycles/{first['id']}/installments", json={
            "amount_paid": 100, "date_paid": "2026-03-01",
        })

        recent = client.get("/api/audit/recent", params={"limit": 2}).json()["data"]

        assert [(e["entityId"], e["action"]) for e in recent] == [
            (first["id"], "update"), (second["id"], "create"),
        ]

    def test_recent_activity_limit_must_be_positive(self, client):
        response = client.get("/api/audit/recent", params={"limit": 0})
        assert response.status_code == 422


class TestMetadataAndDeletion:

    def test_patch_metadata(self, client):
        cycle = _open(client)
        response = client.patch(f"/api/cycles/{cycle['id']}/metadata", json={"shiftedAmount": 500})

        assert response.status_code == 200
        assert response.json()["data"]["shifted_amount"] == 500

    def test_patch_owned_field_is_400(self, client):
        cycle = _open(client)
        response = client.patch(f"/api/cycles/{cycle['id']}/metadata", json={"amountPaid": 2500})
        assert response.status_code == 400

    def test_delete_cycle(self, client):
        cycle = _open(client)

        response = client.delete(f"/api/cycles/{cycle['id']}")

        assert response.json()["data"] == {"deleted": True}
        assert client.get(f"/api/cycles/{cycle['id']}").status_code == 404

    def test_delete_missing_cycle_is_404(self, client):
        assert client.delete("/api/cycles/999").status_code == 404

    def test_purge_customer_cycles(self, client):
        _open(client, start="2026-01-01")
        _open(client, start="2026-02-28")
        _open(client, customer_id=8)

        response = client.delete("/api/customers/7/cycles")

        assert response.json()["data"] == {"deleted": 2}
        assert len(client.get("/api/cycles").json()["data"]) == 1


class TestRenewalsAndSummary:

    def test_renewal_carries_balance(self, client):
        _open(client, start="2026-01-01", total=2000)

        data = client.post("/api/renewals", json={
            "customer_id": 7, "start_date": "2026-01-31", "package_price": 2500, "amount": 1000,
        }).json()["data"]

        assert data["is_renewal"] is True
        assert data["total_amount"] == 4500
        assert data["previous_balance"] == 2000
        assert data["amount_pending"] == 3500

    def test_summary(self, client):
        _open(client, customer_id=7)
        _open(client, customer_id=8, start="2026-01-01", total=1000)

        data = client.post("/api/summary", json={
            "customers": [
                {"id": 7},
                {"id": 8, "status": "suspended"},
                {"id": 9, "is_archived": True},
            ],
        }).json()["data"]

        assert data["total_customers"] == 2
        assert data["suspended_count"] == 1
        assert data["overdue_count"] == 1
        assert data["overdue_amount"] == 1000
        assert data["pending_active_amount"] == 2500
        assert data["by_display_status"]["suspended"] == 1


class TestErrorMapping:

    def test_store_failure_is_503(self, client, store, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "add", broken)

        response = client.post("/api/cycles", json={
            "customer_id": 7, "start_date": "2026-02-28", "total_amount": 100,
        })

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    def test_unexpected_error_is_500(self, client, store, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(store, "add", broken)

        response = client.post("/api/cycles", json={
            "customer_id": 7, "start_date": "2026-02-28", "total_amount": 100,
        })

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "An internal error occurred"

    def test_response_carries_request_id(self, client):
        response = client.get("/api/cycles", headers={"X-Request-ID": "abc"})
        assert response.json()["meta"]["request_id"] == "abc"
