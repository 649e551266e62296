"""API smoke tests: routing, auth, permissions, error envelope."""
from decimal import Decimal

import pytest

from tests.conftest import auth_headers
from tests.factories import make_table_bom, make_user


@pytest.fixture
async def catalog(database):
    async with database.session() as s:
        data = await make_table_bom(s)
        await s.commit()
    return data


async def _create_mo(client, bom_id, quantity="2"):
    resp = await client.post("/api/v1/manufacturing-orders/from-bom", json={"bom_id": bom_id, "quantity": quantity})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestPlumbing:

    async def test_health_is_public(self, anon_client):
        resp = await anon_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_missing_token_is_401_envelope(self, anon_client):
        resp = await anon_client.get("/api/v1/manufacturing-orders")
        assert resp.status_code == 401
        body = resp.json()
        assert body["data"] is None
        assert body["error"]["code"] == "not_authenticated"

    async def test_operator_cannot_manage_orders(self, app, database, catalog):
        from httpx import ASGITransport, AsyncClient

        async with database.session() as s:
            operator = await make_user(s)
            await s.commit()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers(operator)) as c:
            listed = await c.get("/api/v1/manufacturing-orders")
            assert listed.status_code == 200
            resp = await c.post(
                "/api/v1/manufacturing-orders/from-bom", json={"bom_id": catalog["bom"].id, "quantity": "1"}
            )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "permission_denied"


class TestManufacturingOrders:

    async def test_create_and_fetch(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        assert mo["status"] == "draft"
        assert mo["reference"].startswith("MO-")
        assert mo["is_deletable"] is True
        assert mo["is_unassigned"] is True
        assert mo["progress"]["total"] == 2
        assert [wo["operation_name"] for wo in mo["work_orders"]] == ["Assembly", "Painting"]

        resp = await client.get(f"/api/v1/manufacturing-orders/{mo['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == mo["id"]

    async def test_list_is_paged_newest_first(self, client, catalog):
        created = [(await _create_mo(client, catalog["bom"].id))["id"] for _ in range(3)]
        resp = await client.get("/api/v1/manufacturing-orders", params={"page": 2, "page_size": 2})
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["total_count"] == 3
        assert [mo["id"] for mo in body["data"]] == [created[0]]

    async def test_not_found_envelope(self, client):
        resp = await client.get("/api/v1/manufacturing-orders/9999")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "not_found"
        assert "9999" in error["message"]

    async def test_lifecycle_and_invalid_transition(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)

        resp = await client.post(f"/api/v1/manufacturing-orders/{mo['id']}/complete")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "invalid_transition"
        assert resp.json()["meta"]["status"] == "draft"

        resp = await client.post(f"/api/v1/manufacturing-orders/{mo['id']}/confirm")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["previous_status"] == "draft"
        assert data["order"]["status"] == "confirmed"
        assert data["order"]["component_status"] == "reserved"
        assert data["hooks"] == [{"hook": "reserve_components", "ok": True, "error_code": None, "message": None}]

    async def test_confirm_shortfall_is_a_warning(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id, quantity="50")
        resp = await client.post(f"/api/v1/manufacturing-orders/{mo['id']}/confirm")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["order"]["status"] == "confirmed"
        assert data["hooks"][0]["error_code"] == "insufficient_stock"
        assert len(data["warnings"]) == 1

        resp = await client.get("/api/v1/ledger/entries", params={"reference": "RESERVE"})
        assert resp.json()["meta"]["total_count"] == 0

    async def test_components_and_cost(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        resp = await client.get(f"/api/v1/manufacturing-orders/{mo['id']}/components")
        assert resp.status_code == 200
        rows = {r["product_name"]: r for r in resp.json()["data"]}
        assert Decimal(rows["Wooden Leg"]["required_qty"]) == Decimal("8")
        assert rows["Wooden Leg"]["sufficient"] is True

        resp = await client.get(f"/api/v1/manufacturing-orders/{mo['id']}/cost")
        assert resp.status_code == 200
        assert Decimal(resp.json()["data"]["components_cost"]) == Decimal("80.00")

    async def test_patch_schedule(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        resp = await client.patch(f"/api/v1/manufacturing-orders/{mo['id']}", json={"end_date": "2026-01-01"})
        assert resp.status_code == 200
        assert resp.json()["data"]["end_date"] == "2026-01-01"

    async def test_delete_draft(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        resp = await client.delete(f"/api/v1/manufacturing-orders/{mo['id']}")
        assert resp.status_code == 204
        assert (await client.get(f"/api/v1/manufacturing-orders/{mo['id']}")).status_code == 404


class TestWorkOrders:

    async def test_start_pause_complete(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        wo_id = mo["work_orders"][0]["id"]

        resp = await client.post(f"/api/v1/work-orders/{wo_id}/start")
        assert resp.status_code == 200
        assert resp.json()["data"]["work_order"]["status"] == "in_progress"

        resp = await client.post(f"/api/v1/work-orders/{wo_id}/pause")
        assert resp.json()["data"]["work_order"]["status"] == "paused"

        resp = await client.post(f"/api/v1/work-orders/{wo_id}/complete")
        data = resp.json()["data"]
        assert data["work_order"]["status"] == "done"
        assert data["progress"]["done"] == 1
        assert data["progress"]["percent_done"] == 50.0

        resp = await client.post(f"/api/v1/work-orders/{wo_id}/pause")
        assert resp.status_code == 409

    async def test_list_filtered_by_order(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        await _create_mo(client, catalog["bom"].id)
        resp = await client.get("/api/v1/work-orders", params={"mo_id": mo["id"]})
        assert {wo["mo_id"] for wo in resp.json()["data"]} == {mo["id"]}

    async def test_generate_missing(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id)
        resp = await client.post(f"/api/v1/work-orders/generate-missing/{mo['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "already_exists"


class TestCatalogAndLedger:

    async def test_movement_and_summary(self, client):
        resp = await client.post("/api/v1/products", json={"name": "Glue", "uom": "Litres", "unit_cost": "3"})
        assert resp.status_code == 201
        product_id = resp.json()["data"]["id"]

        resp = await client.post(
            "/api/v1/ledger/movements",
            json={"product_id": product_id, "movement_type": "in", "quantity": "4", "unit_cost": "3.5"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["movement_type"] == "in"

        resp = await client.get("/api/v1/ledger/summary")
        row = next(r for r in resp.json()["data"] if r["product_id"] == product_id)
        assert Decimal(row["on_hand"]) == Decimal("4")
        assert Decimal(row["total_value"]) == Decimal("14.00")

    async def test_movement_validation_is_422(self, client):
        resp = await client.post(
            "/api/v1/ledger/movements", json={"product_id": 1, "movement_type": "in", "quantity": "0"}
        )
        assert resp.status_code == 422

    async def test_bom_preview(self, client, catalog):
        resp = await client.get(f"/api/v1/boms/{catalog['bom'].id}/preview", params={"quantity": "3"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [Decimal(c["required_qty"]) for c in data["components"]] == [Decimal("12"), Decimal("3")]
        assert [op["name"] for op in data["operations"]] == ["Assembly", "Painting"]

    async def test_product_in_use_cannot_be_deleted(self, client, catalog):
        resp = await client.delete(f"/api/v1/products/{catalog['leg'].id}")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "referential_error"


class TestDashboard:

    async def test_dashboard_is_cached(self, client, catalog, fake_redis):
        await _create_mo(client, catalog["bom"].id)
        resp = await client.get("/api/v1/reports/dashboard")
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["cached"] is False
        assert body["data"]["manufacturing_orders"]["draft"] == 1
        assert await fake_redis.get("report:dashboard") is not None

        resp = await client.get("/api/v1/reports/dashboard")
        assert resp.json()["meta"]["cached"] is True

    async def test_dashboard_cache_expires(self, client, fake_redis):
        resp = await client.get("/api/v1/reports/dashboard", params={"refresh": "true"})
        assert resp.status_code == 200
        assert 0 < await fake_redis.ttl("report:dashboard") <= 60


class TestReports:

    async def test_throughput_and_cycle_time(self, client, catalog):
        mo = await _create_mo(client, catalog["bom"].id, quantity="1")
        for step in ("confirm", "start", "complete"):
            resp = await client.post(f"/api/v1/manufacturing-orders/{mo['id']}/{step}")
            assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["order"]["completed_at"] is not None

        resp = await client.get("/api/v1/reports/throughput", params={"period": "week"})
        assert resp.status_code == 200
        assert sum(b["completed"] for b in resp.json()["data"]) == 1

        resp = await client.get("/api/v1/reports/cycle-time")
        assert resp.status_code == 200
        assert resp.json()["data"] == []

    async def test_throughput_rejects_unknown_period(self, client):
        resp = await client.get("/api/v1/reports/throughput", params={"period": "year"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    async def test_user_work_summary_and_self_service(self, client, catalog, admin_user):
        mo = await _create_mo(client, catalog["bom"].id)
        wo_id = mo["work_orders"][0]["id"]
        resp = await client.post(f"/api/v1/work-orders/{wo_id}/assign", json={"assignee_id": admin_user.id})
        assert resp.status_code == 200
        await client.post(f"/api/v1/work-orders/{wo_id}/start")

        resp = await client.get("/api/v1/reports/user-work-summary")
        assert resp.json()["data"] == [
            {"user_id": admin_user.id, "name": "Test Admin", "total": 1, "done": 0, "in_progress": 1}
        ]

        resp = await client.get("/api/v1/me/profile")
        assert resp.status_code == 200
        assert resp.json()["data"]["work_orders"]["in_progress"] == 1

        resp = await client.get("/api/v1/me/work-orders")
        rows = resp.json()["data"]
        assert [r["id"] for r in rows] == [wo_id]
        assert rows[0]["mo_reference"] == mo["reference"]
        assert rows[0]["variance_mins"] is None

    async def test_operator_cannot_read_reports_but_sees_own_work(self, app, database):
        from httpx import ASGITransport, AsyncClient

        async with database.session() as s:
            operator = await make_user(s)
            await s.commit()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers(operator)) as c:
            assert (await c.get("/api/v1/reports/user-work-summary")).status_code == 403
            resp = await c.get("/api/v1/me/work-orders")
        assert resp.status_code == 200
        assert resp.json()["data"] == []
