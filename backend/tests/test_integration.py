"""
Integration tests: FastAPI app against a temporary SQLite file.

conftest.py points DATABASE_URL at a temp directory before the app is imported;
the lifespan hook creates the tables and seeds tax_config with Karnataka as home.
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def karnataka_home(client):
    """Restore the seeded home state after tests that change it."""
    yield
    client.put("/api/tax/home-state", json={"state_name": "Karnataka"})


class TestHealth:
    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"
        assert data["home_state"] == "Karnataka"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["docs"] == "/docs"


class TestTaxEndpoints:
    def test_states_seeded_home_first(self, client):
        r = client.get("/api/tax/states")
        assert r.status_code == 200
        states = r.json()
        assert len(states) >= 36
        assert states[0]["state_name"] == "Karnataka"
        assert states[0]["is_home_state"] is True
        assert sum(1 for s in states if s["is_home_state"]) == 1

    def test_get_home_state(self, client):
        r = client.get("/api/tax/home-state")
        assert r.status_code == 200
        assert r.json()["state_name"] == "Karnataka"

    def test_split_intra_state(self, client):
        r = client.post("/api/tax/split", json={"gst_rate": 18, "customer_state": "karnataka"})
        assert r.status_code == 200
        split = r.json()
        assert split["kind"] == "intra_state"
        assert split["cgst_percent"] == 9.0
        assert split["sgst_percent"] == 9.0
        assert split["igst_percent"] == 0.0

    def test_split_with_explicit_home_state(self, client):
        r = client.post(
            "/api/tax/split",
            json={"gst_rate": 28, "customer_state": "Goa", "home_state": "Goa"},
        )
        assert r.status_code == 200
        assert r.json()["kind"] == "intra_state"

    def test_split_invalid_rate(self, client):
        r = client.post("/api/tax/split", json={"gst_rate": 140, "customer_state": "Goa"})
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"

    def test_line_item_inter_state(self, client):
        r = client.post(
            "/api/tax/line-item",
            json={"amount": 1000, "gst_rate": 18, "customer_state": "Maharashtra"},
        )
        assert r.status_code == 200
        tax = r.json()
        assert tax["igst_amount"] == 180.0
        assert tax["total_tax_amount"] == 180.0
        assert tax["total_amount"] == 1180.0
        assert tax["home_state"] == "Karnataka"
        assert tax["fallback_applied"] is False

    def test_line_item_components_sum_to_total(self, client):
        r = client.post(
            "/api/tax/line-item",
            json={"amount": 1000, "gst_rate": 18, "customer_state": "Karnataka"},
        )
        tax = r.json()
        assert tax["cgst_amount"] + tax["sgst_amount"] + tax["igst_amount"] == tax["total_tax_amount"]

    def test_line_item_without_rate_rejected(self, client):
        # Fallback policy is disabled in tests
        r = client.post(
            "/api/tax/line-item", json={"amount": 1000, "customer_state": "Karnataka"}
        )
        assert r.status_code == 422

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_line_item_non_finite_amount_rejected(self, client, literal):
        # json.loads accepts these literals, so they reach the service
        r = client.post(
            "/api/tax/line-item",
            content=f'{{"amount": {literal}, "gst_rate": 18, "customer_state": "Goa"}}',
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"

    def test_split_nan_rate_rejected(self, client):
        r = client.post(
            "/api/tax/split",
            content='{"gst_rate": NaN, "customer_state": "Goa"}',
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422

    def test_change_home_state(self, client, karnataka_home):
        r = client.put("/api/tax/home-state", json={"state_name": "Maharashtra"})
        assert r.status_code == 200
        assert r.json()["state_name"] == "Maharashtra"

        r = client.post(
            "/api/tax/line-item",
            json={"amount": 1000, "gst_rate": 18, "customer_state": "Maharashtra"},
        )
        assert r.json()["split"]["kind"] == "intra_state"
        assert r.json()["cgst_amount"] == 90.0

    def test_change_home_state_unknown(self, client):
        r = client.put("/api/tax/home-state", json={"state_name": "Atlantis"})
        assert r.status_code == 404
        assert r.json()["type"] == "NotFoundError"
        assert client.get("/api/tax/home-state").json()["state_name"] == "Karnataka"

    def test_add_duplicate_state(self, client):
        r = client.post("/api/tax/states", json={"state_name": "Kerala", "state_code": "QQ"})
        assert r.status_code == 422


class TestCaseEndpoints:
    def _create(self, client, client_name="Acme Pumps"):
        r = client.post(
            "/api/cases",
            json={
                "client_name": client_name,
                "project_name": "Panel retrofit",
                "customer_state": "Karnataka",
                "actor_id": 1,
            },
        )
        assert r.status_code == 201
        return r.json()

    def test_create_case(self, client):
        case = self._create(client)
        assert case["current_state"] == "enquiry"
        assert case["case_number"].startswith("VESPL/C/")

        r = client.get(f"/api/cases/{case['id']}/history")
        assert r.status_code == 200
        history = r.json()
        assert len(history) == 1
        assert history[0]["from_state"] is None
        assert history[0]["to_state"] == "enquiry"

    def test_create_case_blank_client(self, client):
        r = client.post("/api/cases", json={"client_name": " ", "project_name": "x"})
        assert r.status_code == 422

    def test_skip_transition_conflict(self, client):
        case = self._create(client)
        r = client.post(f"/api/cases/{case['id']}/transition", json={"to_state": "order"})
        assert r.status_code == 409
        assert r.json()["type"] == "InvalidTransitionError"
        assert client.get(f"/api/cases/{case['id']}").json()["current_state"] == "enquiry"

    def test_forward_transition(self, client):
        case = self._create(client)
        r = client.post(
            f"/api/cases/{case['id']}/transition",
            json={"to_state": "estimation", "actor_id": 5, "notes": "Estimator assigned"},
        )
        assert r.status_code == 200
        record = r.json()
        assert record["from_state"] == "enquiry"
        assert record["to_state"] == "estimation"
        assert record["created_by"] == 5

        r = client.get(f"/api/cases/{case['id']}/next-state")
        assert r.json() == {"current_state": "estimation", "next_state": "quotation"}
        assert len(client.get(f"/api/cases/{case['id']}/history").json()) == 2

    def test_list_by_state_and_lookup_by_number(self, client):
        case = self._create(client, client_name="Lookup Ltd")
        r = client.get("/api/cases", params={"state": "enquiry"})
        assert r.status_code == 200
        assert case["id"] in [c["id"] for c in r.json()]

        r = client.get("/api/cases/by-number", params={"case_number": case["case_number"]})
        assert r.status_code == 200
        assert r.json()["id"] == case["id"]

    def test_search(self, client):
        case = self._create(client, client_name="Searchable Steels")
        r = client.get("/api/cases/search", params={"q": "searchable"})
        assert r.status_code == 200
        assert [c["id"] for c in r.json()] == [case["id"]]

    def test_search_blank_query(self, client):
        r = client.get("/api/cases/search", params={"q": " "})
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"

    def test_reassign_with_note(self, client):
        case = self._create(client)
        r = client.patch(
            f"/api/cases/{case['id']}",
            json={"assigned_to": 21, "notes": "Regional engineer takes over", "actor_id": 2},
        )
        assert r.status_code == 200
        assert r.json()["assigned_to"] == 21
        assert r.json()["current_state"] == "enquiry"

        history = client.get(f"/api/cases/{case['id']}/history").json()
        assert len(history) == 2
        assert history[-1]["from_state"] == history[-1]["to_state"] == "enquiry"
        assert history[-1]["notes"] == "Regional engineer takes over"

    def test_reassign_unknown_case(self, client):
        r = client.patch("/api/cases/999999", json={"assigned_to": 1})
        assert r.status_code == 404

    def test_unknown_state_filter(self, client):
        r = client.get("/api/cases", params={"state": "archived"})
        assert r.status_code == 422

    def test_case_not_found(self, client):
        assert client.get("/api/cases/999999").status_code == 404
        r = client.post("/api/cases/999999/transition", json={"to_state": "estimation"})
        assert r.status_code == 404

    def test_statistics(self, client):
        self._create(client)
        r = client.get("/api/cases/statistics")
        assert r.status_code == 200
        stats = r.json()
        states = [row["state"] for row in stats["by_state"]]
        assert states == [
            "enquiry", "estimation", "quotation", "order", "production", "delivery", "closed",
        ]
        assert stats["total_cases"] == sum(row["count"] for row in stats["by_state"])
        assert stats["active_cases"] >= 1


class TestInventoryEndpoints:
    @pytest.fixture(scope="class")
    def product(self, client):
        r = client.post(
            "/api/products",
            json={"name": "VFD 7.5kW", "hsn_code": "8504", "gst_rate": 18},
        )
        assert r.status_code == 201
        return r.json()

    def test_duplicate_product(self, client, product):
        r = client.post("/api/products", json={"name": "VFD 7.5kW"})
        assert r.status_code == 409

    def test_invalid_gst_rate_on_product(self, client):
        r = client.post("/api/products", json={"name": "Bad Rate", "gst_rate": 150})
        assert r.status_code == 422

    def test_receipts_update_average_cost(self, client, product):
        r = client.post(
            "/api/inventory/receipts",
            json={"product_id": product["id"], "quantity": 100, "unit_cost": 10.0},
        )
        assert r.status_code == 201
        assert r.json()["average_cost_after"] == 10.0

        r = client.post(
            "/api/inventory/receipts",
            json={"product_id": product["id"], "quantity": 50, "unit_cost": 12.0},
        )
        assert r.status_code == 201
        body = r.json()
        assert body["quantity_after"] == 150
        assert body["average_cost_after"] == 10.67

        r = client.get(f"/api/products/{product['id']}")
        assert r.json()["average_cost"] == 10.67
        assert r.json()["last_purchase_price"] == 12.0

        batches = client.get("/api/inventory/batches", params={"product_id": product["id"]}).json()
        assert len(batches) == 2
        assert all(b["batch_number"].startswith(f"P{product['id']}-") for b in batches)

    def test_zero_quantity_receipt(self, client, product):
        r = client.post(
            "/api/inventory/receipts",
            json={"product_id": product["id"], "quantity": 0, "unit_cost": 10.0},
        )
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"

    def test_receipt_unknown_product(self, client):
        r = client.post(
            "/api/inventory/receipts",
            json={"product_id": 987654, "quantity": 1, "unit_cost": 1.0},
        )
        assert r.status_code == 404

    def test_average_cost_preview(self, client):
        r = client.post(
            "/api/inventory/average-cost/preview",
            json={
                "existing_quantity": 0,
                "existing_average_cost": 42.0,
                "incoming_quantity": 20,
                "incoming_unit_cost": 15.0,
            },
        )
        assert r.status_code == 200
        assert r.json()["new_average_cost"] == 15.0

    def test_valuation(self, client):
        r = client.get("/api/inventory/valuation")
        assert r.status_code == 200
        data = r.json()
        assert data["total_products"] >= 1
        assert data["total_inventory_value"] >= 0
