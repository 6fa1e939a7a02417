"""Tests for the Flask REST API."""

import json

from api.app import create_app, load_config
from carledger.fixtures import SAMPLE_OWNER_ID, sample_expenses
from carledger.storage import ExpenseStore, JSONStorage, save_expenses

from conftest import NOW, OTHER_OWNER, OWNER, expense_payload

HEADERS = {"X-User-Id": OWNER}


def create(client, owner=OWNER, **overrides):
    response = client.post(
        "/expenses", json=expense_payload(**overrides), headers={"X-User-Id": owner}
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()


class TestAuthentication:
    """Requests must name their owner."""

    def test_missing_header(self, client):
        response = client.get("/expenses")
        assert response.status_code == 401
        assert response.get_json()["error"] == "Authentication required"

    def test_blank_header(self, client):
        assert client.get("/expenses/stats", headers={"X-User-Id": " "}).status_code == 401


class TestCreate:
    """Tests for POST /expenses."""

    def test_create(self, client):
        body = create(client, mileage="31000", tags=["Highway"])
        assert body["id"]
        assert body["owner_id"] == OWNER
        assert body["amount"] == "50000.00"
        assert body["mileage"] == 31000
        assert body["tags"] == ["highway"]
        assert body["created_at"] == body["updated_at"]

    def test_missing_required_field(self, client):
        response = client.post(
            "/expenses", json=expense_payload(description=None), headers=HEADERS
        )
        assert response.status_code == 400
        assert "description" in response.get_json()["details"]

    def test_requires_json(self, client):
        response = client.post("/expenses", data="amount=5", headers=HEADERS)
        assert response.status_code == 400

    def test_rejects_non_object_body(self, client):
        response = client.post(
            "/expenses", data=json.dumps([1, 2]), content_type="application/json", headers=HEADERS
        )
        assert response.status_code == 400

    def test_oversized_amount(self, client):
        response = client.post(
            "/expenses", json=expense_payload(amount="1e30"), headers=HEADERS
        )
        assert response.status_code == 400
        assert "too large" in response.get_json()["details"]

    def test_update_with_oversized_amount(self, client):
        created = create(client)
        response = client.patch(
            f"/expenses/{created['id']}", json={"amount": "1e30"}, headers=HEADERS
        )
        assert response.status_code == 400


class TestList:
    """Tests for GET /expenses."""

    def test_list_with_pagination(self, client):
        for day in range(1, 6):
            create(client, date=f"2024-05-0{day}")
        create(client, owner=OTHER_OWNER)
        body = client.get("/expenses?page=2&limit=2", headers=HEADERS).get_json()
        assert body["total"] == 5
        assert [exp["date"] for exp in body["expenses"]] == ["2024-05-03", "2024-05-02"]
        assert body["pagination"] == {
            "current_page": 2,
            "limit": 2,
            "total_pages": 3,
            "total_count": 5,
            "has_next": True,
            "has_prev": True,
        }

    def test_filters(self, client):
        create(client, car_id="car_1", category="FUEL", date="2024-05-02")
        create(client, car_id="car_2", category="TOLL", date="2024-05-12")
        body = client.get("/expenses?car_id=car_2", headers=HEADERS).get_json()
        assert [exp["category"] for exp in body["expenses"]] == ["TOLL"]
        body = client.get(
            "/expenses?start_date=2024-05-01&end_date=2024-05-02", headers=HEADERS
        ).get_json()
        assert body["total"] == 1

    def test_invalid_filter(self, client):
        assert client.get("/expenses?category=SNACKS", headers=HEADERS).status_code == 400
        assert client.get("/expenses?page=abc", headers=HEADERS).status_code == 400

    def test_empty(self, client):
        body = client.get("/expenses", headers=HEADERS).get_json()
        assert body["expenses"] == []
        assert body["total"] == 0


class TestSingleRecord:
    """Tests for GET/PUT/PATCH/DELETE /expenses/<id>."""

    def test_get(self, client):
        created = create(client)
        response = client.get(f"/expenses/{created['id']}", headers=HEADERS)
        assert response.get_json() == created

    def test_other_owner_sees_404(self, client):
        created = create(client)
        response = client.get(f"/expenses/{created['id']}", headers={"X-User-Id": OTHER_OWNER})
        assert response.status_code == 404

    def test_update(self, client, clock):
        created = create(client, notes="keep")
        clock.advance(minutes=1)
        response = client.put(f"/expenses/{created['id']}", json={"amount": 42000}, headers=HEADERS)
        body = response.get_json()
        assert response.status_code == 200
        assert body["amount"] == "42000.00"
        assert body["notes"] == "keep"
        assert body["updated_at"] > created["updated_at"]

    def test_patch_invalid(self, client):
        created = create(client)
        response = client.patch(
            f"/expenses/{created['id']}", json={"category": "SNACKS"}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_update_missing(self, client):
        response = client.put("/expenses/nope", json={"amount": 1}, headers=HEADERS)
        assert response.status_code == 404

    def test_delete(self, client):
        created = create(client)
        response = client.delete(f"/expenses/{created['id']}", headers=HEADERS)
        assert response.get_json() == {"deleted": True}
        assert client.delete(f"/expenses/{created['id']}", headers=HEADERS).status_code == 404


class TestStats:
    """Tests for GET /expenses/stats."""

    def test_month_stats(self, client):
        create(client, category="FUEL", amount="30000", date="2024-05-20")
        create(client, category="TOLL", amount="10000", date="2024-05-21")
        create(client, category="TOLL", amount="5000", date="2024-03-01")
        body = client.get("/expenses/stats", headers=HEADERS).get_json()
        assert body["period"] == "month"
        assert body["window_start"] == "2024-05-01"
        assert body["summary"]["total_amount"] == "40000.00"
        assert body["summary"]["total_transactions"] == 2
        percentages = {s["category"]: s["percentage"] for s in body["category_stats"]}
        assert percentages == {"FUEL": 75.0, "TOLL": 25.0}
        assert len(body["recent_expenses"]) == 3

    def test_year_stats(self, client):
        create(client, amount="5000", date="2024-03-01")
        body = client.get("/expenses/stats?period=year", headers=HEADERS).get_json()
        assert body["summary"]["total_amount"] == "5000.00"


class TestConfiguration:
    """Tests for environment-driven configuration."""

    def test_env_defaults(self, monkeypatch):
        for name in ("CAR_LEDGER_ENV", "CAR_LEDGER_SEED", "CAR_LEDGER_DATA_DIR", "CAR_LEDGER_PAGE_LIMIT"):
            monkeypatch.delenv(name, raising=False)
        config = load_config()
        assert config["ENV"] == "prod"
        assert config["PAGE_LIMIT"] == 20
        assert config["DATA_DIR"] is None

    def test_page_limit_from_env(self, monkeypatch):
        monkeypatch.setenv("CAR_LEDGER_PAGE_LIMIT", "2")
        app = create_app(store=ExpenseStore(), config={"SEED": "", "DATA_DIR": None})
        client = app.test_client()
        for _ in range(3):
            client.post("/expenses", json=expense_payload(), headers=HEADERS)
        body = client.get("/expenses", headers=HEADERS).get_json()
        assert len(body["expenses"]) == 2
        assert body["total"] == 3

    def test_sample_seed(self):
        app = create_app(clock=lambda: NOW, config={"SEED": "sample", "DATA_DIR": None})
        body = app.test_client().get(
            "/expenses/stats", headers={"X-User-Id": SAMPLE_OWNER_ID}
        ).get_json()
        assert body["summary"]["total_amount"] == "125000.00"
        assert body["recent_expenses"][0]["id"] == "user_sample_expense_3"

    def test_seed_from_data_dir(self, tmp_path):
        save_expenses(JSONStorage(tmp_path), sample_expenses(NOW))
        app = create_app(config={"SEED": "", "DATA_DIR": str(tmp_path)})
        body = app.test_client().get(
            "/expenses", headers={"X-User-Id": SAMPLE_OWNER_ID}
        ).get_json()
        assert body["total"] == 3

    def test_sample_seed_on_top_of_snapshot(self, tmp_path):
        save_expenses(JSONStorage(tmp_path), sample_expenses(NOW))
        app = create_app(clock=lambda: NOW, config={"SEED": "sample", "DATA_DIR": str(tmp_path)})
        body = app.test_client().get(
            "/expenses", headers={"X-User-Id": SAMPLE_OWNER_ID}
        ).get_json()
        assert body["total"] == 3
