"""
Tests for the HTTP API.

Uses FastAPI's TestClient against an app wired to the in-memory database.
"""

import pytest
from unittest.mock import MagicMock

from pymongo.errors import ServerSelectionTimeoutError

from fastapi.testclient import TestClient

from app.main import create_app
from src.models.audit import AuditEventType
from src.orchestrator import create_app_components
from src.services.storage import MongoDatabaseClient, StorageError


USER_ID = "user-1"
MISSING_ID = "0123456789abcdef01234567"


def post_transaction(api, amount=12.5, category="Food & Dining", day="2024-03-10", user_id=USER_ID):
    response = api.post(
        "/api/transactions",
        json={
            "amount": amount,
            "description": "Lunch",
            "category": category,
            "date": day,
            "userId": user_id,
        },
    )
    assert response.status_code == 201
    return response.json()


def post_budget(api, category="Food & Dining", amount=500, month=3, year=2024):
    response = api.post(
        "/api/budgets",
        json={
            "category": category,
            "budgetAmount": amount,
            "month": month,
            "year": year,
            "userId": USER_ID,
        },
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """Tests for the health endpoint."""

    def test_health_ok(self, api):
        """Test that a reachable database reports OK."""
        response = api.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "OK"
        assert "timestamp" in response.json()

    def test_health_database_down(self, mongo_settings):
        """Test that an unreachable database reports 503."""
        client = MagicMock()
        client.admin.command.side_effect = ServerSelectionTimeoutError("down")
        components = create_app_components(
            MongoDatabaseClient(settings=mongo_settings, client=client)
        )

        with TestClient(create_app(components)) as api:
            response = api.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "ERROR"


class TestTransactionEndpoints:
    """Tests for /api/transactions."""

    def test_create_returns_document(self, api):
        """Test the created transaction's wire format."""
        body = post_transaction(api)

        assert body["_id"]
        assert body["amount"] == 12.5
        assert body["userId"] == USER_ID
        assert body["date"].startswith("2024-03-10")
        assert "createdAt" in body

    def test_create_missing_user_is_400(self, api):
        """Test that there is no default owner."""
        response = api.post(
            "/api/transactions",
            json={"amount": 5, "description": "x", "category": "Travel", "date": "2024-01-01"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"]

    def test_create_non_positive_amount_is_400(self, api):
        """Test amount validation."""
        response = api.post(
            "/api/transactions",
            json={
                "amount": 0,
                "description": "x",
                "category": "Travel",
                "date": "2024-01-01",
                "userId": USER_ID,
            },
        )
        assert response.status_code == 400

    def test_list_requires_user(self, api):
        """Test that listing without userId is rejected."""
        assert api.get("/api/transactions").status_code == 400

    def test_list_filters(self, api):
        """Test category filter and sort order parameters."""
        post_transaction(api, amount=10, day="2024-01-01")
        post_transaction(api, amount=20, day="2024-02-01")
        post_transaction(api, amount=30, category="Travel", day="2024-03-01")
        post_transaction(api, amount=40, user_id="user-2")

        response = api.get(
            "/api/transactions",
            params={"userId": USER_ID, "category": "Food & Dining", "sortOrder": 1},
        )

        assert response.status_code == 200
        assert [t["amount"] for t in response.json()] == [10, 20]

    def test_list_date_range(self, api):
        """Test startDate and endDate parameters."""
        post_transaction(api, amount=10, day="2024-01-01")
        post_transaction(api, amount=20, day="2024-02-01")

        response = api.get(
            "/api/transactions",
            params={"userId": USER_ID, "startDate": "2024-01-15", "endDate": "2024-02-15"},
        )
        assert [t["amount"] for t in response.json()] == [20]

    def test_list_rejects_bad_sort(self, api):
        """Test that only 1 and -1 are accepted as sortOrder."""
        response = api.get("/api/transactions", params={"userId": USER_ID, "sortOrder": 0})
        assert response.status_code == 400

        response = api.get("/api/transactions", params={"userId": USER_ID, "sortBy": "password"})
        assert response.status_code == 400

    def test_get_update_delete(self, api):
        """Test the single-transaction endpoints."""
        created = post_transaction(api)
        url = f"/api/transactions/{created['_id']}"

        assert api.get(url).json()["description"] == "Lunch"

        updated = api.put(url, json={"description": "Dinner", "amount": 20})
        assert updated.status_code == 200
        assert updated.json()["description"] == "Dinner"
        assert updated.json()["amount"] == 20

        deleted = api.delete(url)
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True}
        assert api.get(url).status_code == 404

    @pytest.mark.parametrize("transaction_id", [MISSING_ID, "not-an-object-id"])
    def test_unknown_ids_are_404(self, api, transaction_id):
        """Test that unknown and malformed ids are not found."""
        url = f"/api/transactions/{transaction_id}"

        for response in (api.get(url), api.put(url, json={"description": "x"}), api.delete(url)):
            assert response.status_code == 404
            assert response.json() == {"error": "Transaction not found"}

    def test_monthly_analytics(self, api):
        """Test monthly totals."""
        post_transaction(api, amount=10.1, day="2024-01-03")
        post_transaction(api, amount=20.2, day="2024-01-20")
        post_transaction(api, amount=5, day="2024-03-31")

        response = api.get("/api/transactions/analytics/monthly/2024", params={"userId": USER_ID})

        assert response.status_code == 200
        assert response.json() == [
            {"month": 1, "total": 30.3, "count": 2},
            {"month": 3, "total": 5.0, "count": 1},
        ]

    def test_category_analytics(self, api):
        """Test category totals."""
        post_transaction(api, amount=10, category="Travel")
        post_transaction(api, amount=30, category="Travel")
        post_transaction(api, amount=50, category="Housing")

        response = api.get(
            "/api/transactions/analytics/categories",
            params={"userId": USER_ID, "startDate": "2024-03-01", "endDate": "2024-03-31"},
        )

        assert response.json() == [
            {"category": "Housing", "total": 50.0, "count": 1, "average": 50.0},
            {"category": "Travel", "total": 40.0, "count": 2, "average": 20.0},
        ]

    def test_category_analytics_requires_range(self, api):
        """Test that both dates are required."""
        response = api.get(
            "/api/transactions/analytics/categories",
            params={"userId": USER_ID, "startDate": "2024-03-01"},
        )
        assert response.status_code == 400


class TestBudgetEndpoints:
    """Tests for /api/budgets."""

    def test_spent_follows_transactions(self, api):
        """Test that budgets track transaction writes."""
        budget = post_budget(api)
        transaction = post_transaction(api, amount=25)
        url = f"/api/budgets/{budget['_id']}"

        assert api.get(url).json()["spentAmount"] == 25

        api.delete(f"/api/transactions/{transaction['_id']}")
        assert api.get(url).json()["spentAmount"] == 0

    def test_duplicate_budget_is_400(self, api):
        """Test the duplicate budget response."""
        post_budget(api)
        response = api.post(
            "/api/budgets",
            json={
                "category": "Food & Dining",
                "budgetAmount": 100,
                "month": 3,
                "year": 2024,
                "userId": USER_ID,
            },
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Budget already exists for this category and period"}

    def test_list_by_period(self, api):
        """Test month and year filters."""
        post_budget(api, month=3)
        post_budget(api, month=4)

        response = api.get("/api/budgets", params={"userId": USER_ID, "month": 3, "year": 2024})
        assert [b["month"] for b in response.json()] == [3]

    def test_update_and_delete(self, api):
        """Test update and delete messages."""
        budget = post_budget(api)
        url = f"/api/budgets/{budget['_id']}"

        response = api.put(url, json={"budgetAmount": 750})
        assert response.json() == {"message": "Budget updated successfully"}
        assert api.get(url).json()["budgetAmount"] == 750

        response = api.delete(url)
        assert response.json() == {"message": "Budget deleted successfully"}
        assert api.delete(url).status_code == 404

    def test_vs_actual(self, api):
        """Test budget vs actual per month."""
        post_budget(api, amount=500)
        post_budget(api, category="Travel", amount=250)
        post_transaction(api, amount=100)

        response = api.get("/api/budgets/analytics/vs-actual/2024", params={"userId": USER_ID})

        assert response.json() == [{"month": 3, "totalBudget": 750.0, "totalSpent": 100.0}]

    def test_recalculate(self, api):
        """Test spent reconciliation."""
        post_transaction(api, amount=40)
        budget = post_budget(api)

        response = api.post(f"/api/budgets/{budget['_id']}/recalculate")

        assert response.status_code == 200
        assert response.json()["spentAmount"] == 40

    def test_recalculate_unknown(self, api):
        """Test reconciliation of an unknown budget."""
        response = api.post(f"/api/budgets/{MISSING_ID}/recalculate")
        assert response.status_code == 404
        assert response.json() == {"error": "Budget not found"}

    def test_recalculate_december_of_last_year(self, api):
        """Test reconciliation of a December budget in the last accepted year."""
        post_transaction(api, amount=40, day="9998-12-15")
        budget = post_budget(api, month=12, year=9998)

        response = api.post(f"/api/budgets/{budget['_id']}/recalculate")

        assert response.status_code == 200
        assert response.json()["spentAmount"] == 40

    def test_year_past_range_is_400(self, api):
        """Test that budgets and yearly analytics share one year range."""
        response = api.post(
            "/api/budgets",
            json={
                "category": "Food & Dining",
                "budgetAmount": 500,
                "month": 12,
                "year": 9999,
                "userId": USER_ID,
            },
        )
        assert response.status_code == 400

        params = {"userId": USER_ID}
        assert api.get("/api/budgets/analytics/vs-actual/9999", params=params).status_code == 400
        assert api.get("/api/transactions/analytics/monthly/9999", params=params).status_code == 400
        assert api.get("/api/transactions/analytics/monthly/9998", params=params).status_code == 200


class TestCategoryEndpoints:
    """Tests for /api/categories."""

    def test_create_and_duplicate(self, api):
        """Test creation and the duplicate name response."""
        payload = {"name": "Pets", "userId": USER_ID}

        created = api.post("/api/categories", json=payload)
        assert created.status_code == 201
        assert created.json()["icon"] == "DollarSign"

        duplicate = api.post("/api/categories", json=payload)
        assert duplicate.status_code == 400
        assert duplicate.json() == {"error": "Category name already exists"}

    def test_initialize(self, api):
        """Test the default set bootstrap and its idempotence."""
        first = api.post("/api/categories/initialize", json={"userId": USER_ID})
        assert first.status_code == 201
        assert first.json()["count"] == 10

        second = api.post("/api/categories/initialize", json={"userId": USER_ID})
        assert second.status_code == 200
        assert second.json() == {"message": "Default categories already exist"}

        listed = api.get("/api/categories", params={"userId": USER_ID}).json()
        assert len(listed) == 10

    def test_update_and_delete(self, api):
        """Test update and delete messages."""
        created = api.post("/api/categories", json={"name": "Pets", "userId": USER_ID}).json()
        url = f"/api/categories/{created['_id']}"

        assert api.put(url, json={"color": "#000000"}).json() == {
            "message": "Category updated successfully"
        }
        assert api.get(url).json()["color"] == "#000000"
        assert api.delete(url).json() == {"message": "Category deleted successfully"}
        assert api.get(url).json() == {"error": "Category not found"}


class TestUserEndpoints:
    """Tests for /api/users."""

    def test_register_and_lookup(self, api):
        """Test registration, lookup by id and by email."""
        response = api.post("/api/users", json={"email": "ana@example.com", "name": "Ana"})
        assert response.status_code == 201
        user = response.json()

        assert user["preferences"] == {"currency": "USD", "dateFormat": "MM/DD/YYYY", "theme": "dark"}
        assert api.get(f"/api/users/{user['_id']}").json()["email"] == "ana@example.com"
        assert api.get("/api/users/email/ana@example.com").json()["_id"] == user["_id"]

        categories = api.get("/api/categories", params={"userId": user["_id"]}).json()
        assert len(categories) == 10

    def test_duplicate_email_is_400(self, api):
        """Test the duplicate email response."""
        api.post("/api/users", json={"email": "ana@example.com", "name": "Ana"})
        response = api.post("/api/users", json={"email": "ana@example.com", "name": "Ana"})

        assert response.status_code == 400
        assert response.json() == {"error": "Email already exists"}

    def test_update(self, api):
        """Test the update message."""
        user = api.post("/api/users", json={"email": "ana@example.com", "name": "Ana"}).json()

        response = api.put(f"/api/users/{user['_id']}", json={"name": "Ana Maria"})
        assert response.json() == {"message": "User updated successfully"}

    def test_unknown_user(self, api):
        """Test lookups of unknown users."""
        assert api.get(f"/api/users/{MISSING_ID}").status_code == 404
        assert api.get("/api/users/email/nobody@example.com").json() == {"error": "User not found"}

    def test_invalid_email_is_400(self, api):
        """Test that a malformed email is rejected at registration."""
        for email in ("ana@@example.com", "ana@example", "ana example@example.com"):
            response = api.post("/api/users", json={"email": email, "name": "Ana"})
            assert response.status_code == 400
            assert response.json()["error"] == "Invalid request"


class TestErrorMapping:
    """Tests for the generic error responses."""

    def test_storage_failure_is_500(self, api, components, monkeypatch):
        """Test that storage errors become a generic 500."""
        def broken(*args, **kwargs):
            raise StorageError("disk on fire")

        monkeypatch.setattr(components.transactions, "find_by_user", broken)

        response = api.get("/api/transactions", params={"userId": USER_ID})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_storage_failure_is_audited(self, api, components, monkeypatch):
        """Test that a 500 leaves a system error in the audit trail."""
        def broken(*args, **kwargs):
            raise StorageError("disk on fire")

        monkeypatch.setattr(components.transactions, "find_by_user", broken)

        api.get("/api/transactions", params={"userId": USER_ID})

        errors = [
            e for e in components.audit_storage.get_recent_events()
            if e.event_type == AuditEventType.SYSTEM_ERROR
        ]
        assert len(errors) == 1
        assert errors[0].error_message == "disk on fire"
        assert errors[0].details == {"path": "/api/transactions", "method": "GET"}

    def test_unknown_route(self, api):
        """Test the unknown route response."""
        response = api.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Route not found"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
