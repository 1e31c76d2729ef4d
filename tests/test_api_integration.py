"""
Integration tests for the Personal Finance API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from datetime import datetime, timezone, timedelta

import jwt
from fastapi.testclient import TestClient

from finance_core.api import create_app
from finance_core.config import FinanceConfig
from finance_core.storage import InMemoryStorage
from finance_core.system import FinanceSystem


@pytest.fixture
def system():
    config = FinanceConfig(
        jwt_secret="test-secret",
        subscription_processing_enabled=False
    )
    return FinanceSystem(storage=InMemoryStorage(), config=config)


@pytest.fixture
def client(system):
    """Test client over an in-memory finance system"""
    with TestClient(create_app(system=system)) as client:
        yield client


def register(client, email="ana@example.com", password="secret1"):
    r = client.post("/api/users", json={"email": email, "password": password, "name": "Ana"})
    assert r.status_code == 201
    r = client.post("/api/users/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth(client):
    return register(client)


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "endpoints" in r.json()


class TestAuthFlow:
    """Signup, login and token checks"""

    def test_me(self, client, auth):
        r = client.get("/api/users/me", headers=auth)
        assert r.status_code == 200
        assert r.json()["email"] == "ana@example.com"
        assert "password_hash" not in r.json()

    def test_missing_token(self, client):
        assert client.get("/api/accounts").status_code == 401

    def test_invalid_token(self, client):
        r = client.get("/api/accounts", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401

    def test_expired_token(self, client, system, auth):
        user = system.user_manager.get_user_by_email("ana@example.com")
        expired = jwt.encode(
            {"sub": user.id, "exp": datetime.now(timezone.utc) - timedelta(hours=1)},
            "test-secret", algorithm="HS256"
        )
        r = client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
        assert r.status_code == 401
        assert r.json()["detail"] == "Token expired"

    def test_bad_credentials(self, client, auth):
        r = client.post("/api/users/login", json={"email": "ana@example.com", "password": "nope"})
        assert r.status_code == 401

    def test_duplicate_signup(self, client, auth):
        r = client.post("/api/users", json={"email": "ana@example.com", "password": "secret1"})
        assert r.status_code == 409

    def test_schema_violation_is_bad_request(self, client):
        r = client.post("/api/users", json={"email": "ana@example.com"})
        assert r.status_code == 400

    def test_forgot_password_does_not_reveal_accounts(self, client, auth):
        known = client.post("/api/users/forgot-password", json={"email": "ana@example.com"})
        unknown = client.post("/api/users/forgot-password", json={"email": "nobody@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_reset_password(self, client, system, auth):
        token = system.user_manager.issue_password_reset("ana@example.com")
        r = client.post("/api/users/reset-password", json={"token": token, "password": "brand-new"})
        assert r.status_code == 200

        r = client.post("/api/users/login", json={"email": "ana@example.com", "password": "brand-new"})
        assert r.status_code == 200


class TestAccountsAndCategories:
    """CRUD endpoints and ownership"""

    def test_account_crud(self, client, auth):
        r = client.post("/api/accounts", json={"name": "Checking", "type": "checking", "balance": 10.5},
                        headers=auth)
        assert r.status_code == 201
        account_id = r.json()["id"]
        assert r.json()["balance"] == 10.5

        r = client.put(f"/api/accounts/{account_id}", json={"name": "Main"}, headers=auth)
        assert r.json()["name"] == "Main"

        r = client.get("/api/accounts", headers=auth)
        assert [a["name"] for a in r.json()] == ["Main"]

        assert client.delete(f"/api/accounts/{account_id}", headers=auth).status_code == 204
        assert client.get(f"/api/accounts/{account_id}", headers=auth).status_code == 404

    def test_cross_user_access_is_not_found(self, client, auth):
        r = client.post("/api/categories", json={"name": "Food"}, headers=auth)
        category_id = r.json()["id"]

        other = register(client, email="bia@example.com")
        assert client.get(f"/api/categories/{category_id}", headers=other).status_code == 404
        assert client.delete(f"/api/categories/{category_id}", headers=other).status_code == 404

    def test_duplicate_category(self, client, auth):
        client.post("/api/categories", json={"name": "Food"}, headers=auth)
        r = client.post("/api/categories", json={"name": "FOOD"}, headers=auth)
        assert r.status_code == 409


class TestDebtFlow:
    """Debtor, debt and payment endpoints"""

    def test_payments_settle_debt(self, client, auth):
        debtor_id = client.post("/api/debtors", json={"name": "Carlos"}, headers=auth).json()["id"]
        r = client.post("/api/debts", json={"debtor_id": debtor_id, "description": "Loan",
                                            "total_amount": 100}, headers=auth)
        assert r.status_code == 201
        debt_id = r.json()["id"]

        r = client.post(f"/api/debts/{debt_id}/payments", json={"amount": 60}, headers=auth)
        assert r.status_code == 201
        assert r.json()["debt"]["remaining_amount"] == 40
        assert r.json()["debt"]["status"] == "PENDING"

        r = client.post(f"/api/debts/{debt_id}/payments", json={"amount": 40}, headers=auth)
        assert r.json()["debt"]["status"] == "PAID"
        assert r.json()["debt"]["paid_amount"] == 100

        r = client.get("/api/transactions", headers=auth)
        incomes = [t for t in r.json() if t["type"] == "INCOME"]
        assert len(incomes) == 1
        assert incomes[0]["amount"] == 100

        r = client.get("/api/debts/status/paid", headers=auth)
        assert [d["id"] for d in r.json()] == [debt_id]

        r = client.put(f"/api/debts/{debt_id}/pay", headers=auth)
        assert r.status_code == 409

        r = client.get(f"/api/debtors/{debtor_id}/debts", headers=auth)
        assert len(r.json()) == 1

    def test_delete_payment(self, client, auth):
        debtor_id = client.post("/api/debtors", json={"name": "Carlos"}, headers=auth).json()["id"]
        debt_id = client.post("/api/debts", json={"debtor_id": debtor_id, "description": "Loan",
                                                  "total_amount": 50}, headers=auth).json()["id"]
        payment_id = client.post(f"/api/debts/{debt_id}/payments", json={"amount": 20},
                                 headers=auth).json()["payment"]["id"]

        r = client.delete(f"/api/debts/{debt_id}/payments/{payment_id}", headers=auth)
        assert r.status_code == 204
        assert client.get(f"/api/debts/{debt_id}/payments", headers=auth).json() == []

    def test_invalid_payment_amount(self, client, auth):
        debtor_id = client.post("/api/debtors", json={"name": "Carlos"}, headers=auth).json()["id"]
        debt_id = client.post("/api/debts", json={"debtor_id": debtor_id, "description": "Loan",
                                                  "total_amount": 50}, headers=auth).json()["id"]

        r = client.post(f"/api/debts/{debt_id}/payments", json={"amount": -5}, headers=auth)
        assert r.status_code == 400

    def test_update_debt_clears_category(self, client, auth):
        debtor_id = client.post("/api/debtors", json={"name": "Carlos"}, headers=auth).json()["id"]
        category_id = client.post("/api/categories", json={"name": "Loans"}, headers=auth).json()["id"]
        debt_id = client.post("/api/debts", json={"debtor_id": debtor_id, "description": "Loan",
                                                  "total_amount": 50, "category_id": category_id},
                              headers=auth).json()["id"]

        r = client.put(f"/api/debts/{debt_id}", json={"description": "Car loan"}, headers=auth)
        assert r.status_code == 200
        assert r.json()["category_id"] == category_id

        r = client.put(f"/api/debts/{debt_id}", json={"category_id": None}, headers=auth)
        assert r.status_code == 200
        assert r.json()["category_id"] is None

    def test_invalid_status_filter(self, client, auth):
        assert client.get("/api/debts/status/overdue", headers=auth).status_code == 400


class TestTransactionFlow:
    """Transactions, installment plans and summaries"""

    def test_installment_plan_and_partial_payment(self, client, auth):
        r = client.post("/api/transactions", json={
            "description": "Laptop",
            "amount": 120,
            "date": "2024-01-15",
            "type": "EXPENSE",
            "is_installment_plan": True,
            "installment_count": 3,
            "installment_frequency": "MONTHLY",
            "first_installment_date": "2024-01-15"
        }, headers=auth)
        assert r.status_code == 201
        transaction = r.json()
        assert [i["amount"] for i in transaction["installments"]] == [40, 40, 40]
        assert transaction["installments"][1]["due_date"].startswith("2024-02-15")

        r = client.post(f"/api/transactions/{transaction['id']}/partial-payment", json={"amount": 50},
                        headers=auth)
        assert r.status_code == 200
        assert r.json()["paid_amount"] == 40
        assert r.json()["remaining_amount"] == 10
        statuses = [i["status"] for i in r.json()["transaction"]["installments"]]
        assert statuses == ["PAID", "PENDING", "PENDING"]

        first_id = transaction["installments"][0]["id"]
        r = client.put(f"/api/transactions/{transaction['id']}/installments/{first_id}/pay", headers=auth)
        assert r.status_code == 409

        r = client.put(f"/api/transactions/{transaction['id']}/pay", headers=auth)
        assert r.json()["type"] == "PAID"

    def test_invalid_installment_count(self, client, auth):
        r = client.post("/api/transactions", json={
            "description": "Laptop", "amount": 120, "date": "2024-01-15", "type": "EXPENSE",
            "is_installment_plan": True, "installment_count": 49, "installment_frequency": "MONTHLY"
        }, headers=auth)
        assert r.status_code == 400

    def test_monthly_listing_and_summary(self, client, auth):
        client.post("/api/transactions", json={"description": "Salary", "amount": 3000,
                                               "date": "2024-03-05", "type": "INCOME"}, headers=auth)
        client.post("/api/subscriptions", json={"name": "Rent", "amount": 900, "type": "EXPENSE",
                                                "frequency": "MONTHLY", "start_date": "2024-02-01"},
                    headers=auth)

        r = client.get("/api/transactions", params={"month": 3, "year": 2024}, headers=auth)
        assert r.status_code == 200
        assert sorted(t["is_virtual"] for t in r.json()) == [False, True]

        r = client.get("/api/transactions/summary", params={"month": 3, "year": 2024}, headers=auth)
        assert r.json()["total_income"] == 3000
        assert r.json()["total_expenses"] == 900
        assert r.json()["balance"] == 2100

        r = client.get("/api/transactions/summary", headers=auth)
        assert set(r.json()) >= {"all_time", "current_month", "recent_transactions"}
        assert r.json()["all_time"]["total_income"] == 3000

    def test_invalid_month(self, client, auth):
        assert client.get("/api/transactions", params={"month": 13}, headers=auth).status_code == 400


class TestSubscriptionFlow:
    """Subscription endpoints"""

    def test_lifecycle(self, client, auth):
        r = client.post("/api/subscriptions", json={"name": "Streaming", "amount": 15.9, "type": "EXPENSE",
                                                    "frequency": "MONTHLY", "start_date": "2024-01-01"},
                        headers=auth)
        assert r.status_code == 201
        subscription = r.json()
        assert subscription["next_payment_date"].startswith("2024-02-01")

        r = client.post("/api/subscriptions/process", headers=auth)
        assert r.json()["processed_count"] == 1
        assert r.json()["created_transactions"][0]["date"].startswith("2024-02-01")

        r = client.get("/api/subscriptions", headers=auth)
        assert r.json()[0]["transaction_count"] == 1

        r = client.patch(f"/api/subscriptions/{subscription['id']}/toggle", headers=auth)
        assert r.json()["is_active"] is False

        r = client.put(f"/api/subscriptions/{subscription['id']}", json={"amount": 19.9}, headers=auth)
        assert r.json()["amount"] == 19.9

        assert client.delete(f"/api/subscriptions/{subscription['id']}", headers=auth).status_code == 204
        r = client.get("/api/transactions", headers=auth)
        assert r.json()[0]["subscription_id"] is None

    def test_invalid_frequency(self, client, auth):
        r = client.post("/api/subscriptions", json={"name": "X", "amount": 1, "type": "EXPENSE",
                                                    "frequency": "HOURLY", "start_date": "2024-01-01"},
                        headers=auth)
        assert r.status_code == 400

    def test_upcoming(self, client, auth):
        today = datetime.now(timezone.utc).date()
        client.post("/api/subscriptions", json={"name": "Daily", "amount": 1, "type": "EXPENSE",
                                                "frequency": "DAILY", "start_date": today.isoformat()},
                    headers=auth)

        r = client.get("/api/subscriptions/upcoming", headers=auth)
        assert [s["name"] for s in r.json()] == ["Daily"]
