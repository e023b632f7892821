# tests/test_api.py
"""
HTTP-level tests: authentication, tenancy header and the mapping of ledger
errors to status codes with a `kind` in the response detail.
"""
import sqlite3
import time
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.exc import OperationalError

from conftest import MEMBER_ID, OUTSIDER_ID, OWNER_ID
from crud import journal_entry as journal_entry_crud
from crud.foundations import add_member
from database import get_db
from main import app
from models.foundation import MemberRole
from utils import clock


def _token(user_id, expires_in=3600):
    claims = {"sub": user_id, "aud": "authenticated", "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, "test-jwt-secret", algorithm="HS256")


def _headers(user_id, foundation_id=None):
    headers = {"Authorization": f"Bearer {_token(user_id)}"}
    if foundation_id:
        headers["X-Foundation-ID"] = foundation_id
    return headers


@pytest.fixture
def client(session_factory, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(clock, "today", lambda: date(2025, 3, 14))
    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager: the lifespan would start the scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def ledger(client, session_factory):
    """Creates a foundation through the API; returns its id and account ids by number."""
    response = client.post("/foundations/", json={"name": "Stiftelsen Api"}, headers=_headers(OWNER_ID))
    assert response.status_code == 201
    foundation_id = response.json()["id"]

    session = session_factory()
    try:
        add_member(session, foundation_id, MEMBER_ID, MemberRole.MEMBER)
    finally:
        session.close()

    accounts = client.get("/accounts/", headers=_headers(OWNER_ID, foundation_id)).json()
    return foundation_id, {account["account_number"]: account["id"] for account in accounts}


def _entry(accounts, debit="500.00", credit="500.00"):
    return {
        "entry_date": "2025-03-14",
        "description": "Donation received",
        "lines": [
            {"account_id": accounts["1010"], "debit_amount": debit, "credit_amount": "0"},
            {"account_id": accounts["4010"], "debit_amount": "0", "credit_amount": credit},
        ],
    }


class TestAuthentication:

    def test_root(self, client):
        assert client.get("/").json() == {"message": "Foundation Ledger API"}

    def test_missing_token(self, client):
        response = client.get("/accounts/", headers={"X-Foundation-ID": "anything"})

        assert response.status_code == 401

    def test_expired_token(self, client):
        headers = {"Authorization": f"Bearer {_token(OWNER_ID, expires_in=-60)}", "X-Foundation-ID": "anything"}

        response = client.get("/accounts/", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_token_signed_with_another_secret(self, client):
        token = jwt.encode({"sub": OWNER_ID, "aud": "authenticated"}, "someone-elses-secret", algorithm="HS256")

        response = client.post(
            "/foundations/", json={"name": "Stiftelsen"}, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401


class TestFoundationEndpoints:

    def test_create_foundation_seeds_chart(self, client):
        response = client.post("/foundations/", json={"name": "Stiftelsen Api"}, headers=_headers(OWNER_ID))

        body = response.json()
        assert response.status_code == 201
        assert body["owner_id"] == OWNER_ID
        assert body["chart_version"] == "bas-foundation-2025.1"
        assert body["accounts_created"] == 35

    def test_invalid_name_is_rejected(self, client):
        response = client.post("/foundations/", json={"name": " "}, headers=_headers(OWNER_ID))

        assert response.status_code == 422

    def test_outsider_cannot_read_foundation(self, client, ledger):
        foundation_id, _ = ledger

        response = client.get(f"/foundations/{foundation_id}", headers=_headers(OUTSIDER_ID))

        assert response.status_code == 403
        assert response.json()["detail"]["kind"] == "NotAuthorized"

    def test_bootstrap_again_creates_nothing(self, client, ledger):
        foundation_id, _ = ledger

        response = client.post("/accounts/bootstrap", headers=_headers(OWNER_ID, foundation_id))

        assert response.status_code == 200
        assert response.json()["accounts_created"] == 0


class TestAccountEndpoints:

    def test_null_account_name_is_rejected(self, client, ledger):
        foundation_id, accounts = ledger
        headers = _headers(OWNER_ID, foundation_id)

        response = client.patch(f"/accounts/{accounts['1010']}", json={"account_name": None}, headers=headers)

        assert response.status_code == 422
        assert client.get(f"/accounts/{accounts['1010']}", headers=headers).json()["account_name"] == "Cash"

    def test_rename_keeps_other_fields(self, client, ledger):
        foundation_id, accounts = ledger

        response = client.patch(
            f"/accounts/{accounts['1010']}", json={"account_name": "Kassa"}, headers=_headers(OWNER_ID, foundation_id)
        )

        assert response.status_code == 200
        assert response.json()["account_name"] == "Kassa"
        assert response.json()["account_type"] == "asset"
        assert response.json()["is_active"] is True


class TestJournalEntryEndpoints:

    def test_validate_reports_reason_and_totals(self, client, ledger):
        _, accounts = ledger

        response = client.post(
            "/journal-entries/validate", json=_entry(accounts, credit="400.00"), headers=_headers(OWNER_ID)
        )

        body = response.json()
        assert response.status_code == 200
        assert body["is_valid"] is False
        assert body["reason"] == "Unbalanced"
        assert Decimal(str(body["total_debit"])) == Decimal("500.00")
        assert Decimal(str(body["total_credit"])) == Decimal("400.00")

    def test_validate_requires_a_token(self, client, ledger):
        _, accounts = ledger

        response = client.post("/journal-entries/validate", json=_entry(accounts))

        assert response.status_code == 401

    def test_lock_timeout_while_posting_is_504(self, client, ledger, monkeypatch):
        foundation_id, accounts = ledger
        headers = _headers(OWNER_ID, foundation_id)
        entry = client.post("/journal-entries/", json=_entry(accounts), headers=headers).json()

        def locked_deltas(session, deltas, direction):
            raise OperationalError("UPDATE chart_of_accounts", {}, sqlite3.OperationalError("database is locked"))

        monkeypatch.setattr(journal_entry_crud, "_apply_balance_deltas", locked_deltas)
        response = client.post(f"/journal-entries/{entry['id']}/post", headers=headers)

        assert response.status_code == 504
        assert response.json()["detail"]["kind"] == "Timeout"
        assert client.get(f"/journal-entries/{entry['id']}", headers=headers).json()["status"] == "draft"

    def test_unbalanced_entry_is_422_with_reason(self, client, ledger):
        foundation_id, accounts = ledger

        response = client.post(
            "/journal-entries/", json=_entry(accounts, credit="400.00"), headers=_headers(OWNER_ID, foundation_id)
        )

        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "ValidationError"
        assert response.json()["detail"]["reason"] == "Unbalanced"

    def test_post_and_reverse_flow(self, client, ledger):
        foundation_id, accounts = ledger
        headers = _headers(OWNER_ID, foundation_id)

        created = client.post("/journal-entries/", json=_entry(accounts), headers=headers)
        assert created.status_code == 201
        entry = created.json()
        assert entry["entry_number"] == "JE-2025-000001"
        assert entry["status"] == "draft"
        assert len(entry["lines"]) == 2

        posted = client.post(f"/journal-entries/{entry['id']}/post", headers=headers)
        assert posted.status_code == 200
        assert posted.json()["status"] == "posted"
        assert posted.json()["approved_by"] == OWNER_ID

        cash = client.get(f"/accounts/{accounts['1010']}", headers=headers).json()
        assert Decimal(str(cash["balance"])) == Decimal("500.00")

        reversed_entry = client.post(f"/journal-entries/{entry['id']}/reverse", headers=headers)
        assert reversed_entry.json()["status"] == "reversed"

        again = client.post(f"/journal-entries/{entry['id']}/post", headers=headers)
        assert again.status_code == 409
        assert again.json()["detail"]["kind"] == "InvalidStatusTransition"

        cash = client.get(f"/accounts/{accounts['1010']}", headers=headers).json()
        assert Decimal(str(cash["balance"])) == Decimal("0")

    def test_member_can_read_but_not_write(self, client, ledger):
        foundation_id, accounts = ledger
        client.post("/journal-entries/", json=_entry(accounts), headers=_headers(OWNER_ID, foundation_id))

        listed = client.get("/journal-entries/", headers=_headers(MEMBER_ID, foundation_id))
        created = client.post("/journal-entries/", json=_entry(accounts), headers=_headers(MEMBER_ID, foundation_id))

        assert listed.status_code == 200
        assert [entry["entry_number"] for entry in listed.json()] == ["JE-2025-000001"]
        assert created.status_code == 403
        assert created.json()["detail"]["kind"] == "NotAuthorized"

    def test_list_filters_by_status(self, client, ledger):
        foundation_id, accounts = ledger
        headers = _headers(OWNER_ID, foundation_id)
        first = client.post("/journal-entries/", json=_entry(accounts), headers=headers).json()
        client.post("/journal-entries/", json=_entry(accounts), headers=headers)
        client.post(f"/journal-entries/{first['id']}/post", headers=headers)

        response = client.get("/journal-entries/", params={"entry_status": "posted"}, headers=headers)

        assert [entry["id"] for entry in response.json()] == [first["id"]]

    def test_unknown_entry_is_404(self, client, ledger):
        foundation_id, _ = ledger

        response = client.get("/journal-entries/424242", headers=_headers(OWNER_ID, foundation_id))

        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "NotFound"

    def test_replace_and_delete_draft(self, client, ledger):
        foundation_id, accounts = ledger
        headers = _headers(OWNER_ID, foundation_id)
        entry = client.post("/journal-entries/", json=_entry(accounts), headers=headers).json()

        replacement = _entry(accounts, debit="650.00", credit="650.00")
        replacement["description"] = "Corrected donation"
        replaced = client.put(f"/journal-entries/{entry['id']}", json=replacement, headers=headers)
        assert replaced.status_code == 200
        assert replaced.json()["description"] == "Corrected donation"
        assert Decimal(str(replaced.json()["total_debit"])) == Decimal("650.00")

        deleted = client.delete(f"/journal-entries/{entry['id']}", headers=headers)
        assert deleted.status_code == 204
        assert client.get(f"/journal-entries/{entry['id']}", headers=headers).status_code == 404


class TestInvoiceEndpoints:

    def test_create_sales_invoice(self, client, ledger):
        foundation_id, _ = ledger
        payload = {
            "invoice_type": "sales",
            "customer_supplier_name": "Konsult AB",
            "invoice_date": "2025-03-14",
            "due_date": "2025-04-13",
            "items": [
                {"description": "Advisory", "quantity": "2", "unit_price": "1500.00", "tax_rate": "25"},
            ],
        }

        response = client.post("/invoices/", json=payload, headers=_headers(OWNER_ID, foundation_id))

        body = response.json()
        assert response.status_code == 201
        assert body["invoice_number"] == "INV-2025-000001"
        assert Decimal(str(body["subtotal"])) == Decimal("3000.00")
        assert Decimal(str(body["tax_amount"])) == Decimal("750.00")
        assert Decimal(str(body["total_amount"])) == Decimal("3750.00")
        assert len(body["items"]) == 1

    def test_due_date_before_invoice_date_is_rejected(self, client, ledger):
        foundation_id, _ = ledger
        payload = {
            "invoice_type": "purchase",
            "customer_supplier_name": "Leverantör AB",
            "invoice_date": "2025-03-14",
            "due_date": "2025-03-01",
            "items": [{"description": "Paper", "quantity": "1", "unit_price": "10.00"}],
        }

        response = client.post("/invoices/", json=payload, headers=_headers(OWNER_ID, foundation_id))

        assert response.status_code == 422
