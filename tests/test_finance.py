from decimal import Decimal

import pytest

from classmate.core.exceptions import ValidationError
from classmate.services.email_service import email_service
from classmate.services.payment_service import balance_effect

from helpers import API, create_student


def _transaction(client, headers, student_id, amount, transaction_type="payment", **extra):
    response = client.post(f"{API}/payments/transactions", json={
        "student_id": student_id, "amount": amount, "type": transaction_type, **extra,
    }, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _balance(client, headers, student_id):
    return Decimal(client.get(f"{API}/payments/balance/{student_id}", headers=headers).json()["balance"])


def test_balance_effect_signs():
    assert balance_effect("payment", Decimal("100")) == Decimal("100")
    assert balance_effect("refund", Decimal("40")) == Decimal("-40")
    assert balance_effect("debt", Decimal("25")) == Decimal("-25")
    assert balance_effect("deduction", Decimal("10")) == Decimal("-10")
    with pytest.raises(ValidationError):
        balance_effect("gift", Decimal("1"))


def test_transactions_move_balance(client, headers):
    student = create_student(client, headers)
    _transaction(client, headers, student["id"], "5000", payment_method="card")
    _transaction(client, headers, student["id"], "1500", "refund")
    _transaction(client, headers, student["id"], "500", "debt")

    assert _balance(client, headers, student["id"]) == Decimal("3000")

    history = client.get(f"{API}/payments/transactions/student/{student['id']}", headers=headers).json()
    assert [t["type"] for t in history] == ["debt", "refund", "payment"]
    assert history[2]["payment_method"] == "card"
    assert history[2]["student_name"] == "Ivan Sidorov"


def test_payment_sets_last_payment_date(client, headers):
    student = create_student(client, headers)
    balance = client.get(f"{API}/payments/balance/{student['id']}", headers=headers).json()
    assert balance["last_payment_date"] is None

    _transaction(client, headers, student["id"], "100")
    balance = client.get(f"{API}/payments/balance/{student['id']}", headers=headers).json()
    assert balance["last_payment_date"] is not None


def test_amount_must_be_positive(client, headers):
    student = create_student(client, headers)
    response = client.post(f"{API}/payments/transactions", json={
        "student_id": student["id"], "amount": "0", "type": "payment",
    }, headers=headers)
    assert response.status_code == 400


def test_update_transaction_reverses_previous_effect(client, headers):
    student = create_student(client, headers)
    transaction = _transaction(client, headers, student["id"], "1000")

    response = client.put(f"{API}/payments/transactions/{transaction['id']}", json={"amount": "700"}, headers=headers)
    assert response.status_code == 200
    assert _balance(client, headers, student["id"]) == Decimal("700")

    client.put(f"{API}/payments/transactions/{transaction['id']}", json={"type": "refund"}, headers=headers)
    assert _balance(client, headers, student["id"]) == Decimal("-700")


def test_payment_email_is_sent_in_background(client, headers, monkeypatch):
    sent = []

    def fake_send(email, student_name, amount, transaction_type, balance):
        sent.append((email, amount, transaction_type, balance))
        return {"success": True}

    monkeypatch.setattr(email_service, "send_payment_notification", fake_send)
    student = create_student(client, headers, email="ivan@mail.example.com")
    _transaction(client, headers, student["id"], "250")
    _transaction(client, headers, student["id"], "50", "debt")

    assert sent == [("ivan@mail.example.com", "250.00", "payment", "250.00")]


def test_balances_listing(client, headers):
    first = create_student(client, headers, name="A")
    create_student(client, headers, name="B")
    _transaction(client, headers, first["id"], "300")

    balances = {b["student_name"]: Decimal(b["balance"]) for b in
                client.get(f"{API}/payments/balances", headers=headers).json()}
    assert balances == {"A": Decimal("300"), "B": Decimal("0")}


def test_tariff_crud(client, headers):
    response = client.post(f"{API}/tariffs/", json={"name": "Standard", "price": "12000", "lesson_count": 8},
                           headers=headers)
    assert response.status_code == 201
    tariff = response.json()

    updated = client.put(f"{API}/tariffs/{tariff['id']}", json={"price": "13000"}, headers=headers).json()
    assert Decimal(updated["price"]) == Decimal("13000")
    assert [t["name"] for t in client.get(f"{API}/tariffs/", headers=headers).json()] == ["Standard"]

    assert client.delete(f"{API}/tariffs/{tariff['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/tariffs/{tariff['id']}", headers=headers).status_code == 404


def test_debt_records(client, headers):
    student = create_student(client, headers)
    response = client.post(f"{API}/debts/", json={
        "student_id": student["id"], "amount": "2000", "due_date": "2030-02-01",
    }, headers=headers)
    assert response.status_code == 201
    debt = response.json()
    assert debt["status"] == "pending"
    assert debt["student_name"] == "Ivan Sidorov"

    client.put(f"{API}/debts/{debt['id']}", json={"status": "paid"}, headers=headers)
    assert client.get(f"{API}/debts/", params={"status": "pending"}, headers=headers).json() == []
    assert len(client.get(f"{API}/debts/student/{student['id']}", headers=headers).json()) == 1
