from uuid import UUID

import pytest

from classmate.models.subscription import SubscriptionConsumption

from helpers import (
    API,
    create_lesson,
    create_student,
    create_subscription,
    create_subscription_type,
)


def _lesson(client, headers, student_id, day):
    response = create_lesson(client, headers, f"2030-01-{day:02d}T10:00:00Z", f"2030-01-{day:02d}T11:00:00Z",
                             student_ids=[student_id])
    assert response.status_code == 201, response.text
    return response.json()


def _mark(client, headers, lesson_id, student_id, status="attended", **extra):
    return client.post(f"{API}/attendance/", json={
        "lesson_id": lesson_id, "student_id": student_id, "status": status, **extra,
    }, headers=headers)


def _balance(client, headers, student_id):
    return float(client.get(f"{API}/payments/balance/{student_id}", headers=headers).json()["balance"])


def test_attending_deducts_one_lesson(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=4, price="4000")
    sub = create_subscription(client, headers, student["id"], sub_type["id"])
    lesson = _lesson(client, headers, student["id"], 7)

    response = _mark(client, headers, lesson["id"], student["id"])
    assert response.status_code == 200, response.text
    assert response.json()["subscription_id"] == sub["id"]

    sub = client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()
    assert sub["used_lessons"] == 1
    assert sub["lessons_remaining"] == 3
    assert _balance(client, headers, student["id"]) == -1000.0


def test_marking_twice_does_not_deduct_twice(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=4, price="4000")
    sub = create_subscription(client, headers, student["id"], sub_type["id"])
    lesson = _lesson(client, headers, student["id"], 7)

    _mark(client, headers, lesson["id"], student["id"])
    again = _mark(client, headers, lesson["id"], student["id"], notes="late")
    assert again.status_code == 200
    assert again.json()["notes"] == "late"
    assert again.json()["subscription_id"] == sub["id"]

    sub = client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()
    assert sub["used_lessons"] == 1
    assert _balance(client, headers, student["id"]) == -1000.0

    records = client.get(f"{API}/attendance/lesson/{lesson['id']}", headers=headers).json()
    assert len(records) == 1


def test_missed_lesson_is_not_charged(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=4, price="4000")
    sub = create_subscription(client, headers, student["id"], sub_type["id"])
    lesson = _lesson(client, headers, student["id"], 7)

    response = _mark(client, headers, lesson["id"], student["id"], status="missed", reason="sick")
    assert response.json()["subscription_id"] is None
    assert client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()["used_lessons"] == 0

    # Correcting to attended charges the lesson once
    _mark(client, headers, lesson["id"], student["id"])
    assert client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()["used_lessons"] == 1


@pytest.mark.parametrize("billing_type", ["monthly", "unlimited"])
def test_flat_rate_subscription_records_consumption_only(client, headers, db, billing_type):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=8, price="8000", billing_type=billing_type)
    sub = create_subscription(client, headers, student["id"], sub_type["id"])
    lesson = _lesson(client, headers, student["id"], 7)

    response = _mark(client, headers, lesson["id"], student["id"])
    assert response.status_code == 200, response.text
    assert response.json()["subscription_id"] == sub["id"]

    assert client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()["used_lessons"] == 0
    assert _balance(client, headers, student["id"]) == 0.0

    consumptions = db.query(SubscriptionConsumption).filter(
        SubscriptionConsumption.subscription_id == UUID(sub["id"])
    ).all()
    assert len(consumptions) == 1
    assert str(consumptions[0].lesson_id) == lesson["id"]
    assert consumptions[0].units == 1


def test_attendance_without_subscription(client, headers):
    student = create_student(client, headers)
    lesson = _lesson(client, headers, student["id"], 7)
    response = _mark(client, headers, lesson["id"], student["id"])
    assert response.status_code == 200
    assert response.json()["subscription_id"] is None
    assert _balance(client, headers, student["id"]) == 0.0


def test_subscription_runs_out_and_notifies(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=3, price="3000")
    sub = create_subscription(client, headers, student["id"], sub_type["id"])
    lessons = [_lesson(client, headers, student["id"], day) for day in (7, 8, 9)]

    _mark(client, headers, lessons[0]["id"], student["id"])
    notifications = client.get(f"{API}/students/{student['id']}/notifications", headers=headers).json()
    assert [n["type"] for n in notifications] == ["subscription_expiring"]

    _mark(client, headers, lessons[1]["id"], student["id"])
    _mark(client, headers, lessons[2]["id"], student["id"])

    sub = client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()
    assert sub["lessons_remaining"] == 0
    assert sub["status"] == "expired"

    types = [n["type"] for n in client.get(f"{API}/students/{student['id']}/notifications", headers=headers).json()]
    assert sorted(types) == ["subscription_expired", "subscription_expiring"]
    assert _balance(client, headers, student["id"]) == -3000.0


def test_attendance_journal(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    create_subscription(client, headers, student["id"], sub_type["id"])
    first = _lesson(client, headers, student["id"], 7)
    second = _lesson(client, headers, student["id"], 8)
    _mark(client, headers, first["id"], student["id"])
    _mark(client, headers, second["id"], student["id"], status="missed")

    journal = client.get(f"{API}/students/{student['id']}/attendance", headers=headers).json()
    assert [entry["lesson_id"] for entry in journal] == [second["id"], first["id"]]
    assert journal[1]["subscription_type_name"] == "8 lessons"

    history = client.get(f"{API}/attendance/student/{student['id']}", headers=headers).json()
    assert len(history) == 2


def test_unknown_lesson_is_404(client, headers):
    student = create_student(client, headers)
    response = _mark(client, headers, "00000000-0000-0000-0000-000000000001", student["id"])
    assert response.status_code == 404
