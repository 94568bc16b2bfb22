from helpers import (
    API,
    create_lesson,
    create_student,
    create_subscription,
    create_subscription_type,
)


def test_create_subscription_from_type(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")

    assert sub["total_lessons"] == 8
    assert sub["used_lessons"] == 0
    assert float(sub["price_per_lesson"]) == 1000.0
    assert sub["end_date"] == "2030-01-31"
    assert sub["paid_till"] == "2030-01-31"
    assert sub["status"] == "active"
    assert sub["subscription_type_name"] == "8 lessons"
    assert sub["student_name"] == "Ivan Sidorov"

    listed = client.get(f"{API}/subscriptions/student/{student['id']}", headers=headers).json()
    assert [s["id"] for s in listed] == [sub["id"]]


def test_custom_price_changes_price_per_lesson(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, lessons_count=3, price="1000")
    sub = create_subscription(client, headers, student["id"], sub_type["id"], total_price="1000")
    assert float(sub["price_per_lesson"]) == 333.33


def test_subscription_type_in_use_cannot_be_deleted(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    create_subscription(client, headers, student["id"], sub_type["id"])
    assert client.delete(f"{API}/subscriptions/types/{sub_type['id']}", headers=headers).status_code == 409

    unused = create_subscription_type(client, headers, name="Trial")
    assert client.delete(f"{API}/subscriptions/types/{unused['id']}", headers=headers).status_code == 200


def test_freeze_requires_freezable_type(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, can_freeze=False)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")

    response = client.post(f"{API}/subscriptions/{sub['id']}/freeze", json={
        "freeze_start": "2030-01-10", "freeze_end": "2030-01-14",
    }, headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "FREEZE_NOT_ALLOWED"


def test_freeze_dates_must_fit_subscription(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, can_freeze=True)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    url = f"{API}/subscriptions/{sub['id']}/freeze"

    before_start = client.post(url, json={"freeze_start": "2029-12-30", "freeze_end": "2030-01-05"}, headers=headers)
    assert before_start.status_code == 400

    after_end = client.post(url, json={"freeze_start": "2030-01-20", "freeze_end": "2030-02-10"}, headers=headers)
    assert after_end.status_code == 400

    reversed_range = client.post(url, json={"freeze_start": "2030-01-15", "freeze_end": "2030-01-10"},
                                 headers=headers)
    assert reversed_range.status_code == 400


def test_freeze_extends_subscription_and_moves_individual_lessons(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, can_freeze=True)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")

    inside = create_lesson(client, headers, "2030-01-12T10:00:00Z", "2030-01-12T11:00:00Z",
                           student_ids=[student["id"]]).json()
    outside = create_lesson(client, headers, "2030-01-20T10:00:00Z", "2030-01-20T11:00:00Z",
                            student_ids=[student["id"]]).json()

    response = client.post(f"{API}/subscriptions/{sub['id']}/freeze", json={
        "freeze_start": "2030-01-10", "freeze_end": "2030-01-14", "reason": "vacation",
    }, headers=headers)
    assert response.status_code == 201, response.text
    freeze = response.json()
    assert freeze["days"] == 5

    sub = client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()
    assert sub["end_date"] == "2030-02-05"
    assert sub["paid_till"] == "2030-02-05"
    assert sub["freeze_days_remaining"] == 5

    moved = client.get(f"{API}/lessons/{inside['id']}", headers=headers).json()
    assert moved["start"].startswith("2030-01-17T10:00:00")
    untouched = client.get(f"{API}/lessons/{outside['id']}", headers=headers).json()
    assert untouched["start"].startswith("2030-01-20T10:00:00")

    activities = client.get(f"{API}/students/{student['id']}/activities", headers=headers).json()
    assert activities[0]["activity_type"] == "freeze"
    assert activities[0]["metadata"]["lessons_moved"] == 1

    freezes = client.get(f"{API}/subscriptions/{sub['id']}/freezes", headers=headers).json()
    assert [f["reason"] for f in freezes] == ["vacation"]


def test_freeze_leaves_group_lessons_in_place(client, headers):
    student = create_student(client, headers)
    group = client.post(f"{API}/groups/", json={
        "name": "Math A1", "subject": "Math", "student_ids": [student["id"]],
    }, headers=headers).json()
    sub_type = create_subscription_type(client, headers, can_freeze=True)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    lesson = create_lesson(client, headers, "2030-01-12T10:00:00Z", "2030-01-12T11:00:00Z",
                           group_id=group["id"], student_ids=[student["id"]]).json()

    client.post(f"{API}/subscriptions/{sub['id']}/freeze", json={
        "freeze_start": "2030-01-10", "freeze_end": "2030-01-14",
    }, headers=headers)
    assert client.get(f"{API}/lessons/{lesson['id']}", headers=headers).json()["start"].startswith("2030-01-12")


def test_update_freeze_shifts_end_date(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers, can_freeze=True)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    freeze = client.post(f"{API}/subscriptions/{sub['id']}/freeze", json={
        "freeze_start": "2030-01-10", "freeze_end": "2030-01-14",
    }, headers=headers).json()

    response = client.put(f"{API}/subscriptions/freezes/{freeze['id']}", json={"freeze_end": "2030-01-16"},
                          headers=headers)
    assert response.status_code == 200
    assert response.json()["days"] == 7

    sub = client.get(f"{API}/subscriptions/{sub['id']}", headers=headers).json()
    assert sub["end_date"] == "2030-02-07"
    assert sub["freeze_days_remaining"] == 7


def test_update_subscription_status(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    sub = create_subscription(client, headers, student["id"], sub_type["id"])

    response = client.put(f"{API}/subscriptions/{sub['id']}", json={"status": "cancelled"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    active = client.get(f"{API}/subscriptions/", params={"status": "active"}, headers=headers).json()
    assert active == []
