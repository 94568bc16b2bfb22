from datetime import datetime, timedelta, timezone

from classmate.core.timeutils import week_bounds

from helpers import API, create_lesson, create_room, create_teacher


def _iso(moment):
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def test_workload_counts_this_weeks_active_lessons(client, headers):
    teacher = create_teacher(client, headers)
    monday, _ = week_bounds(datetime.now(timezone.utc).date())
    slots = [
        (monday + timedelta(hours=10), "scheduled"),
        (monday + timedelta(hours=12), "cancelled"),
        (monday + timedelta(days=7, hours=10), "scheduled"),
    ]
    for start, lesson_status in slots:
        response = create_lesson(client, headers, _iso(start), _iso(start + timedelta(hours=1)),
                                 teacher_id=teacher["id"], status=lesson_status)
        assert response.status_code == 201, response.text

    assert client.get(f"{API}/teachers/{teacher['id']}", headers=headers).json()["workload"] == 1
    listed = client.get(f"{API}/teachers/", headers=headers).json()
    assert [t["workload"] for t in listed] == [1]


def test_teacher_with_lessons_cannot_be_deleted(client, headers, foreign_keys):
    teacher = create_teacher(client, headers)
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", teacher_id=teacher["id"])

    response = client.delete(f"{API}/teachers/{teacher['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "TEACHER_IN_USE"
    assert response.json()["lessons"] == 1
    assert client.get(f"{API}/teachers/{teacher['id']}", headers=headers).status_code == 200


def test_teacher_leading_a_group_cannot_be_deleted(client, headers, foreign_keys):
    teacher = create_teacher(client, headers)
    client.post(f"{API}/groups/", json={"name": "Math A1", "subject": "Math", "teacher_id": teacher["id"]},
                headers=headers)

    response = client.delete(f"{API}/teachers/{teacher['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["groups"] == 1


def test_unused_teacher_is_deleted(client, headers, foreign_keys):
    teacher = create_teacher(client, headers)
    assert client.delete(f"{API}/teachers/{teacher['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/teachers/{teacher['id']}", headers=headers).status_code == 404


def test_room_with_lessons_cannot_be_deleted(client, headers, foreign_keys):
    room = create_room(client, headers)
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", room_id=room["id"])

    response = client.delete(f"{API}/rooms/{room['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "ROOM_IN_USE"

    spare = create_room(client, headers, name="Room 2")
    assert client.delete(f"{API}/rooms/{spare['id']}", headers=headers).status_code == 200
