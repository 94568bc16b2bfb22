from datetime import datetime, timezone

from helpers import API, create_lesson, create_room, create_student, create_teacher


def _parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_lesson_with_students(client, headers):
    teacher = create_teacher(client, headers)
    room = create_room(client, headers)
    student = create_student(client, headers)

    response = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                             teacher_id=teacher["id"], room_id=room["id"], student_ids=[student["id"]])
    assert response.status_code == 201, response.text
    lesson = response.json()
    assert lesson["teacher_name"] == "Anna Petrova"
    assert lesson["room_name"] == "Room 1"
    assert lesson["student_ids"] == [student["id"]]
    assert lesson["status"] == "scheduled"
    assert _parse(lesson["start"]) == datetime(2030, 1, 7, 10, tzinfo=timezone.utc)


def test_teacher_double_booking_conflicts(client, headers):
    teacher = create_teacher(client, headers)
    first = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", teacher_id=teacher["id"])
    assert first.status_code == 201

    response = create_lesson(client, headers, "2030-01-07T10:30:00Z", "2030-01-07T11:30:00Z",
                             teacher_id=teacher["id"])
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "LESSON_CONFLICT"
    assert body["conflicts"][0]["conflict_type"] == "teacher"
    assert body["conflicts"][0]["lesson_id"] == first.json()["id"]


def test_back_to_back_lessons_do_not_conflict(client, headers):
    room = create_room(client, headers)
    assert create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                         room_id=room["id"]).status_code == 201
    assert create_lesson(client, headers, "2030-01-07T11:00:00Z", "2030-01-07T12:00:00Z",
                         room_id=room["id"]).status_code == 201


def test_cancelled_lessons_free_the_slot(client, headers):
    room = create_room(client, headers)
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                  room_id=room["id"], status="cancelled")
    response = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", room_id=room["id"])
    assert response.status_code == 201


def test_duration_limits(client, headers):
    too_short = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T10:10:00Z")
    assert too_short.status_code == 400
    assert too_short.json()["code"] == "INVALID_DURATION"

    too_long = create_lesson(client, headers, "2030-01-07T08:00:00Z", "2030-01-07T15:00:00Z")
    assert too_long.status_code == 400

    backwards = create_lesson(client, headers, "2030-01-07T11:00:00Z", "2030-01-07T10:00:00Z")
    assert backwards.status_code == 400
    assert backwards.json()["code"] == "INVALID_TIME_RANGE"


def test_update_does_not_conflict_with_itself(client, headers):
    teacher = create_teacher(client, headers)
    lesson = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                           teacher_id=teacher["id"]).json()
    response = client.put(f"{API}/lessons/{lesson['id']}", json={
        "title": "Geometry", "subject": "Math", "teacher_id": teacher["id"],
        "start": "2030-01-07T10:15:00Z", "end": "2030-01-07T11:15:00Z",
    }, headers=headers)
    assert response.status_code == 200, response.text
    assert response.json()["title"] == "Geometry"


def test_check_conflicts_suggests_free_slots(client, headers):
    teacher = create_teacher(client, headers)
    room = create_room(client, headers, name="Room 1")
    create_room(client, headers, name="Online")
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                  teacher_id=teacher["id"], room_id=room["id"])

    response = client.post(f"{API}/lessons/check-conflicts", json={
        "teacher_id": teacher["id"], "start": "2030-01-07T10:00:00Z", "end": "2030-01-07T11:00:00Z",
    }, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["has_conflicts"] is True
    suggestions = body["suggested_times"]
    assert len(suggestions) == 3
    assert all(s["room_name"] == "Room 1" for s in suggestions)
    assert [_parse(s["start"]).hour for s in suggestions] == [11, 11, 12]
    assert _parse(suggestions[1]["start"]).minute == 30


def test_late_conflict_suggests_earlier_slots_first(client, headers):
    teacher = create_teacher(client, headers)
    room = create_room(client, headers)
    create_lesson(client, headers, "2030-01-07T20:00:00Z", "2030-01-07T21:00:00Z",
                  teacher_id=teacher["id"], room_id=room["id"])

    response = client.post(f"{API}/lessons/check-conflicts", json={
        "teacher_id": teacher["id"], "start": "2030-01-07T20:00:00Z", "end": "2030-01-07T21:00:00Z",
    }, headers=headers)
    suggestions = response.json()["suggested_times"]
    # Only 21:00 fits before closing, the rest comes from walking backward
    assert [_parse(s["start"]).strftime("%H:%M") for s in suggestions] == ["18:30", "19:00", "21:00"]
    assert _parse(suggestions[-1]["end"]).hour == 22


def test_check_conflicts_without_overlap(client, headers):
    teacher = create_teacher(client, headers)
    response = client.post(f"{API}/lessons/check-conflicts", json={
        "teacher_id": teacher["id"], "start": "2030-01-07T10:00:00Z", "end": "2030-01-07T11:00:00Z",
    }, headers=headers)
    assert response.json() == {"has_conflicts": False, "conflicts": [], "suggested_times": []}


def test_bulk_create_skips_conflicts_within_batch(client, headers):
    teacher = create_teacher(client, headers)
    lesson = {"title": "Algebra", "subject": "Math", "teacher_id": teacher["id"]}
    response = client.post(f"{API}/lessons/bulk", json={"lessons": [
        {**lesson, "start": "2030-01-07T10:00:00Z", "end": "2030-01-07T11:00:00Z"},
        {**lesson, "start": "2030-01-07T10:30:00Z", "end": "2030-01-07T11:30:00Z"},
        {**lesson, "start": "2030-01-08T10:00:00Z", "end": "2030-01-08T11:00:00Z"},
    ]}, headers=headers)
    assert response.status_code == 201
    body = response.json()
    assert body["created"] == 2
    assert body["skipped"] == 1
    assert "skipped due to conflicts" in body["messages"][0]


def test_teacher_schedule_and_individual_lessons(client, headers):
    teacher = create_teacher(client, headers)
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", teacher_id=teacher["id"])
    create_lesson(client, headers, "2030-03-07T10:00:00Z", "2030-03-07T11:00:00Z", teacher_id=teacher["id"])

    response = client.get(f"{API}/lessons/teacher/{teacher['id']}",
                          params={"start_date": "2030-01-01", "end_date": "2030-02-01"}, headers=headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    individual = client.get(f"{API}/lessons/individual", headers=headers).json()
    assert len(individual) == 2


def test_list_lessons_by_range_and_delete(client, headers):
    lesson = create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z").json()
    in_range = client.get(f"{API}/lessons/", params={"start": "2030-01-07T00:00:00Z", "end": "2030-01-08T00:00:00Z"},
                          headers=headers).json()
    assert [l["id"] for l in in_range] == [lesson["id"]]

    assert client.delete(f"{API}/lessons/{lesson['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/lessons/{lesson['id']}", headers=headers).status_code == 404
