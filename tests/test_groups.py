from datetime import date, datetime, time
from uuid import UUID

from classmate.core.timeutils import to_utc
from classmate.models.lesson import Lesson
from classmate.models.school import Group
from classmate.services.lesson_service import LessonService, parse_schedule

from helpers import API, create_lesson, create_room, create_student, create_teacher


def test_parse_schedule_english():
    assert parse_schedule("Mon Wed 18:00-19:30") == ([0, 2], time(18, 0), time(19, 30))
    assert parse_schedule("tuesday, thursday 9:15 - 10:45") == ([1, 3], time(9, 15), time(10, 45))


def test_parse_schedule_russian():
    assert parse_schedule("Пн, Ср, Пт 17:00–18:00") == ([0, 2, 4], time(17, 0), time(18, 0))
    assert parse_schedule("суббота 12:00-13:00") == ([5], time(12, 0), time(13, 0))


def test_parse_schedule_defaults():
    assert parse_schedule("whenever") == ([0, 2, 4], time(10, 0), time(11, 30))
    # A range ending before it starts is ignored
    assert parse_schedule("Sat 19:00-18:00") == ([5], time(10, 0), time(11, 30))


def _create_group(client, headers, **extra):
    payload = {"name": "Math A1", "subject": "Math", "schedule": "Mon Wed 18:00-19:30", **extra}
    response = client.post(f"{API}/groups/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_group_crud_with_students(client, headers):
    teacher = create_teacher(client, headers)
    student = create_student(client, headers)
    group = _create_group(client, headers, teacher_id=teacher["id"], student_ids=[student["id"]])
    assert group["teacher_name"] == "Anna Petrova"
    assert group["student_ids"] == [student["id"]]

    updated = client.put(f"{API}/groups/{group['id']}", json={"student_ids": []}, headers=headers)
    assert updated.json()["student_ids"] == []

    assert client.delete(f"{API}/groups/{group['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/groups/{group['id']}", headers=headers).status_code == 404


def test_group_with_unknown_teacher_is_rejected(client, headers):
    response = client.post(f"{API}/groups/", json={
        "name": "Ghost", "subject": "Math", "teacher_id": "00000000-0000-0000-0000-000000000001",
    }, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REFERENCE"


def test_generate_lessons_from_schedule(client, headers):
    teacher = create_teacher(client, headers)
    room = create_room(client, headers)
    student = create_student(client, headers)
    group = _create_group(client, headers, teacher_id=teacher["id"], room_id=room["id"],
                          student_ids=[student["id"]])

    response = client.post(f"{API}/groups/{group['id']}/generate-lessons", json={"count": 4}, headers=headers)
    assert response.status_code == 201, response.text
    assert response.json()["count"] == 4

    lessons = client.get(f"{API}/lessons/", headers=headers).json()
    assert len(lessons) == 4
    for lesson in lessons:
        start = datetime.fromisoformat(lesson["start"].replace("Z", "+00:00"))
        assert start.weekday() in (0, 2)
        assert (start.hour, start.minute) == (18, 0)
        assert lesson["group_id"] == group["id"]
        assert lesson["student_ids"] == [student["id"]]

    extended = client.post(f"{API}/groups/{group['id']}/extend", json={"count": 2}, headers=headers)
    assert extended.status_code == 201
    assert extended.json()["count"] == 2
    assert len(client.get(f"{API}/lessons/", headers=headers).json()) == 6


def test_generate_without_schedule_fails(client, headers):
    group = _create_group(client, headers, schedule=None)
    response = client.post(f"{API}/groups/{group['id']}/generate-lessons", headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "NO_SCHEDULE"


def test_generation_skips_conflicting_days(client, headers, db):
    teacher = create_teacher(client, headers)
    group_body = _create_group(client, headers, teacher_id=teacher["id"], schedule="Mon 18:00-19:00")
    # 2030-01-07 is a Monday
    create_lesson(client, headers, "2030-01-07T18:30:00Z", "2030-01-07T19:30:00Z", teacher_id=teacher["id"])

    group = db.query(Group).filter(Group.id == UUID(group_body["id"])).one()
    result = LessonService(db).generate_for_group(group.company_id, group, count=2, first_day=date(2030, 1, 7))
    assert result["count"] == 2
    assert result["skipped"] == 1

    starts = sorted(
        to_utc(lesson.start).date()
        for lesson in db.query(Lesson).filter(Lesson.group_id == group.id).all()
    )
    assert starts == [date(2030, 1, 14), date(2030, 1, 21)]


def test_deleting_group_removes_its_upcoming_lessons(client, headers, foreign_keys):
    student = create_student(client, headers)
    group = _create_group(client, headers, student_ids=[student["id"]])
    generated = client.post(f"{API}/groups/{group['id']}/generate-lessons", json={"count": 2}, headers=headers)
    assert generated.json()["count"] == 2

    assert client.delete(f"{API}/groups/{group['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/lessons/individual", headers=headers).json() == []
    assert client.get(f"{API}/lessons/", headers=headers).json() == []


def test_group_with_held_lessons_cannot_be_deleted(client, headers, foreign_keys):
    group = _create_group(client, headers)
    held = create_lesson(client, headers, "2020-01-06T18:00:00Z", "2020-01-06T19:30:00Z", group_id=group["id"])
    assert held.status_code == 201, held.text

    response = client.delete(f"{API}/groups/{group['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "GROUP_HAS_LESSONS"
    assert client.get(f"{API}/lessons/{held.json()['id']}", headers=headers).json()["group_id"] == group["id"]
