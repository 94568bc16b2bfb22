import io
from datetime import datetime, timedelta, timezone

import openpyxl

from classmate.services.export_service import XLSX_MEDIA_TYPE, build_workbook

from helpers import API, create_lesson, create_room, create_student, create_teacher


def _sheet(response):
    return openpyxl.load_workbook(io.BytesIO(response.content)).active


def _assert_attachment(response, name):
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    today = datetime.now(timezone.utc).date().isoformat()
    assert response.headers["content-disposition"] == f"attachment; filename={name}_{today}.xlsx"


def test_build_workbook_bolds_header():
    stream = build_workbook("Sheet", ["A", "B"], [(1, "x"), (2, "y")])
    ws = openpyxl.load_workbook(stream).active
    assert ws.title == "Sheet"
    assert ws["A1"].font.bold
    assert [row for row in ws.iter_rows(min_row=2, values_only=True)] == [(1, "x"), (2, "y")]


def test_export_students(client, headers):
    create_student(client, headers, name="Ivan Sidorov", age=12, subjects=["Math", "Physics"])
    response = client.get(f"{API}/export/students/excel", headers=headers)
    _assert_attachment(response, "students")

    ws = _sheet(response)
    header = [cell.value for cell in ws[1]]
    assert header[:5] == ["Name", "Age", "Email", "Phone", "Status"]
    row = [cell.value for cell in ws[2]]
    assert row[0] == "Ivan Sidorov"
    assert row[1] == 12
    assert row[5] == "Math, Physics"
    assert row[7] == 0


def test_export_transactions(client, headers):
    student = create_student(client, headers)
    client.post(f"{API}/payments/transactions", json={
        "student_id": student["id"], "amount": "1500", "type": "payment",
    }, headers=headers)

    response = client.get(f"{API}/export/transactions/excel", headers=headers)
    _assert_attachment(response, "transactions")
    rows = list(_sheet(response).iter_rows(min_row=2, values_only=True))
    assert len(rows) == 1
    assert rows[0][1:4] == ("Ivan Sidorov", "payment", 1500)


def test_export_schedule_in_company_timezone(client, headers):
    teacher = create_teacher(client, headers)
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", teacher_id=teacher["id"])
    client.put(f"{API}/settings/", json={"timezone": "Asia/Almaty"}, headers=headers)

    response = client.get(f"{API}/export/schedule/excel", headers=headers)
    _assert_attachment(response, "schedule")
    rows = list(_sheet(response).iter_rows(min_row=2, values_only=True))
    assert rows[0][0] == "2030-01-07 15:00"
    assert rows[0][4] == "Anna Petrova"


def test_export_requires_permission(client):
    assert client.get(f"{API}/export/students/excel").status_code == 401


def _rows(client, headers, path, **params):
    response = client.get(f"{API}/export/{path}/excel", params=params, headers=headers)
    assert response.status_code == 200, response.text
    return list(_sheet(response).iter_rows(min_row=2, values_only=True))


def _pay(client, headers, student_id, amount, transaction_type="payment"):
    response = client.post(f"{API}/payments/transactions", json={
        "student_id": student_id, "amount": amount, "type": transaction_type,
    }, headers=headers)
    assert response.status_code == 201, response.text


def test_transaction_export_filters(client, headers):
    ivan = create_student(client, headers, name="Ivan")
    olga = create_student(client, headers, name="Olga")
    _pay(client, headers, ivan["id"], "1000")
    _pay(client, headers, ivan["id"], "200", "refund")
    _pay(client, headers, olga["id"], "500")

    today = datetime.now(timezone.utc).date()
    payments = _rows(client, headers, "transactions", type="payment")
    assert sorted(row[1] for row in payments) == ["Ivan", "Olga"]
    assert {row[2] for row in _rows(client, headers, "transactions", student_id=ivan["id"])} == {"payment", "refund"}
    assert len(_rows(client, headers, "transactions", start_date=today.isoformat(), end_date=today.isoformat())) == 3
    assert _rows(client, headers, "transactions", start_date=(today + timedelta(days=1)).isoformat()) == []
    assert _rows(client, headers, "transactions", end_date=(today - timedelta(days=1)).isoformat()) == []


def test_student_export_filters(client, headers):
    teacher = create_teacher(client, headers)
    grouped = create_student(client, headers, name="Anna")
    create_student(client, headers, name="Boris", status="frozen")
    paid = create_student(client, headers, name="Clara")
    private = create_student(client, headers, name="Denis", phone="+7 700 555")
    create_student(client, headers, name="Elena")

    group = client.post(f"{API}/groups/", json={
        "name": "Math A1", "subject": "Math", "student_ids": [grouped["id"]],
    }, headers=headers).json()
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z",
                  teacher_id=teacher["id"], group_id=group["id"])
    create_lesson(client, headers, "2030-01-08T10:00:00Z", "2030-01-08T11:00:00Z",
                  teacher_id=teacher["id"], student_ids=[private["id"]])
    _pay(client, headers, paid["id"], "300")

    def names(**params):
        return [row[0] for row in _rows(client, headers, "students", **params)]

    assert names(status="frozen") == ["Boris"]
    assert names(group_id=group["id"]) == ["Anna"]
    assert names(teacher_id=teacher["id"]) == ["Anna", "Denis"]
    assert names(has_balance="true") == ["Clara"]
    assert names(search="700 555") == ["Denis"]
    assert len(names()) == 5


def test_schedule_export_filters(client, headers):
    first = create_room(client, headers, name="Room 1")
    second = create_room(client, headers, name="Room 2")
    create_lesson(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z", room_id=first["id"])
    create_lesson(client, headers, "2030-01-07T12:00:00Z", "2030-01-07T13:00:00Z", room_id=second["id"],
                  status="cancelled")

    assert [row[6] for row in _rows(client, headers, "schedule", room_id=second["id"])] == ["Room 2"]
    assert [row[6] for row in _rows(client, headers, "schedule", status="scheduled")] == ["Room 1"]
    assert _rows(client, headers, "schedule", start="2030-01-08T00:00:00Z") == []
