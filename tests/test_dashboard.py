from datetime import datetime, timedelta, timezone

from classmate.models.company import Company
from classmate.services.dashboard_service import DashboardService

from helpers import API, create_lesson, create_student


def _today():
    return datetime.now(timezone.utc).date()


def test_stats_shape_for_empty_center(client, headers):
    response = client.get(f"{API}/dashboard/stats", headers=headers)
    assert response.status_code == 200
    stats = response.json()
    assert set(stats) == {"revenue", "attendance", "students", "lessons", "financial", "leads"}
    assert stats["revenue"]["this_month"] == 0
    assert len(stats["revenue"]["data"]) == 7
    assert stats["attendance"]["rate"] == 0.0
    assert stats["leads"]["conversion"] == 0.0


def test_stats_count_students_payments_and_lessons(client, headers):
    student = create_student(client, headers)
    create_student(client, headers, name="Frozen One", status="frozen")
    client.post(f"{API}/payments/transactions", json={
        "student_id": student["id"], "amount": "5000", "type": "payment",
    }, headers=headers)
    client.post(f"{API}/debts/", json={"student_id": student["id"], "amount": "700"}, headers=headers)

    day = _today().isoformat()
    lesson = create_lesson(client, headers, f"{day}T12:00:00Z", f"{day}T13:00:00Z",
                           student_ids=[student["id"]]).json()
    client.post(f"{API}/attendance/", json={
        "lesson_id": lesson["id"], "student_id": student["id"], "status": "attended",
    }, headers=headers)

    stats = client.get(f"{API}/dashboard/stats", headers=headers).json()
    assert stats["revenue"]["today"] == 5000.0
    assert stats["revenue"]["data"][-1] == {"date": day, "amount": 5000.0}
    assert stats["students"] == {"active": 1, "new": 2, "frozen": 1}
    assert stats["lessons"]["today"] == 1
    assert stats["attendance"]["today_present"] == 1
    assert stats["attendance"]["rate"] == 100.0
    assert stats["financial"]["pending_debts"] == 1
    assert stats["financial"]["total_debt_amount"] == 700.0
    assert stats["financial"]["total_balance"] == 5000.0

    today_lessons = client.get(f"{API}/dashboard/today-lessons", headers=headers).json()
    assert [l["id"] for l in today_lessons] == [lesson["id"]]


def test_revenue_chart_window(client, headers, db):
    student = create_student(client, headers)
    client.post(f"{API}/payments/transactions", json={
        "student_id": student["id"], "amount": "120.50", "type": "payment",
    }, headers=headers)

    chart = client.get(f"{API}/dashboard/revenue-chart", params={"days": 3}, headers=headers).json()
    assert [point["date"] for point in chart] == [
        (_today() - timedelta(days=offset)).isoformat() for offset in (2, 1, 0)
    ]
    assert chart[-1]["amount"] == 120.5

    # A window that ends before the payment sees nothing
    company = db.query(Company).one()
    earlier = DashboardService(db, company.id).revenue_chart(5, _today() - timedelta(days=10))
    assert all(point["amount"] == 0 for point in earlier)


def test_attendance_chart(client, headers):
    chart = client.get(f"{API}/dashboard/attendance-stats", params={"days": 7}, headers=headers).json()
    assert len(chart) == 7
    assert chart[-1] == {"date": _today().isoformat(), "attended": 0, "missed": 0}
