from datetime import date

from classmate.models.student import Notification
from classmate.models.subscription import StudentSubscription
from classmate.services.notification_scheduler import NotificationScheduler
from classmate.services.notification_service import (
    DEBT_REMINDER,
    SUBSCRIPTION_EXPIRED,
    SUBSCRIPTION_EXPIRING,
    NotificationService,
)

from helpers import API, create_student, create_subscription, create_subscription_type


def _notifications(db, notification_type):
    return db.query(Notification).filter(Notification.type == notification_type).all()


def test_debt_reminder_not_duplicated_while_unread(client, headers, db):
    student = create_student(client, headers)
    client.post(f"{API}/debts/", json={
        "student_id": student["id"], "amount": "2000", "due_date": "2030-02-01",
    }, headers=headers)
    service = NotificationService(db)

    assert service.check_debt_reminders(date(2030, 1, 20)) == 0
    assert service.check_debt_reminders(date(2030, 1, 30)) == 1
    assert service.check_debt_reminders(date(2030, 1, 31)) == 0

    reminders = _notifications(db, DEBT_REMINDER)
    assert len(reminders) == 1
    assert reminders[0].message == "Debt reminder: 2000.00 due in 2 days"

    service.mark_read(reminders[0].company_id, reminders[0].id)
    assert service.check_debt_reminders(date(2030, 2, 3)) == 1
    overdue = [n for n in _notifications(db, DEBT_REMINDER) if not n.is_read]
    assert overdue[0].message == "Overdue debt: 2000.00 (overdue by 2 days)"


def test_paid_debts_are_not_reminded(client, headers, db):
    student = create_student(client, headers)
    debt = client.post(f"{API}/debts/", json={
        "student_id": student["id"], "amount": "500", "due_date": "2030-02-01",
    }, headers=headers).json()
    client.put(f"{API}/debts/{debt['id']}", json={"status": "paid"}, headers=headers)

    assert NotificationService(db).check_debt_reminders(date(2030, 2, 1)) == 0


def test_expiring_subscription_warning(client, headers, db):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    service = NotificationService(db)

    assert service.check_expiring_subscriptions(date(2030, 1, 10)) == 0
    assert service.check_expiring_subscriptions(date(2030, 1, 28)) == 1

    warning = _notifications(db, SUBSCRIPTION_EXPIRING)[0]
    assert warning.message == "Your subscription ends in 3 days. 8 lessons remaining."


def test_past_subscriptions_expire(client, headers, db):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    sub = create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    service = NotificationService(db)

    assert service.expire_past_subscriptions(date(2030, 1, 31)) == 0
    assert service.expire_past_subscriptions(date(2030, 2, 1)) == 1

    stored = db.query(StudentSubscription).one()
    assert str(stored.id) == sub["id"]
    assert stored.status == "expired"
    assert len(_notifications(db, SUBSCRIPTION_EXPIRED)) == 1


def test_scheduler_runs_once_per_day(client, headers):
    student = create_student(client, headers)
    sub_type = create_subscription_type(client, headers)
    create_subscription(client, headers, student["id"], sub_type["id"], start_date="2030-01-01")
    scheduler = NotificationScheduler()

    results = scheduler.run_if_due(date(2030, 2, 1))
    assert results == {"expired": 1, "debt_reminders": 0, "subscription_reminders": 0}
    assert scheduler.run_if_due(date(2030, 2, 1)) is None
    assert scheduler.run_if_due(date(2030, 2, 2)) == {
        "expired": 0, "debt_reminders": 0, "subscription_reminders": 0,
    }


def test_mark_read_endpoint(client, headers, db):
    student = create_student(client, headers)
    client.post(f"{API}/debts/", json={
        "student_id": student["id"], "amount": "100", "due_date": "2030-01-02",
    }, headers=headers)
    NotificationService(db).check_debt_reminders(date(2030, 1, 1))

    listed = client.get(f"{API}/students/{student['id']}/notifications", params={"unread_only": True},
                        headers=headers).json()
    assert len(listed) == 1

    response = client.put(f"{API}/notifications/{listed[0]['id']}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert response.json()["read_at"] is not None

    details = client.get(f"{API}/students/{student['id']}/details", headers=headers).json()
    assert details["unread_notifications"] == 0


def test_mark_read_unknown_notification(client, headers):
    response = client.put(f"{API}/notifications/00000000-0000-0000-0000-000000000001/read", headers=headers)
    assert response.status_code == 404
