from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from classmate.core.config import settings
from classmate.core.exceptions import NotFoundError
from classmate.core.timeutils import today as current_date, utcnow
from classmate.models.finance import DebtRecord
from classmate.models.student import Notification
from classmate.models.subscription import StudentSubscription

logger = logging.getLogger(__name__)

SUBSCRIPTION_EXPIRING = "subscription_expiring"
SUBSCRIPTION_EXPIRED = "subscription_expired"
DEBT_REMINDER = "debt_reminder"
PAYMENT_RECEIVED = "payment_received"

LOW_LESSONS_THRESHOLD = 3


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, company_id: UUID, student_id: UUID, notification_type: str,
               title: str, message: str) -> Notification:
        """Add a notification to the current transaction"""
        notification = Notification(
            company_id=company_id,
            student_id=student_id,
            type=notification_type,
            title=title,
            message=message,
            is_read=False,
            created_at=utcnow(),
        )
        self.db.add(notification)
        return notification

    def has_unread(self, student_id: UUID, notification_type: str) -> bool:
        return self.db.query(Notification.id).filter(
            Notification.student_id == student_id,
            Notification.type == notification_type,
            Notification.is_read == False,  # noqa: E712
        ).first() is not None

    def create_unless_unread(self, company_id: UUID, student_id: UUID, notification_type: str,
                             title: str, message: str) -> Optional[Notification]:
        """Create a notification unless an unread one of the same type is pending"""
        self.db.flush()
        if self.has_unread(student_id, notification_type):
            return None
        return self.create(company_id, student_id, notification_type, title, message)

    def list_for_student(self, company_id: UUID, student_id: UUID, unread_only: bool = False) -> List[Notification]:
        query = self.db.query(Notification).filter(
            Notification.company_id == company_id,
            Notification.student_id == student_id,
        )
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc()).all()

    def unread_count(self, company_id: UUID, student_id: UUID) -> int:
        return self.db.query(Notification).filter(
            Notification.company_id == company_id,
            Notification.student_id == student_id,
            Notification.is_read == False,  # noqa: E712
        ).count()

    def mark_read(self, company_id: UUID, notification_id: UUID) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.company_id == company_id,
        ).first()
        if not notification:
            raise NotFoundError("Notification")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    # Daily checks run by the scheduler, across all companies

    def check_debt_reminders(self, on_date: Optional[date] = None) -> int:
        """Remind students of pending debts due soon or already overdue"""
        on_date = on_date or current_date()
        horizon = on_date + timedelta(days=settings.DEBT_REMINDER_DAYS)
        debts = self.db.query(DebtRecord).filter(
            DebtRecord.status == "pending",
            DebtRecord.due_date.isnot(None),
            DebtRecord.due_date <= horizon,
        ).all()

        created = 0
        try:
            for debt in debts:
                if debt.due_date < on_date:
                    days_overdue = (on_date - debt.due_date).days
                    message = f"Overdue debt: {debt.amount:.2f} (overdue by {days_overdue} days)"
                else:
                    days_left = (debt.due_date - on_date).days
                    message = f"Debt reminder: {debt.amount:.2f} due in {days_left} days"
                if self.create_unless_unread(debt.company_id, debt.student_id, DEBT_REMINDER,
                                             "Payment reminder", message):
                    created += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating debt reminders: {e}")
            raise
        return created

    def check_expiring_subscriptions(self, on_date: Optional[date] = None) -> int:
        """Warn about active subscriptions ending soon or running out of lessons"""
        on_date = on_date or current_date()
        horizon = on_date + timedelta(days=settings.SUBSCRIPTION_EXPIRY_WARNING_DAYS)
        subscriptions = self.db.query(StudentSubscription).filter(
            StudentSubscription.status == "active",
            or_(
                StudentSubscription.end_date.between(on_date, horizon),
                StudentSubscription.total_lessons - StudentSubscription.used_lessons <= LOW_LESSONS_THRESHOLD,
            ),
        ).all()

        created = 0
        try:
            for sub in subscriptions:
                parts = []
                if sub.end_date and on_date <= sub.end_date <= horizon:
                    parts.append(f"Your subscription ends in {(sub.end_date - on_date).days} days.")
                parts.append(f"{sub.lessons_remaining} lessons remaining.")
                if self.create_unless_unread(sub.company_id, sub.student_id, SUBSCRIPTION_EXPIRING,
                                             "Subscription expiring", " ".join(parts)):
                    created += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating subscription reminders: {e}")
            raise
        return created

    def expire_past_subscriptions(self, on_date: Optional[date] = None) -> int:
        """Move active subscriptions past their end date to expired"""
        on_date = on_date or current_date()
        subscriptions = self.db.query(StudentSubscription).filter(
            StudentSubscription.status == "active",
            StudentSubscription.end_date.isnot(None),
            StudentSubscription.end_date < on_date,
        ).all()
        try:
            for sub in subscriptions:
                sub.status = "expired"
                sub.version = (sub.version or 1) + 1
                self.create_unless_unread(sub.company_id, sub.student_id, SUBSCRIPTION_EXPIRED,
                                          "Subscription expired",
                                          "Your subscription has expired. Please renew it.")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error expiring subscriptions: {e}")
            raise
        if subscriptions:
            logger.info(f"Expired {len(subscriptions)} subscriptions past their end date")
        return len(subscriptions)

    def run_daily_checks(self, on_date: Optional[date] = None) -> dict:
        on_date = on_date or current_date()
        return {
            "expired": self.expire_past_subscriptions(on_date),
            "debt_reminders": self.check_debt_reminders(on_date),
            "subscription_reminders": self.check_expiring_subscriptions(on_date),
        }
