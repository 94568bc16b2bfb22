import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from classmate.core.timeutils import get_zone, to_utc, today, utcnow
from classmate.models.lesson import Lesson, lesson_students
from classmate.models.school import Group, Teacher
from classmate.models.student import Student
from classmate.models.subscription import StudentSubscription, SubscriptionFreeze, SubscriptionType
from classmate.services.activity_service import ActivityService
from classmate.services.lesson_service import LessonService

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUSES = ("active", "frozen", "expired", "cancelled")
CENT = Decimal("0.01")


def price_per_lesson(total_price: Decimal, total_lessons: int) -> Decimal:
    if not total_lessons:
        return Decimal("0.00")
    return (Decimal(total_price) / Decimal(total_lessons)).quantize(CENT, rounding=ROUND_HALF_UP)


class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.activities = ActivityService(db)

    def get_subscription(self, company_id: UUID, subscription_id: UUID) -> StudentSubscription:
        sub = self.db.query(StudentSubscription).filter(
            StudentSubscription.id == subscription_id,
            StudentSubscription.company_id == company_id,
        ).first()
        if not sub:
            raise NotFoundError("Subscription")
        return sub

    def get_type(self, company_id: UUID, type_id: UUID) -> SubscriptionType:
        sub_type = self.db.query(SubscriptionType).filter(
            SubscriptionType.id == type_id,
            SubscriptionType.company_id == company_id,
        ).first()
        if not sub_type:
            raise NotFoundError("Subscription type")
        return sub_type

    def create_subscription(self, company_id: UUID, data: Dict[str, Any],
                            created_by: Optional[UUID] = None) -> StudentSubscription:
        student = self.db.query(Student).filter(
            Student.id == data["student_id"], Student.company_id == company_id
        ).first()
        if not student:
            raise NotFoundError("Student")
        sub_type = self.get_type(company_id, data["subscription_type_id"])
        for model, key, label in ((Group, "group_id", "Group"), (Teacher, "teacher_id", "Teacher")):
            ref_id = data.get(key)
            if ref_id and not self.db.query(model.id).filter(model.id == ref_id, model.company_id == company_id).first():
                raise ValidationError(f"{label} not found", code="INVALID_REFERENCE")

        start_date = data.get("start_date") or today()
        total_price = Decimal(data["total_price"]) if data.get("total_price") is not None else Decimal(sub_type.price)
        end_date = start_date + timedelta(days=sub_type.validity_days) if sub_type.validity_days else None

        try:
            sub = StudentSubscription(
                company_id=company_id,
                student_id=student.id,
                subscription_type_id=sub_type.id,
                group_id=data.get("group_id"),
                teacher_id=data.get("teacher_id"),
                total_lessons=sub_type.lessons_count,
                used_lessons=0,
                total_price=total_price,
                price_per_lesson=price_per_lesson(total_price, sub_type.lessons_count),
                start_date=start_date,
                end_date=end_date,
                paid_till=end_date,
                status="active",
                freeze_days_remaining=0,
                version=1,
                created_at=utcnow(),
            )
            self.db.add(sub)
            self.db.flush()
            self.activities.log(
                company_id,
                student.id,
                "subscription_change",
                f"Subscription '{sub_type.name}' created: {sub_type.lessons_count} lessons",
                metadata={"subscription_id": sub.id, "subscription_type_id": sub_type.id},
                created_by=created_by,
            )
            self.db.commit()
            self.db.refresh(sub)
            logger.info(f"Subscription {sub.id} created for student {student.id}")
            return sub
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating subscription for student {student.id}: {e}")
            raise

    def update_subscription(self, company_id: UUID, subscription_id: UUID, data: Dict[str, Any],
                            updated_by: Optional[UUID] = None) -> StudentSubscription:
        sub = self.get_subscription(company_id, subscription_id)
        status = data.get("status")
        if status is not None and status not in SUBSCRIPTION_STATUSES:
            raise ValidationError(f"Invalid subscription status '{status}'")
        try:
            old_status = sub.status
            for field in ("status", "end_date", "paid_till"):
                if field in data:
                    setattr(sub, field, data[field])
            sub.version = (sub.version or 1) + 1
            if status and status != old_status:
                self.activities.log(
                    company_id, sub.student_id, "subscription_change",
                    f"Subscription status changed from {old_status} to {status}",
                    metadata={"subscription_id": sub.id}, created_by=updated_by,
                )
            self.db.commit()
            self.db.refresh(sub)
            return sub
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating subscription {subscription_id}: {e}")
            raise

    def _lesson_window(self, company_id: UUID, freeze_start: date, freeze_end: date):
        zone = get_zone(LessonService(self.db).company_timezone(company_id))
        window_start = to_utc(datetime.combine(freeze_start, time.min, tzinfo=zone))
        window_end = to_utc(datetime.combine(freeze_end + timedelta(days=1), time.min, tzinfo=zone))
        return window_start, window_end

    def freeze(self, company_id: UUID, subscription_id: UUID, freeze_start: date, freeze_end: date,
               reason: Optional[str] = None, created_by: Optional[UUID] = None) -> SubscriptionFreeze:
        """Pause a subscription, pushing its end date and the student's lessons forward"""
        sub = self.get_subscription(company_id, subscription_id)
        if not sub.subscription_type or not sub.subscription_type.can_freeze:
            raise InvalidStateError("This subscription type cannot be frozen", code="FREEZE_NOT_ALLOWED")
        if freeze_start < sub.start_date:
            raise ValidationError("Freeze start date must be on or after subscription start date")
        if sub.end_date is not None and freeze_end > sub.end_date:
            raise ValidationError("Freeze end date must be on or before subscription end date")
        if freeze_end < freeze_start:
            raise ValidationError("Freeze end date must be on or after freeze start date")

        days = (freeze_end - freeze_start).days + 1
        shift = timedelta(days=days)
        window_start, window_end = self._lesson_window(company_id, freeze_start, freeze_end)

        try:
            lessons = (
                self.db.query(Lesson)
                .join(lesson_students, lesson_students.c.lesson_id == Lesson.id)
                .filter(
                    lesson_students.c.student_id == sub.student_id,
                    Lesson.company_id == company_id,
                    Lesson.group_id.is_(None),
                    Lesson.status != "cancelled",
                    Lesson.start >= window_start,
                    Lesson.start < window_end,
                )
                .all()
            )
            for lesson in lessons:
                lesson.start = to_utc(lesson.start) + shift
                lesson.end = to_utc(lesson.end) + shift

            if sub.end_date is not None:
                sub.end_date = sub.end_date + shift
            if sub.paid_till is not None:
                sub.paid_till = sub.paid_till + shift
            sub.freeze_days_remaining = (sub.freeze_days_remaining or 0) + days
            sub.version = (sub.version or 1) + 1

            freeze = SubscriptionFreeze(
                subscription_id=sub.id,
                freeze_start=freeze_start,
                freeze_end=freeze_end,
                reason=reason,
                created_by=created_by,
            )
            self.db.add(freeze)
            self.activities.log(
                company_id,
                sub.student_id,
                "freeze",
                f"Subscription frozen from {freeze_start.isoformat()} to {freeze_end.isoformat()} "
                f"({days} days, {len(lessons)} lessons moved)",
                metadata={"subscription_id": sub.id, "days": days, "lessons_moved": len(lessons),
                          "reason": reason},
                created_by=created_by,
            )
            self.db.commit()
            self.db.refresh(freeze)
            logger.info(f"Subscription {sub.id} frozen for {days} days, {len(lessons)} lessons moved")
            return freeze
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error freezing subscription {subscription_id}: {e}")
            raise

    def update_freeze(self, company_id: UUID, freeze_id: UUID, data: Dict[str, Any]) -> SubscriptionFreeze:
        """Change a freeze's end date or reason; the subscription end moves by the difference"""
        freeze = (
            self.db.query(SubscriptionFreeze)
            .join(StudentSubscription, StudentSubscription.id == SubscriptionFreeze.subscription_id)
            .filter(SubscriptionFreeze.id == freeze_id, StudentSubscription.company_id == company_id)
            .first()
        )
        if not freeze:
            raise NotFoundError("Freeze")

        try:
            if "reason" in data:
                freeze.reason = data["reason"]
            new_end = data.get("freeze_end")
            if new_end is not None and new_end != freeze.freeze_end:
                if new_end < freeze.freeze_start:
                    raise ValidationError("Freeze end date must be on or after freeze start date")
                delta = (new_end - freeze.freeze_end).days
                sub = freeze.subscription
                if sub.end_date is not None:
                    sub.end_date = sub.end_date + timedelta(days=delta)
                if sub.paid_till is not None:
                    sub.paid_till = sub.paid_till + timedelta(days=delta)
                sub.freeze_days_remaining = max((sub.freeze_days_remaining or 0) + delta, 0)
                sub.version = (sub.version or 1) + 1
                freeze.freeze_end = new_end
            self.db.commit()
            self.db.refresh(freeze)
            return freeze
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating freeze {freeze_id}: {e}")
            raise
