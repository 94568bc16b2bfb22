import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.core.exceptions import ConflictError, NotFoundError
from classmate.core.timeutils import utcnow
from classmate.models.lesson import Lesson, LessonAttendance
from classmate.models.student import Student
from classmate.models.subscription import StudentSubscription, SubscriptionConsumption
from classmate.services.activity_service import ActivityService
from classmate.services.notification_service import (
    LOW_LESSONS_THRESHOLD,
    SUBSCRIPTION_EXPIRED,
    SUBSCRIPTION_EXPIRING,
    NotificationService,
)
from classmate.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    "attended": "Attended the lesson",
    "missed": "Missed the lesson",
    "cancelled": "Lesson cancelled",
}


class AttendanceService:
    def __init__(self, db: Session):
        self.db = db
        self.activities = ActivityService(db)
        self.notifications = NotificationService(db)
        self.payments = PaymentService(db)

    def _active_subscription(self, student_id: UUID) -> Optional[StudentSubscription]:
        return (
            self.db.query(StudentSubscription)
            .filter(
                StudentSubscription.student_id == student_id,
                StudentSubscription.status == "active",
                StudentSubscription.total_lessons - StudentSubscription.used_lessons > 0,
            )
            .order_by(StudentSubscription.created_at.desc())
            .first()
        )

    def _consume_lesson(self, company_id: UUID, sub: StudentSubscription, lesson: Lesson,
                        marked_by: Optional[UUID]):
        """Charge one attended lesson against a subscription (no commit)"""
        if sub.billing_type == "per_lesson":
            updated = (
                self.db.query(StudentSubscription)
                .filter(
                    StudentSubscription.id == sub.id,
                    StudentSubscription.version == sub.version,
                    StudentSubscription.total_lessons - StudentSubscription.used_lessons > 0,
                )
                .update(
                    {
                        StudentSubscription.used_lessons: StudentSubscription.used_lessons + 1,
                        StudentSubscription.version: StudentSubscription.version + 1,
                        StudentSubscription.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                raise ConflictError(
                    "Subscription was modified concurrently or has no lessons left",
                    code="SUBSCRIPTION_VERSION_CONFLICT",
                )
            self.db.refresh(sub)

            price = Decimal(sub.price_per_lesson or 0)
            if price > 0:
                self.payments.record_lesson_deduction(company_id, sub.student_id, price, lesson.id, marked_by)

        remaining = sub.lessons_remaining
        if remaining == 0:
            sub.status = "expired"
            self.notifications.create(
                company_id, sub.student_id, SUBSCRIPTION_EXPIRED, "Subscription used up",
                "Your subscription has no lessons left. Please renew it.",
            )
        elif remaining <= LOW_LESSONS_THRESHOLD:
            self.notifications.create_unless_unread(
                company_id, sub.student_id, SUBSCRIPTION_EXPIRING, "Subscription running low",
                f"{remaining} lessons left on your subscription.",
            )

        self.activities.log(
            company_id,
            sub.student_id,
            "subscription_change",
            f"Lesson deducted from subscription. Remaining: {remaining}",
            metadata={"subscription_id": sub.id, "lessons_remaining": remaining, "lesson_id": lesson.id},
            created_by=marked_by,
        )

    def mark_attendance(self, company_id: UUID, lesson_id: UUID, student_id: UUID, status: str,
                        reason: Optional[str] = None, notes: Optional[str] = None,
                        marked_by: Optional[UUID] = None) -> LessonAttendance:
        lesson = self.db.query(Lesson).filter(Lesson.id == lesson_id, Lesson.company_id == company_id).first()
        if not lesson:
            raise NotFoundError("Lesson")
        student = self.db.query(Student).filter(Student.id == student_id, Student.company_id == company_id).first()
        if not student:
            raise NotFoundError("Student")

        existing = self.db.query(LessonAttendance).filter(
            LessonAttendance.lesson_id == lesson_id,
            LessonAttendance.student_id == student_id,
        ).first()
        already_attended = existing is not None and existing.status == "attended"

        try:
            charged_subscription = None
            if status == "attended" and not already_attended:
                charged_subscription = self._active_subscription(student_id)
                if charged_subscription is not None:
                    self._consume_lesson(company_id, charged_subscription, lesson, marked_by)

            if charged_subscription is not None:
                subscription_id = charged_subscription.id
            elif already_attended and status == "attended":
                subscription_id = existing.subscription_id
            else:
                subscription_id = None

            attendance = existing or LessonAttendance(
                company_id=company_id, lesson_id=lesson_id, student_id=student_id
            )
            attendance.status = status
            attendance.reason = reason
            attendance.notes = notes
            attendance.subscription_id = subscription_id
            attendance.marked_by = marked_by
            attendance.marked_at = utcnow()
            self.db.add(attendance)
            self.db.flush()

            if charged_subscription is not None:
                consumed = self.db.query(SubscriptionConsumption.id).filter(
                    SubscriptionConsumption.subscription_id == charged_subscription.id,
                    SubscriptionConsumption.attendance_id == attendance.id,
                ).first()
                if consumed is None:
                    self.db.add(SubscriptionConsumption(
                        subscription_id=charged_subscription.id,
                        attendance_id=attendance.id,
                        lesson_id=lesson.id,
                        units=1,
                        created_by=marked_by,
                    ))

            self.activities.log(
                company_id,
                student_id,
                "attendance",
                STATUS_TEXT.get(status, status),
                metadata={
                    "lesson_id": lesson.id,
                    "status": status,
                    "reason": reason,
                    "subscription_id": subscription_id,
                },
                created_by=marked_by,
            )
            self.db.commit()
            self.db.refresh(attendance)
            logger.info(f"Attendance {status} marked for student {student_id} on lesson {lesson_id}")
            return attendance
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error marking attendance for student {student_id} on lesson {lesson_id}: {e}")
            raise

    def for_lesson(self, company_id: UUID, lesson_id: UUID) -> List[LessonAttendance]:
        return self.db.query(LessonAttendance).filter(
            LessonAttendance.company_id == company_id,
            LessonAttendance.lesson_id == lesson_id,
        ).all()

    def for_student(self, company_id: UUID, student_id: UUID) -> List[LessonAttendance]:
        return (
            self.db.query(LessonAttendance)
            .join(Lesson, Lesson.id == LessonAttendance.lesson_id)
            .filter(LessonAttendance.company_id == company_id, LessonAttendance.student_id == student_id)
            .order_by(Lesson.start.desc())
            .all()
        )

    def journal(self, company_id: UUID, student_id: UUID) -> List[Dict[str, Any]]:
        """Attendance history with lesson context, newest lesson first"""
        entries = []
        for record in self.for_student(company_id, student_id):
            lesson = record.lesson
            subscription = record.subscription
            entries.append({
                "id": record.id,
                "lesson_id": lesson.id,
                "lesson_title": lesson.title,
                "subject": lesson.subject,
                "teacher_name": lesson.teacher_name,
                "group_name": lesson.group_name,
                "start": lesson.start,
                "end": lesson.end,
                "status": record.status,
                "reason": record.reason,
                "notes": record.notes,
                "marked_at": record.marked_at,
                "subscription_id": subscription.id if subscription else None,
                "subscription_type_name": subscription.subscription_type_name if subscription else None,
            })
        return entries

    def stats(self, company_id: UUID, student_id: UUID) -> Dict[str, Any]:
        records = self.db.query(LessonAttendance.status).filter(
            LessonAttendance.company_id == company_id,
            LessonAttendance.student_id == student_id,
        ).all()
        statuses = [status for (status,) in records]
        total = len(statuses)
        attended = statuses.count("attended")
        missed = statuses.count("missed")
        cancelled = statuses.count("cancelled")
        counted = attended + missed
        rate = round(attended / counted * 100, 1) if counted else 0.0
        return {
            "total_lessons": total,
            "attended": attended,
            "missed": missed,
            "cancelled": cancelled,
            "attendance_rate": rate,
        }
