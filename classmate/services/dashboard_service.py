import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from classmate.core.timeutils import day_bounds, to_utc, today, week_bounds
from classmate.models.finance import DebtRecord, PaymentTransaction, StudentBalance
from classmate.models.lead import Lead
from classmate.models.lesson import Lesson, LessonAttendance
from classmate.models.student import Student

logger = logging.getLogger(__name__)


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(Decimal("0.01"))


class DashboardService:
    """Aggregates for the dashboard, scoped to a company and optional branch"""

    def __init__(self, db: Session, company_id: UUID, branch_id: Optional[UUID] = None):
        self.db = db
        self.company_id = company_id
        self.branch_id = branch_id

    def _students(self):
        query = self.db.query(Student).filter(Student.company_id == self.company_id)
        if self.branch_id:
            query = query.filter(Student.branch_id == self.branch_id)
        return query

    def _lessons(self):
        query = self.db.query(Lesson).filter(Lesson.company_id == self.company_id)
        if self.branch_id:
            query = query.filter(Lesson.branch_id == self.branch_id)
        return query

    def _payments(self, since: date):
        start, _ = day_bounds(since)
        query = self.db.query(PaymentTransaction).filter(
            PaymentTransaction.company_id == self.company_id,
            PaymentTransaction.type == "payment",
            PaymentTransaction.created_at >= start,
        )
        if self.branch_id:
            query = query.join(Student, Student.id == PaymentTransaction.student_id).filter(
                Student.branch_id == self.branch_id
            )
        return query

    def _attendance(self, since: date, until: Optional[date] = None):
        start, _ = day_bounds(since)
        query = (
            self.db.query(LessonAttendance.status, Lesson.start)
            .join(Lesson, Lesson.id == LessonAttendance.lesson_id)
            .filter(LessonAttendance.company_id == self.company_id, Lesson.start >= start)
        )
        if until is not None:
            _, end = day_bounds(until)
            query = query.filter(Lesson.start < end)
        if self.branch_id:
            query = query.filter(Lesson.branch_id == self.branch_id)
        return query

    def revenue_chart(self, days: int = 30, on_date: Optional[date] = None) -> List[Dict[str, Any]]:
        """Daily payment totals for the last `days` days, oldest first"""
        on_date = on_date or today()
        first_day = on_date - timedelta(days=days - 1)
        totals = defaultdict(Decimal)
        for payment in self._payments(first_day).all():
            totals[to_utc(payment.created_at).date()] += Decimal(payment.amount)
        return [
            {"date": (first_day + timedelta(days=i)).isoformat(),
             "amount": _money(totals.get(first_day + timedelta(days=i)))}
            for i in range(days)
        ]

    def attendance_chart(self, days: int = 30, on_date: Optional[date] = None) -> List[Dict[str, Any]]:
        on_date = on_date or today()
        first_day = on_date - timedelta(days=days - 1)
        counts = defaultdict(lambda: {"attended": 0, "missed": 0})
        for status, lesson_start in self._attendance(first_day, on_date).all():
            if status in ("attended", "missed"):
                counts[to_utc(lesson_start).date()][status] += 1
        points = []
        for i in range(days):
            day = first_day + timedelta(days=i)
            points.append({"date": day.isoformat(), **counts[day]})
        return points

    def today_lessons(self, on_date: Optional[date] = None) -> List[Lesson]:
        start, end = day_bounds(on_date or today())
        return self._lessons().filter(Lesson.start >= start, Lesson.start < end).order_by(Lesson.start).all()

    def stats(self, on_date: Optional[date] = None) -> Dict[str, Any]:
        on_date = on_date or today()
        day_start, day_end = day_bounds(on_date)
        week_start, week_end = week_bounds(on_date)
        month_first = on_date.replace(day=1)

        # Revenue
        revenue_series = self.revenue_chart(7, on_date)
        month_payments = self._payments(month_first).all()
        week_first = week_start.date()
        revenue = {
            "today": _money(sum((Decimal(p.amount) for p in month_payments
                                 if to_utc(p.created_at).date() == on_date), Decimal(0))),
            "this_week": _money(sum((Decimal(p.amount) for p in self._payments(week_first).all()), Decimal(0))),
            "this_month": _money(sum((Decimal(p.amount) for p in month_payments), Decimal(0))),
            "data": revenue_series,
        }

        # Attendance
        all_statuses = [s for (s, _) in self._attendance(date(1970, 1, 1)).all()]
        attended = all_statuses.count("attended")
        missed = all_statuses.count("missed")
        today_statuses = [s for (s, _) in self._attendance(on_date, on_date).all()]
        attendance = {
            "rate": round(attended / (attended + missed) * 100, 1) if attended + missed else 0.0,
            "today_present": today_statuses.count("attended"),
            "today_absent": today_statuses.count("missed"),
            "weekly_data": self.attendance_chart(7, on_date),
        }

        # Students
        new_since, _ = day_bounds(on_date - timedelta(days=30))
        students = {
            "active": self._students().filter(Student.status == "active").count(),
            "new": self._students().filter(Student.created_at >= new_since).count(),
            "frozen": self._students().filter(Student.status == "frozen").count(),
        }

        # Lessons
        lessons = {
            "today": self._lessons().filter(Lesson.start >= day_start, Lesson.start < day_end).count(),
            "this_week": self._lessons().filter(Lesson.start >= week_start, Lesson.start < week_end).count(),
            "completed": self._lessons().filter(Lesson.status == "completed").count(),
            "scheduled": self._lessons().filter(Lesson.status == "scheduled", Lesson.start >= day_start).count(),
            "cancelled": self._lessons().filter(Lesson.status == "cancelled").count(),
        }

        # Financial
        balance_query = (
            self.db.query(func.coalesce(func.sum(StudentBalance.balance), 0))
            .select_from(StudentBalance)
            .filter(StudentBalance.company_id == self.company_id)
        )
        debt_query = (
            self.db.query(func.count(DebtRecord.id), func.coalesce(func.sum(DebtRecord.amount), 0))
            .select_from(DebtRecord)
            .filter(DebtRecord.company_id == self.company_id, DebtRecord.status == "pending")
        )
        if self.branch_id:
            balance_query = balance_query.join(Student, Student.id == StudentBalance.student_id).filter(
                Student.branch_id == self.branch_id
            )
            debt_query = debt_query.join(Student, Student.id == DebtRecord.student_id).filter(
                Student.branch_id == self.branch_id
            )
        pending_count, pending_amount = debt_query.one()
        financial = {
            "total_balance": _money(balance_query.scalar()),
            "pending_debts": pending_count,
            "total_debt_amount": _money(pending_amount),
        }

        # Leads
        lead_query = self.db.query(Lead.status, func.count(Lead.id)).filter(Lead.company_id == self.company_id)
        if self.branch_id:
            lead_query = lead_query.filter(Lead.branch_id == self.branch_id)
        lead_counts = dict(lead_query.group_by(Lead.status).all())
        lead_total = sum(lead_counts.values())
        leads = {
            "new": lead_counts.get("new", 0),
            "in_progress": lead_counts.get("in_progress", 0),
            "conversion": round(lead_counts.get("enrolled", 0) / lead_total * 100, 1) if lead_total else 0.0,
        }

        return {
            "revenue": revenue,
            "attendance": attendance,
            "students": students,
            "lessons": lessons,
            "financial": financial,
            "leads": leads,
        }
