import io
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from classmate.core.timeutils import day_bounds, get_zone, to_utc
from classmate.models.finance import PaymentTransaction, StudentBalance
from classmate.models.lesson import Lesson, lesson_students
from classmate.models.school import Group
from classmate.models.student import Student

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def build_workbook(title: str, columns: Sequence[str], rows: Iterable[Sequence]) -> io.BytesIO:
    """Write a single-sheet workbook with a bold header row into a stream"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title
    ws.append(list(columns))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(list(row))
    for index, column in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(index)].width = max(12, len(column) + 4)
    stream = io.BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream


class ExportService:
    def __init__(self, db: Session, company_id: UUID, branch_id: Optional[UUID] = None, timezone: str = None):
        self.db = db
        self.company_id = company_id
        self.branch_id = branch_id
        self.zone = get_zone(timezone)

    def _local(self, value: Optional[datetime]) -> str:
        if value is None:
            return ""
        return to_utc(value).astimezone(self.zone).strftime("%Y-%m-%d %H:%M")

    def transactions(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
                     transaction_type: Optional[str] = None, student_id: Optional[UUID] = None) -> io.BytesIO:
        query = self.db.query(PaymentTransaction).filter(PaymentTransaction.company_id == self.company_id)
        if self.branch_id:
            query = query.join(Student, Student.id == PaymentTransaction.student_id).filter(
                Student.branch_id == self.branch_id
            )
        # Whole UTC days, end date inclusive
        if start_date is not None:
            query = query.filter(PaymentTransaction.created_at >= day_bounds(start_date)[0])
        if end_date is not None:
            query = query.filter(PaymentTransaction.created_at < day_bounds(end_date)[1])
        if transaction_type:
            query = query.filter(PaymentTransaction.type == transaction_type)
        if student_id:
            query = query.filter(PaymentTransaction.student_id == student_id)
        rows = [
            (
                self._local(t.created_at),
                t.student_name or "",
                t.type,
                float(t.amount),
                t.payment_method or "",
                t.status or "",
                t.description or "",
            )
            for t in query.order_by(PaymentTransaction.created_at.desc()).all()
        ]
        logger.info(f"Exporting {len(rows)} transactions for company {self.company_id}")
        return build_workbook(
            "Transactions",
            ["Date", "Student", "Type", "Amount", "Method", "Status", "Description"],
            rows,
        )

    def students(self, status: Optional[str] = None, group_id: Optional[UUID] = None,
                 teacher_id: Optional[UUID] = None, has_balance: bool = False,
                 search: Optional[str] = None) -> io.BytesIO:
        query = self.db.query(Student).filter(Student.company_id == self.company_id)
        if self.branch_id:
            query = query.filter(Student.branch_id == self.branch_id)
        if status:
            query = query.filter(Student.status == status)
        if group_id:
            query = query.filter(Student.groups.any(Group.id == group_id))
        if teacher_id:
            # Students in the teacher's lessons, directly or through the lesson's group
            taught = select(Lesson.id).where(
                Lesson.company_id == self.company_id,
                Lesson.teacher_id == teacher_id,
            )
            taught_groups = select(Lesson.group_id).where(
                Lesson.company_id == self.company_id,
                Lesson.teacher_id == teacher_id,
                Lesson.group_id.isnot(None),
            )
            query = query.filter(or_(
                Student.id.in_(
                    select(lesson_students.c.student_id).where(lesson_students.c.lesson_id.in_(taught))
                ),
                Student.groups.any(Group.id.in_(taught_groups)),
            ))
        if has_balance:
            query = query.join(StudentBalance, StudentBalance.student_id == Student.id).filter(
                StudentBalance.balance > 0
            )
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Student.name.ilike(pattern),
                Student.email.ilike(pattern),
                Student.phone.ilike(pattern),
            ))
        rows: List[Sequence] = []
        for s in query.order_by(Student.name).all():
            balance = s.balance.balance if s.balance else 0
            rows.append((
                s.name,
                s.age if s.age is not None else "",
                s.email or "",
                s.phone or "",
                s.status,
                ", ".join(s.subjects or []),
                ", ".join(g.name for g in s.groups),
                float(balance),
                self._local(s.created_at),
            ))
        logger.info(f"Exporting {len(rows)} students for company {self.company_id}")
        return build_workbook(
            "Students",
            ["Name", "Age", "Email", "Phone", "Status", "Subjects", "Groups", "Balance", "Created"],
            rows,
        )

    def schedule(self, start: Optional[datetime] = None, end: Optional[datetime] = None,
                 teacher_id: Optional[UUID] = None, group_id: Optional[UUID] = None,
                 room_id: Optional[UUID] = None, status: Optional[str] = None) -> io.BytesIO:
        query = self.db.query(Lesson).filter(Lesson.company_id == self.company_id)
        if self.branch_id:
            query = query.filter(Lesson.branch_id == self.branch_id)
        if start is not None:
            query = query.filter(Lesson.start >= to_utc(start))
        if end is not None:
            query = query.filter(Lesson.start < to_utc(end))
        if teacher_id:
            query = query.filter(Lesson.teacher_id == teacher_id)
        if group_id:
            query = query.filter(Lesson.group_id == group_id)
        if room_id:
            query = query.filter(Lesson.room_id == room_id)
        if status:
            query = query.filter(Lesson.status == status)
        rows = [
            (
                self._local(lesson.start),
                self._local(lesson.end),
                lesson.title,
                lesson.subject,
                lesson.teacher_name or "",
                lesson.group_name or "",
                lesson.room_name or "",
                lesson.status,
                len(lesson.students),
            )
            for lesson in query.order_by(Lesson.start).all()
        ]
        logger.info(f"Exporting {len(rows)} lessons for company {self.company_id}")
        return build_workbook(
            "Schedule",
            ["Start", "End", "Title", "Subject", "Teacher", "Group", "Room", "Status", "Students"],
            rows,
        )
