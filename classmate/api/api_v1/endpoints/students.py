import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ValidationError
from classmate.database import get_db
from classmate.models.finance import StudentBalance
from classmate.models.school import Group
from classmate.models.student import Student, StudentNote
from classmate.models.subscription import StudentSubscription
from classmate.schemas.auth import MessageResponse
from classmate.schemas.finance import StudentDiscountCreate, StudentDiscountResponse
from classmate.schemas.subscription import SubscriptionResponse
from classmate.schemas.student import (
    ActivityResponse,
    AttendanceJournalEntry,
    NoteCreate,
    NoteResponse,
    NotificationResponse,
    StudentCreate,
    StudentDetails,
    StudentResponse,
    StudentStatusUpdate,
    StudentUpdate,
)
from classmate.services.activity_service import ActivityService
from classmate.services.attendance_service import AttendanceService
from classmate.services.discount_service import DiscountService
from classmate.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_student(db: Session, ctx: CompanyContext, student_id: UUID) -> Student:
    student = ctx.scope(db.query(Student), Student).filter(Student.id == student_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


def _load_groups(db: Session, company_id: UUID, group_ids: List[UUID]) -> List[Group]:
    ids = list(dict.fromkeys(group_ids))
    if not ids:
        return []
    groups = db.query(Group).filter(Group.company_id == company_id, Group.id.in_(ids)).all()
    if len(groups) != len(ids):
        raise ValidationError("One or more groups not found", code="INVALID_REFERENCE")
    return groups


@router.get("/", response_model=List[StudentResponse])
async def list_students(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    query = ctx.scope(db.query(Student), Student)
    if status_filter:
        query = query.filter(Student.status == status_filter)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Student.name.ilike(pattern),
            Student.email.ilike(pattern),
            Student.phone.ilike(pattern),
        ))
    return query.order_by(Student.name).all()


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    return _get_student(db, ctx, student_id)


@router.post("/", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    ctx: CompanyContext = Depends(require_permission("students", "create")),
    db: Session = Depends(get_db)
):
    """Create a student with an empty balance"""
    groups = _load_groups(db, ctx.company_id, data.group_ids)
    try:
        student = Student(
            company_id=ctx.company_id,
            branch_id=ctx.branch_id,
            **data.model_dump(exclude={"group_ids"}),
        )
        student.groups = groups
        db.add(student)
        db.flush()
        db.add(StudentBalance(student_id=student.id, company_id=ctx.company_id, balance=Decimal("0"), version=1))
        db.commit()
        db.refresh(student)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating student: {e}")
        raise
    logger.info(f"Student {student.id} created for company {ctx.company_id}")
    return student


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    data: StudentUpdate,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    update_data = data.model_dump(exclude_unset=True)
    group_ids = update_data.pop("group_ids", None)
    if group_ids is not None:
        student.groups = _load_groups(db, ctx.company_id, group_ids)
    for field, value in update_data.items():
        setattr(student, field, value)
    db.commit()
    db.refresh(student)
    return student


@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "delete")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    db.delete(student)
    db.commit()
    return {"message": "Student deleted successfully"}


@router.put("/{student_id}/status", response_model=StudentResponse)
async def update_student_status(
    student_id: UUID,
    data: StudentStatusUpdate,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    old_status = student.status
    student.status = data.status
    description = f"Status changed from {old_status} to {data.status}"
    if data.reason:
        description += f": {data.reason}"
    ActivityService(db).log(
        ctx.company_id, student.id, "status_change", description,
        metadata={"old_status": old_status, "new_status": data.status, "reason": data.reason},
        created_by=ctx.user_id,
    )
    db.commit()
    db.refresh(student)
    return student


# Notes

@router.get("/{student_id}/notes", response_model=List[NoteResponse])
async def list_notes(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return (
        db.query(StudentNote)
        .filter(StudentNote.student_id == student.id)
        .order_by(StudentNote.created_at.desc())
        .all()
    )


@router.post("/{student_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    student_id: UUID,
    data: NoteCreate,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    note = StudentNote(company_id=ctx.company_id, student_id=student.id, note=data.note, created_by=ctx.user_id)
    db.add(note)
    ActivityService(db).log(ctx.company_id, student.id, "note", data.note, created_by=ctx.user_id)
    db.commit()
    db.refresh(note)
    return note


# Journal

@router.get("/{student_id}/activities", response_model=List[ActivityResponse])
async def list_activities(
    student_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return ActivityService(db).list_for_student(ctx.company_id, student.id, limit)


@router.get("/{student_id}/attendance", response_model=List[AttendanceJournalEntry])
async def attendance_journal(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return AttendanceService(db).journal(ctx.company_id, student.id)


@router.get("/{student_id}/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    student_id: UUID,
    unread_only: bool = False,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return NotificationService(db).list_for_student(ctx.company_id, student.id, unread_only=unread_only)


@router.get("/{student_id}/details", response_model=StudentDetails)
async def student_details(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    """Everything the student card shows in one call"""
    student = _get_student(db, ctx, student_id)
    balance = db.query(StudentBalance).filter(StudentBalance.student_id == student.id).first()
    subscriptions = (
        db.query(StudentSubscription)
        .filter(
            StudentSubscription.company_id == ctx.company_id,
            StudentSubscription.student_id == student.id,
            StudentSubscription.status == "active",
        )
        .order_by(StudentSubscription.created_at.desc())
        .all()
    )
    return StudentDetails(
        student=StudentResponse.model_validate(student),
        balance=Decimal(balance.balance) if balance else Decimal("0"),
        active_subscriptions=[SubscriptionResponse.model_validate(s) for s in subscriptions],
        recent_activities=[
            ActivityResponse.model_validate(a)
            for a in ActivityService(db).list_for_student(ctx.company_id, student.id, limit=10)
        ],
        attendance_stats=AttendanceService(db).stats(ctx.company_id, student.id),
        unread_notifications=NotificationService(db).unread_count(ctx.company_id, student.id),
    )


# Discounts

@router.get("/{student_id}/discounts", response_model=List[StudentDiscountResponse])
async def list_student_discounts(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return DiscountService(db).list_for_student(ctx.company_id, student.id)


@router.post("/{student_id}/discounts", response_model=StudentDiscountResponse,
             status_code=status.HTTP_201_CREATED)
async def apply_student_discount(
    student_id: UUID,
    data: StudentDiscountCreate,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    return DiscountService(db).apply(ctx.company_id, data.discount_id, student.id, data.expires_at,
                                     created_by=ctx.user_id)


@router.delete("/{student_id}/discounts/{discount_id}", response_model=MessageResponse)
async def remove_student_discount(
    student_id: UUID,
    discount_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    student = _get_student(db, ctx, student_id)
    DiscountService(db).remove(ctx.company_id, student.id, discount_id, created_by=ctx.user_id)
    return {"message": "Discount removed from student"}
