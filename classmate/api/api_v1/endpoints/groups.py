import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ConflictError, ValidationError
from classmate.core.timeutils import to_utc, utcnow
from classmate.database import get_db
from classmate.models.lesson import Lesson
from classmate.models.school import Group, Room, Teacher
from classmate.models.student import Student
from classmate.schemas.auth import MessageResponse
from classmate.schemas.school import (
    GenerateLessonsRequest,
    GenerateLessonsResponse,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
)
from classmate.services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_group(db: Session, ctx: CompanyContext, group_id: UUID) -> Group:
    group = ctx.scope(db.query(Group), Group).filter(Group.id == group_id).first()
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def _check_refs(db: Session, company_id: UUID, teacher_id: Optional[UUID], room_id: Optional[UUID]):
    if teacher_id and not db.query(Teacher.id).filter(Teacher.id == teacher_id, Teacher.company_id == company_id).first():
        raise ValidationError("Teacher not found", code="INVALID_REFERENCE")
    if room_id and not db.query(Room.id).filter(Room.id == room_id, Room.company_id == company_id).first():
        raise ValidationError("Room not found", code="INVALID_REFERENCE")


def _load_students(db: Session, company_id: UUID, student_ids: List[UUID]) -> List[Student]:
    ids = list(dict.fromkeys(student_ids))
    if not ids:
        return []
    students = db.query(Student).filter(Student.company_id == company_id, Student.id.in_(ids)).all()
    if len(students) != len(ids):
        raise ValidationError("One or more students not found", code="INVALID_REFERENCE")
    return students


@router.get("/", response_model=List[GroupResponse])
async def list_groups(
    ctx: CompanyContext = Depends(require_permission("groups", "view")),
    db: Session = Depends(get_db)
):
    return ctx.scope(db.query(Group), Group).order_by(Group.name).all()


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: UUID,
    ctx: CompanyContext = Depends(require_permission("groups", "view")),
    db: Session = Depends(get_db)
):
    return _get_group(db, ctx, group_id)


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    data: GroupCreate,
    ctx: CompanyContext = Depends(require_permission("groups", "create")),
    db: Session = Depends(get_db)
):
    _check_refs(db, ctx.company_id, data.teacher_id, data.room_id)
    students = _load_students(db, ctx.company_id, data.student_ids)
    group = Group(company_id=ctx.company_id, branch_id=ctx.branch_id, **data.model_dump(exclude={"student_ids"}))
    group.students = students
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info(f"Group {group.id} created with {len(students)} students")
    return group


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: UUID,
    data: GroupUpdate,
    ctx: CompanyContext = Depends(require_permission("groups", "update")),
    db: Session = Depends(get_db)
):
    group = _get_group(db, ctx, group_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_refs(db, ctx.company_id, update_data.get("teacher_id"), update_data.get("room_id"))
    student_ids = update_data.pop("student_ids", None)
    if student_ids is not None:
        group.students = _load_students(db, ctx.company_id, student_ids)
    for field, value in update_data.items():
        setattr(group, field, value)
    db.commit()
    db.refresh(group)
    return group


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: UUID,
    ctx: CompanyContext = Depends(require_permission("groups", "delete")),
    db: Session = Depends(get_db)
):
    group = _get_group(db, ctx, group_id)
    lessons = db.query(Lesson).filter(Lesson.group_id == group.id).all()
    now = utcnow()
    held = [l for l in lessons if l.status != "cancelled" and to_utc(l.start) < now]
    if held:
        raise ConflictError(
            "Group already has held lessons, set its status to inactive instead",
            details={"lessons": len(held)},
            code="GROUP_HAS_LESSONS",
        )
    # Only upcoming or cancelled lessons remain here
    for lesson in lessons:
        db.delete(lesson)
    db.delete(group)
    db.commit()
    logger.info(f"Group {group_id} deleted with {len(lessons)} lessons")
    return {"message": "Group deleted successfully"}


@router.post("/{group_id}/generate-lessons", response_model=GenerateLessonsResponse,
             status_code=status.HTTP_201_CREATED)
async def generate_lessons(
    group_id: UUID,
    data: Optional[GenerateLessonsRequest] = None,
    ctx: CompanyContext = Depends(require_permission("lessons", "create")),
    db: Session = Depends(get_db)
):
    """Create lessons from the group's schedule text, starting tomorrow"""
    group = _get_group(db, ctx, group_id)
    return LessonService(db).generate_for_group(ctx.company_id, group, (data or GenerateLessonsRequest()).count)


@router.post("/{group_id}/extend", response_model=GenerateLessonsResponse, status_code=status.HTTP_201_CREATED)
async def extend_group_schedule(
    group_id: UUID,
    data: Optional[GenerateLessonsRequest] = None,
    ctx: CompanyContext = Depends(require_permission("lessons", "create")),
    db: Session = Depends(get_db)
):
    group = _get_group(db, ctx, group_id)
    return LessonService(db).extend_group(ctx.company_id, group, (data or GenerateLessonsRequest()).count)
