import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ConflictError
from classmate.core.timeutils import today, week_bounds
from classmate.database import get_db
from classmate.models.lesson import Lesson
from classmate.models.school import Group, Teacher
from classmate.schemas.auth import MessageResponse
from classmate.schemas.school import TeacherCreate, TeacherResponse, TeacherUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _with_workload(db: Session, teachers: List[Teacher]) -> List[Teacher]:
    """Attach this week's non-cancelled lesson count to each teacher"""
    if not teachers:
        return teachers
    week_start, week_end = week_bounds(today())
    counts = dict(
        db.query(Lesson.teacher_id, func.count(Lesson.id))
        .filter(
            Lesson.teacher_id.in_([t.id for t in teachers]),
            Lesson.status != "cancelled",
            Lesson.start >= week_start,
            Lesson.start < week_end,
        )
        .group_by(Lesson.teacher_id)
        .all()
    )
    for teacher in teachers:
        teacher.workload = counts.get(teacher.id, 0)
    return teachers


def _get_teacher(db: Session, ctx: CompanyContext, teacher_id: UUID) -> Teacher:
    teacher = ctx.scope(db.query(Teacher), Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    return teacher


@router.get("/", response_model=List[TeacherResponse])
async def list_teachers(
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: CompanyContext = Depends(require_permission("teachers", "view")),
    db: Session = Depends(get_db)
):
    query = ctx.scope(db.query(Teacher), Teacher)
    if status_filter:
        query = query.filter(Teacher.status == status_filter)
    return _with_workload(db, query.order_by(Teacher.name).all())


@router.get("/{teacher_id}", response_model=TeacherResponse)
async def get_teacher(
    teacher_id: UUID,
    ctx: CompanyContext = Depends(require_permission("teachers", "view")),
    db: Session = Depends(get_db)
):
    return _with_workload(db, [_get_teacher(db, ctx, teacher_id)])[0]


@router.post("/", response_model=TeacherResponse, status_code=status.HTTP_201_CREATED)
async def create_teacher(
    data: TeacherCreate,
    ctx: CompanyContext = Depends(require_permission("teachers", "create")),
    db: Session = Depends(get_db)
):
    teacher = Teacher(company_id=ctx.company_id, branch_id=ctx.branch_id, **data.model_dump())
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    logger.info(f"Teacher {teacher.id} created for company {ctx.company_id}")
    teacher.workload = 0
    return teacher


@router.put("/{teacher_id}", response_model=TeacherResponse)
async def update_teacher(
    teacher_id: UUID,
    data: TeacherUpdate,
    ctx: CompanyContext = Depends(require_permission("teachers", "update")),
    db: Session = Depends(get_db)
):
    teacher = _get_teacher(db, ctx, teacher_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(teacher, field, value)
    db.commit()
    db.refresh(teacher)
    return _with_workload(db, [teacher])[0]


@router.delete("/{teacher_id}", response_model=MessageResponse)
async def delete_teacher(
    teacher_id: UUID,
    ctx: CompanyContext = Depends(require_permission("teachers", "delete")),
    db: Session = Depends(get_db)
):
    teacher = _get_teacher(db, ctx, teacher_id)
    lessons = db.query(Lesson).filter(Lesson.teacher_id == teacher.id).count()
    groups = db.query(Group).filter(Group.teacher_id == teacher.id).count()
    if lessons or groups:
        raise ConflictError(
            "Teacher still has lessons or groups",
            details={"lessons": lessons, "groups": groups},
            code="TEACHER_IN_USE",
        )
    db.delete(teacher)
    db.commit()
    return {"message": "Teacher deleted successfully"}
