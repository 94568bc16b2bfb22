import logging
from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.timeutils import add_months, get_zone, month_start, to_utc, today
from classmate.database import get_db
from classmate.models.lesson import Lesson
from classmate.models.school import Teacher
from classmate.schemas.auth import MessageResponse
from classmate.schemas.lesson import (
    BulkLessonsRequest,
    BulkLessonsResponse,
    CheckConflictsRequest,
    CheckConflictsResponse,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
)
from classmate.services.lesson_service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_lesson(db: Session, ctx: CompanyContext, lesson_id: UUID) -> Lesson:
    lesson = ctx.scope(db.query(Lesson), Lesson).filter(Lesson.id == lesson_id).first()
    if not lesson:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    return lesson


@router.get("/", response_model=List[LessonResponse])
async def list_lessons(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    query = ctx.scope(db.query(Lesson), Lesson)
    if start is not None:
        query = query.filter(Lesson.end > to_utc(start))
    if end is not None:
        query = query.filter(Lesson.start < to_utc(end))
    return query.order_by(Lesson.start).all()


@router.get("/individual", response_model=List[LessonResponse])
async def list_individual_lessons(
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    """Lessons not attached to any group"""
    return ctx.scope(db.query(Lesson), Lesson).filter(Lesson.group_id.is_(None)).order_by(Lesson.start).all()


@router.get("/teacher/{teacher_id}", response_model=List[LessonResponse])
async def list_teacher_lessons(
    teacher_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    """A teacher's lessons; defaults to this month and the next"""
    teacher = db.query(Teacher.id).filter(Teacher.id == teacher_id, Teacher.company_id == ctx.company_id).first()
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")

    start_date = start_date or month_start(today())
    end_date = end_date or add_months(start_date, 2)
    zone = get_zone(LessonService(db).company_timezone(ctx.company_id))
    range_start = to_utc(datetime.combine(start_date, time.min, tzinfo=zone))
    range_end = to_utc(datetime.combine(end_date, time.min, tzinfo=zone))
    return (
        ctx.scope(db.query(Lesson), Lesson)
        .filter(Lesson.teacher_id == teacher_id, Lesson.start >= range_start, Lesson.start < range_end)
        .order_by(Lesson.start)
        .all()
    )


@router.post("/check-conflicts", response_model=CheckConflictsResponse)
async def check_conflicts(
    data: CheckConflictsRequest,
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    """Report overlapping lessons and, if any, up to three free slots nearby"""
    return LessonService(db).check_conflicts(
        ctx.company_id,
        data.teacher_id,
        data.room_id,
        data.start,
        data.end,
        exclude_lesson_id=data.exclude_lesson_id,
        branch_id=ctx.branch_id,
    )


@router.post("/bulk", response_model=BulkLessonsResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_lessons(
    data: BulkLessonsRequest,
    ctx: CompanyContext = Depends(require_permission("lessons", "create")),
    db: Session = Depends(get_db)
):
    lessons = [lesson.model_dump() for lesson in data.lessons]
    return LessonService(db).bulk_create(ctx.company_id, ctx.branch_id, lessons)


@router.get("/{lesson_id}", response_model=LessonResponse)
async def get_lesson(
    lesson_id: UUID,
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    return _get_lesson(db, ctx, lesson_id)


@router.post("/", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    data: LessonCreate,
    ctx: CompanyContext = Depends(require_permission("lessons", "create")),
    db: Session = Depends(get_db)
):
    return LessonService(db).create_lesson(ctx.company_id, ctx.branch_id, data.model_dump())


@router.put("/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: UUID,
    data: LessonUpdate,
    ctx: CompanyContext = Depends(require_permission("lessons", "update")),
    db: Session = Depends(get_db)
):
    lesson = _get_lesson(db, ctx, lesson_id)
    return LessonService(db).update_lesson(ctx.company_id, lesson, data.model_dump())


@router.delete("/{lesson_id}", response_model=MessageResponse)
async def delete_lesson(
    lesson_id: UUID,
    ctx: CompanyContext = Depends(require_permission("lessons", "delete")),
    db: Session = Depends(get_db)
):
    lesson = _get_lesson(db, ctx, lesson_id)
    db.delete(lesson)
    db.commit()
    logger.info(f"Lesson {lesson_id} deleted")
    return {"message": "Lesson deleted successfully"}
