from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.schemas.attendance import AttendanceMark, AttendanceResponse
from classmate.services.attendance_service import AttendanceService

router = APIRouter()


@router.post("/", response_model=AttendanceResponse)
async def mark_attendance(
    data: AttendanceMark,
    ctx: CompanyContext = Depends(require_permission("attendance", "mark")),
    db: Session = Depends(get_db)
):
    """Upsert a student's attendance for a lesson, charging the subscription when attended"""
    return AttendanceService(db).mark_attendance(
        ctx.company_id,
        data.lesson_id,
        data.student_id,
        data.status,
        reason=data.reason,
        notes=data.notes,
        marked_by=ctx.user_id,
    )


@router.get("/lesson/{lesson_id}", response_model=List[AttendanceResponse])
async def lesson_attendance(
    lesson_id: UUID,
    ctx: CompanyContext = Depends(require_permission("attendance", "view")),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).for_lesson(ctx.company_id, lesson_id)


@router.get("/student/{student_id}", response_model=List[AttendanceResponse])
async def student_attendance(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("attendance", "view")),
    db: Session = Depends(get_db)
):
    return AttendanceService(db).for_student(ctx.company_id, student_id)
