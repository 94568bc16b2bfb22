from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.timeutils import today
from classmate.database import get_db
from classmate.services.export_service import XLSX_MEDIA_TYPE, ExportService
from classmate.services.lesson_service import LessonService

router = APIRouter()


def _exporter(db: Session, ctx: CompanyContext) -> ExportService:
    timezone = LessonService(db).company_timezone(ctx.company_id)
    return ExportService(db, ctx.company_id, ctx.branch_id, timezone)


def _xlsx_response(stream, name: str) -> StreamingResponse:
    filename = f"{name}_{today().isoformat()}.xlsx"
    return StreamingResponse(
        stream,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/transactions/excel")
async def export_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    transaction_type: Optional[str] = Query(None, alias="type"),
    student_id: Optional[UUID] = None,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    stream = _exporter(db, ctx).transactions(start_date, end_date, transaction_type, student_id)
    return _xlsx_response(stream, "transactions")


@router.get("/students/excel")
async def export_students(
    status_filter: Optional[str] = Query(None, alias="status"),
    group_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
    has_balance: bool = False,
    search: Optional[str] = None,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    stream = _exporter(db, ctx).students(
        status=status_filter,
        group_id=group_id,
        teacher_id=teacher_id,
        has_balance=has_balance,
        search=search.strip() if search else None,
    )
    return _xlsx_response(stream, "students")


@router.get("/schedule/excel")
async def export_schedule(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    teacher_id: Optional[UUID] = None,
    group_id: Optional[UUID] = None,
    room_id: Optional[UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: CompanyContext = Depends(require_permission("lessons", "view")),
    db: Session = Depends(get_db)
):
    stream = _exporter(db, ctx).schedule(start, end, teacher_id, group_id, room_id, status_filter)
    return _xlsx_response(stream, "schedule")
