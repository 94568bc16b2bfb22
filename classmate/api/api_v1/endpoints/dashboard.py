from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.schemas.lesson import LessonResponse
from classmate.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/stats")
async def dashboard_stats(
    ctx: CompanyContext = Depends(require_permission("dashboard", "view")),
    db: Session = Depends(get_db)
):
    return DashboardService(db, ctx.company_id, ctx.branch_id).stats()


@router.get("/today-lessons", response_model=List[LessonResponse])
async def today_lessons(
    ctx: CompanyContext = Depends(require_permission("dashboard", "view")),
    db: Session = Depends(get_db)
):
    return DashboardService(db, ctx.company_id, ctx.branch_id).today_lessons()


@router.get("/revenue-chart")
async def revenue_chart(
    days: int = Query(30, ge=1, le=366),
    ctx: CompanyContext = Depends(require_permission("dashboard", "view")),
    db: Session = Depends(get_db)
):
    return DashboardService(db, ctx.company_id, ctx.branch_id).revenue_chart(days)


@router.get("/attendance-stats")
async def attendance_stats(
    days: int = Query(30, ge=1, le=366),
    ctx: CompanyContext = Depends(require_permission("dashboard", "view")),
    db: Session = Depends(get_db)
):
    return DashboardService(db, ctx.company_id, ctx.branch_id).attendance_chart(days)
