import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ValidationError
from classmate.core.timeutils import utcnow
from classmate.database import get_db
from classmate.models.company import User
from classmate.models.lead import Lead, LeadActivity, LeadTask
from classmate.schemas.auth import MessageResponse
from classmate.schemas.lead import (
    LeadActivityCreate,
    LeadActivityResponse,
    LeadCreate,
    LeadResponse,
    LeadStats,
    LeadStatus,
    LeadTaskCreate,
    LeadTaskResponse,
    LeadTaskUpdate,
    LeadUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_lead(db: Session, ctx: CompanyContext, lead_id: UUID) -> Lead:
    lead = ctx.scope(db.query(Lead), Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


def _check_assignee(db: Session, company_id: UUID, user_id: Optional[UUID]):
    if user_id and not db.query(User.id).filter(User.id == user_id, User.company_id == company_id).first():
        raise ValidationError("Assigned user not found", code="INVALID_REFERENCE")


@router.get("/", response_model=List[LeadResponse])
async def list_leads(
    status_filter: Optional[str] = Query(None, alias="status"),
    source: Optional[str] = None,
    ctx: CompanyContext = Depends(require_permission("leads", "view")),
    db: Session = Depends(get_db)
):
    query = ctx.scope(db.query(Lead), Lead)
    if status_filter:
        query = query.filter(Lead.status == status_filter)
    if source:
        query = query.filter(Lead.source == source)
    return query.order_by(Lead.created_at.desc()).all()


@router.get("/stats", response_model=LeadStats)
async def lead_stats(
    ctx: CompanyContext = Depends(require_permission("leads", "view")),
    db: Session = Depends(get_db)
):
    """Funnel counts and the share of leads that enrolled"""
    rows = (
        ctx.scope(db.query(Lead.status, func.count(Lead.id)), Lead)
        .group_by(Lead.status)
        .all()
    )
    by_status = {s.value: 0 for s in LeadStatus}
    for lead_status, count in rows:
        by_status[lead_status] = count
    total = sum(by_status.values())
    conversion = round(by_status[LeadStatus.ENROLLED.value] / total * 100, 1) if total else 0.0
    return LeadStats(total=total, by_status=by_status, conversion_rate=conversion)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    ctx: CompanyContext = Depends(require_permission("leads", "view")),
    db: Session = Depends(get_db)
):
    return _get_lead(db, ctx, lead_id)


@router.post("/", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    ctx: CompanyContext = Depends(require_permission("leads", "create")),
    db: Session = Depends(get_db)
):
    _check_assignee(db, ctx.company_id, data.assigned_to)
    lead = Lead(company_id=ctx.company_id, branch_id=ctx.branch_id, **data.model_dump())
    db.add(lead)
    db.commit()
    db.refresh(lead)
    logger.info(f"Lead {lead.id} created from {lead.source}")
    return lead


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: UUID,
    data: LeadUpdate,
    ctx: CompanyContext = Depends(require_permission("leads", "update")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_assignee(db, ctx.company_id, update_data.get("assigned_to"))
    for field, value in update_data.items():
        setattr(lead, field, value)
    db.commit()
    db.refresh(lead)
    return lead


@router.delete("/{lead_id}", response_model=MessageResponse)
async def delete_lead(
    lead_id: UUID,
    ctx: CompanyContext = Depends(require_permission("leads", "delete")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    db.delete(lead)
    db.commit()
    return {"message": "Lead deleted successfully"}


# Activities

@router.get("/{lead_id}/activities", response_model=List[LeadActivityResponse])
async def list_lead_activities(
    lead_id: UUID,
    ctx: CompanyContext = Depends(require_permission("leads", "view")),
    db: Session = Depends(get_db)
):
    return _get_lead(db, ctx, lead_id).activities


@router.post("/{lead_id}/activities", response_model=LeadActivityResponse, status_code=status.HTTP_201_CREATED)
async def add_lead_activity(
    lead_id: UUID,
    data: LeadActivityCreate,
    ctx: CompanyContext = Depends(require_permission("leads", "update")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    activity = LeadActivity(lead_id=lead.id, created_by=ctx.user_id, **data.model_dump())
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


# Tasks

@router.get("/{lead_id}/tasks", response_model=List[LeadTaskResponse])
async def list_lead_tasks(
    lead_id: UUID,
    ctx: CompanyContext = Depends(require_permission("leads", "view")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    return db.query(LeadTask).filter(LeadTask.lead_id == lead.id).order_by(LeadTask.due_date).all()


@router.post("/{lead_id}/tasks", response_model=LeadTaskResponse, status_code=status.HTTP_201_CREATED)
async def add_lead_task(
    lead_id: UUID,
    data: LeadTaskCreate,
    ctx: CompanyContext = Depends(require_permission("leads", "update")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    _check_assignee(db, ctx.company_id, data.assigned_to)
    task = LeadTask(lead_id=lead.id, status="pending", **data.model_dump())
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@router.put("/{lead_id}/tasks/{task_id}", response_model=LeadTaskResponse)
async def update_lead_task(
    lead_id: UUID,
    task_id: UUID,
    data: LeadTaskUpdate,
    ctx: CompanyContext = Depends(require_permission("leads", "update")),
    db: Session = Depends(get_db)
):
    lead = _get_lead(db, ctx, lead_id)
    task = db.query(LeadTask).filter(LeadTask.id == task_id, LeadTask.lead_id == lead.id).first()
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    update_data = data.model_dump(exclude_unset=True)
    _check_assignee(db, ctx.company_id, update_data.get("assigned_to"))
    for field, value in update_data.items():
        setattr(task, field, value)
    if update_data.get("status") == "completed" and task.completed_at is None:
        task.completed_at = utcnow()
    elif update_data.get("status") in ("pending", "cancelled"):
        task.completed_at = None
    db.commit()
    db.refresh(task)
    return task
