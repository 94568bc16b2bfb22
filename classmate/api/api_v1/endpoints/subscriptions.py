import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.models.subscription import StudentSubscription, SubscriptionFreeze, SubscriptionType
from classmate.schemas.auth import MessageResponse
from classmate.schemas.subscription import (
    FreezeCreate,
    FreezeResponse,
    FreezeUpdate,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionTypeCreate,
    SubscriptionTypeResponse,
    SubscriptionTypeUpdate,
    SubscriptionUpdate,
)
from classmate.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


# Subscription types

@router.get("/types", response_model=List[SubscriptionTypeResponse])
async def list_subscription_types(
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    return (
        db.query(SubscriptionType)
        .filter(SubscriptionType.company_id == ctx.company_id)
        .order_by(SubscriptionType.name)
        .all()
    )


@router.get("/types/{type_id}", response_model=SubscriptionTypeResponse)
async def get_subscription_type(
    type_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).get_type(ctx.company_id, type_id)


@router.post("/types", response_model=SubscriptionTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription_type(
    data: SubscriptionTypeCreate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "create")),
    db: Session = Depends(get_db)
):
    sub_type = SubscriptionType(company_id=ctx.company_id, **data.model_dump())
    db.add(sub_type)
    db.commit()
    db.refresh(sub_type)
    return sub_type


@router.put("/types/{type_id}", response_model=SubscriptionTypeResponse)
async def update_subscription_type(
    type_id: UUID,
    data: SubscriptionTypeUpdate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "update")),
    db: Session = Depends(get_db)
):
    sub_type = SubscriptionService(db).get_type(ctx.company_id, type_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(sub_type, field, value)
    db.commit()
    db.refresh(sub_type)
    return sub_type


@router.delete("/types/{type_id}", response_model=MessageResponse)
async def delete_subscription_type(
    type_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "delete")),
    db: Session = Depends(get_db)
):
    sub_type = SubscriptionService(db).get_type(ctx.company_id, type_id)
    in_use = db.query(StudentSubscription.id).filter(StudentSubscription.subscription_type_id == sub_type.id).first()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Subscription type is used by existing subscriptions"
        )
    db.delete(sub_type)
    db.commit()
    return {"message": "Subscription type deleted successfully"}


# Freezes

@router.put("/freezes/{freeze_id}", response_model=FreezeResponse)
async def update_freeze(
    freeze_id: UUID,
    data: FreezeUpdate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "freeze")),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).update_freeze(ctx.company_id, freeze_id, data.model_dump(exclude_unset=True))


# Student subscriptions

@router.get("/", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    query = db.query(StudentSubscription).filter(StudentSubscription.company_id == ctx.company_id)
    if status_filter:
        query = query.filter(StudentSubscription.status == status_filter)
    return query.order_by(StudentSubscription.created_at.desc()).all()


@router.get("/student/{student_id}", response_model=List[SubscriptionResponse])
async def list_student_subscriptions(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    return (
        db.query(StudentSubscription)
        .filter(StudentSubscription.company_id == ctx.company_id, StudentSubscription.student_id == student_id)
        .order_by(StudentSubscription.created_at.desc())
        .all()
    )


@router.post("/", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "create")),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).create_subscription(ctx.company_id, data.model_dump(), created_by=ctx.user_id)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).get_subscription(ctx.company_id, subscription_id)


@router.put("/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: UUID,
    data: SubscriptionUpdate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "update")),
    db: Session = Depends(get_db)
):
    return SubscriptionService(db).update_subscription(
        ctx.company_id, subscription_id, data.model_dump(exclude_unset=True), updated_by=ctx.user_id
    )


@router.delete("/{subscription_id}", response_model=MessageResponse)
async def delete_subscription(
    subscription_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "delete")),
    db: Session = Depends(get_db)
):
    sub = SubscriptionService(db).get_subscription(ctx.company_id, subscription_id)
    db.delete(sub)
    db.commit()
    logger.info(f"Subscription {subscription_id} deleted")
    return {"message": "Subscription deleted successfully"}


@router.get("/{subscription_id}/freezes", response_model=List[FreezeResponse])
async def list_freezes(
    subscription_id: UUID,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "view")),
    db: Session = Depends(get_db)
):
    sub = SubscriptionService(db).get_subscription(ctx.company_id, subscription_id)
    return (
        db.query(SubscriptionFreeze)
        .filter(SubscriptionFreeze.subscription_id == sub.id)
        .order_by(SubscriptionFreeze.freeze_start)
        .all()
    )


@router.post("/{subscription_id}/freeze", response_model=FreezeResponse, status_code=status.HTTP_201_CREATED)
async def freeze_subscription(
    subscription_id: UUID,
    data: FreezeCreate,
    ctx: CompanyContext = Depends(require_permission("subscriptions", "freeze")),
    db: Session = Depends(get_db)
):
    """Freeze a subscription and push its end date and individual lessons forward"""
    return SubscriptionService(db).freeze(
        ctx.company_id,
        subscription_id,
        data.freeze_start,
        data.freeze_end,
        reason=data.reason,
        created_by=ctx.user_id,
    )
