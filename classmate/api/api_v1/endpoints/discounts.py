from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.models.finance import Discount
from classmate.schemas.auth import MessageResponse
from classmate.schemas.finance import (
    DiscountApply,
    DiscountCreate,
    DiscountResponse,
    DiscountUpdate,
    StudentDiscountResponse,
)
from classmate.services.discount_service import DiscountService, check_discount_value

router = APIRouter()


@router.get("/", response_model=List[DiscountResponse])
async def list_discounts(
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return db.query(Discount).filter(Discount.company_id == ctx.company_id).order_by(Discount.name).all()


@router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(
    discount_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return DiscountService(db).get(ctx.company_id, discount_id)


@router.post("/", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
async def create_discount(
    data: DiscountCreate,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    check_discount_value(data.type, data.value)
    discount = Discount(company_id=ctx.company_id, **data.model_dump())
    db.add(discount)
    db.commit()
    db.refresh(discount)
    return discount


@router.put("/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: UUID,
    data: DiscountUpdate,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    discount = DiscountService(db).get(ctx.company_id, discount_id)
    update_data = data.model_dump(exclude_unset=True)
    check_discount_value(update_data.get("type", discount.type), update_data.get("value", discount.value))
    for field, value in update_data.items():
        setattr(discount, field, value)
    db.commit()
    db.refresh(discount)
    return discount


@router.delete("/{discount_id}", response_model=MessageResponse)
async def delete_discount(
    discount_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    discount = DiscountService(db).get(ctx.company_id, discount_id)
    db.delete(discount)
    db.commit()
    return {"message": "Discount deleted successfully"}


@router.post("/{discount_id}/apply", response_model=StudentDiscountResponse,
             status_code=status.HTTP_201_CREATED)
async def apply_discount(
    discount_id: UUID,
    data: DiscountApply,
    ctx: CompanyContext = Depends(require_permission("students", "update")),
    db: Session = Depends(get_db)
):
    return DiscountService(db).apply(ctx.company_id, discount_id, data.student_id, data.expires_at,
                                     created_by=ctx.user_id)
