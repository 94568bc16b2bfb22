from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.models.finance import Tariff
from classmate.schemas.auth import MessageResponse
from classmate.schemas.finance import TariffCreate, TariffResponse, TariffUpdate

router = APIRouter()


def _get_tariff(db: Session, company_id: UUID, tariff_id: UUID) -> Tariff:
    tariff = db.query(Tariff).filter(Tariff.id == tariff_id, Tariff.company_id == company_id).first()
    if not tariff:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tariff not found")
    return tariff


@router.get("/", response_model=List[TariffResponse])
async def list_tariffs(
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return db.query(Tariff).filter(Tariff.company_id == ctx.company_id).order_by(Tariff.name).all()


@router.get("/{tariff_id}", response_model=TariffResponse)
async def get_tariff(
    tariff_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return _get_tariff(db, ctx.company_id, tariff_id)


@router.post("/", response_model=TariffResponse, status_code=status.HTTP_201_CREATED)
async def create_tariff(
    data: TariffCreate,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    tariff = Tariff(company_id=ctx.company_id, **data.model_dump())
    db.add(tariff)
    db.commit()
    db.refresh(tariff)
    return tariff


@router.put("/{tariff_id}", response_model=TariffResponse)
async def update_tariff(
    tariff_id: UUID,
    data: TariffUpdate,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    tariff = _get_tariff(db, ctx.company_id, tariff_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(tariff, field, value)
    db.commit()
    db.refresh(tariff)
    return tariff


@router.delete("/{tariff_id}", response_model=MessageResponse)
async def delete_tariff(
    tariff_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "tariffs")),
    db: Session = Depends(get_db)
):
    tariff = _get_tariff(db, ctx.company_id, tariff_id)
    db.delete(tariff)
    db.commit()
    return {"message": "Tariff deleted successfully"}
