import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.models.finance import DebtRecord
from classmate.models.student import Student
from classmate.schemas.auth import MessageResponse
from classmate.schemas.finance import DebtCreate, DebtResponse, DebtUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_debt(db: Session, company_id: UUID, debt_id: UUID) -> DebtRecord:
    debt = db.query(DebtRecord).filter(DebtRecord.id == debt_id, DebtRecord.company_id == company_id).first()
    if not debt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Debt not found")
    return debt


@router.get("/", response_model=List[DebtResponse])
async def list_debts(
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    query = db.query(DebtRecord).filter(DebtRecord.company_id == ctx.company_id)
    if status_filter:
        query = query.filter(DebtRecord.status == status_filter)
    return query.order_by(DebtRecord.due_date).all()


@router.get("/student/{student_id}", response_model=List[DebtResponse])
async def list_student_debts(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return (
        db.query(DebtRecord)
        .filter(DebtRecord.company_id == ctx.company_id, DebtRecord.student_id == student_id)
        .order_by(DebtRecord.due_date)
        .all()
    )


@router.get("/{debt_id}", response_model=DebtResponse)
async def get_debt(
    debt_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return _get_debt(db, ctx.company_id, debt_id)


@router.post("/", response_model=DebtResponse, status_code=status.HTTP_201_CREATED)
async def create_debt(
    data: DebtCreate,
    ctx: CompanyContext = Depends(require_permission("finance", "debts")),
    db: Session = Depends(get_db)
):
    student = db.query(Student.id).filter(Student.id == data.student_id, Student.company_id == ctx.company_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    debt = DebtRecord(company_id=ctx.company_id, **data.model_dump())
    db.add(debt)
    db.commit()
    db.refresh(debt)
    logger.info(f"Debt {debt.id} of {debt.amount} recorded for student {debt.student_id}")
    return debt


@router.put("/{debt_id}", response_model=DebtResponse)
async def update_debt(
    debt_id: UUID,
    data: DebtUpdate,
    ctx: CompanyContext = Depends(require_permission("finance", "debts")),
    db: Session = Depends(get_db)
):
    debt = _get_debt(db, ctx.company_id, debt_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(debt, field, value)
    db.commit()
    db.refresh(debt)
    return debt


@router.delete("/{debt_id}", response_model=MessageResponse)
async def delete_debt(
    debt_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "debts")),
    db: Session = Depends(get_db)
):
    debt = _get_debt(db, ctx.company_id, debt_id)
    db.delete(debt)
    db.commit()
    return {"message": "Debt deleted successfully"}
