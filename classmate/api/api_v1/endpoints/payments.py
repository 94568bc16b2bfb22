import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.models.finance import PaymentTransaction, StudentBalance
from classmate.models.student import Student
from classmate.schemas.finance import BalanceResponse, TransactionCreate, TransactionResponse, TransactionUpdate
from classmate.services.email_service import email_service
from classmate.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()

EMAILED_TYPES = ("payment", "refund")


def send_payment_email(email: str, student_name: str, amount: str, transaction_type: str, balance: str):
    result = email_service.send_payment_notification(email, student_name, amount, transaction_type, balance)
    if not result["success"]:
        logger.warning(f"Payment email to {email} not sent: {result.get('error')}")


@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    background_tasks: BackgroundTasks,
    ctx: CompanyContext = Depends(require_permission("finance", "transactions")),
    db: Session = Depends(get_db)
):
    """Record a payment, refund or debt and update the student's balance"""
    service = PaymentService(db)
    transaction = service.create_transaction(
        ctx.company_id,
        data.student_id,
        data.amount,
        data.type,
        payment_method=data.payment_method,
        description=data.description,
        created_by=ctx.user_id,
    )

    student = transaction.student
    if transaction.type in EMAILED_TYPES and student is not None and student.email:
        balance = service.get_or_create_balance(ctx.company_id, student.id)
        background_tasks.add_task(
            send_payment_email,
            student.email,
            student.name,
            f"{transaction.amount:.2f}",
            transaction.type,
            f"{balance.balance:.2f}",
        )
    return transaction


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    query = db.query(PaymentTransaction).filter(PaymentTransaction.company_id == ctx.company_id)
    if ctx.branch_id:
        query = query.join(Student, Student.id == PaymentTransaction.student_id).filter(
            Student.branch_id == ctx.branch_id
        )
    return query.order_by(PaymentTransaction.created_at.desc()).all()


@router.get("/transactions/student/{student_id}", response_model=List[TransactionResponse])
async def list_student_transactions(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    return (
        db.query(PaymentTransaction)
        .filter(PaymentTransaction.company_id == ctx.company_id, PaymentTransaction.student_id == student_id)
        .order_by(PaymentTransaction.created_at.desc())
        .all()
    )


@router.put("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: UUID,
    data: TransactionUpdate,
    ctx: CompanyContext = Depends(require_permission("finance", "transactions")),
    db: Session = Depends(get_db)
):
    return PaymentService(db).update_transaction(ctx.company_id, transaction_id, data.model_dump(exclude_unset=True))


@router.get("/balance/{student_id}", response_model=BalanceResponse)
async def get_balance(
    student_id: UUID,
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    student = db.query(Student.id).filter(Student.id == student_id, Student.company_id == ctx.company_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    balance = PaymentService(db).get_or_create_balance(ctx.company_id, student_id)
    db.commit()
    db.refresh(balance)
    return balance


@router.get("/balances", response_model=List[BalanceResponse])
async def list_balances(
    ctx: CompanyContext = Depends(require_permission("finance", "view")),
    db: Session = Depends(get_db)
):
    query = db.query(StudentBalance).filter(StudentBalance.company_id == ctx.company_id)
    if ctx.branch_id:
        query = query.join(Student, Student.id == StudentBalance.student_id).filter(
            Student.branch_id == ctx.branch_id
        )
    return query.all()
