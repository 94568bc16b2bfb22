from decimal import Decimal
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from classmate.core.exceptions import NotFoundError, ValidationError
from classmate.core.timeutils import utcnow
from classmate.models.finance import PaymentTransaction, StudentBalance
from classmate.models.student import Student
from classmate.services.activity_service import ActivityService

logger = logging.getLogger(__name__)

CREDIT_TYPES = {"payment"}
DEBIT_TYPES = {"refund", "debt", "deduction"}
TRANSACTION_TYPES = CREDIT_TYPES | DEBIT_TYPES


def balance_effect(transaction_type: str, amount: Decimal) -> Decimal:
    """Signed change a transaction makes to the student's balance"""
    if transaction_type in CREDIT_TYPES:
        return Decimal(amount)
    if transaction_type in DEBIT_TYPES:
        return -Decimal(amount)
    raise ValidationError(f"Unknown transaction type '{transaction_type}'")


class PaymentService:
    def __init__(self, db: Session):
        self.db = db
        self.activities = ActivityService(db)

    def _get_student(self, company_id: UUID, student_id: UUID) -> Student:
        student = self.db.query(Student).filter(Student.id == student_id, Student.company_id == company_id).first()
        if not student:
            raise NotFoundError("Student")
        return student

    def get_or_create_balance(self, company_id: UUID, student_id: UUID) -> StudentBalance:
        balance = self.db.query(StudentBalance).filter(StudentBalance.student_id == student_id).first()
        if balance is None:
            balance = StudentBalance(student_id=student_id, company_id=company_id, balance=Decimal("0"), version=1)
            self.db.add(balance)
            self.db.flush()
        return balance

    def adjust_balance(self, company_id: UUID, student_id: UUID, delta: Decimal,
                       payment_made: bool = False) -> StudentBalance:
        """Apply a signed delta to the balance within the caller's transaction"""
        balance = self.get_or_create_balance(company_id, student_id)
        balance.balance = Decimal(balance.balance or 0) + delta
        balance.version = (balance.version or 1) + 1
        if payment_made:
            balance.last_payment_date = utcnow()
        return balance

    def create_transaction(self, company_id: UUID, student_id: UUID, amount: Decimal, transaction_type: str,
                           payment_method: str = "cash", description: Optional[str] = None,
                           created_by: Optional[UUID] = None) -> PaymentTransaction:
        student = self._get_student(company_id, student_id)
        delta = balance_effect(transaction_type, amount)
        try:
            transaction = PaymentTransaction(
                company_id=company_id,
                student_id=student.id,
                amount=amount,
                type=transaction_type,
                payment_method=payment_method,
                status="completed",
                description=description,
                created_by=created_by,
                created_at=utcnow(),
            )
            self.db.add(transaction)
            self.adjust_balance(company_id, student.id, delta, payment_made=(transaction_type == "payment"))
            self.activities.log(
                company_id,
                student.id,
                "payment",
                f"{transaction_type.capitalize()} of {Decimal(amount):.2f} ({payment_method})",
                metadata={"transaction_type": transaction_type, "amount": str(amount)},
                created_by=created_by,
            )
            self.db.commit()
            self.db.refresh(transaction)
            logger.info(f"Transaction {transaction.id} ({transaction_type} {amount}) recorded for student {student.id}")
            return transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating transaction for student {student_id}: {e}")
            raise

    def record_lesson_deduction(self, company_id: UUID, student_id: UUID, amount: Decimal,
                                lesson_id: UUID, created_by: Optional[UUID] = None) -> PaymentTransaction:
        """Debit one lesson's price without committing"""
        transaction = PaymentTransaction(
            company_id=company_id,
            student_id=student_id,
            amount=amount,
            type="deduction",
            payment_method="subscription",
            status="completed",
            description=f"Charge for attended lesson {lesson_id}",
            created_by=created_by,
            created_at=utcnow(),
        )
        self.db.add(transaction)
        self.adjust_balance(company_id, student_id, -Decimal(amount))
        return transaction

    def update_transaction(self, company_id: UUID, transaction_id: UUID, data: dict) -> PaymentTransaction:
        """Reverse the old balance effect, then apply the edited one"""
        transaction = self.db.query(PaymentTransaction).filter(
            PaymentTransaction.id == transaction_id,
            PaymentTransaction.company_id == company_id,
        ).first()
        if not transaction:
            raise NotFoundError("Transaction")

        try:
            self.adjust_balance(company_id, transaction.student_id,
                                -balance_effect(transaction.type, transaction.amount))
            for field in ("amount", "type", "payment_method", "description"):
                if field in data and data[field] is not None:
                    setattr(transaction, field, data[field])
            self.adjust_balance(company_id, transaction.student_id,
                                balance_effect(transaction.type, transaction.amount),
                                payment_made=(transaction.type == "payment"))
            self.db.commit()
            self.db.refresh(transaction)
            return transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating transaction {transaction_id}: {e}")
            raise
