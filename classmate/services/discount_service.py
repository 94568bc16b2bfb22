from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from classmate.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from classmate.core.timeutils import to_utc
from classmate.models.finance import Discount, StudentDiscount
from classmate.models.student import Student
from classmate.services.activity_service import ActivityService

logger = logging.getLogger(__name__)

MAX_PERCENTAGE = Decimal("100")


def check_discount_value(discount_type: str, value: Decimal):
    if value is None or Decimal(value) <= 0:
        raise ValidationError("Discount value must be positive", code="INVALID_DISCOUNT")
    if discount_type == "percentage" and Decimal(value) > MAX_PERCENTAGE:
        raise ValidationError("Percentage discount cannot exceed 100", code="INVALID_DISCOUNT")


class DiscountService:
    def __init__(self, db: Session):
        self.db = db
        self.activities = ActivityService(db)

    def get(self, company_id: UUID, discount_id: UUID) -> Discount:
        discount = self.db.query(Discount).filter(
            Discount.id == discount_id, Discount.company_id == company_id
        ).first()
        if not discount:
            raise NotFoundError("Discount")
        return discount

    def _get_student(self, company_id: UUID, student_id: UUID) -> Student:
        student = self.db.query(Student).filter(Student.id == student_id, Student.company_id == company_id).first()
        if not student:
            raise NotFoundError("Student")
        return student

    def _active_links(self, student_id: UUID, discount_id: Optional[UUID] = None):
        query = self.db.query(StudentDiscount).filter(
            StudentDiscount.student_id == student_id,
            StudentDiscount.is_active.is_(True),
        )
        if discount_id is not None:
            query = query.filter(StudentDiscount.discount_id == discount_id)
        return query

    def apply(self, company_id: UUID, discount_id: UUID, student_id: UUID,
              expires_at: Optional[datetime] = None, created_by: Optional[UUID] = None) -> StudentDiscount:
        discount = self.get(company_id, discount_id)
        student = self._get_student(company_id, student_id)
        if not discount.is_active:
            raise InvalidStateError("Discount is not active", code="DISCOUNT_INACTIVE")
        if self._active_links(student.id, discount.id).first():
            raise ConflictError("Discount is already applied to this student", code="ALREADY_APPLIED")

        link = StudentDiscount(
            company_id=company_id,
            student_id=student.id,
            discount_id=discount.id,
            expires_at=to_utc(expires_at) if expires_at else None,
            is_active=True,
        )
        self.db.add(link)
        self.activities.log(
            company_id, student.id, "discount_applied",
            f"Discount '{discount.name}' applied",
            metadata={"discount_id": discount.id, "type": discount.type, "value": str(discount.value)},
            created_by=created_by,
        )
        self.db.commit()
        self.db.refresh(link)
        logger.info(f"Discount {discount.id} applied to student {student.id}")
        return link

    def list_for_student(self, company_id: UUID, student_id: UUID) -> List[StudentDiscount]:
        student = self._get_student(company_id, student_id)
        return self._active_links(student.id).order_by(StudentDiscount.created_at.desc()).all()

    def remove(self, company_id: UUID, student_id: UUID, discount_id: UUID,
               created_by: Optional[UUID] = None) -> int:
        """Deactivate the student's active links to a discount, keeping them for history"""
        student = self._get_student(company_id, student_id)
        links = self._active_links(student.id, discount_id).all()
        if not links:
            raise NotFoundError("Student discount")
        for link in links:
            link.is_active = False
        self.activities.log(
            company_id, student.id, "discount_removed",
            f"Discount '{links[0].discount_name}' removed",
            metadata={"discount_id": discount_id},
            created_by=created_by,
        )
        self.db.commit()
        logger.info(f"Discount {discount_id} removed from student {student.id}")
        return len(links)
