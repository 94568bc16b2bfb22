from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    DEBT = "debt"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    OTHER = "other"


class DebtStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


# Transactions

class TransactionCreate(BaseModel):
    student_id: UUID
    amount: Decimal = Field(..., gt=0)
    type: TransactionType
    payment_method: PaymentMethod = PaymentMethod.CASH
    description: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None

    class Config:
        use_enum_values = True


class TransactionResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    amount: Decimal
    type: str
    payment_method: Optional[str] = None
    status: str
    description: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    student_id: UUID
    student_name: Optional[str] = None
    balance: Decimal
    last_payment_date: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


# Tariffs

class TariffBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    duration_days: Optional[int] = Field(None, gt=0)
    lesson_count: Optional[int] = Field(None, gt=0)


class TariffCreate(TariffBase):
    pass


class TariffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, gt=0)
    lesson_count: Optional[int] = Field(None, gt=0)


class TariffResponse(TariffBase):
    id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Debts

class DebtBase(BaseModel):
    student_id: UUID
    amount: Decimal = Field(..., gt=0)
    due_date: Optional[date] = None
    status: DebtStatus = DebtStatus.PENDING
    notes: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True


class DebtCreate(DebtBase):
    pass


class DebtUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    status: Optional[DebtStatus] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class DebtResponse(DebtBase):
    id: UUID
    student_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Discounts

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: DiscountType
    value: Decimal = Field(..., gt=0)
    is_active: bool = True

    class Config:
        use_enum_values = True


class DiscountCreate(DiscountBase):
    pass


class DiscountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None

    class Config:
        use_enum_values = True


class DiscountResponse(DiscountBase):
    id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiscountApply(BaseModel):
    student_id: UUID
    expires_at: Optional[datetime] = None


class StudentDiscountCreate(BaseModel):
    discount_id: UUID
    expires_at: Optional[datetime] = None


class StudentDiscountResponse(BaseModel):
    id: UUID
    student_id: UUID
    discount_id: UUID
    discount_name: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    applied_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True
