from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BillingType(str, Enum):
    PER_LESSON = "per_lesson"
    MONTHLY = "monthly"
    UNLIMITED = "unlimited"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    FROZEN = "frozen"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Subscription types

class SubscriptionTypeBase(BaseModel):
    name: str = Field(..., min_length=1)
    lessons_count: int = Field(..., gt=0)
    validity_days: Optional[int] = Field(None, gt=0)
    price: Decimal = Field(..., ge=0)
    can_freeze: bool = False
    billing_type: BillingType = BillingType.PER_LESSON
    description: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True


class SubscriptionTypeCreate(SubscriptionTypeBase):
    pass


class SubscriptionTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    lessons_count: Optional[int] = Field(None, gt=0)
    validity_days: Optional[int] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, ge=0)
    can_freeze: Optional[bool] = None
    billing_type: Optional[BillingType] = None
    description: Optional[str] = None

    class Config:
        use_enum_values = True


class SubscriptionTypeResponse(SubscriptionTypeBase):
    id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Student subscriptions

class SubscriptionCreate(BaseModel):
    student_id: UUID
    subscription_type_id: UUID
    group_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    start_date: Optional[date] = None
    total_price: Optional[Decimal] = Field(None, ge=0)


class SubscriptionUpdate(BaseModel):
    status: Optional[SubscriptionStatus] = None
    end_date: Optional[date] = None
    paid_till: Optional[date] = None

    class Config:
        use_enum_values = True


class SubscriptionResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    subscription_type_id: UUID
    subscription_type_name: Optional[str] = None
    billing_type: Optional[str] = None
    group_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    total_lessons: int
    used_lessons: int
    lessons_remaining: int
    total_price: Decimal
    price_per_lesson: Decimal
    start_date: date
    end_date: Optional[date] = None
    paid_till: Optional[date] = None
    status: str
    freeze_days_remaining: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Freezes

class FreezeCreate(BaseModel):
    freeze_start: date
    freeze_end: date
    reason: Optional[str] = None


class FreezeUpdate(BaseModel):
    freeze_end: Optional[date] = None
    reason: Optional[str] = None


class FreezeResponse(BaseModel):
    id: UUID
    subscription_id: UUID
    freeze_start: date
    freeze_end: date
    days: int
    reason: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
