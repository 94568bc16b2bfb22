from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class LeadSource(str, Enum):
    CALL = "call"
    WEBSITE = "website"
    SOCIAL = "social"
    REFERRAL = "referral"
    OTHER = "other"


class LeadStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    ENROLLED = "enrolled"
    REJECTED = "rejected"


class LeadActivityType(str, Enum):
    CALL = "call"
    MEETING = "meeting"
    NOTE = "note"
    EMAIL = "email"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LeadBase(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    source: LeadSource = LeadSource.OTHER
    status: LeadStatus = LeadStatus.NEW
    notes: Optional[str] = None
    assigned_to: Optional[UUID] = None

    class Config:
        use_enum_values = True
        validate_default = True


class LeadCreate(LeadBase):
    pass


class LeadUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    notes: Optional[str] = None
    assigned_to: Optional[UUID] = None

    class Config:
        use_enum_values = True


class LeadResponse(LeadBase):
    id: UUID
    branch_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeadStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    conversion_rate: float


class LeadActivityCreate(BaseModel):
    activity_type: LeadActivityType
    description: str = Field(..., min_length=1)

    class Config:
        use_enum_values = True


class LeadActivityResponse(BaseModel):
    id: UUID
    lead_id: UUID
    activity_type: str
    description: str
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeadTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[UUID] = None


class LeadTaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[UUID] = None

    class Config:
        use_enum_values = True


class LeadTaskResponse(BaseModel):
    id: UUID
    lead_id: UUID
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: str
    assigned_to: Optional[UUID] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
