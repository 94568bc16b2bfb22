from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from classmate.schemas.subscription import SubscriptionResponse


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FROZEN = "frozen"
    GRADUATED = "graduated"


class StudentBase(BaseModel):
    name: str = Field(..., min_length=1)
    age: Optional[int] = Field(None, ge=0, le=150)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: StudentStatus = StudentStatus.ACTIVE
    subjects: List[str] = []
    avatar: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True


class StudentCreate(StudentBase):
    group_ids: List[UUID] = []


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    age: Optional[int] = Field(None, ge=0, le=150)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[StudentStatus] = None
    subjects: Optional[List[str]] = None
    avatar: Optional[str] = None
    group_ids: Optional[List[UUID]] = None

    class Config:
        use_enum_values = True


class StudentResponse(StudentBase):
    id: UUID
    branch_id: Optional[UUID] = None
    group_ids: List[UUID] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentStatusUpdate(BaseModel):
    status: StudentStatus
    reason: Optional[str] = None

    class Config:
        use_enum_values = True


class NoteCreate(BaseModel):
    note: str = Field(..., min_length=1)


class NoteResponse(BaseModel):
    id: UUID
    student_id: UUID
    note: str
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivityResponse(BaseModel):
    id: UUID
    student_id: UUID
    activity_type: str
    description: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    id: UUID
    student_id: UUID
    type: str
    title: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendanceJournalEntry(BaseModel):
    id: UUID
    lesson_id: UUID
    lesson_title: str
    subject: str
    teacher_name: Optional[str] = None
    group_name: Optional[str] = None
    start: datetime
    end: datetime
    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    marked_at: Optional[datetime] = None
    subscription_id: Optional[UUID] = None
    subscription_type_name: Optional[str] = None


class AttendanceStats(BaseModel):
    total_lessons: int
    attended: int
    missed: int
    cancelled: int
    attendance_rate: float


class StudentDetails(BaseModel):
    student: StudentResponse
    balance: Decimal
    active_subscriptions: List[SubscriptionResponse] = []
    recent_activities: List[ActivityResponse] = []
    attendance_stats: AttendanceStats
    unread_notifications: int
