from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class AttendanceStatus(str, Enum):
    ATTENDED = "attended"
    MISSED = "missed"
    CANCELLED = "cancelled"


class AttendanceMark(BaseModel):
    lesson_id: UUID
    student_id: UUID
    status: AttendanceStatus
    reason: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class AttendanceResponse(BaseModel):
    id: UUID
    lesson_id: UUID
    student_id: UUID
    subscription_id: Optional[UUID] = None
    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    marked_by: Optional[UUID] = None
    marked_at: Optional[datetime] = None

    class Config:
        from_attributes = True
