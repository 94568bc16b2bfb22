from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class LessonStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LessonBase(BaseModel):
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    teacher_id: Optional[UUID] = None
    group_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    start: datetime
    end: datetime
    status: LessonStatus = LessonStatus.SCHEDULED

    class Config:
        use_enum_values = True
        validate_default = True


class LessonCreate(LessonBase):
    student_ids: List[UUID] = []


class LessonUpdate(LessonCreate):
    pass


class LessonResponse(LessonBase):
    id: UUID
    branch_id: Optional[UUID] = None
    student_ids: List[UUID] = []
    teacher_name: Optional[str] = None
    group_name: Optional[str] = None
    room_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckConflictsRequest(BaseModel):
    teacher_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    start: datetime
    end: datetime
    exclude_lesson_id: Optional[UUID] = None


class ConflictInfo(BaseModel):
    lesson_id: UUID
    title: str
    start: datetime
    end: datetime
    conflict_type: str
    teacher_name: Optional[str] = None
    room_name: Optional[str] = None


class SuggestedTime(BaseModel):
    start: datetime
    end: datetime
    room_id: UUID
    room_name: str


class CheckConflictsResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[ConflictInfo] = []
    suggested_times: List[SuggestedTime] = []


class BulkLessonsRequest(BaseModel):
    lessons: List[LessonCreate] = Field(..., min_length=1)


class BulkLessonsResponse(BaseModel):
    created: int
    skipped: int
    messages: List[str] = []
