from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class ActiveStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class GroupStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


# Teachers

class TeacherBase(BaseModel):
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: ActiveStatus = ActiveStatus.ACTIVE
    avatar: Optional[str] = None

    class Config:
        use_enum_values = True
        validate_default = True


class TeacherCreate(TeacherBase):
    pass


class TeacherUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[ActiveStatus] = None
    avatar: Optional[str] = None

    class Config:
        use_enum_values = True


class TeacherResponse(TeacherBase):
    id: UUID
    branch_id: Optional[UUID] = None
    workload: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Rooms

class RoomBase(BaseModel):
    name: str = Field(..., min_length=1)
    capacity: int = Field(0, ge=0)
    color: Optional[str] = "#8B5CF6"
    status: ActiveStatus = ActiveStatus.ACTIVE

    class Config:
        use_enum_values = True
        validate_default = True


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    capacity: Optional[int] = Field(None, ge=0)
    color: Optional[str] = None
    status: Optional[ActiveStatus] = None

    class Config:
        use_enum_values = True


class RoomResponse(RoomBase):
    id: UUID
    branch_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Groups

class GroupBase(BaseModel):
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    teacher_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    schedule: Optional[str] = None
    description: Optional[str] = None
    status: GroupStatus = GroupStatus.ACTIVE
    color: Optional[str] = "#8B5CF6"

    class Config:
        use_enum_values = True
        validate_default = True


class GroupCreate(GroupBase):
    student_ids: List[UUID] = []


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    subject: Optional[str] = Field(None, min_length=1)
    teacher_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    schedule: Optional[str] = None
    description: Optional[str] = None
    status: Optional[GroupStatus] = None
    color: Optional[str] = None
    student_ids: Optional[List[UUID]] = None

    class Config:
        use_enum_values = True


class GroupResponse(GroupBase):
    id: UUID
    branch_id: Optional[UUID] = None
    student_ids: List[UUID] = []
    teacher_name: Optional[str] = None
    room_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GenerateLessonsRequest(BaseModel):
    count: int = Field(12, ge=1, le=100)


class GenerateLessonsResponse(BaseModel):
    message: str
    count: int
    skipped: int = 0
