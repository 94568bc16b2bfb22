from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class BranchStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BranchBase(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    status: BranchStatus = BranchStatus.ACTIVE

    class Config:
        use_enum_values = True
        validate_default = True


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[BranchStatus] = None

    class Config:
        use_enum_values = True


class BranchResponse(BranchBase):
    id: UUID
    company_id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class BranchUserRequest(BaseModel):
    user_id: UUID


class BranchUserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    status: str

    class Config:
        from_attributes = True


class BranchSwitchResponse(BaseModel):
    token: str
    refresh_token: str
    branch: BranchResponse
