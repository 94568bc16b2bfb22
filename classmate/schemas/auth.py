from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    company_name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class InviteRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1)
    role_id: Optional[UUID] = None


class AcceptInviteRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class RoleBrief(BaseModel):
    id: UUID
    name: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    company_id: UUID
    status: str
    roles: List[RoleBrief] = []
    permissions: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
