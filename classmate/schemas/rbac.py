from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID


class PermissionResponse(BaseModel):
    id: UUID
    name: str
    resource: str
    action: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    permission_ids: List[UUID] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    permission_ids: Optional[List[UUID]] = None


class RoleResponse(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    is_system: bool = False
    permissions: List[PermissionResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserRoleRequest(BaseModel):
    user_id: UUID
    role_id: UUID
