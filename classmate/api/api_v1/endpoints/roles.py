from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, get_company_context, require_permission
from classmate.database import get_db
from classmate.models.rbac import Permission
from classmate.schemas.auth import MessageResponse
from classmate.schemas.rbac import PermissionResponse, RoleCreate, RoleResponse, RoleUpdate, UserRoleRequest
from classmate.services.rbac_service import RBACService

router = APIRouter()


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return db.query(Permission).order_by(Permission.resource, Permission.action).all()


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return RBACService(db).list_roles(ctx.company_id)


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return RBACService(db).get_role(ctx.company_id, role_id)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    ctx: CompanyContext = Depends(require_permission("roles", "manage")),
    db: Session = Depends(get_db)
):
    return RBACService(db).create_role(ctx.company_id, data.name, data.description, data.permission_ids)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    ctx: CompanyContext = Depends(require_permission("roles", "manage")),
    db: Session = Depends(get_db)
):
    return RBACService(db).update_role(ctx.company_id, role_id, data.model_dump(exclude_unset=True))


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: UUID,
    ctx: CompanyContext = Depends(require_permission("roles", "manage")),
    db: Session = Depends(get_db)
):
    RBACService(db).delete_role(ctx.company_id, role_id)
    return {"message": "Role deleted successfully"}


@router.get("/roles/{role_id}/permissions", response_model=List[PermissionResponse])
async def get_role_permissions(
    role_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return RBACService(db).get_role(ctx.company_id, role_id).permissions


@router.get("/users/{user_id}/roles", response_model=List[RoleResponse])
async def get_user_roles(
    user_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return RBACService(db).get_user_roles(ctx.company_id, user_id)


@router.post("/users/roles/assign", response_model=MessageResponse)
async def assign_role(
    data: UserRoleRequest,
    ctx: CompanyContext = Depends(require_permission("users", "manage")),
    db: Session = Depends(get_db)
):
    RBACService(db).assign_role(ctx.company_id, data.user_id, data.role_id, assigned_by=ctx.user_id)
    return {"message": "Role assigned successfully"}


@router.post("/users/roles/remove", response_model=MessageResponse)
async def remove_role(
    data: UserRoleRequest,
    ctx: CompanyContext = Depends(require_permission("users", "manage")),
    db: Session = Depends(get_db)
):
    RBACService(db).remove_role(ctx.company_id, data.user_id, data.role_id)
    return {"message": "Role removed successfully"}
