import logging
from dataclasses import dataclass, field
from typing import Optional, Set
from uuid import UUID

from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from classmate.database import get_db
from classmate.auth.jwt import verify_token
from classmate.core.exceptions import AuthenticationError, PermissionDeniedError
from classmate.models.company import User, Branch, UserBranch
from classmate.models.rbac import Permission, Role, UserRole, role_permissions

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

BRANCH_HEADER = "X-Branch-ID"


@dataclass
class CompanyContext:
    """Who is calling and which tenant slice they are working in"""
    user: User
    company_id: UUID
    branch_id: Optional[UUID] = None
    permissions: Set[str] = field(default_factory=set)

    @property
    def user_id(self) -> UUID:
        return self.user.id

    def can(self, permission: str) -> bool:
        return permission in self.permissions

    def scope(self, query, model):
        """Restrict a query on a tenant table to this company and, when selected, this branch"""
        query = query.filter(model.company_id == self.company_id)
        if self.branch_id is not None and hasattr(model, "branch_id"):
            query = query.filter(model.branch_id == self.branch_id)
        return query


def _parse_uuid(value) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def load_permissions(db: Session, user_id: UUID, company_id: UUID) -> Set[str]:
    rows = (
        db.query(Permission.name)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(Role, Role.id == role_permissions.c.role_id)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id, UserRole.company_id == company_id, Role.company_id == company_id)
        .distinct()
        .all()
    )
    return {name for (name,) in rows}


def user_can_access_branch(db: Session, user: User, branch_id: UUID, permissions: Set[str]) -> bool:
    branch = db.query(Branch).filter(Branch.id == branch_id, Branch.company_id == user.company_id).first()
    if branch is None:
        return False
    if "branches.manage" in permissions:
        return True
    link = db.query(UserBranch).filter(UserBranch.user_id == user.id, UserBranch.branch_id == branch_id).first()
    return link is not None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current user from JWT token"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    payload = verify_token(credentials.credentials)

    user_id = _parse_uuid(payload.get("sub"))
    company_id = _parse_uuid(payload.get("company_id"))
    if user_id is None or company_id is None:
        raise AuthenticationError("Could not validate credentials", code="INVALID_TOKEN")

    user = db.query(User).filter(User.id == user_id, User.company_id == company_id).first()
    if user is None or user.status != "active":
        raise AuthenticationError("User not found or inactive", code="INVALID_TOKEN")

    # Stash the branch claim so the company context can pick it up
    user.token_branch_id = _parse_uuid(payload.get("branch_id"))
    return user


def get_company_context(
    current_user: User = Depends(get_current_user),
    x_branch_id: Optional[str] = Header(None, alias=BRANCH_HEADER),
    db: Session = Depends(get_db)
) -> CompanyContext:
    permissions = load_permissions(db, current_user.id, current_user.company_id)

    branch_id = None
    if x_branch_id:
        branch_id = _parse_uuid(x_branch_id)
        if branch_id is None or not user_can_access_branch(db, current_user, branch_id, permissions):
            raise PermissionDeniedError("Access to this branch is denied", code="BRANCH_ACCESS_DENIED")
    elif current_user.token_branch_id is not None:
        if user_can_access_branch(db, current_user, current_user.token_branch_id, permissions):
            branch_id = current_user.token_branch_id
        else:
            logger.info(f"Ignoring stale branch claim for user {current_user.id}")

    return CompanyContext(
        user=current_user,
        company_id=current_user.company_id,
        branch_id=branch_id,
        permissions=permissions,
    )


def require_permission(resource: str, action: str):
    """Dependency factory: the caller must hold `resource.action`"""
    permission_name = f"{resource}.{action}"

    def checker(ctx: CompanyContext = Depends(get_company_context)) -> CompanyContext:
        if not ctx.can(permission_name):
            logger.warning(f"User {ctx.user_id} lacks permission {permission_name}")
            raise PermissionDeniedError(
                f"Permission '{permission_name}' is required",
                details={"permission": permission_name},
            )
        return ctx

    return checker
