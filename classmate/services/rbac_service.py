import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from classmate.models.company import User
from classmate.models.rbac import Permission, Role, UserRole

logger = logging.getLogger(__name__)

CRUD_ACTIONS = ("view", "create", "update", "delete")

# resource -> allowed actions
PERMISSION_CATALOGUE = {
    "teachers": CRUD_ACTIONS,
    "students": CRUD_ACTIONS,
    "groups": CRUD_ACTIONS,
    "lessons": CRUD_ACTIONS,
    "rooms": CRUD_ACTIONS,
    "leads": CRUD_ACTIONS,
    "settings": ("view", "update"),
    "finance": ("view", "transactions", "tariffs", "debts"),
    "subscriptions": CRUD_ACTIONS + ("freeze",),
    "attendance": ("mark", "view"),
    "dashboard": ("view",),
    "roles": ("manage",),
    "users": ("manage",),
    "branches": ("manage",),
}

ALL_PERMISSIONS = [f"{resource}.{action}" for resource, actions in PERMISSION_CATALOGUE.items() for action in actions]

ADMIN_ONLY = {"roles.manage", "users.manage", "branches.manage"}

TEACHER_PERMISSIONS = [
    "teachers.view",
    "students.view",
    "groups.view",
    "lessons.view",
    "rooms.view",
    "attendance.mark",
    "attendance.view",
    "dashboard.view",
]

DEFAULT_ROLES = {
    "admin": ("Full access to the center", ALL_PERMISSIONS),
    "manager": ("Day-to-day operations without user and role management",
                [p for p in ALL_PERMISSIONS if p not in ADMIN_ONLY]),
    "teacher": ("Own schedule, students and attendance", TEACHER_PERMISSIONS),
}


def seed_permissions(db: Session) -> int:
    """Insert missing catalogue permissions; returns how many were created"""
    existing = {name for (name,) in db.query(Permission.name).all()}
    created = 0
    for name in ALL_PERMISSIONS:
        if name in existing:
            continue
        resource, action = name.split(".", 1)
        db.add(Permission(name=name, resource=resource, action=action,
                          description=f"{action.capitalize()} {resource}"))
        created += 1
    if created:
        db.commit()
    return created


class RBACService:
    def __init__(self, db: Session):
        self.db = db

    def _permissions_by_name(self, names: List[str]) -> List[Permission]:
        found = self.db.query(Permission).filter(Permission.name.in_(names)).all() if names else []
        missing = set(names) - {p.name for p in found}
        if missing:
            raise ValidationError("Unknown permissions", details={"permissions": sorted(missing)})
        return found

    def _permissions_by_id(self, ids: List[UUID]) -> List[Permission]:
        found = self.db.query(Permission).filter(Permission.id.in_(ids)).all() if ids else []
        if len(found) != len(set(ids)):
            raise ValidationError("Unknown permission ids")
        return found

    def create_default_roles(self, company_id: UUID) -> dict:
        """Create admin, manager and teacher roles for a new company (no commit)"""
        roles = {}
        for name, (description, permission_names) in DEFAULT_ROLES.items():
            role = Role(
                company_id=company_id,
                name=name,
                description=description,
                is_system=(name == "admin"),
            )
            role.permissions = self._permissions_by_name(permission_names)
            self.db.add(role)
            roles[name] = role
        self.db.flush()
        return roles

    def list_roles(self, company_id: UUID) -> List[Role]:
        return self.db.query(Role).filter(Role.company_id == company_id).order_by(Role.name).all()

    def get_role(self, company_id: UUID, role_id: UUID) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id, Role.company_id == company_id).first()
        if not role:
            raise NotFoundError("Role")
        return role

    def _ensure_unique_name(self, company_id: UUID, name: str, exclude_id: Optional[UUID] = None):
        query = self.db.query(Role).filter(Role.company_id == company_id, Role.name == name)
        if exclude_id:
            query = query.filter(Role.id != exclude_id)
        if query.first():
            raise ConflictError(f"Role '{name}' already exists", code="ROLE_EXISTS")

    def create_role(self, company_id: UUID, name: str, description: Optional[str],
                    permission_ids: List[UUID]) -> Role:
        self._ensure_unique_name(company_id, name)
        try:
            role = Role(company_id=company_id, name=name, description=description, is_system=False)
            role.permissions = self._permissions_by_id(permission_ids)
            self.db.add(role)
            self.db.commit()
            self.db.refresh(role)
            logger.info(f"Role {role.name} created for company {company_id}")
            return role
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating role {name}: {e}")
            raise

    def update_role(self, company_id: UUID, role_id: UUID, data: dict) -> Role:
        role = self.get_role(company_id, role_id)
        if data.get("name") and data["name"] != role.name:
            if role.is_system:
                raise InvalidStateError("System roles cannot be renamed", code="SYSTEM_ROLE")
            self._ensure_unique_name(company_id, data["name"], exclude_id=role.id)
            role.name = data["name"]
        if "description" in data:
            role.description = data["description"]
        if data.get("permission_ids") is not None:
            role.permissions = self._permissions_by_id(data["permission_ids"])
        self.db.commit()
        self.db.refresh(role)
        return role

    def delete_role(self, company_id: UUID, role_id: UUID):
        role = self.get_role(company_id, role_id)
        if role.is_system:
            raise InvalidStateError("System roles cannot be deleted", code="SYSTEM_ROLE")
        self.db.delete(role)
        self.db.commit()
        logger.info(f"Role {role_id} deleted for company {company_id}")

    def _get_user(self, company_id: UUID, user_id: UUID) -> User:
        user = self.db.query(User).filter(User.id == user_id, User.company_id == company_id).first()
        if not user:
            raise NotFoundError("User")
        return user

    def get_user_roles(self, company_id: UUID, user_id: UUID) -> List[Role]:
        self._get_user(company_id, user_id)
        return (
            self.db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id, UserRole.company_id == company_id)
            .order_by(Role.name)
            .all()
        )

    def assign_role(self, company_id: UUID, user_id: UUID, role_id: UUID,
                    assigned_by: Optional[UUID] = None, commit: bool = True) -> UserRole:
        self._get_user(company_id, user_id)
        self.get_role(company_id, role_id)
        link = self.db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role_id == role_id).first()
        if link:
            return link
        link = UserRole(user_id=user_id, role_id=role_id, company_id=company_id, assigned_by=assigned_by)
        self.db.add(link)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return link

    def remove_role(self, company_id: UUID, user_id: UUID, role_id: UUID):
        link = self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
            UserRole.company_id == company_id,
        ).first()
        if not link:
            raise NotFoundError("Role assignment")
        role = self.get_role(company_id, role_id)
        if role.name == "admin":
            admins = self.db.query(UserRole).filter(
                UserRole.role_id == role.id, UserRole.company_id == company_id
            ).count()
            if admins <= 1:
                raise InvalidStateError("Company must keep at least one admin", code="LAST_ADMIN")
        self.db.delete(link)
        self.db.commit()
