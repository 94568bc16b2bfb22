import logging
import secrets
from typing import Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.auth.jwt import (
    REFRESH_TOKEN,
    create_token_pair,
    get_password_hash,
    verify_password,
    verify_token,
)
from classmate.core.config import settings
from classmate.core.exceptions import AuthenticationError, ConflictError, NotFoundError
from classmate.core.timeutils import is_valid_timezone
from classmate.models.company import CenterSettings, Company, User
from classmate.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

DEFAULT_THEME_COLOR = "#8B5CF6"


def get_or_create_settings(db: Session, company_id: UUID) -> CenterSettings:
    center_settings = db.query(CenterSettings).filter(CenterSettings.company_id == company_id).first()
    if center_settings is None:
        company = db.query(Company).filter(Company.id == company_id).first()
        if company is None:
            raise NotFoundError("Company")
        center_settings = CenterSettings(
            company_id=company_id,
            center_name=company.name,
            theme_color=DEFAULT_THEME_COLOR,
            timezone=settings.DEFAULT_TIMEZONE if is_valid_timezone(settings.DEFAULT_TIMEZONE) else "UTC",
        )
        db.add(center_settings)
        db.commit()
        db.refresh(center_settings)
    return center_settings


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.rbac = RBACService(db)

    def _email_taken(self, email: str) -> bool:
        return self.db.query(User.id).filter(User.email == email.lower()).first() is not None

    def register(self, name: str, email: str, password: str, company_name: str) -> Tuple[User, Dict[str, str]]:
        """Create a company with default settings and roles, owned by a new admin user"""
        if self._email_taken(email):
            raise ConflictError("User with this email already exists", code="EMAIL_EXISTS")

        try:
            company = Company(name=company_name.strip(), status="active")
            self.db.add(company)
            self.db.flush()

            self.db.add(CenterSettings(
                company_id=company.id,
                center_name=company.name,
                theme_color=DEFAULT_THEME_COLOR,
                timezone=settings.DEFAULT_TIMEZONE,
            ))
            roles = self.rbac.create_default_roles(company.id)

            user = User(
                company_id=company.id,
                email=email.lower(),
                name=name.strip(),
                hashed_password=get_password_hash(password),
                status="active",
            )
            self.db.add(user)
            self.db.flush()
            self.rbac.assign_role(company.id, user.id, roles["admin"].id, commit=False)

            self.db.commit()
            self.db.refresh(user)
            logger.info(f"Company {company.id} registered by {user.email}")
            return user, create_token_pair(user)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering company for {email}: {e}")
            raise

    def login(self, email: str, password: str) -> Tuple[User, Dict[str, str]]:
        user = self.db.query(User).filter(User.email == email.lower()).first()
        if not user or user.status != "active" or not verify_password(password, user.hashed_password):
            logger.info(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
        return user, create_token_pair(user)

    def refresh(self, refresh_token: str) -> Tuple[User, Dict[str, str]]:
        payload = verify_token(refresh_token, expected_type=REFRESH_TOKEN)
        try:
            user_id = UUID(payload["sub"])
        except ValueError:
            raise AuthenticationError("Could not validate credentials", code="INVALID_TOKEN")
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or user.status != "active":
            raise AuthenticationError("User not found or inactive", code="INVALID_TOKEN")
        branch_id = payload.get("branch_id")
        return user, create_token_pair(user, branch_id=branch_id)

    def invite(self, company_id: UUID, email: str, name: str, role_id: Optional[UUID] = None,
               invited_by: Optional[UUID] = None) -> User:
        """Create a pending user holding a one-time invite token"""
        if self._email_taken(email):
            raise ConflictError("User with this email already exists", code="EMAIL_EXISTS")
        if role_id is not None:
            self.rbac.get_role(company_id, role_id)
        try:
            user = User(
                company_id=company_id,
                email=email.lower(),
                name=name.strip(),
                status="invited",
                invite_token=secrets.token_urlsafe(32),
            )
            self.db.add(user)
            self.db.flush()
            if role_id is not None:
                self.rbac.assign_role(company_id, user.id, role_id, assigned_by=invited_by, commit=False)
            self.db.commit()
            self.db.refresh(user)
            logger.info(f"User {user.email} invited to company {company_id}")
            return user
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error inviting {email}: {e}")
            raise

    def accept_invite(self, token: str, password: str) -> Tuple[User, Dict[str, str]]:
        user = self.db.query(User).filter(User.invite_token == token).first()
        if not user:
            raise NotFoundError("Invitation")
        user.hashed_password = get_password_hash(password)
        user.invite_token = None
        user.status = "active"
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Invitation accepted by {user.email}")
        return user, create_token_pair(user)
