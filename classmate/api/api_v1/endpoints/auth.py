import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, get_company_context, require_permission
from classmate.database import get_db
from classmate.models.company import Company, User
from classmate.schemas.auth import (
    AcceptInviteRequest,
    InviteRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from classmate.services.auth_service import AuthService
from classmate.services.email_service import email_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_response(user: User, tokens: dict) -> TokenResponse:
    return TokenResponse(
        token=tokens["token"],
        refresh_token=tokens["refresh_token"],
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new education center together with its first admin"""
    user, tokens = AuthService(db).register(data.name, data.email, data.password, data.company_name)
    return _token_response(user, tokens)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    user, tokens = AuthService(db).login(data.email, data.password)
    return _token_response(user, tokens)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, db: Session = Depends(get_db)):
    user, tokens = AuthService(db).refresh(data.refresh_token)
    return _token_response(user, tokens)


@router.get("/me", response_model=UserResponse)
async def me(ctx: CompanyContext = Depends(get_company_context)):
    return ctx.user


@router.post("/logout", response_model=MessageResponse)
async def logout(ctx: CompanyContext = Depends(get_company_context)):
    # Tokens are stateless; the client drops them
    logger.info(f"User {ctx.user_id} logged out")
    return {"message": "Logged out successfully"}


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    ctx: CompanyContext = Depends(require_permission("users", "manage")),
    db: Session = Depends(get_db)
):
    return db.query(User).filter(User.company_id == ctx.company_id).order_by(User.name).all()


@router.post("/invite", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def invite_user(
    data: InviteRequest,
    background_tasks: BackgroundTasks,
    ctx: CompanyContext = Depends(require_permission("users", "manage")),
    db: Session = Depends(get_db)
):
    """Invite a staff member; the accept link goes out by email"""
    user = AuthService(db).invite(ctx.company_id, data.email, data.name, data.role_id, invited_by=ctx.user_id)
    company = db.query(Company).filter(Company.id == ctx.company_id).first()

    def send_invite(email: str, name: str, company_name: str, token: str):
        result = email_service.send_invite_email(email, name, company_name, token)
        if not result["success"]:
            logger.warning(f"Invite email to {email} not sent: {result.get('error')}")

    background_tasks.add_task(send_invite, user.email, user.name, company.name, user.invite_token)
    return user


@router.post("/accept-invite", response_model=TokenResponse)
async def accept_invite(data: AcceptInviteRequest, db: Session = Depends(get_db)):
    user, tokens = AuthService(db).accept_invite(data.token, data.password)
    return _token_response(user, tokens)
