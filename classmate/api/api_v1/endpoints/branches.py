import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from classmate.auth.dependencies import (
    CompanyContext,
    get_company_context,
    require_permission,
    user_can_access_branch,
)
from classmate.auth.jwt import create_token_pair
from classmate.core.exceptions import ConflictError, PermissionDeniedError
from classmate.database import get_db
from classmate.models.company import Branch, User, UserBranch
from classmate.models.lead import Lead
from classmate.models.lesson import Lesson
from classmate.models.school import Group, Room, Teacher
from classmate.models.student import Student
from classmate.schemas.auth import MessageResponse
from classmate.schemas.branch import (
    BranchCreate,
    BranchResponse,
    BranchSwitchResponse,
    BranchUpdate,
    BranchUserRequest,
    BranchUserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_accessible_branch(db: Session, ctx: CompanyContext, branch_id: UUID) -> Branch:
    branch = db.query(Branch).filter(Branch.id == branch_id, Branch.company_id == ctx.company_id).first()
    if not branch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Branch not found")
    if not user_can_access_branch(db, ctx.user, branch.id, ctx.permissions):
        raise PermissionDeniedError("Access to this branch is denied", code="BRANCH_ACCESS_DENIED")
    return branch


@router.get("/", response_model=List[BranchResponse])
async def list_branches(
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    """Branches the current user is assigned to"""
    return (
        db.query(Branch)
        .join(UserBranch, UserBranch.branch_id == Branch.id)
        .filter(Branch.company_id == ctx.company_id, UserBranch.user_id == ctx.user_id)
        .order_by(Branch.name)
        .all()
    )


@router.get("/{branch_id}", response_model=BranchResponse)
async def get_branch(
    branch_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    return _get_accessible_branch(db, ctx, branch_id)


@router.post("/", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    data: BranchCreate,
    ctx: CompanyContext = Depends(require_permission("branches", "manage")),
    db: Session = Depends(get_db)
):
    try:
        branch = Branch(company_id=ctx.company_id, **data.model_dump())
        db.add(branch)
        db.flush()
        db.add(UserBranch(user_id=ctx.user_id, branch_id=branch.id, company_id=ctx.company_id))
        db.commit()
        db.refresh(branch)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating branch: {e}")
        raise
    logger.info(f"Branch {branch.id} created for company {ctx.company_id}")
    return branch


@router.put("/{branch_id}", response_model=BranchResponse)
async def update_branch(
    branch_id: UUID,
    data: BranchUpdate,
    ctx: CompanyContext = Depends(require_permission("branches", "manage")),
    db: Session = Depends(get_db)
):
    branch = _get_accessible_branch(db, ctx, branch_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(branch, field, value)
    db.commit()
    db.refresh(branch)
    return branch


@router.delete("/{branch_id}", response_model=MessageResponse)
async def delete_branch(
    branch_id: UUID,
    ctx: CompanyContext = Depends(require_permission("branches", "manage")),
    db: Session = Depends(get_db)
):
    branch = _get_accessible_branch(db, ctx, branch_id)
    in_use = {
        model.__tablename__: db.query(model).filter(model.branch_id == branch.id).count()
        for model in (Teacher, Student, Group, Room, Lesson, Lead)
    }
    in_use = {name: count for name, count in in_use.items() if count}
    if in_use:
        raise ConflictError("Branch still has records attached", details=in_use, code="BRANCH_IN_USE")
    db.delete(branch)
    db.commit()
    return {"message": "Branch deleted successfully"}


@router.post("/{branch_id}/switch", response_model=BranchSwitchResponse)
async def switch_branch(
    branch_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    """Re-issue tokens scoped to the chosen branch"""
    branch = _get_accessible_branch(db, ctx, branch_id)
    tokens = create_token_pair(ctx.user, branch_id=branch.id)
    return BranchSwitchResponse(
        token=tokens["token"],
        refresh_token=tokens["refresh_token"],
        branch=BranchResponse.model_validate(branch),
    )


@router.get("/{branch_id}/users", response_model=List[BranchUserResponse])
async def list_branch_users(
    branch_id: UUID,
    ctx: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db)
):
    branch = _get_accessible_branch(db, ctx, branch_id)
    return [link.user for link in branch.user_links]


@router.post("/{branch_id}/users", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def add_branch_user(
    branch_id: UUID,
    data: BranchUserRequest,
    ctx: CompanyContext = Depends(require_permission("branches", "manage")),
    db: Session = Depends(get_db)
):
    branch = _get_accessible_branch(db, ctx, branch_id)
    user = db.query(User).filter(User.id == data.user_id, User.company_id == ctx.company_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    exists = db.query(UserBranch).filter(UserBranch.user_id == user.id, UserBranch.branch_id == branch.id).first()
    if exists:
        raise ConflictError("User is already assigned to this branch", code="ALREADY_ASSIGNED")
    db.add(UserBranch(user_id=user.id, branch_id=branch.id, company_id=ctx.company_id))
    db.commit()
    return {"message": "User assigned to branch"}


@router.delete("/{branch_id}/users/{user_id}", response_model=MessageResponse)
async def remove_branch_user(
    branch_id: UUID,
    user_id: UUID,
    ctx: CompanyContext = Depends(require_permission("branches", "manage")),
    db: Session = Depends(get_db)
):
    branch = _get_accessible_branch(db, ctx, branch_id)
    link = db.query(UserBranch).filter(UserBranch.user_id == user_id, UserBranch.branch_id == branch.id).first()
    if not link:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not assigned to this branch")
    db.delete(link)
    db.commit()
    return {"message": "User removed from branch"}
