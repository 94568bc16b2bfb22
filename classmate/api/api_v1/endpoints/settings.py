import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.core.exceptions import ValidationError
from classmate.core.timeutils import is_valid_timezone
from classmate.database import get_db
from classmate.schemas.settings import SettingsResponse, SettingsUpdate
from classmate.services.auth_service import get_or_create_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=SettingsResponse)
async def get_settings(
    ctx: CompanyContext = Depends(require_permission("settings", "view")),
    db: Session = Depends(get_db)
):
    return get_or_create_settings(db, ctx.company_id)


@router.put("/", response_model=SettingsResponse)
async def update_settings(
    data: SettingsUpdate,
    ctx: CompanyContext = Depends(require_permission("settings", "update")),
    db: Session = Depends(get_db)
):
    update_data = data.model_dump(exclude_unset=True)
    if "timezone" in update_data and not is_valid_timezone(update_data["timezone"] or ""):
        raise ValidationError(f"Invalid timezone '{update_data['timezone']}'", code="INVALID_TIMEZONE")

    center_settings = get_or_create_settings(db, ctx.company_id)
    for field, value in update_data.items():
        setattr(center_settings, field, value)
    db.commit()
    db.refresh(center_settings)
    logger.info(f"Settings updated for company {ctx.company_id}")
    return center_settings
