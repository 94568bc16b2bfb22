from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from classmate.auth.dependencies import CompanyContext, require_permission
from classmate.database import get_db
from classmate.schemas.student import NotificationResponse
from classmate.services.notification_service import NotificationService

router = APIRouter()


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    ctx: CompanyContext = Depends(require_permission("students", "view")),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(ctx.company_id, notification_id)
