import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.core.timeutils import utcnow
from classmate.models.student import StudentActivityLog

logger = logging.getLogger(__name__)


def _jsonable(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if metadata is None:
        return None
    return {k: (str(v) if isinstance(v, UUID) else v) for k, v in metadata.items()}


class ActivityService:
    """Student activity journal; entries are added to the caller's transaction"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        company_id: UUID,
        student_id: UUID,
        activity_type: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        created_by: Optional[UUID] = None,
    ) -> StudentActivityLog:
        entry = StudentActivityLog(
            company_id=company_id,
            student_id=student_id,
            activity_type=activity_type,
            description=description,
            metadata_json=_jsonable(metadata),
            created_by=created_by,
            created_at=utcnow(),
        )
        self.db.add(entry)
        logger.debug(f"Activity {activity_type} logged for student {student_id}")
        return entry

    def list_for_student(self, company_id: UUID, student_id: UUID, limit: int = 50) -> List[StudentActivityLog]:
        return (
            self.db.query(StudentActivityLog)
            .filter(StudentActivityLog.company_id == company_id, StudentActivityLog.student_id == student_id)
            .order_by(StudentActivityLog.created_at.desc(), StudentActivityLog.id.desc())
            .limit(limit)
            .all()
        )
