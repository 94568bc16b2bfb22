import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from classmate.core.config import settings
from classmate.core.exceptions import ConflictError, ValidationError
from classmate.core.timeutils import get_zone, to_utc, utcnow
from classmate.models.company import CenterSettings
from classmate.models.lesson import Lesson
from classmate.models.school import Group, Room, Teacher
from classmate.models.student import Student

logger = logging.getLogger(__name__)

SLOT_STEP = timedelta(minutes=30)
MAX_SUGGESTIONS = 3
MAX_GENERATION_DAYS = 100
ONLINE_ROOM_NAME = "Online"

DEFAULT_WEEKDAYS = [0, 2, 4]  # Mon, Wed, Fri
DEFAULT_TIME_RANGE = (time(10, 0), time(11, 30))

WEEKDAY_TOKENS = {
    "mon": 0, "monday": 0,
    "tue": 1, "tues": 1, "tuesday": 1,
    "wed": 2, "wednesday": 2,
    "thu": 3, "thur": 3, "thurs": 3, "thursday": 3,
    "fri": 4, "friday": 4,
    "sat": 5, "saturday": 5,
    "sun": 6, "sunday": 6,
    "пн": 0, "понедельник": 0,
    "вт": 1, "вторник": 1,
    "ср": 2, "среда": 2,
    "чт": 3, "четверг": 3,
    "пт": 4, "пятница": 4,
    "сб": 5, "суббота": 5,
    "вс": 6, "воскресенье": 6,
}

TOKEN_RE = re.compile(r"[a-zа-яё]+")
TIME_RANGE_RE = re.compile(r"(\d{1,2}):(\d{2})\s*[-–]\s*(\d{1,2}):(\d{2})")


def parse_schedule(schedule: str) -> Tuple[List[int], time, time]:
    """Extract weekdays and a time range from free-text like "Mon Wed 18:00-19:30".

    Unrecognised parts fall back to Mon/Wed/Fri and 10:00-11:30.
    """
    text = (schedule or "").lower()
    weekdays = sorted({WEEKDAY_TOKENS[token] for token in TOKEN_RE.findall(text) if token in WEEKDAY_TOKENS})

    start, end = DEFAULT_TIME_RANGE
    match = TIME_RANGE_RE.search(text)
    if match:
        sh, sm, eh, em = (int(g) for g in match.groups())
        if sh < 24 and eh < 24 and sm < 60 and em < 60 and (eh, em) > (sh, sm):
            start, end = time(sh, sm), time(eh, em)

    return weekdays or list(DEFAULT_WEEKDAYS), start, end


def _iso(value: Optional[datetime]) -> Optional[str]:
    return to_utc(value).isoformat() if value else None


class LessonService:
    def __init__(self, db: Session):
        self.db = db

    # Validation

    def company_timezone(self, company_id: UUID) -> str:
        row = self.db.query(CenterSettings.timezone).filter(CenterSettings.company_id == company_id).first()
        return row[0] if row and row[0] else settings.DEFAULT_TIMEZONE

    @staticmethod
    def validate_times(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
        start, end = to_utc(start), to_utc(end)
        if end <= start:
            raise ValidationError("End time must be after start time", code="INVALID_TIME_RANGE")
        minutes = (end - start).total_seconds() / 60
        if minutes < settings.MIN_LESSON_MINUTES:
            raise ValidationError(
                f"Lesson must last at least {settings.MIN_LESSON_MINUTES} minutes", code="INVALID_DURATION"
            )
        if minutes > settings.MAX_LESSON_MINUTES:
            raise ValidationError(
                f"Lesson cannot last longer than {settings.MAX_LESSON_MINUTES // 60} hours", code="INVALID_DURATION"
            )
        return start, end

    def _check_reference(self, model, company_id: UUID, ref_id: Optional[UUID], label: str):
        if ref_id is None:
            return
        exists = self.db.query(model.id).filter(model.id == ref_id, model.company_id == company_id).first()
        if not exists:
            raise ValidationError(f"{label} not found", code="INVALID_REFERENCE")

    def _load_students(self, company_id: UUID, student_ids: Iterable[UUID]) -> List[Student]:
        ids = list(dict.fromkeys(student_ids or []))
        if not ids:
            return []
        students = self.db.query(Student).filter(Student.company_id == company_id, Student.id.in_(ids)).all()
        if len(students) != len(ids):
            raise ValidationError("One or more students not found", code="INVALID_REFERENCE")
        return students

    # Conflicts

    def find_conflicts(self, company_id: UUID, teacher_id: Optional[UUID], room_id: Optional[UUID],
                       start: datetime, end: datetime,
                       exclude_lesson_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """Non-cancelled lessons sharing the teacher or room that overlap [start, end)"""
        start, end = to_utc(start), to_utc(end)
        conflicts = []
        for conflict_type, column, ref_id in (
            ("teacher", Lesson.teacher_id, teacher_id),
            ("room", Lesson.room_id, room_id),
        ):
            if ref_id is None:
                continue
            query = self.db.query(Lesson).filter(
                Lesson.company_id == company_id,
                column == ref_id,
                Lesson.status != "cancelled",
                Lesson.start < end,
                Lesson.end > start,
            )
            if exclude_lesson_id is not None:
                query = query.filter(Lesson.id != exclude_lesson_id)
            for lesson in query.order_by(Lesson.start).all():
                conflicts.append({
                    "lesson_id": str(lesson.id),
                    "title": lesson.title,
                    "start": _iso(lesson.start),
                    "end": _iso(lesson.end),
                    "conflict_type": conflict_type,
                    "teacher_name": lesson.teacher_name if conflict_type == "teacher" else None,
                    "room_name": lesson.room_name if conflict_type == "room" else None,
                })
        return conflicts

    def _available_rooms(self, company_id: UUID, branch_id: Optional[UUID]) -> List[Room]:
        query = self.db.query(Room).filter(Room.company_id == company_id, Room.status == "active")
        if branch_id is not None:
            query = query.filter(Room.branch_id == branch_id)
        return [room for room in query.order_by(Room.name).all() if room.name != ONLINE_ROOM_NAME]

    def _free_room(self, company_id: UUID, teacher_id: Optional[UUID], rooms: List[Room],
                   start: datetime, end: datetime) -> Optional[Room]:
        for room in rooms:
            if not self.find_conflicts(company_id, teacher_id, room.id, start, end):
                return room
        return None

    def suggest_times(self, company_id: UUID, teacher_id: Optional[UUID], start: datetime, end: datetime,
                      branch_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """Nearby same-day slots where the teacher and some room are both free.

        Walks forward in 30-minute steps from the requested start, then
        backward if fewer than three slots were found.
        """
        zone = get_zone(self.company_timezone(company_id))
        local_start = to_utc(start).astimezone(zone)
        duration = to_utc(end) - to_utc(start)
        day_start = local_start.replace(hour=settings.WORKDAY_START_HOUR, minute=0, second=0, microsecond=0)
        day_end = local_start.replace(hour=settings.WORKDAY_END_HOUR, minute=0, second=0, microsecond=0)

        rooms = self._available_rooms(company_id, branch_id)
        if not rooms:
            return []

        def suggestion(candidate, room):
            return {
                "start": _iso(candidate),
                "end": _iso(candidate + duration),
                "room_id": str(room.id),
                "room_name": room.name,
            }

        suggestions = []
        candidate = max(local_start, day_start)
        while candidate + duration <= day_end:
            room = self._free_room(company_id, teacher_id, rooms, candidate, candidate + duration)
            if room is not None:
                suggestions.append(suggestion(candidate, room))
                if len(suggestions) >= MAX_SUGGESTIONS:
                    return suggestions
            candidate += SLOT_STEP

        candidate = local_start - SLOT_STEP
        while candidate >= day_start:
            if candidate + duration <= day_end:
                room = self._free_room(company_id, teacher_id, rooms, candidate, candidate + duration)
                if room is not None:
                    suggestions.insert(0, suggestion(candidate, room))
                    if len(suggestions) >= MAX_SUGGESTIONS:
                        break
            candidate -= SLOT_STEP

        return suggestions

    def check_conflicts(self, company_id: UUID, teacher_id: Optional[UUID], room_id: Optional[UUID],
                        start: datetime, end: datetime, exclude_lesson_id: Optional[UUID] = None,
                        branch_id: Optional[UUID] = None) -> Dict[str, Any]:
        if to_utc(end) <= to_utc(start):
            raise ValidationError("End time must be after start time", code="INVALID_TIME_RANGE")
        conflicts = self.find_conflicts(company_id, teacher_id, room_id, start, end, exclude_lesson_id)
        suggested = []
        if conflicts:
            suggested = self.suggest_times(company_id, teacher_id, start, end, branch_id)
        return {"has_conflicts": bool(conflicts), "conflicts": conflicts, "suggested_times": suggested}

    # Create / update

    def _validate_payload(self, company_id: UUID, data: Dict[str, Any],
                          exclude_lesson_id: Optional[UUID] = None) -> Tuple[datetime, datetime]:
        if not (data.get("title") or "").strip():
            raise ValidationError("Title is required")
        if not (data.get("subject") or "").strip():
            raise ValidationError("Subject is required")
        start, end = self.validate_times(data["start"], data["end"])
        self._check_reference(Teacher, company_id, data.get("teacher_id"), "Teacher")
        self._check_reference(Room, company_id, data.get("room_id"), "Room")
        self._check_reference(Group, company_id, data.get("group_id"), "Group")

        conflicts = self.find_conflicts(company_id, data.get("teacher_id"), data.get("room_id"),
                                        start, end, exclude_lesson_id)
        if conflicts:
            raise ConflictError("Lesson conflicts with existing lessons", code="LESSON_CONFLICT",
                                details={"conflicts": conflicts})
        return start, end

    def _build_lesson(self, company_id: UUID, branch_id: Optional[UUID], data: Dict[str, Any],
                      start: datetime, end: datetime) -> Lesson:
        lesson = Lesson(
            company_id=company_id,
            branch_id=branch_id,
            title=data["title"].strip(),
            subject=data["subject"].strip(),
            teacher_id=data.get("teacher_id"),
            group_id=data.get("group_id"),
            room_id=data.get("room_id"),
            start=start,
            end=end,
            status=data.get("status") or "scheduled",
        )
        lesson.students = self._load_students(company_id, data.get("student_ids") or [])
        return lesson

    def create_lesson(self, company_id: UUID, branch_id: Optional[UUID], data: Dict[str, Any]) -> Lesson:
        start, end = self._validate_payload(company_id, data)
        try:
            lesson = self._build_lesson(company_id, branch_id, data, start, end)
            self.db.add(lesson)
            self.db.commit()
            self.db.refresh(lesson)
            logger.info(f"Lesson {lesson.id} created for company {company_id}")
            return lesson
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating lesson: {e}")
            raise

    def update_lesson(self, company_id: UUID, lesson: Lesson, data: Dict[str, Any]) -> Lesson:
        start, end = self._validate_payload(company_id, data, exclude_lesson_id=lesson.id)
        try:
            lesson.title = data["title"].strip()
            lesson.subject = data["subject"].strip()
            lesson.teacher_id = data.get("teacher_id")
            lesson.group_id = data.get("group_id")
            lesson.room_id = data.get("room_id")
            lesson.start = start
            lesson.end = end
            lesson.status = data.get("status") or lesson.status
            lesson.students = self._load_students(company_id, data.get("student_ids") or [])
            self.db.commit()
            self.db.refresh(lesson)
            return lesson
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating lesson {lesson.id}: {e}")
            raise

    def bulk_create(self, company_id: UUID, branch_id: Optional[UUID],
                    lessons: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create every lesson that validates and does not conflict; skip the rest"""
        created, skipped, messages = 0, 0, []
        try:
            for index, data in enumerate(lessons, start=1):
                try:
                    start, end = self._validate_payload(company_id, data)
                    lesson = self._build_lesson(company_id, branch_id, data, start, end)
                except ConflictError:
                    skipped += 1
                    messages.append(
                        f"Lesson {index} ({to_utc(data['start']):%Y-%m-%d %H:%M}): skipped due to conflicts"
                    )
                    continue
                except ValidationError as e:
                    skipped += 1
                    messages.append(f"Lesson {index}: {e.message}")
                    continue
                self.db.add(lesson)
                # Flush so later lessons in the batch see this one
                self.db.flush()
                created += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error in bulk lesson creation: {e}")
            raise
        logger.info(f"Bulk lesson creation: {created} created, {skipped} skipped")
        return {"created": created, "skipped": skipped, "messages": messages}

    # Group schedules

    def _group_room_id(self, company_id: UUID, group: Group) -> Optional[UUID]:
        if group.room_id:
            return group.room_id
        room = (
            self.db.query(Room)
            .filter(Room.company_id == company_id)
            .order_by(Room.created_at, Room.name)
            .first()
        )
        return room.id if room else None

    def generate_for_group(self, company_id: UUID, group: Group, count: int = 12,
                           first_day: Optional[date] = None) -> Dict[str, Any]:
        """Materialise up to `count` lessons from the group's schedule text"""
        if not (group.schedule or "").strip():
            raise ValidationError("Group has no schedule defined", code="NO_SCHEDULE")
        if count < 1:
            raise ValidationError("Count must be positive")

        weekdays, start_time, end_time = parse_schedule(group.schedule)
        zone = get_zone(self.company_timezone(company_id))
        room_id = self._group_room_id(company_id, group)
        students = list(group.students)
        if first_day is None:
            first_day = utcnow().astimezone(zone).date() + timedelta(days=1)

        created, skipped = 0, 0
        day = first_day
        try:
            for _ in range(MAX_GENERATION_DAYS):
                if created >= count:
                    break
                if day.weekday() in weekdays:
                    start = to_utc(datetime.combine(day, start_time, tzinfo=zone))
                    end = to_utc(datetime.combine(day, end_time, tzinfo=zone))
                    if self.find_conflicts(company_id, group.teacher_id, room_id, start, end):
                        logger.info(f"Skipping {day} for group {group.id}: schedule conflict")
                        skipped += 1
                    else:
                        lesson = Lesson(
                            company_id=company_id,
                            branch_id=group.branch_id,
                            title=group.name,
                            subject=group.subject,
                            teacher_id=group.teacher_id,
                            group_id=group.id,
                            room_id=room_id,
                            start=start,
                            end=end,
                            status="scheduled",
                        )
                        lesson.students = list(students)
                        self.db.add(lesson)
                        self.db.flush()
                        created += 1
                day += timedelta(days=1)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error generating lessons for group {group.id}: {e}")
            raise

        logger.info(f"Generated {created} lessons for group {group.id} ({skipped} skipped)")
        return {"message": "Lessons generated successfully", "count": created, "skipped": skipped}

    def extend_group(self, company_id: UUID, group: Group, count: int = 12) -> Dict[str, Any]:
        """Continue the group's schedule after its last lesson"""
        last = (
            self.db.query(Lesson)
            .filter(Lesson.company_id == company_id, Lesson.group_id == group.id)
            .order_by(Lesson.start.desc())
            .first()
        )
        first_day = None
        if last is not None:
            zone = get_zone(self.company_timezone(company_id))
            first_day = to_utc(last.start).astimezone(zone).date() + timedelta(days=1)
            tomorrow = utcnow().astimezone(zone).date() + timedelta(days=1)
            first_day = max(first_day, tomorrow)
        result = self.generate_for_group(company_id, group, count, first_day=first_day)
        result["message"] = "Group schedule extended"
        return result
