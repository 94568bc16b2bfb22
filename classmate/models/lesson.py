from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Table, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from classmate.database import Base, UTCDateTime

lesson_students = Table(
    "lesson_students",
    Base.metadata,
    Column("lesson_id", UUID(as_uuid=True), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"), nullable=True, index=True)
    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True, index=True)
    room_id = Column(UUID(as_uuid=True), ForeignKey("rooms.id"), nullable=True, index=True)
    start = Column("start_time", UTCDateTime, nullable=False, index=True)
    end = Column("end_time", UTCDateTime, nullable=False)
    status = Column(String, default="scheduled")  # scheduled, completed, cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    teacher = relationship("Teacher")
    group = relationship("Group")
    room = relationship("Room")
    students = relationship("Student", secondary=lesson_students)
    attendance = relationship("LessonAttendance", back_populates="lesson", cascade="all, delete-orphan")

    @property
    def student_ids(self):
        return [s.id for s in self.students]

    @property
    def teacher_name(self):
        return self.teacher.name if self.teacher else None

    @property
    def group_name(self):
        return self.group.name if self.group else None

    @property
    def room_name(self):
        return self.room.name if self.room else None


class LessonAttendance(Base):
    __tablename__ = "lesson_attendance"
    __table_args__ = (UniqueConstraint("lesson_id", "student_id", name="uq_attendance_lesson_student"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False)
    lesson_id = Column(UUID(as_uuid=True), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("student_subscriptions.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, nullable=False)  # attended, missed, cancelled
    reason = Column(Text)
    notes = Column(Text)
    marked_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    marked_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    lesson = relationship("Lesson", back_populates="attendance")
    student = relationship("Student")
    subscription = relationship("StudentSubscription")
