from sqlalchemy import Column, String, Integer, Boolean, DateTime, Date, Text, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from classmate.database import Base, UTCDateTime


class SubscriptionType(Base):
    __tablename__ = "subscription_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    lessons_count = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    can_freeze = Column(Boolean, default=False)
    billing_type = Column(String, default="per_lesson")  # per_lesson, monthly, unlimited
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class StudentSubscription(Base):
    __tablename__ = "student_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_type_id = Column(UUID(as_uuid=True), ForeignKey("subscription_types.id"), nullable=False)
    group_id = Column(UUID(as_uuid=True), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    total_lessons = Column(Integer, nullable=False)
    used_lessons = Column(Integer, nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False)
    price_per_lesson = Column(Numeric(12, 2), nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    paid_till = Column(Date, nullable=True)
    status = Column(String, default="active")  # active, frozen, expired, cancelled
    freeze_days_remaining = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    subscription_type = relationship("SubscriptionType")
    student = relationship("Student")
    freezes = relationship("SubscriptionFreeze", back_populates="subscription", cascade="all, delete-orphan")

    @property
    def lessons_remaining(self):
        return max((self.total_lessons or 0) - (self.used_lessons or 0), 0)

    @property
    def subscription_type_name(self):
        return self.subscription_type.name if self.subscription_type else None

    @property
    def billing_type(self):
        return self.subscription_type.billing_type if self.subscription_type else None

    @property
    def student_name(self):
        return self.student.name if self.student else None


class SubscriptionFreeze(Base):
    __tablename__ = "subscription_freezes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("student_subscriptions.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    freeze_start = Column(Date, nullable=False)
    freeze_end = Column(Date, nullable=False)
    reason = Column(Text)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscription = relationship("StudentSubscription", back_populates="freezes")

    @property
    def days(self):
        return (self.freeze_end - self.freeze_start).days + 1


class SubscriptionConsumption(Base):
    __tablename__ = "subscription_consumptions"
    __table_args__ = (
        UniqueConstraint("subscription_id", "attendance_id", name="uq_consumption_subscription_attendance"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("student_subscriptions.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    attendance_id = Column(UUID(as_uuid=True), ForeignKey("lesson_attendance.id", ondelete="CASCADE"), nullable=False)
    lesson_id = Column(UUID(as_uuid=True), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    units = Column(Integer, nullable=False, default=1)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
