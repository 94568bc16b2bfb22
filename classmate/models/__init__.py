from classmate.database import Base

# Import all models here to ensure they are registered with SQLAlchemy
from .company import Company, User, Branch, UserBranch, CenterSettings
from .rbac import Permission, Role, UserRole, role_permissions
from .school import Teacher, Room, Group, group_students
from .student import Student, StudentNote, StudentActivityLog, Notification
from .lesson import Lesson, LessonAttendance, lesson_students
from .lead import Lead, LeadActivity, LeadTask
from .finance import PaymentTransaction, StudentBalance, Tariff, DebtRecord, Discount, StudentDiscount
from .subscription import SubscriptionType, StudentSubscription, SubscriptionFreeze, SubscriptionConsumption

__all__ = [
    "Base",
    "Company",
    "User",
    "Branch",
    "UserBranch",
    "CenterSettings",
    "Permission",
    "Role",
    "UserRole",
    "role_permissions",
    "Teacher",
    "Room",
    "Group",
    "group_students",
    "Student",
    "StudentNote",
    "StudentActivityLog",
    "Notification",
    "Lesson",
    "LessonAttendance",
    "lesson_students",
    "Lead",
    "LeadActivity",
    "LeadTask",
    "PaymentTransaction",
    "StudentBalance",
    "Tariff",
    "DebtRecord",
    "Discount",
    "StudentDiscount",
    "SubscriptionType",
    "StudentSubscription",
    "SubscriptionFreeze",
    "SubscriptionConsumption",
]
