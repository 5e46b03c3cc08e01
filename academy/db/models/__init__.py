"""SQLAlchemy ORM models."""

from academy.db.models.automations import AutomationDelivery, AutomationRule
from academy.db.models.courses import (
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    LessonCompletion,
)
from academy.db.models.notifications import Notification
from academy.db.models.tenants import Member, Organization

__all__ = [
    "AutomationDelivery",
    "AutomationRule",
    "Course",
    "CourseModule",
    "Enrollment",
    "Lesson",
    "LessonCompletion",
    "Member",
    "Notification",
    "Organization",
]
