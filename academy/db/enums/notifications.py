"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    NEW_COURSE = "new_course"
    COURSE_PUBLISHED = "course_published"
    NEW_LESSON = "new_lesson"
    LESSON_UPDATE = "lesson_update"
    NEW_FILE = "new_file"
    MESSAGE = "message"
    ANNOUNCEMENT = "announcement"


class NotificationScopeKind(str, Enum):
    """Who a fan-out is addressed to."""

    SINGLE_RECIPIENT = "single_recipient"
    COURSE_RECIPIENTS = "course_recipients"  # enrolled members + staff
    ALL_TENANT_RECIPIENTS = "all_tenant_recipients"
