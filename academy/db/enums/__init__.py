"""Enum definitions for application constants."""

from academy.db.enums.auth import STAFF_ROLES, Role
from academy.db.enums.automations import AutomationTriggerType, RuleOutcomeStatus
from academy.db.enums.courses import CourseStatus
from academy.db.enums.notifications import NotificationScopeKind, NotificationType

__all__ = [
    "AutomationTriggerType",
    "CourseStatus",
    "NotificationScopeKind",
    "NotificationType",
    "Role",
    "RuleOutcomeStatus",
    "STAFF_ROLES",
]
