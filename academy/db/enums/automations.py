"""Automation rule enums."""

from enum import Enum


class AutomationTriggerType(str, Enum):
    """Events that can fire an automation rule."""

    NEW_USER = "new_user"
    COURSE_ENROLLED = "course_enrolled"
    LESSON_COMPLETED = "lesson_completed"
    COURSE_COMPLETED = "course_completed"
    INACTIVE_DAYS = "inactive_days"  # Fired by the inactivity scanner


class RuleOutcomeStatus(str, Enum):
    """Per-rule result of a dispatcher run."""

    SENT = "sent"
    NOT_MATCHED = "not_matched"  # trigger config does not match the event
    ALREADY_SENT = "already_sent"  # delivery ledger hit
    INVALID_CONFIG = "invalid_config"  # stored trigger_config failed validation
    VERIFICATION_FAILED = "verification_failed"  # lookup error while verifying, fail closed
    SEND_FAILED = "send_failed"  # transport error, ledger untouched
    NO_EMAIL = "no_email"  # recipient has no deliverable address
    ERROR = "error"  # unexpected failure while processing the rule
