"""Pydantic schemas for automation rules and the events that fire them."""

from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter

from academy.db.enums import AutomationTriggerType


# =============================================================================
# Trigger Variants (one per trigger_type)
# =============================================================================


class NewUserTrigger(BaseModel):
    """Fires when a member joins the academy."""

    trigger_type: Literal["new_user"] = "new_user"


class CourseEnrolledTrigger(BaseModel):
    """Fires when a member is enrolled in a specific course."""

    trigger_type: Literal["course_enrolled"] = "course_enrolled"
    course_id: UUID


class LessonCompletedTrigger(BaseModel):
    """Fires when a member completes a specific lesson."""

    trigger_type: Literal["lesson_completed"] = "lesson_completed"
    lesson_id: UUID
    course_id: UUID | None = None  # Kept for the rule editor's course picker


class CourseCompletedTrigger(BaseModel):
    """Fires when a member has completed every lesson of a course."""

    trigger_type: Literal["course_completed"] = "course_completed"
    course_id: UUID


class InactiveDaysTrigger(BaseModel):
    """Fires for members idle for at least `days` (driven by the inactivity scanner)."""

    trigger_type: Literal["inactive_days"] = "inactive_days"
    days: int = Field(ge=1, le=365)


AutomationTrigger = Annotated[
    Union[
        NewUserTrigger,
        CourseEnrolledTrigger,
        LessonCompletedTrigger,
        CourseCompletedTrigger,
        InactiveDaysTrigger,
    ],
    Field(discriminator="trigger_type"),
]

_TRIGGER_ADAPTER = TypeAdapter(AutomationTrigger)
_CONFIG_ADAPTER = TypeAdapter(dict[str, Any])


def parse_trigger(trigger_type: str, trigger_config: object) -> AutomationTrigger:
    """
    Build the typed trigger variant for a stored rule.

    Raises pydantic.ValidationError for unknown trigger types, configs that
    are not JSON objects, and configs that do not fit the variant.
    """
    if trigger_config is None:
        trigger_config = {}
    payload = dict(_CONFIG_ADAPTER.validate_python(trigger_config))
    payload["trigger_type"] = trigger_type
    return _TRIGGER_ADAPTER.validate_python(payload)


# =============================================================================
# Event Context
# =============================================================================


class EventContext(BaseModel):
    """Per-event data passed to the dispatcher alongside the event type."""

    lesson_id: UUID | None = None
    course_id: UUID | None = None
    # Set by the inactivity scanner: whole days since the member's last activity
    inactive_days: int | None = Field(default=None, ge=0)


# =============================================================================
# Rule CRUD Schemas
# =============================================================================


class AutomationRuleCreate(BaseModel):
    """Schema for creating an automation rule."""

    title: str = Field(min_length=1, max_length=255)
    trigger_type: AutomationTriggerType
    trigger_config: dict[str, object] = Field(default_factory=dict)
    email_subject_template: str = Field(min_length=1, max_length=500)
    email_body_template: str = Field(min_length=1)
    is_enabled: bool = True


class AutomationRuleUpdate(BaseModel):
    """Schema for updating an automation rule. Omitted fields stay unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    trigger_type: AutomationTriggerType | None = None
    trigger_config: dict[str, object] | None = None
    email_subject_template: str | None = Field(default=None, min_length=1, max_length=500)
    email_body_template: str | None = Field(default=None, min_length=1)
    is_enabled: bool | None = None
