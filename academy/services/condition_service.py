"""Condition evaluation for automation rules.

Each stored rule is parsed into its typed trigger variant and checked against
the incoming event. Completion-style triggers re-verify progress against the
database. Lookup failures fail closed: the rule does not match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from academy.core.structured_logging import build_log_context
from academy.db.enums import RuleOutcomeStatus
from academy.db.models import AutomationRule
from academy.schemas.automation import (
    AutomationTrigger,
    CourseCompletedTrigger,
    CourseEnrolledTrigger,
    EventContext,
    InactiveDaysTrigger,
    LessonCompletedTrigger,
    NewUserTrigger,
    parse_trigger,
)
from academy.services import course_structure_service

logger = logging.getLogger(__name__)


@dataclass
class ConditionResult:
    """Outcome of evaluating one rule against one event."""

    matched: bool
    status: RuleOutcomeStatus | None = None  # set when not matched
    variables: dict[str, str] = field(default_factory=dict)  # trigger-specific template vars
    reason: str | None = None

    @classmethod
    def match(cls, **variables: str) -> "ConditionResult":
        return cls(matched=True, variables=dict(variables))

    @classmethod
    def no_match(cls, reason: str) -> "ConditionResult":
        return cls(matched=False, status=RuleOutcomeStatus.NOT_MATCHED, reason=reason)


def evaluate_rule(
    db: Session,
    rule: AutomationRule,
    event_type: str,
    member_id: UUID,
    org_id: UUID,
    context: EventContext,
) -> ConditionResult:
    """Decide whether `rule` fires for this event and collect its template variables."""
    if rule.trigger_type != event_type:
        return ConditionResult.no_match("trigger type differs from event type")

    try:
        trigger = parse_trigger(rule.trigger_type, rule.trigger_config)
    except ValidationError as exc:
        logger.warning(
            "Skipping rule with invalid trigger config: %s",
            exc.errors(include_url=False),
            extra=build_log_context(org_id=org_id, rule_id=rule.id, event_type=event_type),
        )
        return ConditionResult(
            matched=False,
            status=RuleOutcomeStatus.INVALID_CONFIG,
            reason="invalid trigger config",
        )

    try:
        return _evaluate_trigger(db, trigger, member_id, org_id, context)
    except SQLAlchemyError:
        logger.exception(
            "Condition verification failed",
            extra=build_log_context(
                org_id=org_id, member_id=member_id, rule_id=rule.id, event_type=event_type
            ),
        )
        db.rollback()
        return ConditionResult(
            matched=False,
            status=RuleOutcomeStatus.VERIFICATION_FAILED,
            reason="verification lookup failed",
        )


def _evaluate_trigger(
    db: Session,
    trigger: AutomationTrigger,
    member_id: UUID,
    org_id: UUID,
    context: EventContext,
) -> ConditionResult:
    if isinstance(trigger, NewUserTrigger):
        return ConditionResult.match()

    if isinstance(trigger, CourseEnrolledTrigger):
        if context.course_id != trigger.course_id:
            return ConditionResult.no_match("course does not match")
        course_name = course_structure_service.get_course_title(db, trigger.course_id, org_id)
        if course_name is None:
            return ConditionResult.no_match("course not found in organization")
        return ConditionResult.match(course_name=course_name)

    if isinstance(trigger, LessonCompletedTrigger):
        if context.lesson_id != trigger.lesson_id:
            return ConditionResult.no_match("lesson does not match")
        found = course_structure_service.get_lesson_with_course(db, trigger.lesson_id, org_id)
        if found is None:
            return ConditionResult.no_match("lesson not found in organization")
        lesson, course = found
        return ConditionResult.match(lesson_name=lesson.title, course_name=course.title)

    if isinstance(trigger, CourseCompletedTrigger):
        if context.course_id != trigger.course_id:
            return ConditionResult.no_match("course does not match")
        return _verify_course_completed(db, trigger.course_id, member_id, org_id)

    if isinstance(trigger, InactiveDaysTrigger):
        # Without an elapsed figure the event itself is the signal
        if context.inactive_days is not None and context.inactive_days < trigger.days:
            return ConditionResult.no_match("member not inactive long enough")
        return ConditionResult.match()

    return ConditionResult.no_match("unsupported trigger")


def _verify_course_completed(
    db: Session,
    course_id: UUID,
    member_id: UUID,
    org_id: UUID,
) -> ConditionResult:
    """Every lesson of the course must have a completion record for the member."""
    course = course_structure_service.get_course(db, course_id, org_id)
    if course is None:
        return ConditionResult.no_match("course not found in organization")

    lesson_ids = course_structure_service.list_lesson_ids(db, course_id)
    total = len(lesson_ids)
    if total == 0:
        # A course without lessons is never "completed"
        return ConditionResult.no_match("course has no lessons")

    completed = course_structure_service.count_completions(db, member_id, lesson_ids)
    if completed != total:
        return ConditionResult.no_match(f"{completed} of {total} lessons completed")
    return ConditionResult.match(course_name=course.title)
