"""Academy event hooks - called by course/roster/messaging actions.

Learner progress events go through the automation dispatcher; content and
messaging events fan out in-app notifications directly. Neither path raises
into the calling action.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.db.enums import AutomationTriggerType, CourseStatus, NotificationType
from academy.db.models import Course, Enrollment, Lesson, LessonCompletion, Member, Organization
from academy.schemas.automation import EventContext
from academy.schemas.notification import NotificationPayload, NotificationScope
from academy.services import (
    automation_dispatcher,
    course_structure_service,
    notification_service,
    roster_service,
)
from academy.services.automation_dispatcher import FireOutcome
from academy.services.notification_service import NotifyOutcome

logger = logging.getLogger(__name__)


# =============================================================================
# Learner progress (automation rules)
# =============================================================================


def on_lesson_completed(
    db: Session,
    member_id: UUID,
    org_id: UUID,
    lesson_id: UUID,
) -> list[FireOutcome]:
    """
    Record a lesson completion, then fire lesson_completed and course_completed.

    Completing an already-completed lesson is not an error.
    """
    if roster_service.get_member(db, member_id, org_id) is None:
        raise ValueError("Member not found")
    found = course_structure_service.get_lesson_with_course(db, lesson_id, org_id)
    if found is None:
        raise ValueError("Lesson not found")
    _, course = found

    try:
        db.add(LessonCompletion(member_id=member_id, lesson_id=lesson_id))
        db.commit()
    except IntegrityError:
        db.rollback()

    return [
        automation_dispatcher.fire(
            db,
            AutomationTriggerType.LESSON_COMPLETED,
            member_id,
            org_id,
            EventContext(lesson_id=lesson_id, course_id=course.id),
        ),
        # Completion of the whole course is re-verified inside the evaluator
        automation_dispatcher.fire(
            db,
            AutomationTriggerType.COURSE_COMPLETED,
            member_id,
            org_id,
            EventContext(course_id=course.id),
        ),
    ]


def on_member_joined(db: Session, member: Member) -> FireOutcome:
    return automation_dispatcher.fire(
        db, AutomationTriggerType.NEW_USER, member.id, member.organization_id
    )


def on_member_enrolled(
    db: Session,
    member_id: UUID,
    org_id: UUID,
    course_id: UUID,
) -> FireOutcome:
    """Record the enrollment (idempotent) and fire course_enrolled."""
    if roster_service.get_member(db, member_id, org_id) is None:
        raise ValueError("Member not found")
    if course_structure_service.get_course(db, course_id, org_id) is None:
        raise ValueError("Course not found")

    try:
        db.add(Enrollment(member_id=member_id, course_id=course_id))
        db.commit()
    except IntegrityError:
        db.rollback()

    return automation_dispatcher.fire(
        db,
        AutomationTriggerType.COURSE_ENROLLED,
        member_id,
        org_id,
        EventContext(course_id=course_id),
    )


# =============================================================================
# Content and messaging (direct fan-out)
# =============================================================================


def _org_slug(db: Session, org_id: UUID) -> str | None:
    org = db.query(Organization).filter(Organization.id == org_id).first()
    return org.slug if org else None


def _course_link(org_slug: str | None, course_id: UUID, lesson_id: UUID | None = None) -> str | None:
    if not org_slug:
        return None
    link = f"/academy/{org_slug}/courses/{course_id}"
    if lesson_id:
        link = f"{link}/lessons/{lesson_id}"
    return link


def on_course_published(
    db: Session,
    course: Course,
    previous_status: str | None,
    actor_id: UUID | None,
) -> NotifyOutcome | None:
    """Announce a course to the whole academy when it first becomes published."""
    if course.status != CourseStatus.PUBLISHED.value:
        return None
    if previous_status == CourseStatus.PUBLISHED.value:
        return None

    org_slug = _org_slug(db, course.organization_id)
    return notification_service.notify(
        db,
        NotificationScope.all_tenant(course.organization_id),
        NotificationPayload(
            type=NotificationType.COURSE_PUBLISHED,
            title="New course published!",
            content=f'The course "{course.title}" is now available in the academy',
            link=_course_link(org_slug, course.id) or f"/academy/courses/{course.id}",
            actor_id=actor_id,
            target_id=course.id,
        ),
    )


def on_lesson_added(
    db: Session,
    course: Course,
    lesson: Lesson,
    actor_id: UUID | None,
) -> NotifyOutcome | None:
    """Tell course recipients about a new lesson in a published course."""
    if course.status != CourseStatus.PUBLISHED.value:
        return None

    org_slug = _org_slug(db, course.organization_id)
    return notification_service.notify(
        db,
        NotificationScope.course(course.organization_id, course.id),
        NotificationPayload(
            type=NotificationType.NEW_LESSON,
            title="New lesson added!",
            content=f'New lesson: "{lesson.title}" was added to your course',
            link=_course_link(org_slug, course.id, lesson.id),
            actor_id=actor_id,
            target_id=lesson.id,
        ),
    )


def on_attachment_added(
    db: Session,
    course: Course,
    lesson_id: UUID,
    attachment_id: UUID,
    attachment_name: str,
    actor_id: UUID | None,
) -> NotifyOutcome | None:
    """Tell course recipients about a new file on a lesson of a published course."""
    if course.status != CourseStatus.PUBLISHED.value:
        return None

    org_slug = _org_slug(db, course.organization_id)
    return notification_service.notify(
        db,
        NotificationScope.course(course.organization_id, course.id),
        NotificationPayload(
            type=NotificationType.NEW_FILE,
            title="New file added!",
            content=f'New file: "{attachment_name}" was added to a lesson in the course',
            link=_course_link(org_slug, course.id, lesson_id),
            actor_id=actor_id,
            target_id=attachment_id,
        ),
    )


def on_message_sent(
    db: Session,
    org: Organization,
    sender_id: UUID,
    message_id: UUID,
    subject: str,
    recipient_id: UUID | None = None,
    course_ids: list[UUID] | None = None,
) -> list[NotifyOutcome]:
    """
    Notify the recipients of an academy message.

    Direct message -> one member; course-targeted -> each course's recipients;
    otherwise the whole academy.
    """
    payload = NotificationPayload(
        type=NotificationType.MESSAGE,
        title="New message from the academy",
        content=subject,
        link=f"/academy/{org.slug}/messages",
        actor_id=sender_id,
        target_id=message_id,
    )

    if recipient_id:
        scopes = [NotificationScope.single(org.id, recipient_id)]
    elif course_ids:
        scopes = [NotificationScope.course(org.id, course_id) for course_id in course_ids]
    else:
        scopes = [NotificationScope.all_tenant(org.id)]

    return [notification_service.notify(db, scope, payload) for scope in scopes]
