"""Recipient resolution for notification fan-out.

Results are sets: overlapping sources (an admin who is also enrolled) collapse
to one entry, and the actor is removed after the union is built.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from academy.db.enums import STAFF_ROLES, NotificationScopeKind
from academy.schemas.notification import NotificationScope
from academy.services import roster_service

logger = logging.getLogger(__name__)


def resolve_course_recipients(
    db: Session,
    org_id: UUID,
    course_id: UUID,
    actor_id: UUID | None = None,
) -> set[UUID]:
    """Everyone enrolled in the course plus the org's admins and support staff."""
    recipients = set(roster_service.list_enrolled_member_ids(db, course_id, org_id))
    recipients |= set(roster_service.list_member_ids_by_role(db, org_id, STAFF_ROLES))
    recipients.discard(actor_id)
    return recipients


def resolve_tenant_recipients(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None = None,
) -> set[UUID]:
    """Every member of the org."""
    recipients = set(roster_service.list_member_ids_in_org(db, org_id))
    recipients.discard(actor_id)
    return recipients


def resolve_single_recipient(
    db: Session,
    org_id: UUID,
    member_id: UUID,
    actor_id: UUID | None = None,
) -> set[UUID]:
    """The explicit target, provided it is a member of the org."""
    member = roster_service.get_member(db, member_id, org_id)
    if not member:
        logger.info("Single recipient %s not found in org %s", member_id, org_id)
        return set()
    recipients = {member.id}
    recipients.discard(actor_id)
    return recipients


def resolve_recipients(
    db: Session,
    scope: NotificationScope,
    actor_id: UUID | None = None,
) -> set[UUID]:
    """Resolve a fan-out scope into a deduplicated, actor-free id set."""
    if scope.kind == NotificationScopeKind.COURSE_RECIPIENTS:
        return resolve_course_recipients(db, scope.org_id, scope.course_id, actor_id)
    if scope.kind == NotificationScopeKind.ALL_TENANT_RECIPIENTS:
        return resolve_tenant_recipients(db, scope.org_id, actor_id)
    return resolve_single_recipient(db, scope.org_id, scope.member_id, actor_id)
