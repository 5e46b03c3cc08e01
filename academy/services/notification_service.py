"""
Notification Service - in-app notifications for academy members.

notify() is the fan-out path used directly by business actions (course
published, lesson added, message sent). It does not consult automation rules
or the delivery ledger; each action fires it once by construction. Failures
are logged and never re-raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import insert
from sqlalchemy.orm import Session

from academy.core.structured_logging import build_log_context
from academy.db.models import Notification
from academy.db.models.tenants import utcnow
from academy.schemas.notification import NotificationPayload, NotificationScope
from academy.services import recipient_service

logger = logging.getLogger(__name__)

DEFAULT_INBOX_LIMIT = 50


@dataclass
class NotifyOutcome:
    recipient_count: int = 0
    created: int = 0
    error: str | None = None


# =============================================================================
# Fan-out
# =============================================================================


def notify(
    db: Session,
    scope: NotificationScope,
    payload: NotificationPayload,
) -> NotifyOutcome:
    """
    Resolve recipients for the scope and bulk-insert one row per recipient.

    An empty recipient set is a silent no-op. Never raises.
    """
    log_context = build_log_context(
        org_id=scope.org_id,
        member_id=payload.actor_id,
        notification_type=payload.type.value,
    )
    try:
        recipient_ids = recipient_service.resolve_recipients(db, scope, payload.actor_id)
    except Exception:
        logger.exception("Failed to resolve notification recipients", extra=log_context)
        _safe_rollback(db)
        return NotifyOutcome(error="recipient resolution failed")

    outcome = NotifyOutcome(recipient_count=len(recipient_ids))
    if not recipient_ids:
        return outcome

    created_at = utcnow()
    rows = [
        {
            "organization_id": scope.org_id,
            "member_id": member_id,
            "type": payload.type.value,
            "title": payload.title,
            "content": payload.content,
            "link": payload.link,
            "actor_id": payload.actor_id,
            "target_id": payload.target_id,
            "is_read": False,
            "created_at": created_at,
        }
        for member_id in sorted(recipient_ids, key=str)
    ]

    try:
        # Single batched write; a failed batch is not retried
        db.execute(insert(Notification), rows)
        db.commit()
    except Exception:
        logger.exception(
            "Bulk notification insert failed for %s recipients", len(rows), extra=log_context
        )
        _safe_rollback(db)
        outcome.error = "bulk insert failed"
        return outcome

    outcome.created = len(rows)
    return outcome


# =============================================================================
# Notification CRUD
# =============================================================================


def create_notification(
    db: Session,
    org_id: UUID,
    member_id: UUID,
    payload: NotificationPayload,
) -> Notification:
    """Create a single notification for one member."""
    notification = Notification(
        organization_id=org_id,
        member_id=member_id,
        type=payload.type.value,
        title=payload.title,
        content=payload.content,
        link=payload.link,
        actor_id=payload.actor_id,
        target_id=payload.target_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_notifications(
    db: Session,
    member_id: UUID,
    org_id: UUID,
    unread_only: bool = False,
    limit: int = DEFAULT_INBOX_LIMIT,
) -> list[Notification]:
    """Get a member's notifications, newest first."""
    query = db.query(Notification).filter(
        Notification.member_id == member_id,
        Notification.organization_id == org_id,
    )
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def get_unread_count(db: Session, member_id: UUID, org_id: UUID) -> int:
    """Get count of unread notifications."""
    return (
        db.query(Notification)
        .filter(
            Notification.member_id == member_id,
            Notification.organization_id == org_id,
            Notification.is_read.is_(False),
        )
        .count()
    )


def mark_read(db: Session, notification_id: UUID, member_id: UUID) -> Notification | None:
    """Mark one notification as read (owner only)."""
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.member_id == member_id)
        .first()
    )
    if notification and not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, member_id: UUID, org_id: UUID) -> int:
    """Mark all of a member's notifications in an org as read. Returns count updated."""
    count = (
        db.query(Notification)
        .filter(
            Notification.member_id == member_id,
            Notification.organization_id == org_id,
            Notification.is_read.is_(False),
        )
        .update({"is_read": True}, synchronize_session=False)
    )
    db.commit()
    return count


def _safe_rollback(db: Session) -> None:
    try:
        db.rollback()
    except Exception:
        logger.exception("Rollback after notification failure also failed")
