"""Delivery ledger - at-most-once guard for automation rules.

A rule emails a member at most once, ever. The unique (rule_id, member_id)
constraint on automation_deliveries is the source of truth; should_send is
only a fast pre-check and record_sent treats a constraint conflict as
"already sent" so concurrent triggers cannot produce two rows.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.core.structured_logging import build_log_context
from academy.db.models import AutomationDelivery

logger = logging.getLogger(__name__)


def should_send(db: Session, rule_id: UUID, member_id: UUID) -> bool:
    """True when no delivery exists yet for (rule, member)."""
    existing = (
        db.query(AutomationDelivery.id)
        .filter(
            AutomationDelivery.rule_id == rule_id,
            AutomationDelivery.member_id == member_id,
        )
        .first()
    )
    return existing is None


def record_sent(
    db: Session,
    rule_id: UUID,
    member_id: UUID,
    org_id: UUID,
    message_id: str | None = None,
) -> bool:
    """
    Write the ledger row after a confirmed send.

    Returns False when another writer already recorded this (rule, member).
    """
    delivery = AutomationDelivery(
        rule_id=rule_id,
        member_id=member_id,
        organization_id=org_id,
        message_id=message_id,
    )
    try:
        db.add(delivery)
        db.commit()
    except IntegrityError:
        # Idempotency: a concurrent trigger recorded it first
        db.rollback()
        logger.info(
            "Delivery already recorded",
            extra=build_log_context(org_id=org_id, member_id=member_id, rule_id=rule_id),
        )
        return False
    return True


def list_deliveries(
    db: Session,
    org_id: UUID,
    rule_id: UUID | None = None,
    limit: int = 100,
) -> list[AutomationDelivery]:
    """Recent deliveries for an org, newest first."""
    query = db.query(AutomationDelivery).filter(AutomationDelivery.organization_id == org_id)
    if rule_id:
        query = query.filter(AutomationDelivery.rule_id == rule_id)
    return query.order_by(AutomationDelivery.sent_at.desc()).limit(limit).all()
