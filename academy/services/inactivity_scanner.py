"""Inactivity scanner - fires `inactive_days` rules for idle members.

Run on a schedule (internal cron endpoint or CLI). A member's last activity is
the latest of last_active_at, their most recent lesson completion and the
day they joined. The delivery ledger keeps each rule at-most-once per member,
so repeated scans do not re-send.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.core.structured_logging import build_log_context
from academy.db.enums import AutomationTriggerType
from academy.db.models import Member
from academy.schemas.automation import EventContext, parse_trigger
from academy.services import (
    automation_dispatcher,
    automation_rule_service,
    course_structure_service,
    roster_service,
)
from academy.services.email_sender import EmailSender

logger = logging.getLogger(__name__)


@dataclass
class InactivityScanResult:
    org_count: int = 0
    rules_checked: int = 0
    members_fired: int = 0
    emails_sent: int = 0


def _as_utc(value: datetime | None) -> datetime | None:
    """Handle naive datetimes (SQLite) by assuming UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_last_activity(db: Session, member: Member) -> datetime | None:
    candidates = [
        _as_utc(member.last_active_at),
        _as_utc(course_structure_service.get_last_completion_at(db, member.id)),
        _as_utc(member.created_at),
    ]
    present = [c for c in candidates if c is not None]
    return max(present) if present else None


def _min_threshold_days(db: Session, org_id: UUID) -> tuple[int | None, int]:
    """Smallest `days` across the org's enabled inactive_days rules, and rule count."""
    rules = automation_rule_service.list_enabled_rules(
        db, org_id, AutomationTriggerType.INACTIVE_DAYS
    )
    thresholds = []
    for rule in rules:
        try:
            trigger = parse_trigger(rule.trigger_type, rule.trigger_config)
        except ValidationError:
            logger.warning(
                "Skipping inactive_days rule with invalid config",
                extra=build_log_context(org_id=org_id, rule_id=rule.id),
            )
            continue
        thresholds.append(trigger.days)
    return (min(thresholds) if thresholds else None), len(rules)


def scan_org(
    db: Session,
    org_id: UUID,
    now: datetime | None = None,
    email_sender: EmailSender | None | object = automation_dispatcher.DEFAULT_SENDER,
) -> InactivityScanResult:
    """Fire inactive_days for every member of one org idle past the smallest threshold."""
    now = _as_utc(now) or datetime.now(timezone.utc)
    result = InactivityScanResult(org_count=1)

    min_days, rule_count = _min_threshold_days(db, org_id)
    result.rules_checked = rule_count
    if min_days is None:
        return result

    # Materialize first: fire() commits, which would disturb the batch cursor
    idle: list[tuple[UUID, int]] = []
    for member in roster_service.iter_members(
        db, org_id, batch_size=settings.INACTIVITY_SCAN_BATCH_SIZE
    ):
        last_activity = get_last_activity(db, member)
        if last_activity is None:
            continue
        idle_days = (now - last_activity).days
        if idle_days >= min_days:
            idle.append((member.id, idle_days))

    for member_id, idle_days in idle:
        outcome = automation_dispatcher.fire(
            db,
            AutomationTriggerType.INACTIVE_DAYS,
            member_id,
            org_id,
            EventContext(inactive_days=idle_days),
            email_sender=email_sender,
        )
        result.members_fired += 1
        result.emails_sent += outcome.sent_count

    return result


def scan_inactive_members(
    db: Session,
    org_id: UUID | None = None,
    now: datetime | None = None,
    email_sender: EmailSender | None | object = automation_dispatcher.DEFAULT_SENDER,
) -> InactivityScanResult:
    """Scan one org, or every org that has an enabled inactive_days rule."""
    if org_id:
        org_ids = [org_id]
    else:
        org_ids = automation_rule_service.list_orgs_with_enabled_rules(
            db, AutomationTriggerType.INACTIVE_DAYS
        )

    logger.info("Starting inactivity scan: orgs=%s", len(org_ids))
    total = InactivityScanResult()
    for current_org_id in org_ids:
        try:
            org_result = scan_org(db, current_org_id, now=now, email_sender=email_sender)
        except Exception:
            logger.exception(
                "Inactivity scan failed for org",
                extra=build_log_context(org_id=current_org_id),
            )
            db.rollback()
            continue
        total.org_count += 1
        total.rules_checked += org_result.rules_checked
        total.members_fired += org_result.members_fired
        total.emails_sent += org_result.emails_sent

    logger.info(
        "Inactivity scan finished: orgs=%s fired=%s sent=%s",
        total.org_count,
        total.members_fired,
        total.emails_sent,
    )
    return total
