"""Automation dispatcher - runs tenant rules for a learner event.

fire() is called synchronously from user-facing actions (mark lesson complete,
join academy, enroll). It must never fail those actions: every error is
logged and folded into the returned FireOutcome. Rules are independent; one
failing rule does not stop the others.

Per rule: evaluate condition -> check delivery ledger -> render -> send ->
record ledger row (only after the transport confirmed the send).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from academy.core.async_utils import run_async
from academy.core.config import settings
from academy.core.structured_logging import build_log_context
from academy.db.enums import AutomationTriggerType, RuleOutcomeStatus
from academy.db.models import AutomationRule, Member, Organization
from academy.schemas.automation import EventContext
from academy.services import (
    automation_rule_service,
    condition_service,
    delivery_ledger_service,
    roster_service,
    template_service,
)
from academy.services.email_sender import EmailSender, get_email_sender

logger = logging.getLogger(__name__)

# Sentinel: resolve the configured sender at call time
DEFAULT_SENDER = object()


@dataclass
class RuleOutcome:
    rule_id: UUID
    status: RuleOutcomeStatus
    error: str | None = None


@dataclass
class FireOutcome:
    """What happened for one fire() call (for logs and tests, never raised)."""

    event_type: str
    org_id: UUID
    member_id: UUID
    rules: list[RuleOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.rules if r.status == RuleOutcomeStatus.SENT)

    def status_for(self, rule_id: UUID) -> RuleOutcomeStatus | None:
        for outcome in self.rules:
            if outcome.rule_id == rule_id:
                return outcome.status
        return None


def delivery_idempotency_key(rule_id: UUID, member_id: UUID) -> str:
    """Provider-side dedupe key; stable for a (rule, member) pair."""
    return f"automation-rule/{rule_id}/{member_id}"


def fire(
    db: Session,
    event_type: AutomationTriggerType | str,
    member_id: UUID,
    org_id: UUID,
    context: EventContext | dict | None = None,
    *,
    email_sender: EmailSender | None | object = DEFAULT_SENDER,
) -> FireOutcome:
    """Run every enabled rule of the org for this event. Never raises."""
    event_value = event_type.value if isinstance(event_type, AutomationTriggerType) else str(event_type)
    outcome = FireOutcome(event_type=event_value, org_id=org_id, member_id=member_id)
    log_context = build_log_context(org_id=org_id, member_id=member_id, event_type=event_value)

    try:
        trigger_type = AutomationTriggerType(event_value)
        if isinstance(context, EventContext):
            event_context = context
        else:
            event_context = EventContext.model_validate(context or {})
    except (ValueError, ValidationError) as exc:
        logger.warning("Ignoring malformed automation event: %s", exc, extra=log_context)
        outcome.error = "invalid event"
        return outcome

    try:
        rules = automation_rule_service.list_enabled_rules(db, org_id, trigger_type)
        if not rules:
            return outcome
        # Ids read now: later commits expire the loaded rules
        rule_ids = [rule.id for rule in rules]

        member = roster_service.get_member(db, member_id, org_id)
        if not member:
            logger.info("Automation event for unknown member", extra=log_context)
            outcome.error = "member not found"
            return outcome

        org = template_service.get_organization(db, org_id)
        sender = get_email_sender() if email_sender is DEFAULT_SENDER else email_sender
    except Exception:
        logger.exception("Failed to load automation rules", extra=log_context)
        _safe_rollback(db)
        outcome.error = "failed to load rules"
        return outcome

    for rule_id, rule in zip(rule_ids, rules):
        try:
            rule_outcome = _process_rule(
                db=db,
                rule=rule,
                trigger_type=trigger_type,
                member=member,
                org=org,
                context=event_context,
                sender=sender,
            )
        except Exception as exc:
            logger.exception(
                "Automation rule failed",
                extra=build_log_context(
                    org_id=org_id, member_id=member_id, rule_id=rule_id, event_type=event_value
                ),
            )
            _safe_rollback(db)
            rule_outcome = RuleOutcome(rule_id, RuleOutcomeStatus.ERROR, exc.__class__.__name__)
        outcome.rules.append(rule_outcome)

    if outcome.rules:
        logger.info(
            "Automation event processed: %s rules, %s sent",
            len(outcome.rules),
            outcome.sent_count,
            extra=log_context,
        )
    return outcome


def _process_rule(
    *,
    db: Session,
    rule: AutomationRule,
    trigger_type: AutomationTriggerType,
    member: Member,
    org: Organization | None,
    context: EventContext,
    sender: EmailSender | None,
) -> RuleOutcome:
    log_context = build_log_context(
        org_id=rule.organization_id,
        member_id=member.id,
        rule_id=rule.id,
        event_type=trigger_type.value,
    )

    result = condition_service.evaluate_rule(
        db, rule, trigger_type.value, member.id, rule.organization_id, context
    )
    if not result.matched:
        return RuleOutcome(rule.id, result.status or RuleOutcomeStatus.NOT_MATCHED, result.reason)

    if not delivery_ledger_service.should_send(db, rule.id, member.id):
        return RuleOutcome(rule.id, RuleOutcomeStatus.ALREADY_SENT)

    to_email = (member.email or "").strip()
    if not to_email:
        return RuleOutcome(rule.id, RuleOutcomeStatus.NO_EMAIL)

    variables = template_service.build_base_variables(member, org)
    variables.update(result.variables)
    subject, body = template_service.render_email(
        rule.email_subject_template, rule.email_body_template, variables
    )

    if sender is None:
        logger.warning("Automation email skipped: sender not configured", extra=log_context)
        return RuleOutcome(rule.id, RuleOutcomeStatus.SEND_FAILED, "Email sender not configured")

    # Racing callers can both reach the transport; the Idempotency-Key lets
    # Resend drop the duplicate within its 24h dedupe window
    try:
        send_result = run_async(
            sender.send_email(
                to_email=to_email,
                subject=subject,
                html=body,
                idempotency_key=delivery_idempotency_key(rule.id, member.id),
            ),
            timeout=settings.EMAIL_SEND_TIMEOUT_SECONDS,
        )
    except TimeoutError:
        logger.warning("Automation email timed out", extra=log_context)
        return RuleOutcome(rule.id, RuleOutcomeStatus.SEND_FAILED, "Email send timed out")
    except Exception as exc:
        logger.exception("Automation email transport error", extra=log_context)
        return RuleOutcome(rule.id, RuleOutcomeStatus.SEND_FAILED, exc.__class__.__name__)

    if not send_result.get("success"):
        error = str(send_result.get("error") or "Email send failed")
        logger.warning("Automation email failed: %s", error, extra=log_context)
        return RuleOutcome(rule.id, RuleOutcomeStatus.SEND_FAILED, error)

    message_id = send_result.get("message_id")
    recorded = delivery_ledger_service.record_sent(
        db,
        rule.id,
        member.id,
        rule.organization_id,
        message_id=message_id if isinstance(message_id, str) else None,
    )
    if not recorded:
        return RuleOutcome(rule.id, RuleOutcomeStatus.ALREADY_SENT)
    return RuleOutcome(rule.id, RuleOutcomeStatus.SENT)


def _safe_rollback(db: Session) -> None:
    try:
        db.rollback()
    except Exception:
        logger.exception("Rollback after automation failure also failed")
