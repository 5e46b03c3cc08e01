"""Automation rule service - tenant-scoped CRUD for automation rules."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from academy.db.enums import AutomationTriggerType
from academy.db.models import AutomationRule
from academy.schemas.automation import (
    AutomationRuleCreate,
    AutomationRuleUpdate,
    parse_trigger,
)


# =============================================================================
# Validation
# =============================================================================

def _validate_trigger_config(
    trigger_type: AutomationTriggerType,
    trigger_config: dict,
) -> dict:
    """Validate trigger_config for the type and return its normalized JSON form."""
    try:
        trigger = parse_trigger(trigger_type.value, trigger_config)
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'trigger_config'}: {err['msg']}"
            for err in exc.errors(include_url=False)
        )
        raise ValueError(f"Invalid trigger_config for {trigger_type.value}: {messages}") from exc
    return trigger.model_dump(mode="json", exclude={"trigger_type"}, exclude_none=True)


# =============================================================================
# CRUD Operations
# =============================================================================

def create_rule(
    db: Session,
    org_id: UUID,
    member_id: UUID | None,
    data: AutomationRuleCreate,
) -> AutomationRule:
    """Create a new rule with validation. New rules are enabled unless told otherwise."""
    trigger_config = _validate_trigger_config(data.trigger_type, data.trigger_config)

    rule = AutomationRule(
        organization_id=org_id,
        title=data.title,
        trigger_type=data.trigger_type.value,
        trigger_config=trigger_config,
        email_subject_template=data.email_subject_template,
        email_body_template=data.email_body_template,
        is_enabled=data.is_enabled,
        created_by_member_id=member_id,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def update_rule(
    db: Session,
    rule: AutomationRule,
    data: AutomationRuleUpdate,
) -> AutomationRule:
    """Update an existing rule with validation."""
    if data.trigger_type is not None or data.trigger_config is not None:
        trigger_type = data.trigger_type or AutomationTriggerType(rule.trigger_type)
        trigger_config = (
            data.trigger_config if data.trigger_config is not None else rule.trigger_config
        )
        rule.trigger_config = _validate_trigger_config(trigger_type, trigger_config)
        rule.trigger_type = trigger_type.value

    if data.title is not None:
        rule.title = data.title
    if data.email_subject_template is not None:
        rule.email_subject_template = data.email_subject_template
    if data.email_body_template is not None:
        rule.email_body_template = data.email_body_template
    if data.is_enabled is not None:
        rule.is_enabled = data.is_enabled

    rule.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule: AutomationRule) -> None:
    """Delete a rule; its delivery ledger rows cascade."""
    db.delete(rule)
    db.commit()


def toggle_rule(db: Session, rule: AutomationRule) -> AutomationRule:
    """Flip a rule's enabled state."""
    rule.is_enabled = not rule.is_enabled
    rule.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(rule)
    return rule


def get_rule(db: Session, rule_id: UUID, org_id: UUID) -> AutomationRule | None:
    """Get a rule by ID, scoped to org."""
    return (
        db.query(AutomationRule)
        .filter(AutomationRule.id == rule_id, AutomationRule.organization_id == org_id)
        .first()
    )


def list_rules(
    db: Session,
    org_id: UUID,
    enabled_only: bool = False,
    trigger_type: AutomationTriggerType | None = None,
) -> list[AutomationRule]:
    """List rules for an organization, newest first."""
    query = db.query(AutomationRule).filter(AutomationRule.organization_id == org_id)

    if enabled_only:
        query = query.filter(AutomationRule.is_enabled.is_(True))

    if trigger_type:
        query = query.filter(AutomationRule.trigger_type == trigger_type.value)

    return query.order_by(AutomationRule.created_at.desc()).all()


def list_enabled_rules(
    db: Session,
    org_id: UUID,
    trigger_type: AutomationTriggerType,
) -> list[AutomationRule]:
    """Rules the engine evaluates for an event, in creation order."""
    return (
        db.query(AutomationRule)
        .filter(
            AutomationRule.organization_id == org_id,
            AutomationRule.trigger_type == trigger_type.value,
            AutomationRule.is_enabled.is_(True),
        )
        .order_by(AutomationRule.created_at, AutomationRule.id)
        .all()
    )


def list_orgs_with_enabled_rules(
    db: Session,
    trigger_type: AutomationTriggerType,
) -> list[UUID]:
    rows = (
        db.query(AutomationRule.organization_id)
        .filter(
            AutomationRule.trigger_type == trigger_type.value,
            AutomationRule.is_enabled.is_(True),
        )
        .distinct()
        .all()
    )
    return [row.organization_id for row in rows]
