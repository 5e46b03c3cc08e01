"""Structured logging helpers (PII-safe: ids only, never emails or bodies)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    org_id: UUID | str | None = None,
    member_id: UUID | str | None = None,
    rule_id: UUID | str | None = None,
    event_type: str | None = None,
    notification_type: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict for `extra=`."""
    context: dict[str, Any] = {}
    if org_id:
        context["org_id"] = str(org_id)
    if member_id:
        context["member_id"] = str(member_id)
    if rule_id:
        context["rule_id"] = str(rule_id)
    if event_type:
        context["event_type"] = event_type
    if notification_type:
        context["notification_type"] = notification_type
    return context
