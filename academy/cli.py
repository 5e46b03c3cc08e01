"""CLI tools for academy automation operations."""

import logging
from uuid import UUID

import click

from academy.core.config import settings
from academy.db.enums import AutomationTriggerType
from academy.db.session import SessionLocal
from academy.services import automation_rule_service, inactivity_scanner


@click.group()
def cli():
    """Academy automation CLI tools."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@cli.command()
@click.option("--org-id", type=click.UUID, default=None, help="Only scan this organization")
def scan_inactive(org_id: UUID | None):
    """
    Fire inactive_days rules for idle members.

    Safe to schedule daily: each rule emails a member at most once.

    Example:
        python -m academy.cli scan-inactive --org-id 5f0c...
    """
    db = SessionLocal()
    try:
        result = inactivity_scanner.scan_inactive_members(db, org_id=org_id)
        click.echo(f"✓ Scanned {result.org_count} organization(s)")
        click.echo(f"  Rules checked: {result.rules_checked}")
        click.echo(f"  Members fired: {result.members_fired}")
        click.echo(f"  Emails sent: {result.emails_sent}")
    finally:
        db.close()


@cli.command()
@click.option("--org-id", type=click.UUID, required=True, help="Organization ID")
@click.option(
    "--trigger-type",
    type=click.Choice([t.value for t in AutomationTriggerType]),
    default=None,
    help="Filter by trigger type",
)
@click.option("--enabled-only", is_flag=True, default=False)
def list_rules(org_id: UUID, trigger_type: str | None, enabled_only: bool):
    """List an organization's automation rules."""
    db = SessionLocal()
    try:
        rules = automation_rule_service.list_rules(
            db,
            org_id,
            enabled_only=enabled_only,
            trigger_type=AutomationTriggerType(trigger_type) if trigger_type else None,
        )
        if not rules:
            click.echo("No automation rules found")
            return
        for rule in rules:
            state = "on " if rule.is_enabled else "off"
            click.echo(f"[{state}] {rule.id}  {rule.trigger_type:<17} {rule.title}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
