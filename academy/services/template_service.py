"""Template rendering for automation emails.

Placeholders are literal, case-sensitive `{{key}}` tokens. Rendering never
raises: unknown or unmapped keys become empty strings and malformed tokens
are left as written.
"""

import re
from collections.abc import Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.db.models import Member, Organization

# Variable pattern for template substitution: {{variable_name}}
VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str | None, variables: Mapping[str, object] | None) -> str:
    """
    Render a template with variable substitution.

    Variables in format {{variable_name}} are replaced with values.
    Missing variables are replaced with empty string.
    """
    if not template:
        return ""
    values = variables or {}

    def replace_var(match: re.Match) -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    return VARIABLE_PATTERN.sub(replace_var, template)


def render_email(
    subject_template: str | None,
    body_template: str | None,
    variables: Mapping[str, object] | None,
) -> tuple[str, str]:
    """Render subject and body independently with the same variable bag."""
    return (
        render_template(subject_template, variables),
        render_template(body_template, variables),
    )


def build_base_variables(member: Member, org: Organization | None) -> dict[str, str]:
    """Variables available to every trigger: name, org_name, login_url."""
    return {
        "name": (member.display_name or "").strip() or settings.DEFAULT_RECIPIENT_NAME,
        "org_name": org.name if org else "",
        "login_url": settings.academy_url(org.slug) if org else settings.frontend_base_url,
    }


def get_organization(db: Session, org_id: UUID) -> Organization | None:
    return db.query(Organization).filter(Organization.id == org_id).first()
