"""SQLAlchemy ORM models for automation rules and their delivery ledger."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from academy.db.base import Base
from academy.db.models.tenants import utcnow
from academy.db.types import JsonColumn


class AutomationRule(Base):
    """
    Tenant-configured "when X happens, email Y" definition.

    trigger_config shape depends on trigger_type and is validated through
    academy.schemas.automation before the engine reads it.
    """

    __tablename__ = "automation_rules"
    __table_args__ = (
        Index("idx_rule_matching", "organization_id", "trigger_type", "is_enabled"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Trigger
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    trigger_config: Mapped[dict] = mapped_column(JsonColumn, default=dict)

    # Templates ({{name}}, {{org_name}}, {{course_name}}, {{lesson_name}}, {{login_url}})
    email_subject_template: Mapped[str] = mapped_column(String(500), nullable=False)
    email_body_template: Mapped[str] = mapped_column(Text, nullable=False)

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by_member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class AutomationDelivery(Base):
    """
    Ledger row proving a rule already emailed a member.

    The unique (rule_id, member_id) constraint is the at-most-once guarantee;
    rows are only written after the transport confirmed the send.
    """

    __tablename__ = "automation_deliveries"
    __table_args__ = (
        UniqueConstraint("rule_id", "member_id", name="uq_delivery_rule_member"),
        Index("idx_delivery_org", "organization_id", "sent_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("automation_rules.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
