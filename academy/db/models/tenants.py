"""SQLAlchemy ORM models for tenants and their members."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.db.base import Base
from academy.db.enums import Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    """
    An academy (tenant) in the multi-tenant system.

    Every other row is scoped to exactly one organization.
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    members: Mapped[list["Member"]] = relationship(back_populates="organization")


class Member(Base):
    """A student or staff profile inside an academy."""

    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_member_org_email"),
        Index("idx_member_org_role", "organization_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Touched by the portal on sign-in / page views; read by the inactivity scanner
    last_active_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    organization: Mapped["Organization"] = relationship(back_populates="members")
