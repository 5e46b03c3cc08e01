"""Pydantic schemas for in-app notification fan-out."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from academy.db.enums import NotificationScopeKind, NotificationType


class NotificationPayload(BaseModel):
    """Content shared by every row written in one fan-out."""

    type: NotificationType
    title: str = Field(min_length=1, max_length=255)
    content: str | None = None
    link: str | None = Field(default=None, max_length=500)
    actor_id: UUID | None = None  # Always excluded from the recipients
    target_id: UUID | None = None


class NotificationScope(BaseModel):
    """Recipient scope of a fan-out, always inside one organization."""

    kind: NotificationScopeKind
    org_id: UUID
    member_id: UUID | None = None
    course_id: UUID | None = None

    @model_validator(mode="after")
    def check_scope_target(self) -> "NotificationScope":
        if self.kind == NotificationScopeKind.SINGLE_RECIPIENT and not self.member_id:
            raise ValueError("single_recipient scope requires member_id")
        if self.kind == NotificationScopeKind.COURSE_RECIPIENTS and not self.course_id:
            raise ValueError("course_recipients scope requires course_id")
        return self

    @classmethod
    def single(cls, org_id: UUID, member_id: UUID) -> "NotificationScope":
        return cls(kind=NotificationScopeKind.SINGLE_RECIPIENT, org_id=org_id, member_id=member_id)

    @classmethod
    def course(cls, org_id: UUID, course_id: UUID) -> "NotificationScope":
        return cls(kind=NotificationScopeKind.COURSE_RECIPIENTS, org_id=org_id, course_id=course_id)

    @classmethod
    def all_tenant(cls, org_id: UUID) -> "NotificationScope":
        return cls(kind=NotificationScopeKind.ALL_TENANT_RECIPIENTS, org_id=org_id)
