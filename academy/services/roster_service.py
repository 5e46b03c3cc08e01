"""Read-only directory of academy members and enrollments.

Every query is scoped to one organization; nothing here writes.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from academy.db.enums import Role
from academy.db.models import Course, Enrollment, Member


def get_member(db: Session, member_id: UUID, org_id: UUID) -> Member | None:
    """Get a member by ID, scoped to org."""
    return (
        db.query(Member)
        .filter(Member.id == member_id, Member.organization_id == org_id)
        .first()
    )


def list_member_ids_by_role(db: Session, org_id: UUID, roles: Iterable[Role]) -> list[UUID]:
    role_values = [Role(role).value for role in roles]
    if not role_values:
        return []
    rows = (
        db.query(Member.id)
        .filter(Member.organization_id == org_id, Member.role.in_(role_values))
        .all()
    )
    return [row.id for row in rows]


def list_member_ids_in_org(db: Session, org_id: UUID) -> list[UUID]:
    rows = db.query(Member.id).filter(Member.organization_id == org_id).all()
    return [row.id for row in rows]


def list_enrolled_member_ids(db: Session, course_id: UUID, org_id: UUID) -> list[UUID]:
    """Members enrolled in a course; a course from another org yields nothing."""
    rows = (
        db.query(Enrollment.member_id)
        .join(Course, Course.id == Enrollment.course_id)
        .join(Member, Member.id == Enrollment.member_id)
        .filter(
            Enrollment.course_id == course_id,
            Course.organization_id == org_id,
            Member.organization_id == org_id,
        )
        .all()
    )
    return [row.member_id for row in rows]


def iter_members(db: Session, org_id: UUID, batch_size: int = 500):
    """Iterate through an org's members in id-ordered batches."""
    last_id = None
    while True:
        query = db.query(Member).filter(Member.organization_id == org_id)
        if last_id:
            query = query.filter(Member.id > last_id)
        batch = query.order_by(Member.id).limit(batch_size).all()
        if not batch:
            break
        for member in batch:
            yield member
        last_id = batch[-1].id
