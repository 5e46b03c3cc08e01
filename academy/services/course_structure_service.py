"""Read-only view over courses -> modules -> lessons and learner progress."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.db.models import Course, CourseModule, Lesson, LessonCompletion


def get_course(db: Session, course_id: UUID, org_id: UUID) -> Course | None:
    return (
        db.query(Course)
        .filter(Course.id == course_id, Course.organization_id == org_id)
        .first()
    )


def get_course_title(db: Session, course_id: UUID, org_id: UUID) -> str | None:
    course = get_course(db, course_id, org_id)
    return course.title if course else None


def get_lesson_with_course(
    db: Session, lesson_id: UUID, org_id: UUID
) -> tuple[Lesson, Course] | None:
    """Return (lesson, parent course) when the lesson belongs to the org."""
    row = (
        db.query(Lesson, Course)
        .join(CourseModule, CourseModule.id == Lesson.module_id)
        .join(Course, Course.id == CourseModule.course_id)
        .filter(Lesson.id == lesson_id, Course.organization_id == org_id)
        .first()
    )
    if row is None:
        return None
    return row[0], row[1]


def list_lesson_ids(db: Session, course_id: UUID) -> list[UUID]:
    """All lesson ids under a course, across its modules."""
    rows = (
        db.query(Lesson.id)
        .join(CourseModule, CourseModule.id == Lesson.module_id)
        .filter(CourseModule.course_id == course_id)
        .all()
    )
    return [row.id for row in rows]


def count_completions(db: Session, member_id: UUID, lesson_ids: list[UUID]) -> int:
    """Completion records of a member restricted to the given lessons."""
    if not lesson_ids:
        return 0
    return (
        db.query(func.count(LessonCompletion.id))
        .filter(
            LessonCompletion.member_id == member_id,
            LessonCompletion.lesson_id.in_(lesson_ids),
        )
        .scalar()
        or 0
    )


def get_last_completion_at(db: Session, member_id: UUID):
    return (
        db.query(func.max(LessonCompletion.created_at))
        .filter(LessonCompletion.member_id == member_id)
        .scalar()
    )
