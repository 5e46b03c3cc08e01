import uuid

import pytest

from academy.db.enums import AutomationTriggerType, CourseStatus, Role, RuleOutcomeStatus
from academy.db.models import Course, Enrollment, Lesson, LessonCompletion, Notification
from academy.services import academy_events, automation_dispatcher

from conftest import enroll, make_member, make_rule


@pytest.fixture
def use_fake_sender(monkeypatch, fake_sender):
    monkeypatch.setattr(automation_dispatcher, "get_email_sender", lambda: fake_sender)
    return fake_sender


# =============================================================================
# Learner progress
# =============================================================================


def test_lesson_completion_records_progress_and_fires_both_events(
    db, test_org, student, test_course, use_fake_sender
):
    course = test_course.course
    lesson_rule = make_rule(
        db,
        test_org,
        AutomationTriggerType.LESSON_COMPLETED,
        {"lesson_id": str(test_course.lessons[2].id)},
        subject="Finished {{lesson_name}}",
    )
    course_rule = make_rule(
        db,
        test_org,
        AutomationTriggerType.COURSE_COMPLETED,
        {"course_id": str(course.id)},
        subject="Congrats on {{course_name}}",
    )

    for lesson in test_course.lessons[:2]:
        academy_events.on_lesson_completed(db, student.id, test_org.id, lesson.id)
    assert use_fake_sender.sent == []

    lesson_outcome, course_outcome = academy_events.on_lesson_completed(
        db, student.id, test_org.id, test_course.lessons[2].id
    )

    assert lesson_outcome.status_for(lesson_rule.id) == RuleOutcomeStatus.SENT
    assert course_outcome.status_for(course_rule.id) == RuleOutcomeStatus.SENT
    assert [s["subject"] for s in use_fake_sender.sent] == [
        "Finished Functions",
        "Congrats on Python Basics",
    ]
    assert db.query(LessonCompletion).filter_by(member_id=student.id).count() == 3


def test_repeat_lesson_completion_is_idempotent(db, test_org, student, test_course, use_fake_sender):
    intro = test_course.lessons[0]
    make_rule(db, test_org, AutomationTriggerType.LESSON_COMPLETED, {"lesson_id": str(intro.id)})

    academy_events.on_lesson_completed(db, student.id, test_org.id, intro.id)
    academy_events.on_lesson_completed(db, student.id, test_org.id, intro.id)

    assert db.query(LessonCompletion).count() == 1
    assert len(use_fake_sender.sent) == 1


def test_lesson_completion_rejects_unknown_lesson(db, test_org, student):
    with pytest.raises(ValueError, match="Lesson not found"):
        academy_events.on_lesson_completed(db, student.id, test_org.id, uuid.uuid4())


def test_member_joined_fires_new_user(db, test_org, student, use_fake_sender):
    make_rule(db, test_org, AutomationTriggerType.NEW_USER, subject="Welcome to {{org_name}}")

    outcome = academy_events.on_member_joined(db, student)

    assert outcome.sent_count == 1
    assert use_fake_sender.sent[0]["subject"] == "Welcome to Acme Academy"


def test_member_enrolled_records_enrollment_once(
    db, test_org, student, test_course, use_fake_sender
):
    course = test_course.course
    make_rule(
        db,
        test_org,
        AutomationTriggerType.COURSE_ENROLLED,
        {"course_id": str(course.id)},
        subject="Welcome to {{course_name}}",
    )

    academy_events.on_member_enrolled(db, student.id, test_org.id, course.id)
    academy_events.on_member_enrolled(db, student.id, test_org.id, course.id)

    assert db.query(Enrollment).count() == 1
    assert [s["subject"] for s in use_fake_sender.sent] == ["Welcome to Python Basics"]


def test_member_enrolled_rejects_course_of_other_org(db, other_org, test_course):
    outsider = make_member(db, other_org)
    with pytest.raises(ValueError, match="Course not found"):
        academy_events.on_member_enrolled(db, outsider.id, other_org.id, test_course.course.id)


def test_progress_hooks_reject_member_of_other_org(
    db, test_org, other_org, test_course, use_fake_sender
):
    outsider = make_member(db, other_org)
    make_rule(
        db,
        test_org,
        AutomationTriggerType.COURSE_ENROLLED,
        {"course_id": str(test_course.course.id)},
    )

    with pytest.raises(ValueError, match="Member not found"):
        academy_events.on_lesson_completed(
            db, outsider.id, test_org.id, test_course.lessons[0].id
        )
    with pytest.raises(ValueError, match="Member not found"):
        academy_events.on_member_enrolled(db, outsider.id, test_org.id, test_course.course.id)

    assert db.query(LessonCompletion).count() == 0
    assert db.query(Enrollment).count() == 0
    assert use_fake_sender.sent == []


# =============================================================================
# Content and messaging notifications
# =============================================================================


def _draft_course(db, org):
    course = Course(
        id=uuid.uuid4(),
        organization_id=org.id,
        title="Data Science",
        status=CourseStatus.DRAFT.value,
    )
    db.add(course)
    db.commit()
    return course


def test_course_published_notifies_everyone_but_actor(db, test_org):
    actor = make_member(db, test_org, Role.ADMIN)
    students = [make_member(db, test_org) for _ in range(2)]
    course = _draft_course(db, test_org)

    course.status = CourseStatus.PUBLISHED.value
    db.commit()
    outcome = academy_events.on_course_published(db, course, CourseStatus.DRAFT.value, actor.id)

    assert outcome.created == 2
    rows = db.query(Notification).all()
    assert {row.member_id for row in rows} == {s.id for s in students}
    assert rows[0].type == "course_published"
    assert rows[0].link == f"/academy/acme/courses/{course.id}"


def test_course_republish_and_draft_do_not_notify(db, test_org, test_course):
    make_member(db, test_org)
    draft = _draft_course(db, test_org)

    assert academy_events.on_course_published(db, draft, None, None) is None
    assert (
        academy_events.on_course_published(
            db, test_course.course, CourseStatus.PUBLISHED.value, None
        )
        is None
    )
    assert db.query(Notification).count() == 0


def test_lesson_added_notifies_course_recipients(db, test_org, test_course):
    course = test_course.course
    instructor = make_member(db, test_org, Role.ADMIN)
    enrolled = make_member(db, test_org)
    make_member(db, test_org)  # not enrolled
    enroll(db, enrolled, course)
    lesson = Lesson(id=uuid.uuid4(), module_id=test_course.module.id, title="Loops")
    db.add(lesson)
    db.commit()

    outcome = academy_events.on_lesson_added(db, course, lesson, instructor.id)

    assert outcome.created == 1
    row = db.query(Notification).one()
    assert row.member_id == enrolled.id
    assert row.type == "new_lesson"
    assert row.target_id == lesson.id
    assert "Loops" in row.content


def test_lesson_added_to_draft_course_is_silent(db, test_org):
    make_member(db, test_org, Role.ADMIN)
    draft = _draft_course(db, test_org)
    lesson = Lesson(id=uuid.uuid4(), module_id=uuid.uuid4(), title="Draft lesson")

    assert academy_events.on_lesson_added(db, draft, lesson, None) is None
    assert db.query(Notification).count() == 0


def test_attachment_added_notifies_course_recipients(db, test_org, test_course):
    course = test_course.course
    support = make_member(db, test_org, Role.SUPPORT)
    db.commit()
    attachment_id = uuid.uuid4()

    outcome = academy_events.on_attachment_added(
        db, course, test_course.lessons[0].id, attachment_id, "slides.pdf", None
    )

    assert outcome.created == 1
    row = db.query(Notification).one()
    assert row.member_id == support.id
    assert row.type == "new_file"
    assert row.target_id == attachment_id


def test_message_to_single_recipient(db, test_org, student):
    sender = make_member(db, test_org, Role.ADMIN)
    make_member(db, test_org)
    db.commit()

    outcomes = academy_events.on_message_sent(
        db, test_org, sender.id, uuid.uuid4(), "Office hours moved", recipient_id=student.id
    )

    assert [o.created for o in outcomes] == [1]
    row = db.query(Notification).one()
    assert row.member_id == student.id
    assert row.content == "Office hours moved"


def test_message_to_courses_and_to_everyone(db, test_org, test_course):
    sender = make_member(db, test_org, Role.OWNER)
    enrolled = make_member(db, test_org)
    bystander = make_member(db, test_org)
    enroll(db, enrolled, test_course.course)
    db.commit()

    course_outcomes = academy_events.on_message_sent(
        db, test_org, sender.id, uuid.uuid4(), "Course news", course_ids=[test_course.course.id]
    )
    assert [o.created for o in course_outcomes] == [1]

    everyone = academy_events.on_message_sent(db, test_org, sender.id, uuid.uuid4(), "Hello all")
    assert [o.created for o in everyone] == [2]
    assert {
        row.member_id
        for row in db.query(Notification).filter(Notification.content == "Hello all").all()
    } == {enrolled.id, bystander.id}
