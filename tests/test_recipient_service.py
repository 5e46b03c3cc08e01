import uuid

from academy.db.enums import Role
from academy.schemas.notification import NotificationScope
from academy.services import recipient_service

from conftest import enroll, make_member


def test_course_recipients_are_enrolled_plus_staff_minus_actor(db, test_org, test_course):
    course = test_course.course
    a = make_member(db, test_org, Role.STUDENT)
    b = make_member(db, test_org, Role.STUDENT)
    actor = make_member(db, test_org, Role.OWNER)
    admin1 = make_member(db, test_org, Role.ADMIN)
    make_member(db, test_org, Role.STUDENT)  # not enrolled
    for member in (a, b, actor):
        enroll(db, member, course)

    recipients = recipient_service.resolve_course_recipients(db, test_org.id, course.id, actor.id)

    assert recipients == {a.id, b.id, admin1.id}


def test_course_recipients_deduplicate_enrolled_staff(db, test_org, test_course):
    course = test_course.course
    support = make_member(db, test_org, Role.SUPPORT)
    enroll(db, support, course)

    recipients = recipient_service.resolve_course_recipients(db, test_org.id, course.id)

    assert recipients == {support.id}
    assert isinstance(recipients, set)


def test_actor_excluded_even_when_staff(db, test_org, test_course):
    admin = make_member(db, test_org, Role.ADMIN)
    other_admin = make_member(db, test_org, Role.ADMIN)

    recipients = recipient_service.resolve_course_recipients(
        db, test_org.id, test_course.course.id, admin.id
    )

    assert recipients == {other_admin.id}


def test_course_from_other_org_yields_no_enrolled(db, test_org, other_org, test_course):
    outsider_admin = make_member(db, other_org, Role.ADMIN)
    student = make_member(db, test_org, Role.STUDENT)
    enroll(db, student, test_course.course)

    recipients = recipient_service.resolve_course_recipients(
        db, other_org.id, test_course.course.id
    )

    assert recipients == {outsider_admin.id}


def test_tenant_recipients_scoped_to_org(db, test_org, other_org):
    a = make_member(db, test_org, Role.STUDENT)
    b = make_member(db, test_org, Role.ADMIN)
    make_member(db, other_org, Role.STUDENT)

    scope = NotificationScope.all_tenant(test_org.id)
    assert recipient_service.resolve_recipients(db, scope, actor_id=b.id) == {a.id}


def test_single_recipient_must_belong_to_org(db, test_org, other_org):
    member = make_member(db, test_org, Role.STUDENT)
    outsider = make_member(db, other_org, Role.STUDENT)

    assert recipient_service.resolve_recipients(
        db, NotificationScope.single(test_org.id, member.id)
    ) == {member.id}
    assert recipient_service.resolve_recipients(
        db, NotificationScope.single(test_org.id, outsider.id)
    ) == set()
    assert recipient_service.resolve_recipients(
        db, NotificationScope.single(test_org.id, uuid.uuid4())
    ) == set()


def test_single_recipient_who_is_actor_is_empty(db, test_org):
    member = make_member(db, test_org, Role.STUDENT)
    scope = NotificationScope.single(test_org.id, member.id)
    assert recipient_service.resolve_recipients(db, scope, actor_id=member.id) == set()
