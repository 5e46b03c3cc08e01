"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, rebuilt for every test
- Tenant, member and course fixtures
- A recording email sender
- HTTPX AsyncClient bound to the app with the test session
"""
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Generator

# Settings are read at import time; point them at SQLite before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from academy.core.deps import get_db
from academy.db.base import Base
from academy.db.enums import AutomationTriggerType, CourseStatus, Role
from academy.db.models import (
    AutomationRule,
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    Member,
    Organization,
)
from academy.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

engine = create_engine(
    "sqlite+pysqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    Services commit freely, so isolation comes from recreating the tables
    rather than from a wrapping transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_member(
    db: Session,
    org: Organization,
    role: Role = Role.STUDENT,
    display_name: str | None = None,
    email: str | None = "",
) -> Member:
    """Create a member; email defaults to a unique address, pass None for no address."""
    if email == "":
        email = f"member-{uuid.uuid4().hex[:8]}@example.com"
    member = Member(
        id=uuid.uuid4(),
        organization_id=org.id,
        role=role.value,
        display_name=display_name,
        email=email,
    )
    db.add(member)
    db.flush()
    return member


def enroll(db: Session, member: Member, course: Course) -> None:
    db.add(Enrollment(member_id=member.id, course_id=course.id))
    db.flush()


def make_rule(
    db: Session,
    org: Organization,
    trigger_type: AutomationTriggerType,
    trigger_config: dict | None = None,
    subject: str = "Hello {{name}}",
    body: str = "<p>Hi {{name}}</p>",
    is_enabled: bool = True,
) -> AutomationRule:
    """Insert a rule directly (no config validation, so broken configs can be stored)."""
    rule = AutomationRule(
        id=uuid.uuid4(),
        organization_id=org.id,
        title=f"{trigger_type.value} rule",
        trigger_type=trigger_type.value,
        trigger_config=trigger_config or {},
        email_subject_template=subject,
        email_body_template=body,
        is_enabled=is_enabled,
    )
    db.add(rule)
    db.commit()
    return rule


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    org = Organization(id=uuid.uuid4(), name="Acme Academy", slug="acme")
    db.add(org)
    db.flush()
    return org


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    org = Organization(id=uuid.uuid4(), name="Other Academy", slug="other")
    db.add(org)
    db.flush()
    return org


@pytest.fixture(scope="function")
def student(db: Session, test_org: Organization) -> Member:
    return make_member(db, test_org, Role.STUDENT, display_name="Dana", email="dana@example.com")


@dataclass
class CourseFixture:
    course: Course
    module: CourseModule
    lessons: list[Lesson]


@pytest.fixture(scope="function")
def test_course(db: Session, test_org: Organization) -> CourseFixture:
    """Published course with one module and three lessons; the first is "Intro"."""
    course = Course(
        id=uuid.uuid4(),
        organization_id=test_org.id,
        title="Python Basics",
        status=CourseStatus.PUBLISHED.value,
    )
    db.add(course)
    db.flush()

    module = CourseModule(id=uuid.uuid4(), course_id=course.id, title="Module 1", order_index=0)
    db.add(module)
    db.flush()

    lessons = []
    for index, title in enumerate(["Intro", "Variables", "Functions"]):
        lesson = Lesson(id=uuid.uuid4(), module_id=module.id, title=title, order_index=index)
        db.add(lesson)
        lessons.append(lesson)
    db.commit()
    return CourseFixture(course=course, module=module, lessons=lessons)


# =============================================================================
# Email Fixtures
# =============================================================================


@dataclass
class FakeEmailSender:
    """Records every send; `fail` switches it into provider-error mode."""

    key: str = "fake"
    fail: bool = False
    sent: list[dict] = field(default_factory=list)

    async def send_email(
        self,
        *,
        to_email: str,
        subject: str,
        html: str,
        idempotency_key: str | None = None,
    ) -> dict[str, object]:
        if self.fail:
            return {"success": False, "error": "Email provider returned 500"}
        self.sent.append(
            {
                "to_email": to_email,
                "subject": subject,
                "html": html,
                "idempotency_key": idempotency_key,
            }
        )
        return {"success": True, "message_id": f"msg-{len(self.sent)}"}


@pytest.fixture(scope="function")
def fake_sender() -> FakeEmailSender:
    return FakeEmailSender()


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for the app, sharing the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
