"""Baseline migration - tenants, courses, automation rules, notifications

Revision ID: 0001_academy_baseline
Revises:
Create Date: 2026-10-19

Creates the tenant, course structure, automation and notification tables.
The automation_deliveries unique constraint is what makes rule emails
at-most-once per member.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_academy_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create academy tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Tenants
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE members (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL DEFAULT 'student',
            email VARCHAR(255),
            display_name VARCHAR(255),
            last_active_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_member_org_email UNIQUE (organization_id, email),
            CONSTRAINT ck_member_role CHECK (role IN ('student', 'support', 'admin', 'owner'))
        )
    ''')
    op.execute('CREATE INDEX idx_member_org_role ON members(organization_id, role)')

    # ==========================================================================
    # Course structure and progress
    # ==========================================================================
    op.execute('''
        CREATE TABLE courses (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'draft',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_course_org_status ON courses(organization_id, status)')

    op.execute('''
        CREATE TABLE course_modules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            course_id UUID NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0
        )
    ''')
    op.execute('CREATE INDEX ix_course_modules_course_id ON course_modules(course_id)')

    op.execute('''
        CREATE TABLE lessons (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            module_id UUID NOT NULL REFERENCES course_modules(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0
        )
    ''')
    op.execute('CREATE INDEX ix_lessons_module_id ON lessons(module_id)')

    op.execute('''
        CREATE TABLE enrollments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            member_id UUID NOT NULL REFERENCES members(id) ON DELETE CASCADE,
            course_id UUID NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_enrollment_member_course UNIQUE (member_id, course_id)
        )
    ''')
    op.execute('CREATE INDEX idx_enrollment_course ON enrollments(course_id)')

    op.execute('''
        CREATE TABLE lesson_completions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            member_id UUID NOT NULL REFERENCES members(id) ON DELETE CASCADE,
            lesson_id UUID NOT NULL REFERENCES lessons(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_completion_member_lesson UNIQUE (member_id, lesson_id)
        )
    ''')
    op.execute('CREATE INDEX ix_lesson_completions_lesson_id ON lesson_completions(lesson_id)')

    # ==========================================================================
    # Automation rules and delivery ledger
    # ==========================================================================
    op.execute('''
        CREATE TABLE automation_rules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            trigger_type VARCHAR(50) NOT NULL,
            trigger_config JSONB NOT NULL DEFAULT '{}',
            email_subject_template VARCHAR(500) NOT NULL,
            email_body_template TEXT NOT NULL,
            is_enabled BOOLEAN NOT NULL DEFAULT TRUE,
            created_by_member_id UUID REFERENCES members(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_rule_trigger_type CHECK (trigger_type IN (
                'new_user', 'course_enrolled', 'lesson_completed',
                'course_completed', 'inactive_days'
            ))
        )
    ''')
    op.execute('''
        CREATE INDEX idx_rule_matching
        ON automation_rules(organization_id, trigger_type, is_enabled)
    ''')

    op.execute('''
        CREATE TABLE automation_deliveries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rule_id UUID NOT NULL REFERENCES automation_rules(id) ON DELETE CASCADE,
            member_id UUID NOT NULL REFERENCES members(id) ON DELETE CASCADE,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            message_id VARCHAR(255),
            sent_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_delivery_rule_member UNIQUE (rule_id, member_id)
        )
    ''')
    op.execute('CREATE INDEX idx_delivery_org ON automation_deliveries(organization_id, sent_at)')

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.execute('''
        CREATE TABLE notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            member_id UUID NOT NULL REFERENCES members(id) ON DELETE CASCADE,
            type VARCHAR(50) NOT NULL,
            title VARCHAR(255) NOT NULL,
            content TEXT,
            link VARCHAR(500),
            actor_id UUID,
            target_id UUID,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('''
        CREATE INDEX idx_notif_org_member
        ON notifications(organization_id, member_id, created_at)
    ''')
    op.execute('CREATE INDEX idx_notif_member_unread ON notifications(member_id, is_read)')


def downgrade() -> None:
    """Drop academy tables."""
    op.execute('DROP TABLE IF EXISTS notifications CASCADE')
    op.execute('DROP TABLE IF EXISTS automation_deliveries CASCADE')
    op.execute('DROP TABLE IF EXISTS automation_rules CASCADE')
    op.execute('DROP TABLE IF EXISTS lesson_completions CASCADE')
    op.execute('DROP TABLE IF EXISTS enrollments CASCADE')
    op.execute('DROP TABLE IF EXISTS lessons CASCADE')
    op.execute('DROP TABLE IF EXISTS course_modules CASCADE')
    op.execute('DROP TABLE IF EXISTS courses CASCADE')
    op.execute('DROP TABLE IF EXISTS members CASCADE')
    op.execute('DROP TABLE IF EXISTS organizations CASCADE')
