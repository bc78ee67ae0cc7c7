"""Users, membership plans, applications, plan-change requests, review history.

Revision ID: 001_membership_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_membership_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Plans ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS membership_plans (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT,
            price INTEGER NOT NULL DEFAULT 0,
            features JSONB NOT NULL DEFAULT '[]'::jsonb,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            email VARCHAR(320) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            full_name VARCHAR(128) NOT NULL,
            city VARCHAR(128) NOT NULL DEFAULT '',
            state VARCHAR(2) NOT NULL DEFAULT '',
            area VARCHAR(128) NOT NULL DEFAULT '',
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            is_approved BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            current_plan_id INTEGER REFERENCES membership_plans(id) ON DELETE SET NULL,
            plan_name VARCHAR(64),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT users_role_check CHECK (role IN ('member', 'admin'))
        )
    """)
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email_lower ON users(lower(email))")
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username_lower ON users(lower(username))")
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_plan ON users(current_plan_id)")

    # --- Applications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS member_applications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            plan_id INTEGER NOT NULL REFERENCES membership_plans(id),
            status VARCHAR(32) NOT NULL DEFAULT 'pending',
            payment_status VARCHAR(16) NOT NULL DEFAULT 'pending',
            documents JSONB NOT NULL DEFAULT '[]'::jsonb,
            admin_notes TEXT,
            reviewed_by INTEGER REFERENCES users(id),
            reviewed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT member_applications_status_check
                CHECK (status IN ('pending', 'documents_requested', 'rejected', 'approved')),
            CONSTRAINT member_applications_payment_check
                CHECK (payment_status IN ('pending', 'paid', 'failed', 'free'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_applications_status ON member_applications(status)")

    # --- Plan change requests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS plan_change_requests (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            current_plan_id INTEGER REFERENCES membership_plans(id),
            requested_plan_id INTEGER NOT NULL REFERENCES membership_plans(id),
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            documents JSONB NOT NULL DEFAULT '[]'::jsonb,
            admin_notes TEXT,
            reviewed_by INTEGER REFERENCES users(id),
            reviewed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT plan_change_requests_status_check
                CHECK (status IN ('pending', 'approved', 'rejected'))
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_plan_change_one_pending
        ON plan_change_requests(user_id) WHERE status = 'pending'
    """)

    # --- Review history ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS review_events (
            id BIGSERIAL PRIMARY KEY,
            subject_type VARCHAR(32) NOT NULL,
            subject_id INTEGER NOT NULL,
            actor_id INTEGER NOT NULL REFERENCES users(id),
            action VARCHAR(32) NOT NULL,
            from_status VARCHAR(32),
            to_status VARCHAR(32) NOT NULL,
            notes TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_review_events_subject
        ON review_events(subject_type, subject_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS review_events CASCADE")
    op.execute("DROP TABLE IF EXISTS plan_change_requests CASCADE")
    op.execute("DROP TABLE IF EXISTS member_applications CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP TABLE IF EXISTS membership_plans CASCADE")
