"""initial tutormatch schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.users (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            email text NOT NULL,
            password_hash text NOT NULL,
            role text NOT NULL CHECK (role IN ('STUDENT', 'TUTOR', 'ADMIN')),
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ux_users_email_lower ON app.users (lower(email));")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.student_profiles (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id uuid NOT NULL UNIQUE REFERENCES app.users(id) ON DELETE CASCADE,
            name text NOT NULL DEFAULT '',
            contact_number text NOT NULL DEFAULT '',
            preferred_subjects text,
            budget_min_cents bigint CHECK (budget_min_cents >= 0),
            budget_max_cents bigint CHECK (budget_max_cents >= 0),
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.tutor_profiles (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id uuid NOT NULL UNIQUE REFERENCES app.users(id) ON DELETE CASCADE,
            name text NOT NULL DEFAULT '',
            contact_number text NOT NULL DEFAULT '',
            subjects_taught text,
            experience_years integer NOT NULL DEFAULT 0 CHECK (experience_years >= 0),
            default_hourly_rate_cents bigint NOT NULL DEFAULT 0 CHECK (default_hourly_rate_cents >= 0),
            availability text,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.assignments (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            student_id uuid NOT NULL REFERENCES app.student_profiles(id),
            tutor_id uuid NOT NULL REFERENCES app.tutor_profiles(id),
            subject text NOT NULL,
            total_fee_cents bigint NOT NULL CHECK (total_fee_cents > 0),
            tutor_fee_cents bigint NOT NULL CHECK (tutor_fee_cents >= 0),
            platform_commission_cents bigint NOT NULL,
            status text NOT NULL DEFAULT 'PENDING_OFFER',
            cancel_reason text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT ck_assignments_tutor_fee_le_total CHECK (tutor_fee_cents <= total_fee_cents),
            CONSTRAINT ck_assignments_commission CHECK (platform_commission_cents = total_fee_cents - tutor_fee_cents),
            CONSTRAINT ck_assignments_status CHECK (status IN (
                'PENDING_OFFER', 'TUTOR_ACCEPTED', 'TUTOR_DECLINED', 'PAYMENT_PENDING',
                'IN_PROGRESS', 'COMPLETED', 'CANCELED'
            ))
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_assignments_student ON app.assignments (student_id, created_at DESC);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_assignments_tutor ON app.assignments (tutor_id, created_at DESC);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_assignments_status ON app.assignments (status);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payments (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            assignment_id uuid NOT NULL UNIQUE REFERENCES app.assignments(id),
            amount_cents bigint NOT NULL CHECK (amount_cents >= 0),
            platform_fee_cents bigint NOT NULL DEFAULT 0,
            status text NOT NULL DEFAULT 'PENDING' CHECK (status IN ('PENDING', 'SUCCEEDED', 'FAILED')),
            external_ref text,
            checkout_session_id text,
            checkout_url text,
            amount_mismatch boolean NOT NULL DEFAULT false,
            failure_reason text,
            created_at timestamptz NOT NULL DEFAULT now(),
            paid_at timestamptz
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_payments_pending ON app.payments (created_at) WHERE status = 'PENDING';")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payouts (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            assignment_id uuid NOT NULL UNIQUE REFERENCES app.assignments(id),
            tutor_id uuid NOT NULL REFERENCES app.tutor_profiles(id),
            amount_cents bigint NOT NULL CHECK (amount_cents >= 0),
            status text NOT NULL DEFAULT 'PENDING' CHECK (status IN ('PENDING', 'PAID')),
            initiated_at timestamptz NOT NULL DEFAULT now(),
            paid_at timestamptz
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_payouts_tutor ON app.payouts (tutor_id, initiated_at DESC);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.audit_log (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            actor_user_id uuid,
            action text NOT NULL,
            target_id text,
            metadata jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_log_created ON app.audit_log (created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.audit_log;")
    op.execute("DROP TABLE IF EXISTS app.payouts;")
    op.execute("DROP TABLE IF EXISTS app.payments;")
    op.execute("DROP TABLE IF EXISTS app.assignments;")
    op.execute("DROP TABLE IF EXISTS app.tutor_profiles;")
    op.execute("DROP TABLE IF EXISTS app.student_profiles;")
    op.execute("DROP TABLE IF EXISTS app.users;")
