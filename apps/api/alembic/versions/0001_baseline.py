"""Baseline migration - Fertility care platform tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Creates identity, organization directory, packages, benefit verification
and activity log tables.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all platform tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Organizations & packages
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) UNIQUE NOT NULL,
            domain VARCHAR(255),
            hr_contact_info TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE organization_approved_emails (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            email VARCHAR(320) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_organization_email UNIQUE (organization_id, email)
        )
    ''')

    op.execute('''
        CREATE TABLE packages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            tier VARCHAR(20) NOT NULL,
            monthly_cost NUMERIC(10, 2) NOT NULL,
            description TEXT,
            key_benefits JSONB,
            is_base_employer_package BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_packages_monthly_cost_positive CHECK (monthly_cost > 0)
        )
    ''')

    op.execute('''
        CREATE TABLE organization_packages (
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            package_id UUID NOT NULL REFERENCES packages(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (organization_id, package_id)
        )
    ''')

    # ==========================================================================
    # Users & profiles
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'patient',
            first_name VARCHAR(100),
            last_name VARCHAR(100),
            stripe_customer_id VARCHAR(255) UNIQUE,
            benefit_source VARCHAR(30) NOT NULL DEFAULT 'none',
            benefit_status VARCHAR(30) NOT NULL DEFAULT 'not_started',
            sponsoring_organization_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            selected_package_id UUID REFERENCES packages(id) ON DELETE SET NULL,
            address_line1 VARCHAR(255),
            address_line2 VARCHAR(255),
            address_city VARCHAR(100),
            address_state VARCHAR(100),
            address_postal_code VARCHAR(20),
            address_country VARCHAR(2),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE patient_profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            email VARCHAR(320),
            phone VARCHAR(50),
            date_of_birth DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE providers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            specialization VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE appointments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            patient_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            provider_id UUID NOT NULL REFERENCES providers(id) ON DELETE CASCADE,
            appointment_date TIMESTAMPTZ NOT NULL,
            status VARCHAR(20) NOT NULL,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_appointments_provider_date ON appointments(provider_id, appointment_date)')

    # ==========================================================================
    # Benefit verification
    # ==========================================================================
    op.execute('''
        CREATE TABLE benefit_verification_sessions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            current_step VARCHAR(30) NOT NULL DEFAULT 'benefit_source',
            benefit_source VARCHAR(30),
            sponsoring_organization_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            sponsoring_organization_name VARCHAR(255),
            personal_info JSONB,
            work_email VARCHAR(320),
            work_email_submitted BOOLEAN NOT NULL DEFAULT false,
            benefit_status VARCHAR(30),
            selected_package_id UUID REFERENCES packages(id) ON DELETE SET NULL,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_benefit_sessions_user_open ON benefit_verification_sessions(user_id, completed_at)')

    op.execute('''
        CREATE TABLE user_benefit_verification_attempts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            organization_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            submitted_first_name VARCHAR(100),
            submitted_last_name VARCHAR(100),
            submitted_dob DATE,
            submitted_phone VARCHAR(50),
            submitted_work_email VARCHAR(320),
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            failure_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Activity log (append-only)
    # ==========================================================================
    op.execute('''
        CREATE TABLE activity_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),
            user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            user_email VARCHAR(320),
            action_type VARCHAR(80) NOT NULL,
            target_entity_type VARCHAR(50),
            target_entity_id VARCHAR(100),
            status VARCHAR(20),
            details JSONB,
            ip_address VARCHAR(64),
            description TEXT
        )
    ''')
    op.execute('CREATE INDEX idx_activity_logs_timestamp ON activity_logs(timestamp)')
    op.execute('CREATE INDEX idx_activity_logs_action_timestamp ON activity_logs(action_type, timestamp)')


def downgrade() -> None:
    """Drop all platform tables."""
    for table in (
        'activity_logs',
        'user_benefit_verification_attempts',
        'benefit_verification_sessions',
        'appointments',
        'providers',
        'patient_profiles',
        'users',
        'organization_packages',
        'packages',
        'organization_approved_emails',
        'organizations',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table}')
