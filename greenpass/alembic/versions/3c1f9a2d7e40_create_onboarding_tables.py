"""create_onboarding_tables

Revision ID: 3c1f9a2d7e40
Revises:
Create Date: 2026-10-19 10:12:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3c1f9a2d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'role': ('student', 'agent', 'tutor', 'school', 'vendor'),
    'step': ('choose_role', 'basic_info', 'role_specific', 'subscription', 'complete'),
    'subscriptionstatus': ('none', 'active', 'skipped'),
    'verificationstatus': ('pending', 'verified', 'rejected'),
}


def _enum(name: str) -> sa.types.TypeEngine:
    # Types are created once up front; tables must not try to create them again.
    return sa.Enum(*ENUMS[name], name=name).with_variant(
        postgresql.ENUM(*ENUMS[name], name=name, create_type=False), 'postgresql'
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _role_record_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('subject_id', sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column('verification_status', _enum('verificationstatus'), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('is_visible', sa.Boolean(), nullable=False),
        *_timestamps(),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Create the enum types first (PostgreSQL)
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'accounts',
        sa.Column('subject_id', sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('full_name', sqlmodel.sql.sqltypes.AutoString(length=120), nullable=False),
        sa.Column('phone', sqlmodel.sql.sqltypes.AutoString(length=32), nullable=False),
        sa.Column('country', sqlmodel.sql.sqltypes.AutoString(length=80), nullable=False),
        sa.Column('country_code', sqlmodel.sql.sqltypes.AutoString(length=8), nullable=False),
        sa.Column('role', _enum('role'), nullable=False),
        sa.Column('role_locked', sa.Boolean(), nullable=False),
        sa.Column('onboarding_step', _enum('step'), nullable=False),
        sa.Column('onboarding_completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('role_profile_draft', sa.JSON(), nullable=False),
        sa.Column('subscription_active', sa.Boolean(), nullable=False),
        sa.Column('subscription_status', _enum('subscriptionstatus'), nullable=False),
        sa.Column('subscription_plan', sqlmodel.sql.sqltypes.AutoString(length=120), nullable=True),
        sa.Column('subscription_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('subscription_currency', sqlmodel.sql.sqltypes.AutoString(length=3), nullable=True),
        sa.Column('subscription_provider_order_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column('subscription_captured_at', sa.DateTime(), nullable=True),
        sa.Column('subscription_capture', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('subject_id'),
    )
    op.create_index(op.f('ix_accounts_email'), 'accounts', ['email'], unique=False)
    op.create_index(
        op.f('ix_accounts_subscription_provider_order_id'),
        'accounts',
        ['subscription_provider_order_id'],
        unique=False,
    )

    op.create_table(
        'agents',
        *_role_record_columns(),
        sa.Column('company_name', sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column('business_license', sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column('year_established', sa.Integer(), nullable=True),
        sa.Column('payout_email', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('referral_code', sqlmodel.sql.sqltypes.AutoString(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_agents_subject_id'), 'agents', ['subject_id'], unique=True)
    op.create_index(op.f('ix_agents_referral_code'), 'agents', ['referral_code'], unique=False)

    op.create_table(
        'tutors',
        *_role_record_columns(),
        sa.Column('specializations', sa.JSON(), nullable=False),
        sa.Column('experience_years', sa.Integer(), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('bio', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('payout_email', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tutors_subject_id'), 'tutors', ['subject_id'], unique=True)

    op.create_table(
        'school_profiles',
        *_role_record_columns(),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column('location', sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column('website', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('type', sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column('about', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_school_profiles_subject_id'), 'school_profiles', ['subject_id'], unique=True)

    op.create_table(
        'vendors',
        *_role_record_columns(),
        sa.Column('business_name', sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column('service_categories', sa.JSON(), nullable=False),
        sa.Column('payout_email', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_vendors_subject_id'), 'vendors', ['subject_id'], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('vendors', 'school_profiles', 'tutors', 'agents'):
        op.drop_index(op.f(f'ix_{table}_subject_id'), table_name=table)
    op.drop_index(op.f('ix_agents_referral_code'), table_name='agents')
    op.drop_table('vendors')
    op.drop_table('school_profiles')
    op.drop_table('tutors')
    op.drop_table('agents')

    op.drop_index(op.f('ix_accounts_subscription_provider_order_id'), table_name='accounts')
    op.drop_index(op.f('ix_accounts_email'), table_name='accounts')
    op.drop_table('accounts')

    # Drop the enum types (PostgreSQL)
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).drop(bind, checkfirst=True)
