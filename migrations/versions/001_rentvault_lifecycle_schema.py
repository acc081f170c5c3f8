"""RentVault lifecycle schema: users, cases, purchases, assets, deadlines, audit.

Tables:
- users: vault owners (reminder destination)
- cases: rental records with all retention lifecycle fields
- purchases: append-only payment ledger, duplicate-safe by unique indexes
- assets: stored files owned by a case
- deadlines: lease deadlines with reminder preferences
- deletion_audit: purge audit trail (no FK, outlives the case)

Revision ID: 001_rentvault_lifecycle_schema
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_rentvault_lifecycle_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create lifecycle tables."""

    # -------------------------------------------------------------------------
    # 1. users
    # -------------------------------------------------------------------------
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email')
    )

    # -------------------------------------------------------------------------
    # 2. cases
    # -------------------------------------------------------------------------
    print("  Creating cases table...")

    op.create_table(
        'cases',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=False, server_default='Rental'),
        sa.Column('stay_type', sa.String(length=16), nullable=False, server_default='long_term'),
        sa.Column('check_in_date', sa.Date(), nullable=True),
        sa.Column('check_out_date', sa.Date(), nullable=True),
        sa.Column('checkin_completed_at', sa.DateTime(), nullable=True),
        sa.Column('handover_completed_at', sa.DateTime(), nullable=True),
        sa.Column('retention_until', sa.DateTime(), nullable=True),
        sa.Column('storage_years_purchased', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('deletion_status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('grace_until', sa.DateTime(), nullable=True),
        sa.Column('retention_reminder_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expiry_notified_at', sa.DateTime(), nullable=True),
        sa.Column('final_expiry_notified_at', sa.DateTime(), nullable=True),
        sa.Column('purchase_type', sa.String(length=32), nullable=True),
        sa.Column('purchase_at', sa.DateTime(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.CheckConstraint(
            "(deletion_status = 'pending_deletion') = (grace_until IS NOT NULL)",
            name='ck_cases_grace_iff_pending',
        ),
        sa.CheckConstraint(
            'retention_reminder_level BETWEEN 0 AND 3',
            name='ck_cases_reminder_level_range',
        ),
    )
    op.create_index('ix_cases_owner_id', 'cases', ['owner_id'], unique=False)
    op.create_index('ix_cases_deletion_status_retention', 'cases', ['deletion_status', 'retention_until'], unique=False)
    op.create_index('ix_cases_deletion_status_grace', 'cases', ['deletion_status', 'grace_until'], unique=False)

    # -------------------------------------------------------------------------
    # 3. purchases
    # -------------------------------------------------------------------------
    print("  Creating purchases table...")

    op.create_table(
        'purchases',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('case_id', sa.UUID(), nullable=False),
        sa.Column('owner_id', sa.UUID(), nullable=False),
        sa.Column('pack_type', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='EUR'),
        sa.Column('payment_ref', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['case_id'], ['cases.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('payment_ref', name='uq_purchases_payment_ref')
    )
    op.create_index('ix_purchases_case_id', 'purchases', ['case_id'], unique=False)
    # One row per (case, pack) except storage extensions, which can repeat
    op.create_index(
        'uq_purchases_case_pack',
        'purchases',
        ['case_id', 'pack_type'],
        unique=True,
        postgresql_where=sa.text("pack_type NOT LIKE 'storage_extension%'"),
    )

    # -------------------------------------------------------------------------
    # 4. assets
    # -------------------------------------------------------------------------
    op.create_table(
        'assets',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('case_id', sa.UUID(), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='photo'),
        sa.Column('phase', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['case_id'], ['cases.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_assets_case_id', 'assets', ['case_id'], unique=False)

    # -------------------------------------------------------------------------
    # 5. deadlines
    # -------------------------------------------------------------------------
    op.create_table(
        'deadlines',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('case_id', sa.UUID(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('preferences', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('last_notification_sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['case_id'], ['cases.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_deadlines_case_id', 'deadlines', ['case_id'], unique=False)

    # -------------------------------------------------------------------------
    # 6. deletion_audit
    # -------------------------------------------------------------------------
    op.create_table(
        'deletion_audit',
        sa.Column('id', sa.UUID(), nullable=False),
        # Note: No FK to cases - audit rows persist after the purge
        sa.Column('case_id', sa.UUID(), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=False),
        sa.Column('objects_deleted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('objects_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('initiated_by', sa.String(length=64), nullable=False, server_default='scheduler'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deletion_audit_case_id', 'deletion_audit', ['case_id'], unique=False)

    print("  Migration complete!")


def downgrade() -> None:
    """Drop lifecycle tables."""
    op.drop_index('ix_deletion_audit_case_id', table_name='deletion_audit')
    op.drop_table('deletion_audit')

    op.drop_index('ix_deadlines_case_id', table_name='deadlines')
    op.drop_table('deadlines')

    op.drop_index('ix_assets_case_id', table_name='assets')
    op.drop_table('assets')

    op.drop_index('uq_purchases_case_pack', table_name='purchases')
    op.drop_index('ix_purchases_case_id', table_name='purchases')
    op.drop_table('purchases')

    op.drop_index('ix_cases_deletion_status_grace', table_name='cases')
    op.drop_index('ix_cases_deletion_status_retention', table_name='cases')
    op.drop_index('ix_cases_owner_id', table_name='cases')
    op.drop_table('cases')

    op.drop_table('users')
