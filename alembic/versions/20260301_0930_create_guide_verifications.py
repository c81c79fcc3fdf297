"""create guide verification records

Revision ID: 20260301_0930_create_guide_verifications
Revises: 20260301_0920_create_events_payments_reviews
Create Date: 2026-03-01 09:30:00
"""
from alembic import op
import sqlalchemy as sa

revision = '20260301_0930_create_guide_verifications'
down_revision = '20260301_0920_create_events_payments_reviews'
branch_labels = None
depends_on = None

verification_status = sa.Enum('PENDING', 'VERIFIED', 'REJECTED', name='guideverificationstatus')


def upgrade() -> None:
    op.create_table(
        'guide_verifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('guide_id', sa.Integer(), sa.ForeignKey('guides.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('verification_status', verification_status, nullable=False, server_default='PENDING', index=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('verified_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('guide_verifications')
    verification_status.drop(op.get_bind(), checkfirst=True)
