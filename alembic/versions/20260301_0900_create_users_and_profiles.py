"""create users, travelers and guides tables

Revision ID: 20260301_0900_create_users_and_profiles
Revises:
Create Date: 2026-03-01 09:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = '20260301_0900_create_users_and_profiles'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('TRAVELER', 'GUIDE', 'ADMIN', name='userrole')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='TRAVELER'),
        sa.Column('languages', JSONB, nullable=False, server_default='[]'),
        sa.Column('country', sa.String(100), nullable=False, server_default='Sri Lanka'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'travelers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('trip_in_progress', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_reviews', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'guides',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('nic', sa.String(20), nullable=False, unique=True),
        sa.Column('rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_reviews', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('trip_in_progress', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('guides')
    op.drop_table('travelers')
    op.drop_table('users')
    user_role.drop(op.get_bind(), checkfirst=True)
