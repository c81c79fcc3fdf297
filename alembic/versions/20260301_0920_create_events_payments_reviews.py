"""create events, payments and reviews tables

Revision ID: 20260301_0920_create_events_payments_reviews
Revises: 20260301_0910_create_trips
Create Date: 2026-03-01 09:20:00
"""
from alembic import op
import sqlalchemy as sa

revision = '20260301_0920_create_events_payments_reviews'
down_revision = '20260301_0910_create_trips'
branch_labels = None
depends_on = None

payment_status = sa.Enum('PENDING', 'PAID', 'RELEASED', 'CANCELLED', name='paymentstatus')
reviewer_type = sa.Enum('TRAVELER', 'GUIDE', name='reviewertype')


def upgrade() -> None:
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('venue', sa.String(255), nullable=False),
        sa.Column('event_date', sa.DateTime(), nullable=False, index=True),
        sa.Column('ticket_price', sa.Float(), nullable=False),
        sa.Column('ticket_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=True, unique=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('traveler_id', sa.Integer(), sa.ForeignKey('travelers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False, server_default='lkr'),
        sa.Column('status', payment_status, nullable=False, server_default='PENDING', index=True),
        sa.Column('checkout_session_id', sa.String(255), nullable=True, unique=True),
        sa.Column('ticket_quantity', sa.Integer(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('(trip_id IS NULL) <> (event_id IS NULL)', name='ck_payment_single_target'),
    )
    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('reviewer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('reviewee_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('reviewer_type', reviewer_type, nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('trip_id', 'reviewer_id', name='uq_review_trip_reviewer'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_review_rating_range'),
    )


def downgrade() -> None:
    op.drop_table('reviews')
    op.drop_table('payments')
    op.drop_table('events')
    bind = op.get_bind()
    for enum_type in (reviewer_type, payment_status):
        enum_type.drop(bind, checkfirst=True)
