"""create trips and itinerary tables

Revision ID: 20260301_0910_create_trips
Revises: 20260301_0900_create_users_and_profiles
Create Date: 2026-03-01 09:10:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = '20260301_0910_create_trips'
down_revision = '20260301_0900_create_users_and_profiles'
branch_labels = None
depends_on = None

trip_status = sa.Enum('PLANNING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', name='tripstatus')
booking_status = sa.Enum('PENDING', 'ACCEPTED', 'CONFIRMED', 'COMPLETED', 'CANCELLED', name='bookingstatus')
planning_mode = sa.Enum('MANUAL', 'AI_GENERATED', name='planningmode')


def upgrade() -> None:
    op.create_table(
        'trips',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('traveler_id', sa.Integer(), sa.ForeignKey('travelers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('guide_id', sa.Integer(), sa.ForeignKey('guides.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('from_date', sa.DateTime(), nullable=False, index=True),
        sa.Column('to_date', sa.DateTime(), nullable=False),
        sa.Column('number_of_people', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('preferences', JSONB, nullable=True),
        sa.Column('plan_description', sa.Text(), nullable=True),
        sa.Column('planning_mode', planning_mode, nullable=False),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('ai_recommendations', JSONB, nullable=True),
        sa.Column('feasibility_score', sa.Integer(), nullable=True),
        sa.Column('daily_itinerary', JSONB, nullable=True),
        sa.Column('total_distance', sa.Float(), nullable=True),
        sa.Column('needs_guide', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', trip_status, nullable=False, server_default='PLANNING', index=True),
        sa.Column('booking_status', booking_status, nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'trip_locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('district', sa.String(100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('estimated_duration', sa.String(100), nullable=True),
        sa.Column('reason_for_selection', sa.Text(), nullable=True),
        sa.Column('day_number', sa.Integer(), nullable=False),
        sa.Column('visit_order', sa.Integer(), nullable=False),
        sa.UniqueConstraint('trip_id', 'day_number', 'visit_order', name='uq_trip_location_order'),
    )
    op.create_table(
        'trip_verifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('otp', sa.String(4), nullable=False),
        sa.Column('traveler_latitude', sa.Float(), nullable=False),
        sa.Column('traveler_longitude', sa.Float(), nullable=False),
        sa.Column('guide_latitude', sa.Float(), nullable=True),
        sa.Column('guide_longitude', sa.Float(), nullable=True),
        sa.Column('distance_km', sa.Float(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'guide_declinations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('guide_id', sa.Integer(), sa.ForeignKey('guides.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('guide_id', 'trip_id', name='uq_guide_declination'),
    )


def downgrade() -> None:
    op.drop_table('guide_declinations')
    op.drop_table('trip_verifications')
    op.drop_table('trip_locations')
    op.drop_table('trips')
    bind = op.get_bind()
    for enum_type in (booking_status, trip_status, planning_mode):
        enum_type.drop(bind, checkfirst=True)
