"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create trips table
    op.create_table('trips',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('destination', sa.String(length=255), nullable=False),
        sa.Column('country', sa.String(length=128), nullable=False),
        sa.Column('package_type', sa.String(length=64), server_default='', nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('available_rooms', sa.Integer(), nullable=False),
        sa.Column('price_amount', sa.Integer(), nullable=False),
        sa.Column('old_price_amount', sa.Integer(), nullable=True),
        sa.Column('is_discount_active', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('discount_activated_at', sa.DateTime(), nullable=True),
        sa.Column('discount_expires_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('capacity >= 0', name='ck_trip_capacity_non_negative'),
        sa.CheckConstraint('available_rooms >= 0', name='ck_trip_available_rooms_non_negative'),
        sa.CheckConstraint('available_rooms <= capacity', name='ck_trip_available_rooms_lte_capacity'),
        sa.CheckConstraint('price_amount >= 0', name='ck_trip_price_amount_non_negative'),
        sa.CheckConstraint('end_date >= start_date', name='ck_trip_end_after_start'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trips_start_date'), 'trips', ['start_date'], unique=False)
    op.create_index(op.f('ix_trips_discount_expires_at'), 'trips', ['discount_expires_at'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('requester_ref', sa.String(length=128), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('unit_price_amount', sa.Integer(), nullable=False),
        sa.Column('total_price_amount', sa.Integer(), nullable=False),
        sa.Column('paid', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('cancelled', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('payment_reference', sa.String(length=64), server_default='PENDING', nullable=False),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('reminder_sent_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('party_size > 0', name='ck_booking_party_size_positive'),
        sa.CheckConstraint('unit_price_amount >= 0', name='ck_booking_unit_price_non_negative'),
        sa.CheckConstraint('total_price_amount >= 0', name='ck_booking_total_price_non_negative'),
        sa.CheckConstraint('length(requester_ref) > 0', name='ck_booking_requester_ref_not_empty'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_trip_id'), 'bookings', ['trip_id'], unique=False)
    op.create_index(op.f('ix_bookings_requester_ref'), 'bookings', ['requester_ref'], unique=False)
    op.create_index(op.f('ix_bookings_cancelled'), 'bookings', ['cancelled'], unique=False)
    op.create_index(
        'uq_booking_active_trip_requester',
        'bookings',
        ['trip_id', 'requester_ref'],
        unique=True,
        postgresql_where=sa.text('NOT cancelled'),
        sqlite_where=sa.text('cancelled = 0'),
    )

    # Create waiting_list_entries table
    op.create_table('waiting_list_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('requester_ref', sa.String(length=128), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('joined_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('notified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('notified_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('length(requester_ref) > 0', name='ck_waiting_list_requester_ref_not_empty'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'requester_ref', name='uq_waiting_list_trip_requester')
    )
    op.create_index(op.f('ix_waiting_list_entries_trip_id'), 'waiting_list_entries', ['trip_id'], unique=False)
    op.create_index(
        op.f('ix_waiting_list_entries_requester_ref'), 'waiting_list_entries', ['requester_ref'], unique=False
    )
    op.create_index(
        op.f('ix_waiting_list_entries_notified_at'), 'waiting_list_entries', ['notified_at'], unique=False
    )
    op.create_index(
        'ix_waiting_list_trip_order', 'waiting_list_entries', ['trip_id', 'joined_at', 'id'], unique=False
    )

    # Create inventory_adjustments table
    op.create_table('inventory_adjustments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('actor', sa.String(length=128), nullable=False),
        sa.Column('available_before', sa.Integer(), nullable=False),
        sa.Column('available_after', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('delta != 0', name='ck_inventory_adjustment_delta_nonzero'),
        sa.CheckConstraint('length(reason) > 0', name='ck_inventory_adjustment_reason_not_empty'),
        sa.CheckConstraint('available_before >= 0', name='ck_inventory_adjustment_before_non_negative'),
        sa.CheckConstraint('available_after >= 0', name='ck_inventory_adjustment_after_non_negative'),
        sa.CheckConstraint(
            'available_after = available_before + delta',
            name='ck_inventory_adjustment_delta_consistency'
        ),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_inventory_adjustments_created_at'), 'inventory_adjustments', ['created_at'], unique=False)
    op.create_index(op.f('ix_inventory_adjustments_trip_id'), 'inventory_adjustments', ['trip_id'], unique=False)

    # Create reviews table
    op.create_table('reviews',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.Integer(), nullable=False),
        sa.Column('requester_ref', sa.String(length=128), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(length=500), server_default='', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_review_rating_range'),
        sa.CheckConstraint('length(requester_ref) > 0', name='ck_review_requester_ref_not_empty'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'requester_ref', name='uq_review_trip_requester')
    )
    op.create_index(op.f('ix_reviews_trip_id'), 'reviews', ['trip_id'], unique=False)
    op.create_index(op.f('ix_reviews_requester_ref'), 'reviews', ['requester_ref'], unique=False)

    # Create admin_settings table
    op.create_table('admin_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_lead_days', sa.Integer(), server_default='7', nullable=False),
        sa.Column('cancellation_deadline_days', sa.Integer(), server_default='5', nullable=False),
        sa.Column('reminder_days', sa.Integer(), server_default='5', nullable=False),
        sa.Column('max_discount_duration_days', sa.Integer(), server_default='7', nullable=False),
        sa.Column('waitlist_notification_expiration_days', sa.Integer(), server_default='3', nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('booking_lead_days BETWEEN 0 AND 365', name='ck_admin_settings_lead_days_range'),
        sa.CheckConstraint(
            'cancellation_deadline_days BETWEEN 0 AND 365',
            name='ck_admin_settings_cancellation_days_range'
        ),
        sa.CheckConstraint('reminder_days BETWEEN 0 AND 365', name='ck_admin_settings_reminder_days_range'),
        sa.CheckConstraint(
            'max_discount_duration_days BETWEEN 1 AND 7',
            name='ck_admin_settings_discount_days_range'
        ),
        sa.CheckConstraint(
            'waitlist_notification_expiration_days BETWEEN 1 AND 14',
            name='ck_admin_settings_waitlist_expiration_range'
        ),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('admin_settings')
    op.drop_table('reviews')
    op.drop_table('inventory_adjustments')
    op.drop_table('waiting_list_entries')
    op.drop_index('uq_booking_active_trip_requester', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('trips')
