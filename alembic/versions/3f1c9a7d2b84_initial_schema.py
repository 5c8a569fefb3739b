"""initial schema with booking overlap exclusion

Revision ID: 3f1c9a7d2b84
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b84'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


userrole_enum = sa.Enum('GUEST', 'HOST', name='userrole')
bookingstatus_enum = sa.Enum('CONFIRMED', 'COMPLETED', name='bookingstatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', userrole_enum, nullable=False, server_default='GUEST'),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_picture_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_users_user_id', 'users', ['user_id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'properties',
        sa.Column('property_id', sa.Integer(), primary_key=True),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('address', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False),
        sa.Column('zip_code', sa.String(20), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('price_per_night', sa.Numeric(10, 2), nullable=False),
        sa.Column('num_guests', sa.Integer(), nullable=False),
        sa.Column('num_bedrooms', sa.Integer(), nullable=False),
        sa.Column('num_beds', sa.Integer(), nullable=False),
        sa.Column('num_bathrooms', sa.Float(), nullable=False),
        sa.Column('property_type', sa.String(50), nullable=False),
        sa.Column('amenities', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint('price_per_night > 0', name='ck_properties_price_positive'),
        sa.CheckConstraint('num_guests >= 1', name='ck_properties_num_guests_min'),
    )
    op.create_index('ix_properties_property_id', 'properties', ['property_id'])
    op.create_index('ix_properties_host_id', 'properties', ['host_id'])
    op.create_index('ix_properties_city', 'properties', ['city'])

    op.create_table(
        'bookings',
        sa.Column('booking_id', sa.Integer(), primary_key=True),
        sa.Column('guest_id', sa.Integer(), sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.property_id'), nullable=False),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('total_guests', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', bookingstatus_enum, nullable=False, server_default='CONFIRMED'),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint('check_out_date > check_in_date', name='ck_bookings_dates_ordered'),
        sa.CheckConstraint('total_guests > 0', name='ck_bookings_total_guests_positive'),
    )
    op.create_index('ix_bookings_booking_id', 'bookings', ['booking_id'])
    op.create_index('ix_bookings_guest_id', 'bookings', ['guest_id'])
    op.create_index('ix_bookings_property_id', 'bookings', ['property_id'])
    op.create_index('ix_bookings_property_dates', 'bookings', ['property_id', 'check_in_date', 'check_out_date'])
    op.create_index('ix_bookings_status_check_out', 'bookings', ['status', 'check_out_date'])

    # --- No two stays on one property may share a night ---
    # daterange() defaults to '[)' bounds, so back-to-back stays are allowed.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_no_overlap "
        "EXCLUDE USING gist (property_id WITH =, daterange(check_in_date, check_out_date) WITH &&)"
    )

    op.create_table(
        'reviews',
        sa.Column('review_id', sa.Integer(), primary_key=True),
        sa.Column('guest_id', sa.Integer(), sa.ForeignKey('users.user_id'), nullable=False),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.property_id'), nullable=False),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.booking_id'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
        sa.UniqueConstraint('guest_id', 'booking_id', name='uq_reviews_guest_booking'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating_range'),
    )
    op.create_index('ix_reviews_review_id', 'reviews', ['review_id'])
    op.create_index('ix_reviews_guest_id', 'reviews', ['guest_id'])
    op.create_index('ix_reviews_property_id', 'reviews', ['property_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('reviews')
    op.drop_table('bookings')
    op.drop_table('properties')
    op.drop_table('users')

    bookingstatus_enum.drop(op.get_bind(), checkfirst=True)
    userrole_enum.drop(op.get_bind(), checkfirst=True)
