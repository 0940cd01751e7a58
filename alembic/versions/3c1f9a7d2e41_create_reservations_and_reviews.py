"""create_reservations_and_reviews

Revision ID: 3c1f9a7d2e41
Revises:
Create Date: 2026-10-19 10:12:44.518302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7d2e41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

reservation_status = sa.Enum(
    'pending', 'confirmed', 'cancelled', 'completed', 'no_show', name='reservation_status'
)
review_status = sa.Enum('draft', 'published', 'hidden', 'deleted', name='review_status')


def upgrade():
    op.create_table(
        'reservations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('salon_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', reservation_status, nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('deposit_amount', sa.Integer()),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True)),
        sa.Column('confirmed_by', sa.String(length=255)),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        sa.Column('cancelled_by', sa.String(length=255)),
        sa.Column('cancellation_reason', sa.Text()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('completed_by', sa.String(length=255)),
        sa.Column('no_show_at', sa.DateTime(timezone=True)),
        sa.Column('no_show_by', sa.String(length=255)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_by', sa.String(length=255)),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_by', sa.String(length=255)),
        sa.CheckConstraint('start_time < end_time', name='ck_reservations_time_range'),
        sa.CheckConstraint('total_amount >= 0', name='ck_reservations_total_amount'),
    )
    op.create_index('ix_reservations_id', 'reservations', ['id'])
    op.create_index('ix_reservations_salon_id', 'reservations', ['salon_id'])
    op.create_index('ix_reservations_customer_id', 'reservations', ['customer_id'])
    op.create_index('ix_reservations_staff_start', 'reservations', ['staff_id', 'start_time'])

    if op.get_bind().dialect.name == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(
            "ALTER TABLE reservations ADD CONSTRAINT reservations_no_overlap_per_staff "
            "EXCLUDE USING gist (staff_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
            "WHERE (status IN ('pending', 'confirmed'))"
        )

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('salon_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('reservation_id', sa.Integer(), sa.ForeignKey('reservations.id'), nullable=False),
        sa.Column('staff_id', sa.Integer()),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('service_rating', sa.Integer()),
        sa.Column('staff_rating', sa.Integer()),
        sa.Column('atmosphere_rating', sa.Integer()),
        sa.Column('comment', sa.Text()),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('helpful_count', sa.Integer(), nullable=False),
        sa.Column('status', review_status, nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True)),
        sa.Column('verified_at', sa.DateTime(timezone=True)),
        sa.Column('verified_by', sa.String(length=255)),
        sa.Column('hidden_at', sa.DateTime(timezone=True)),
        sa.Column('hidden_by', sa.String(length=255)),
        sa.Column('hidden_reason', sa.Text()),
        sa.Column('deleted_at', sa.DateTime(timezone=True)),
        sa.Column('deleted_by', sa.String(length=255)),
        sa.Column('deleted_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_by', sa.String(length=255)),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_by', sa.String(length=255)),
        sa.UniqueConstraint('reservation_id', name='uq_reviews_reservation_id'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating'),
        sa.CheckConstraint('service_rating IS NULL OR service_rating BETWEEN 1 AND 5', name='ck_reviews_service_rating'),
        sa.CheckConstraint('staff_rating IS NULL OR staff_rating BETWEEN 1 AND 5', name='ck_reviews_staff_rating'),
        sa.CheckConstraint(
            'atmosphere_rating IS NULL OR atmosphere_rating BETWEEN 1 AND 5', name='ck_reviews_atmosphere_rating'
        ),
        sa.CheckConstraint('helpful_count >= 0', name='ck_reviews_helpful_count'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_salon_id', 'reviews', ['salon_id'])
    op.create_index('ix_reviews_customer_id', 'reviews', ['customer_id'])
    op.create_index('ix_reviews_staff_id', 'reviews', ['staff_id'])


def downgrade():
    op.drop_table('reviews')
    op.drop_table('reservations')

    if op.get_bind().dialect.name == 'postgresql':
        review_status.drop(op.get_bind(), checkfirst=True)
        reservation_status.drop(op.get_bind(), checkfirst=True)
