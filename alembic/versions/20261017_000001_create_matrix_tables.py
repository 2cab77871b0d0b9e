"""Create participants, queue_slots and donations tables

Revision ID: 20261017_000001
Revises: 
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261017_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'participants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('current_level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('can_reenter', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('n3_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('current_level >= 1 AND current_level <= 3', name='check_participant_level_range'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_participants_email', 'participants', ['email'], unique=True)
    op.create_index('ix_participants_current_level', 'participants', ['current_level'])

    op.create_table(
        'queue_slots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('participant_id', sa.Integer(), nullable=True),
        sa.Column('is_receiver', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('donations_received', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_received', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('donations_required', sa.Integer(), nullable=False),
        sa.Column('level_completed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('level_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('passed_participant_ids', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('level', 'position', name='uq_queue_slot_level_position'),
        sa.UniqueConstraint('level', 'participant_id', name='uq_queue_slot_level_participant'),
        sa.CheckConstraint('level >= 1 AND level <= 3', name='check_queue_slot_level_range'),
        sa.CheckConstraint('donations_received >= 0', name='check_queue_slot_received_non_negative'),
        sa.CheckConstraint('total_received >= 0', name='check_queue_slot_total_non_negative'),
    )
    op.create_index('ix_queue_slots_participant_id', 'queue_slots', ['participant_id'])
    op.create_index(
        'idx_queue_slot_open_receivers',
        'queue_slots',
        ['level', 'level_completed', 'position'],
    )

    op.create_table(
        'donations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('donor_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='PENDING_PAYMENT'),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('proof_url', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_reported', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('report_reason', sa.Text(), nullable=True),
        sa.Column('reported_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['donor_id'], ['participants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['receiver_id'], ['participants.id'], ondelete='CASCADE'),
        sa.CheckConstraint('amount > 0', name='check_donation_amount_positive'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_donation_donor_status', 'donations', ['donor_id', 'status'])
    op.create_index('idx_donation_receiver_status', 'donations', ['receiver_id', 'status'])
    op.create_index('idx_donation_status_created', 'donations', ['status', 'created_at'])
    op.create_index(
        'idx_donation_type_status_completed',
        'donations',
        ['type', 'status', 'completed_at'],
    )


def downgrade() -> None:
    op.drop_index('idx_donation_type_status_completed', table_name='donations')
    op.drop_index('idx_donation_status_created', table_name='donations')
    op.drop_index('idx_donation_receiver_status', table_name='donations')
    op.drop_index('idx_donation_donor_status', table_name='donations')
    op.drop_table('donations')

    op.drop_index('idx_queue_slot_open_receivers', table_name='queue_slots')
    op.drop_index('ix_queue_slots_participant_id', table_name='queue_slots')
    op.drop_table('queue_slots')

    op.drop_index('ix_participants_current_level', table_name='participants')
    op.drop_index('ix_participants_email', table_name='participants')
    op.drop_table('participants')
