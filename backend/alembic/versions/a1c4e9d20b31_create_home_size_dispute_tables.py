"""create home size dispute tables

Revision ID: a1c4e9d20b31
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = 'a1c4e9d20b31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DISPUTE_STATUSES = (
    'pending_homeowner',
    'approved',
    'pending_owner',
    'owner_approved',
    'owner_denied',
    'expired',
)
OPEN_ONLY = "status IN ('pending_homeowner', 'pending_owner')"


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('first_name', sa.String(), nullable=True),
            sa.Column('last_name', sa.String(), nullable=True),
            sa.Column(
                'user_type',
                sa.Enum('CLEANER', 'HOMEOWNER', 'OWNER', 'HR', name='usertype'),
                nullable=False,
            ),
            sa.Column('is_active', sa.Boolean(), nullable=True),
            sa.Column('false_claim_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('false_home_size_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('owner_private_notes', sa.Text(), nullable=True),
            *_timestamps(),
        )
        op.create_index('ix_users_id', 'users', ['id'])
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
    else:
        # Existing user tables only need the trust counters and notes
        cols = {c['name'] for c in sa.inspect(bind).get_columns('users')}
        if 'false_claim_count' not in cols:
            op.add_column('users', sa.Column('false_claim_count', sa.Integer(), nullable=False, server_default='0'))
        if 'false_home_size_count' not in cols:
            op.add_column('users', sa.Column('false_home_size_count', sa.Integer(), nullable=False, server_default='0'))
        if 'owner_private_notes' not in cols:
            op.add_column('users', sa.Column('owner_private_notes', sa.Text(), nullable=True))

    if 'homes' not in tables:
        op.create_table(
            'homes',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('homeowner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('num_beds', sa.Integer(), nullable=False),
            sa.Column('num_baths', sa.Numeric(3, 1), nullable=False),
            sa.Column('address', sa.String(), nullable=True),
            sa.Column('nickname', sa.String(), nullable=True),
            *_timestamps(),
        )
        op.create_index('ix_homes_id', 'homes', ['id'])
        op.create_index('ix_homes_homeowner_id', 'homes', ['homeowner_id'])

    if 'appointments' not in tables:
        op.create_table(
            'appointments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('home_id', sa.Integer(), sa.ForeignKey('homes.id'), nullable=False),
            sa.Column('homeowner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=False),
            sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.text('FALSE')),
            sa.Column('assigned_cleaner_ids', sa.JSON(), nullable=False),
            *_timestamps(),
        )
        op.create_index('ix_appointments_id', 'appointments', ['id'])
        op.create_index('ix_appointments_home_id', 'appointments', ['home_id'])
        op.create_index('ix_appointments_homeowner_id', 'appointments', ['homeowner_id'])

    op.create_table(
        'home_size_dispute_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('appointment_id', sa.Integer(), sa.ForeignKey('appointments.id'), nullable=False),
        sa.Column('home_id', sa.Integer(), sa.ForeignKey('homes.id'), nullable=False),
        sa.Column('cleaner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('homeowner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('resolver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('original_beds', sa.Integer(), nullable=False),
        sa.Column('original_baths', sa.Numeric(3, 1), nullable=False),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('reported_beds', sa.Integer(), nullable=False),
        sa.Column('reported_baths', sa.Numeric(3, 1), nullable=False),
        sa.Column('recalculated_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('price_delta', sa.Numeric(10, 2), nullable=False),
        sa.Column('cleaner_note', sa.Text(), nullable=True),
        sa.Column('homeowner_response_text', sa.Text(), nullable=True),
        sa.Column('resolver_note', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*DISPUTE_STATUSES, name='homesizedisputestatus'),
            nullable=False,
        ),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('homeowner_responded_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_home_size_dispute_requests_id', 'home_size_dispute_requests', ['id'])
    for col in ('appointment_id', 'home_id', 'cleaner_id', 'homeowner_id'):
        op.create_index(f'ix_home_size_dispute_requests_{col}', 'home_size_dispute_requests', [col])
    op.create_index(
        'ix_home_size_disputes_status_expires',
        'home_size_dispute_requests',
        ['status', 'expires_at'],
    )
    op.create_index(
        'uq_home_size_disputes_open_appointment',
        'home_size_dispute_requests',
        ['appointment_id'],
        unique=True,
        sqlite_where=sa.text(OPEN_ONLY),
        postgresql_where=sa.text(OPEN_ONLY),
    )

    op.create_table(
        'home_size_evidence_photos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'dispute_request_id',
            sa.Integer(),
            sa.ForeignKey('home_size_dispute_requests.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'room_type',
            sa.Enum('bedroom', 'bathroom', name='homesizeroomtype'),
            nullable=False,
        ),
        sa.Column('room_number', sa.Integer(), nullable=False),
        sa.Column('image_blob', sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_home_size_evidence_photos_id', 'home_size_evidence_photos', ['id'])
    op.create_index(
        'ix_home_size_evidence_photos_dispute_request_id',
        'home_size_evidence_photos',
        ['dispute_request_id'],
    )

    if 'outbox_events' not in tables:
        op.create_table(
            'outbox_events',
            sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
            sa.Column('topic', sa.String(length=255), nullable=False),
            sa.Column('payload_json', sa.Text(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('due_at', sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index('ix_outbox_undelivered_created', 'outbox_events', ['delivered_at', 'created_at'])
        op.create_index('ix_outbox_topic_delivered', 'outbox_events', ['topic', 'delivered_at'])


def downgrade() -> None:
    op.drop_table('home_size_evidence_photos')
    op.drop_table('home_size_dispute_requests')
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        sa.Enum(name='homesizeroomtype').drop(bind, checkfirst=True)
        sa.Enum(name='homesizedisputestatus').drop(bind, checkfirst=True)
