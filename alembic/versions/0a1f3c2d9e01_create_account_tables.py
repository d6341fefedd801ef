"""create account, profile, affiliate, token, otp and notification tables

Revision ID: 0a1f3c2d9e01
Revises:
Create Date: 2026-10-19 10:12:04.117520

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0a1f3c2d9e01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_TYPES = ('PLAYER', 'SUPPORTER', 'COMPANY', 'CLUB', 'ADMIN')


def _profile_columns() -> list:
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('onboarding_steps', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema - initial account tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('user_type', sa.Enum(*USER_TYPES, name='user_type'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACTIVE', name='user_status'), nullable=False),
        sa.Column('uses_federated_auth', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('password_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('email', name=op.f('uq_users_email')),
    )

    op.create_table(
        'clubs',
        *_profile_columns(),
        sa.Column('ref_code', sa.String(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_clubs_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_clubs')),
        sa.UniqueConstraint('user_id', name=op.f('uq_clubs_user_id')),
        sa.UniqueConstraint('ref_code', name=op.f('uq_clubs_ref_code')),
    )

    op.create_table(
        'players',
        *_profile_columns(),
        sa.Column('club_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_players_user_id_users'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name=op.f('fk_players_club_id_clubs')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_players')),
        sa.UniqueConstraint('user_id', name=op.f('uq_players_user_id')),
    )

    for table in ('companies', 'admins'):
        op.create_table(
            table,
            *_profile_columns(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f(f'fk_{table}_user_id_users'), ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id', name=op.f(f'pk_{table}')),
            sa.UniqueConstraint('user_id', name=op.f(f'uq_{table}_user_id')),
        )

    op.create_table(
        'affiliates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('club_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.Enum(*USER_TYPES, name='affiliate_type'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACTIVE', name='affiliate_status'), nullable=False),
        sa.Column('ref_code', sa.String(), nullable=False),
        sa.Column('purpose', sa.String(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_affiliates_user_id_users'), ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['club_id'], ['clubs.id'], name=op.f('fk_affiliates_club_id_clubs'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_affiliates')),
        sa.UniqueConstraint('email', 'club_id', name=op.f('uq_affiliates_email')),
    )
    op.create_index(op.f('ix_affiliates_email'), 'affiliates', ['email'], unique=False)

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('jti', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_refresh_tokens_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_refresh_tokens')),
        sa.UniqueConstraint('token_hash', name=op.f('uq_refresh_tokens_token_hash')),
    )
    op.create_index(op.f('ix_refresh_tokens_jti'), 'refresh_tokens', ['jti'], unique=False)
    op.create_index('ix_refresh_tokens_user_live', 'refresh_tokens', ['user_id', 'revoked', 'expires_at'], unique=False)

    op.create_table(
        'otp_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('affiliate_id', sa.Integer(), nullable=True),
        sa.Column('hashed_code', sa.String(), nullable=False),
        sa.Column('type', sa.Enum('EMAIL_VERIFICATION', 'PASSWORD_RESET', name='otp_type'), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'USED', 'EXPIRED', 'REVOKED', name='otp_status'), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_otp_codes_user_id_users'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], name=op.f('fk_otp_codes_affiliate_id_affiliates'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_otp_codes')),
    )
    op.create_index(op.f('ix_otp_codes_email'), 'otp_codes', ['email'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('type', sa.Enum('SYSTEM', name='notification_type'), nullable=False),
        sa.Column('status', sa.Enum('UNREAD', 'READ', name='notification_status'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_notifications_user_id_users'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema - drop every account table and enum."""
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')
    op.drop_index(op.f('ix_otp_codes_email'), table_name='otp_codes')
    op.drop_table('otp_codes')
    op.drop_index('ix_refresh_tokens_user_live', table_name='refresh_tokens')
    op.drop_index(op.f('ix_refresh_tokens_jti'), table_name='refresh_tokens')
    op.drop_table('refresh_tokens')
    op.drop_index(op.f('ix_affiliates_email'), table_name='affiliates')
    op.drop_table('affiliates')
    for table in ('admins', 'companies', 'players', 'clubs', 'users'):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in (
        'notification_status',
        'notification_type',
        'otp_status',
        'otp_type',
        'affiliate_status',
        'affiliate_type',
        'user_status',
        'user_type',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
