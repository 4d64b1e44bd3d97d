"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - accounts: owners, ban state and quota overrides
    - links: slug -> destination, with lifecycle limits and click counter
    - click_events: append-only visit log
    - api_keys: digests of programmatic access keys
    - rate_limit_records: accepted API requests inside the burst window
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'accounts' not in existing_tables:
        op.create_table(
            'accounts',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('email', sa.String(length=320), nullable=False),
            sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
            sa.Column('banned', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('banned_at', sa.BigInteger(), nullable=True),
            sa.Column('api_quota_limit', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    if 'links' not in existing_tables:
        op.create_table(
            'links',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('slug', sa.String(length=64), nullable=False),
            sa.Column('url', sa.Text(), nullable=False),
            sa.Column('owner_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.Column('click_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_clicked_at', sa.BigInteger(), nullable=True),
            sa.Column('expires_at', sa.BigInteger(), nullable=True),
            sa.Column('max_clicks', sa.Integer(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_links_slug', 'links', ['slug'], unique=True)
        op.create_index('ix_links_owner_id', 'links', ['owner_id'])
        op.create_index('ix_links_owner_created', 'links', ['owner_id', 'created_at'])

    if 'click_events' not in existing_tables:
        op.create_table(
            'click_events',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('link_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.Column('referrer', sa.String(length=255), nullable=False),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_click_events_link_id', 'click_events', ['link_id'])
        op.create_index('ix_click_events_link_created', 'click_events', ['link_id', 'created_at'])

    if 'api_keys' not in existing_tables:
        op.create_table(
            'api_keys',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('owner_id', sa.Integer(), nullable=False),
            sa.Column('key_hash', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.Column('last_used_at', sa.BigInteger(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_api_keys_owner_id', 'api_keys', ['owner_id'])
        op.create_index('ix_api_keys_key_hash', 'api_keys', ['key_hash'], unique=True)

    if 'rate_limit_records' not in existing_tables:
        op.create_table(
            'rate_limit_records',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('api_key_id', sa.Integer(), nullable=False),
            sa.Column('timestamp', sa.BigInteger(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(
            'ix_rate_limit_records_key_time',
            'rate_limit_records',
            ['api_key_id', 'timestamp']
        )


def downgrade() -> None:
    """
    Drop all tables and their indexes.
    """
    op.drop_index('ix_rate_limit_records_key_time', table_name='rate_limit_records')
    op.drop_table('rate_limit_records')

    op.drop_index('ix_api_keys_key_hash', table_name='api_keys')
    op.drop_index('ix_api_keys_owner_id', table_name='api_keys')
    op.drop_table('api_keys')

    op.drop_index('ix_click_events_link_created', table_name='click_events')
    op.drop_index('ix_click_events_link_id', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_links_owner_created', table_name='links')
    op.drop_index('ix_links_owner_id', table_name='links')
    op.drop_index('ix_links_slug', table_name='links')
    op.drop_table('links')

    op.drop_index('ix_accounts_email', table_name='accounts')
    op.drop_table('accounts')
