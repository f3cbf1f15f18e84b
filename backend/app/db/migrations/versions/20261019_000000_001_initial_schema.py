############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# 001_initial_schema.py: Initial database schema migration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Groups table
    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ratio', sa.Float(), nullable=False, server_default='1.0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('quota', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('used_quota', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_group_active', 'users', ['group_id', 'is_active'])

    # API Keys table
    op.create_table(
        'api_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('key_hash', sa.String(255), nullable=False),
        sa.Column('key_prefix', sa.String(16), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('status', sa.Enum('active', 'revoked', 'expired', name='apikeystatus'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('usage_count', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('used_quota', sa.BigInteger(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key_hash'),
    )
    op.create_index('ix_api_keys_key_prefix', 'api_keys', ['key_prefix'])
    op.create_index('ix_api_keys_status_user', 'api_keys', ['status', 'user_id'])

    # Tasks table
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('task_id', sa.String(191), nullable=False),
        sa.Column('platform', sa.Enum('ali', 'generic', name='taskplatform'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('api_key_id', sa.Integer(), nullable=True),
        sa.Column('group', sa.String(50), nullable=True),
        sa.Column('action', sa.String(40), nullable=False, server_default='generate'),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column(
            'status',
            sa.Enum('not_start', 'submitted', 'queued', 'in_progress', 'failure', 'success', 'unknown',
                    name='taskstatus'),
            nullable=False,
        ),
        sa.Column('progress', sa.String(20), nullable=False, server_default='0%'),
        sa.Column('fail_reason', sa.Text(), nullable=True),
        sa.Column('submit_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finish_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quota', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('consume_quota', sa.Boolean(), nullable=False, default=False),
        sa.Column('relay_info', sa.JSON(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['api_key_id'], ['api_keys.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_task_id', 'tasks', ['task_id'])
    op.create_index('ix_tasks_user_created', 'tasks', ['user_id', 'created_at'])
    op.create_index('ix_tasks_platform_status', 'tasks', ['platform', 'status'])

    # Consume logs table
    op.create_table(
        'consume_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('api_key_id', sa.Integer(), nullable=True),
        sa.Column('model_name', sa.String(100), nullable=False),
        sa.Column('group', sa.String(50), nullable=True),
        sa.Column('quota', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('prompt_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completion_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_stream', sa.Boolean(), nullable=False, default=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('other', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['api_key_id'], ['api_keys.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_consume_logs_user_id', 'consume_logs', ['user_id'])
    op.create_index('ix_consume_logs_user_created', 'consume_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('consume_logs')
    op.drop_table('tasks')
    op.drop_table('api_keys')
    op.drop_table('users')
    op.drop_table('groups')
