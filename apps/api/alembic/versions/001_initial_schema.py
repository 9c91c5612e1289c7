"""initial schema: users, content templates, active pointer, day entries, audit log

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'app_user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('role', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'user_space',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('wake_time', sa.Text(), nullable=True),
        sa.Column('view_mode', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'content_template',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('role', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('content', JSONDocument, nullable=False),
        sa.Column('legacy_fields', JSONDocument, nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['app_user.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('role', 'version', name='uq_content_template_role_version'),
    )
    op.create_index('ix_content_template_role', 'content_template', ['role'])
    # At most one active template per role, enforced by the database.
    op.create_index(
        'uq_content_template_one_active_per_role',
        'content_template',
        ['role'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active'),
    )

    op.create_table(
        'active_template',
        sa.Column('role', sa.Text(), primary_key=True),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['template_id'], ['content_template.id']),
    )

    op.create_table(
        'day_entry',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('master_checklist', JSONDocument, nullable=False),
        sa.Column('habit_break_checklist', JSONDocument, nullable=False),
        sa.Column('workout_checklist', JSONDocument, nullable=False),
        sa.Column('time_blocks', JSONDocument, nullable=False),
        sa.Column('todo_list', JSONDocument, nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=True),
        sa.Column('template_version', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_id'], ['content_template.id']),
        sa.UniqueConstraint('user_id', 'day', name='uq_day_entry_user_day'),
    )
    op.create_index('ix_day_entry_user_id', 'day_entry', ['user_id'])

    op.create_table(
        'admin_audit_event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('target', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('payload', JSONDocument, nullable=False),
        sa.ForeignKeyConstraint(['actor_user_id'], ['app_user.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_admin_audit_event_created_at', 'admin_audit_event', ['created_at'])
    op.create_index('ix_admin_audit_event_actor_user_id', 'admin_audit_event', ['actor_user_id'])
    op.create_index('ix_admin_audit_event_action', 'admin_audit_event', ['action'])


def downgrade() -> None:
    op.drop_index('ix_admin_audit_event_action', table_name='admin_audit_event')
    op.drop_index('ix_admin_audit_event_actor_user_id', table_name='admin_audit_event')
    op.drop_index('ix_admin_audit_event_created_at', table_name='admin_audit_event')
    op.drop_table('admin_audit_event')
    op.drop_index('ix_day_entry_user_id', table_name='day_entry')
    op.drop_table('day_entry')
    op.drop_table('active_template')
    op.drop_index('uq_content_template_one_active_per_role', table_name='content_template')
    op.drop_index('ix_content_template_role', table_name='content_template')
    op.drop_table('content_template')
    op.drop_table('user_space')
    op.drop_table('app_user')
