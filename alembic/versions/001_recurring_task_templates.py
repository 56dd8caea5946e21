"""Recurring task templates, task instances and propagation audit tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'recurring_task',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('type', sa.String(50), nullable=False, server_default='other'),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('assigned_to', sa.Integer, nullable=True),
        sa.Column('created_by', sa.Integer, nullable=True),
        sa.Column('estimated_time', sa.Integer, nullable=True),
        sa.Column('frequency', sa.String(20), nullable=False),
        sa.Column('days_of_week', sa.JSON, nullable=True),
        sa.Column('day_of_month', sa.Integer, nullable=True),
        sa.Column('start_date', sa.Date, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('checklist_template', sa.JSON, nullable=True),
        sa.Column('automation', sa.JSON, nullable=True),
        sa.Column('version_number', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_recurring_task_location', 'recurring_task', ['location'])

    op.create_table(
        'task',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('type', sa.String(50), nullable=False, server_default='other'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('assigned_to', sa.Integer, nullable=True),
        sa.Column('created_by', sa.Integer, nullable=True),
        sa.Column('estimated_time', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('task_date', sa.Date, nullable=True),
        sa.Column('due_date', sa.Date, nullable=True),
        sa.Column('recurring_task_id', sa.Integer,
                  sa.ForeignKey('recurring_task.id', ondelete='SET NULL'), nullable=True),
        sa.Column('frequency', sa.String(20), nullable=True),
        sa.Column('template_version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('is_modified_after_creation', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('modified_from_template_at', sa.DateTime, nullable=True),
        sa.Column('is_from_deleted_recurring', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('deleted_recurring_task_title', sa.String(200), nullable=True),
        sa.Column('pending_change_id', sa.Integer, nullable=True),
        sa.Column('acknowledged_template_version', sa.Integer, nullable=True),
        sa.Column('needs_manager_review', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('progress', sa.Integer, nullable=False, server_default='0'),
        sa.Column('checklist', sa.JSON, nullable=True),
        sa.Column('data', sa.JSON, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('paused_at', sa.DateTime, nullable=True),
        sa.Column('skipped_at', sa.DateTime, nullable=True),
        sa.Column('skip_reason', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_task_status', 'task', ['status'])
    op.create_index('ix_task_location', 'task', ['location'])
    op.create_index('ix_task_task_date', 'task', ['task_date'])
    op.create_index('ix_task_due_date', 'task', ['due_date'])
    op.create_index('ix_task_recurring_task_id', 'task', ['recurring_task_id'])
    # One generated instance per template per day
    op.create_index('ix_task_recurring_task_day', 'task', ['recurring_task_id', 'task_date'])

    op.create_table(
        'template_change',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('recurring_task_id', sa.Integer, nullable=False),
        sa.Column('recurring_task_title', sa.String(200), nullable=True),
        sa.Column('changed_by', sa.Integer, nullable=True),
        sa.Column('change_type', sa.String(20), nullable=False, server_default='update'),
        sa.Column('strategy', sa.String(20), nullable=False),
        sa.Column('changed_fields', sa.JSON, nullable=True),
        sa.Column('old_values', sa.JSON, nullable=True),
        sa.Column('new_values', sa.JSON, nullable=True),
        sa.Column('from_version', sa.Integer, nullable=False),
        sa.Column('to_version', sa.Integer, nullable=False),
        sa.Column('affected_task_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('conflict_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('propagation_status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('changed_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_template_change_recurring_task_id', 'template_change', ['recurring_task_id'])
    op.create_index('ix_template_change_changed_at', 'template_change', ['changed_at'])

    op.create_table(
        'notification',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('related_id', sa.Integer, nullable=True),
        sa.Column('related_type', sa.String(50), nullable=True),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_notification_user_id', 'notification', ['user_id'])

    op.create_table(
        'conflict_resolution',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('task_id', sa.Integer, nullable=False),
        sa.Column('recurring_task_id', sa.Integer, nullable=True),
        sa.Column('change_id', sa.Integer, nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('template_changes', sa.JSON, nullable=True),
        sa.Column('resolved_by', sa.Integer, nullable=True),
        sa.Column('from_version', sa.Integer, nullable=True),
        sa.Column('to_version', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_conflict_resolution_task_id', 'conflict_resolution', ['task_id'])


def downgrade():
    op.drop_table('conflict_resolution')
    op.drop_table('notification')
    op.drop_table('template_change')
    op.drop_table('task')
    op.drop_table('recurring_task')
