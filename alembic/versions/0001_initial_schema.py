"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name, *args, **kwargs):
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]


def _tenant(branch=False):
    columns = [_uuid('company_id', sa.ForeignKey('companies.id'), nullable=False, index=True)]
    if branch:
        columns.append(_uuid('branch_id', sa.ForeignKey('branches.id'), nullable=True, index=True))
    return columns


def upgrade() -> None:
    # Tenancy
    op.create_table('companies',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('users',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('invite_token', sa.String(), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_table('branches',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('user_branches',
        _uuid('id', primary_key=True),
        _uuid('user_id', sa.ForeignKey('users.id'), nullable=False),
        _uuid('branch_id', sa.ForeignKey('branches.id'), nullable=False),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.UniqueConstraint('user_id', 'branch_id', name='uq_user_branch'),
    )
    op.create_table('settings',
        _uuid('id', primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False, unique=True),
        sa.Column('center_name', sa.String(), nullable=False),
        sa.Column('logo', sa.String(), nullable=True),
        sa.Column('theme_color', sa.String(), nullable=True),
        sa.Column('timezone', sa.String(), nullable=False),
        *_timestamps(),
    )

    # Roles and permissions
    op.create_table('permissions',
        _uuid('id', primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('resource', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table('roles',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_system', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'name', name='uq_role_company_name'),
    )
    op.create_table('role_permissions',
        _uuid('role_id', sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        _uuid('permission_id', sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table('user_roles',
        _uuid('user_id', sa.ForeignKey('users.id'), primary_key=True),
        _uuid('role_id', sa.ForeignKey('roles.id'), primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        _uuid('assigned_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    # School
    op.create_table('teachers',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('rooms',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('color', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('groups',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        _uuid('teacher_id', sa.ForeignKey('teachers.id'), nullable=True),
        _uuid('room_id', sa.ForeignKey('rooms.id'), nullable=True),
        sa.Column('schedule', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('color', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('students',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('subjects', sa.JSON(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('group_students',
        _uuid('group_id', sa.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table('student_notes',
        _uuid('id', primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('note', sa.Text(), nullable=False),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table('student_activity_logs',
        _uuid('id', primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('activity_type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True,
                  index=True),
    )
    op.create_table('notifications',
        _uuid('id', primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Billing catalogue
    op.create_table('subscription_types',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('lessons_count', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('can_freeze', sa.Boolean(), nullable=True),
        sa.Column('billing_type', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table('student_subscriptions',
        _uuid('id', primary_key=True),
        *_tenant(),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        _uuid('subscription_type_id', sa.ForeignKey('subscription_types.id'), nullable=False),
        _uuid('group_id', sa.ForeignKey('groups.id', ondelete='SET NULL'), nullable=True),
        _uuid('teacher_id', sa.ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_lessons', sa.Integer(), nullable=False),
        sa.Column('used_lessons', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('price_per_lesson', sa.Numeric(12, 2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('paid_till', sa.Date(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('freeze_days_remaining', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_table('subscription_freezes',
        _uuid('id', primary_key=True),
        _uuid('subscription_id', sa.ForeignKey('student_subscriptions.id', ondelete='CASCADE'), nullable=False,
              index=True),
        sa.Column('freeze_start', sa.Date(), nullable=False),
        sa.Column('freeze_end', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    # Schedule
    op.create_table('lessons',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        _uuid('teacher_id', sa.ForeignKey('teachers.id'), nullable=True, index=True),
        _uuid('group_id', sa.ForeignKey('groups.id', ondelete='SET NULL'), nullable=True, index=True),
        _uuid('room_id', sa.ForeignKey('rooms.id'), nullable=True, index=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_table('lesson_students',
        _uuid('lesson_id', sa.ForeignKey('lessons.id', ondelete='CASCADE'), primary_key=True),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table('lesson_attendance',
        _uuid('id', primary_key=True),
        _uuid('company_id', sa.ForeignKey('companies.id'), nullable=False),
        _uuid('lesson_id', sa.ForeignKey('lessons.id', ondelete='CASCADE'), nullable=False, index=True),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        _uuid('subscription_id', sa.ForeignKey('student_subscriptions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _uuid('marked_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('marked_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.UniqueConstraint('lesson_id', 'student_id', name='uq_attendance_lesson_student'),
    )
    op.create_table('subscription_consumptions',
        _uuid('id', primary_key=True),
        _uuid('subscription_id', sa.ForeignKey('student_subscriptions.id', ondelete='CASCADE'), nullable=False,
              index=True),
        _uuid('attendance_id', sa.ForeignKey('lesson_attendance.id', ondelete='CASCADE'), nullable=False),
        _uuid('lesson_id', sa.ForeignKey('lessons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('units', sa.Integer(), nullable=False),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.UniqueConstraint('subscription_id', 'attendance_id', name='uq_consumption_subscription_attendance'),
    )

    # Finance
    op.create_table('payment_transactions',
        _uuid('id', primary_key=True),
        *_tenant(),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True,
                  index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table('student_balances',
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), primary_key=True),
        *_tenant(),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table('tariffs',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=True),
        sa.Column('lesson_count', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_table('debt_records',
        _uuid('id', primary_key=True),
        *_tenant(),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table('discounts',
        _uuid('id', primary_key=True),
        *_tenant(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('value', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_table('student_discounts',
        _uuid('id', primary_key=True),
        *_tenant(),
        _uuid('student_id', sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False, index=True),
        _uuid('discount_id', sa.ForeignKey('discounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    # Leads
    op.create_table('leads',
        _uuid('id', primary_key=True),
        *_tenant(branch=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _uuid('assigned_to', sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
    )
    op.create_table('lead_activities',
        _uuid('id', primary_key=True),
        _uuid('lead_id', sa.ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('activity_type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        _uuid('created_by', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )
    op.create_table('lead_tasks',
        _uuid('id', primary_key=True),
        _uuid('lead_id', sa.ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        _uuid('assigned_to', sa.ForeignKey('users.id'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        'lead_tasks', 'lead_activities', 'leads',
        'student_discounts', 'discounts', 'debt_records', 'tariffs', 'student_balances', 'payment_transactions',
        'subscription_consumptions', 'lesson_attendance', 'lesson_students', 'lessons',
        'subscription_freezes', 'student_subscriptions', 'subscription_types',
        'notifications', 'student_activity_logs', 'student_notes', 'group_students',
        'students', 'groups', 'rooms', 'teachers',
        'user_roles', 'role_permissions', 'roles', 'permissions',
        'settings', 'user_branches', 'branches',
    ):
        op.drop_table(table)
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('companies')
