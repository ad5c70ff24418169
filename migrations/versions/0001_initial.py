"""initial tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

# имена совпадают с теми, что SQLAlchemy выводит из Enum-классов моделей
permission_level = sa.Enum('FULL', 'ACADEMIC', 'USERS', 'READONLY', name='permissionlevel')
group_status = sa.Enum('PLANNED', 'ACTIVE', 'CLOSED', name='coursegroupstatus')
group_type = sa.Enum('REGULAR', 'INTENSIVE', name='coursegrouptype')
day_of_week = sa.Enum('MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY', 'SUNDAY',
                      name='dayofweek')
payment_status = sa.Enum('PENDING', 'PAID', 'FAILED', name='paymentstatus')
request_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='requeststatus')

ENUMS = (permission_level, group_status, group_type, day_of_week, payment_status, request_status)


def _account_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(150), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
    ]


def upgrade():
    # типы enum создаются вместе с таблицами (каждый используется один раз)
    op.create_table('admin',
        *_account_columns(),
        sa.Column('permission_level', permission_level, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.String(500), nullable=True),
    )
    op.create_index('ix_admin_email', 'admin', ['email'], unique=True)

    op.create_table('teacher', *_account_columns())
    op.create_index('ix_teacher_email', 'teacher', ['email'], unique=True)

    op.create_table('student',
        *_account_columns(),
        sa.Column('major', sa.String(100), nullable=False),
    )
    op.create_index('ix_student_email', 'student', ['email'], unique=True)
    op.create_index('ix_student_major', 'student', ['major'])

    op.create_table('subject',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('major', sa.String(100), nullable=False),
        sa.Column('course_year', sa.Integer(), nullable=False),
        sa.UniqueConstraint('name', 'major', name='uq_subject_name_major'),
        sa.CheckConstraint('course_year BETWEEN 1 AND 6', name='ck_subject_course_year'),
    )
    op.create_index('ix_subject_major', 'subject', ['major'])

    op.create_table('course_group',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subject.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teacher.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', group_status, nullable=False),
        sa.Column('type', group_type, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='30'),
        sa.CheckConstraint('price > 0', name='ck_course_group_price_positive'),
        sa.CheckConstraint('max_capacity >= 1', name='ck_course_group_capacity'),
    )
    op.create_index('ix_course_group_subject_id', 'course_group', ['subject_id'])
    op.create_index('ix_course_group_teacher_id', 'course_group', ['teacher_id'])
    op.create_index('ix_course_group_status_capacity', 'course_group', ['status', 'max_capacity'])

    op.create_table('group_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('course_group_id', sa.Integer(), sa.ForeignKey('course_group.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('day_of_week', day_of_week, nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('classroom', sa.String(50), nullable=True),
        sa.UniqueConstraint('course_group_id', 'day_of_week', 'start_time', name='uq_session_group_day_start'),
        sa.CheckConstraint('end_time > start_time', name='ck_session_time_range'),
    )
    op.create_index('ix_group_session_course_group_id', 'group_session', ['course_group_id'])
    op.create_index('ix_session_classroom_day', 'group_session', ['classroom', 'day_of_week'])

    op.create_table('enrollment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('student.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_group_id', sa.Integer(), sa.ForeignKey('course_group.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('enrollment_date', sa.DateTime(), nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.UniqueConstraint('student_id', 'course_group_id', name='uq_enrollment_student_group'),
    )
    op.create_index('ix_enrollment_student_id', 'enrollment', ['student_id'])
    op.create_index('ix_enrollment_course_group_id', 'enrollment', ['course_group_id'])

    op.create_table('group_request',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('student.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subject.id', ondelete='CASCADE'), nullable=False),
        sa.Column('request_date', sa.DateTime(), nullable=False),
        sa.Column('status', request_status, nullable=False),
        sa.Column('admin_comments', sa.String(500), nullable=True),
    )
    op.create_index('ix_group_request_student_id', 'group_request', ['student_id'])
    op.create_index('ix_group_request_subject_id', 'group_request', ['subject_id'])
    op.create_index('ix_group_request_subject_status', 'group_request', ['subject_id', 'status'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('actor', sa.String(64), nullable=True),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('entity', sa.String(64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
    )


def downgrade():
    for table in ('audit_logs', 'group_request', 'enrollment', 'group_session',
                  'course_group', 'subject', 'student', 'teacher', 'admin'):
        op.drop_table(table)
    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        for e in ENUMS:
            e.drop(bind, checkfirst=True)
