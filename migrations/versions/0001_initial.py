"""initial tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

WEEKDAYS = ('MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY', 'SUNDAY')
STATUSES = ('PRESENT', 'EXCUSED', 'SICK', 'ABSENT')

def upgrade():
    weekday = sa.Enum(*WEEKDAYS, name='weekday')
    attendance_status = sa.Enum(*STATUSES, name='attendance_status')

    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        weekday.create(bind, checkfirst=True)
        attendance_status.create(bind, checkfirst=True)

    op.create_table('class',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
    )
    op.create_table('subject',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
    )
    op.create_table('teacher',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_table('student',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('nis', sa.String(50), nullable=False, unique=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('class.id', ondelete='RESTRICT'), nullable=False),
    )
    op.create_index('ix_student_class_id', 'student', ['class_id'])

    op.create_table('teacher_subject',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teacher.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subject.id', ondelete='RESTRICT'), nullable=False),
        sa.UniqueConstraint('teacher_id', 'subject_id', name='uq_teacher_subject'),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teacher.id', ondelete='SET NULL'), nullable=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('student.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('schedule',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subject.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('class.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teacher.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('day', weekday, nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_schedule_class_day', 'schedule', ['class_id', 'day'])
    op.create_index('ix_schedule_teacher_day', 'schedule', ['teacher_id', 'day'])

    op.create_table('attendance_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('schedule.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('token', sa.String(32), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_attendance_session_schedule_id', 'attendance_session', ['schedule_id'])
    op.create_index('ix_attendance_session_token', 'attendance_session', ['token'], unique=True)

    op.create_table('attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('student.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('schedule.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('attendance_session.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('scanned_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('student_id', 'session_id', name='uq_attendance_student_session'),
    )
    op.create_index('ix_attendance_student_id', 'attendance', ['student_id'])
    op.create_index('ix_attendance_schedule_id', 'attendance', ['schedule_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('entity', sa.String(64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

def downgrade():
    for table in ('audit_logs', 'attendance', 'attendance_session', 'schedule', 'users',
                  'teacher_subject', 'student', 'teacher', 'subject', 'class'):
        op.drop_table(table)
    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        sa.Enum(name='attendance_status').drop(bind, checkfirst=True)
        sa.Enum(name='weekday').drop(bind, checkfirst=True)
