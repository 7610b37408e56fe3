"""add_profiles_and_students_tables

Revision ID: 4c1f2a7d9e01
Revises:
Create Date: 2026-09-02 10:14:37.201845

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1f2a7d9e01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)

    if not inspector.has_table('profiles'):
        op.create_table(
            'profiles',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='guardian'),
            sa.Column('name', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_profiles_id', 'profiles', ['id'], unique=False)
        op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    # Databases from the single-guardian era already have students (with
    # students.guardian_id); 7d2e9b4a6c13 converts those.
    if not inspector.has_table('students'):
        op.create_table(
            'students',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.String(length=32), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('birth_date', sa.Date(), nullable=True),
            sa.Column('graduation_date', sa.Date(), nullable=True),
            sa.Column('school_id', sa.Integer(), nullable=True),
            sa.Column('profile_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], name='fk_students_profile_id'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('profile_id', name='uq_students_profile_id')
        )
        op.create_index('ix_students_id', 'students', ['id'], unique=False)
        op.create_index('ix_students_student_id', 'students', ['student_id'], unique=True)
        op.create_index('ix_students_school_id', 'students', ['school_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_students_school_id', table_name='students')
    op.drop_index('ix_students_student_id', table_name='students')
    op.drop_index('ix_students_id', table_name='students')
    op.drop_table('students')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_index('ix_profiles_id', table_name='profiles')
    op.drop_table('profiles')
