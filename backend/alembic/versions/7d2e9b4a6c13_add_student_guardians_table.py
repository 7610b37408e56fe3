"""add_student_guardians_table

Moves access from students.guardian_id to the student_guardians table.
Every legacy owner becomes that student's primary guardian.

Revision ID: 7d2e9b4a6c13
Revises: 4c1f2a7d9e01
Create Date: 2026-09-02 11:40:02.918330

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text


# revision identifiers, used by Alembic.
revision = '7d2e9b4a6c13'
down_revision = '4c1f2a7d9e01'
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)

    if not inspector.has_table('student_guardians'):
        op.create_table(
            'student_guardians',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('guardian_id', sa.Integer(), nullable=False),
            sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.ForeignKeyConstraint(['student_id'], ['students.id'], name='fk_student_guardians_student_id'),
            sa.ForeignKeyConstraint(['guardian_id'], ['profiles.id'], name='fk_student_guardians_guardian_id'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('student_id', 'guardian_id', name='uq_student_guardians_student_guardian')
        )
        op.create_index('ix_student_guardians_id', 'student_guardians', ['id'], unique=False)
        op.create_index('ix_student_guardians_student_id', 'student_guardians', ['student_id'], unique=False)
        op.create_index('ix_student_guardians_guardian_id', 'student_guardians', ['guardian_id'], unique=False)

    student_columns = [c['name'] for c in inspector.get_columns('students')]
    if 'guardian_id' in student_columns:
        # Backfill: the single legacy guardian is the primary
        conn.execute(text("""
            INSERT INTO student_guardians (student_id, guardian_id, is_primary)
            SELECT s.id, s.guardian_id, :is_primary
            FROM students s
            WHERE s.guardian_id IS NOT NULL
              AND NOT EXISTS (
                  SELECT 1 FROM student_guardians sg
                  WHERE sg.student_id = s.id AND sg.guardian_id = s.guardian_id
              )
        """), {"is_primary": True})

        for fk in inspector.get_foreign_keys('students'):
            if fk.get('constrained_columns') == ['guardian_id'] and fk.get('name'):
                op.drop_constraint(fk['name'], 'students', type_='foreignkey')
        with op.batch_alter_table('students') as batch_op:
            batch_op.drop_column('guardian_id')


def downgrade() -> None:
    conn = op.get_bind()

    with op.batch_alter_table('students') as batch_op:
        batch_op.add_column(sa.Column('guardian_id', sa.Integer(), nullable=True))

    # Only the primary guardian survives a downgrade
    conn.execute(text("""
        UPDATE students
        SET guardian_id = (
            SELECT sg.guardian_id FROM student_guardians sg
            WHERE sg.student_id = students.id AND sg.is_primary = :is_primary
        )
    """), {"is_primary": True})

    op.drop_index('ix_student_guardians_guardian_id', table_name='student_guardians')
    op.drop_index('ix_student_guardians_student_id', table_name='student_guardians')
    op.drop_index('ix_student_guardians_id', table_name='student_guardians')
    op.drop_table('student_guardians')
