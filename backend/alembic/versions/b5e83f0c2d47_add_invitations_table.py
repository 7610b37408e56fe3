"""add_invitations_table

Revision ID: b5e83f0c2d47
Revises: 7d2e9b4a6c13
Create Date: 2026-09-03 09:05:51.337104

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text


# revision identifiers, used by Alembic.
revision = 'b5e83f0c2d47'
down_revision = '7d2e9b4a6c13'
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)

    if not inspector.has_table('invitations'):
        op.create_table(
            'invitations',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('inviter_id', sa.Integer(), nullable=False),
            sa.Column('token', sa.String(length=255), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('pending_key', sa.String(length=300), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('accepted_by', sa.Integer(), nullable=True),
            sa.Column('reminded_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.ForeignKeyConstraint(['student_id'], ['students.id'], name='fk_invitations_student_id'),
            sa.ForeignKeyConstraint(['inviter_id'], ['profiles.id'], name='fk_invitations_inviter_id'),
            sa.ForeignKeyConstraint(['accepted_by'], ['profiles.id'], name='fk_invitations_accepted_by'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('pending_key', name='uq_invitations_pending_key')
        )
        op.create_index('ix_invitations_id', 'invitations', ['id'], unique=False)
        op.create_index('ix_invitations_email', 'invitations', ['email'], unique=False)
        op.create_index('ix_invitations_student_id', 'invitations', ['student_id'], unique=False)
        op.create_index('ix_invitations_status', 'invitations', ['status'], unique=False)
        op.create_index('ix_invitations_token', 'invitations', ['token'], unique=True)
        return

    # Legacy invitations table: add the columns the state machine needs
    columns = [c['name'] for c in inspector.get_columns('invitations')]
    with op.batch_alter_table('invitations') as batch_op:
        if 'pending_key' not in columns:
            batch_op.add_column(sa.Column('pending_key', sa.String(length=300), nullable=True))
        if 'accepted_by' not in columns:
            batch_op.add_column(sa.Column('accepted_by', sa.Integer(), nullable=True))
        if 'reminded_at' not in columns:
            batch_op.add_column(sa.Column('reminded_at', sa.DateTime(timezone=True), nullable=True))

    conn.execute(text("UPDATE invitations SET email = LOWER(TRIM(email))"))

    # Keep only the newest pending invitation per (student, email)
    conn.execute(text("""
        UPDATE invitations
        SET status = 'expired'
        WHERE status = 'pending'
          AND id NOT IN (
              SELECT keep_id FROM (
                  SELECT MAX(id) AS keep_id FROM invitations
                  WHERE status = 'pending'
                  GROUP BY student_id, email
              ) newest
          )
    """))
    if conn.dialect.name == 'mysql':
        conn.execute(text("""
            UPDATE invitations SET pending_key = CONCAT(student_id, ':', email)
            WHERE status = 'pending'
        """))
    else:
        conn.execute(text("""
            UPDATE invitations SET pending_key = CAST(student_id AS VARCHAR(20)) || ':' || email
            WHERE status = 'pending'
        """))

    with op.batch_alter_table('invitations') as batch_op:
        batch_op.create_unique_constraint('uq_invitations_pending_key', ['pending_key'])


def downgrade() -> None:
    op.drop_index('ix_invitations_token', table_name='invitations')
    op.drop_index('ix_invitations_status', table_name='invitations')
    op.drop_index('ix_invitations_student_id', table_name='invitations')
    op.drop_index('ix_invitations_email', table_name='invitations')
    op.drop_index('ix_invitations_id', table_name='invitations')
    op.drop_table('invitations')
