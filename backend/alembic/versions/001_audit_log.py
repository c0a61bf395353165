"""audit log

Revision ID: 001_audit_log
Revises:
Create Date: 2025-10-27 09:00:00.000000

This migration creates the append-only audit trail table. Every attempted
business operation (create, update, delete, approve, ...) on the procurement
modules is recorded here by the audit recorder.

Critical features:
- Integer identity key (strictly increasing)
- Payload columns stored as TEXT holding serialized JSON
- Indexes for entity history, user history, failed operations and time ranges
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_audit_log'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create audit_log table with indexes."""
    op.create_table(
        'audit_log',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True, nullable=False),

        # Subject reference
        sa.Column('entity_name', sa.String(100), nullable=False),
        sa.Column('entity_id', sa.BigInteger(), nullable=False),

        sa.Column('action', sa.String(20), nullable=False),

        # Actor
        sa.Column('username', sa.String(100), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('session_id', sa.String(100), nullable=True),

        # Timing
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.BigInteger(), nullable=True),

        sa.Column('method_name', sa.String(200), nullable=True),
        sa.Column('description', sa.String(1000), nullable=True),

        # Serialized payloads
        sa.Column('old_values', sa.Text(), nullable=True),
        sa.Column('new_values', sa.Text(), nullable=True),
        sa.Column('parameters', sa.Text(), nullable=True),
        sa.Column('metadata', sa.Text(), nullable=True),

        # Outcome
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),

        # Classification
        sa.Column('module', sa.String(50), nullable=True),
        sa.Column('business_process', sa.String(50), nullable=True),

        # Trail linkage (no foreign key: records are never deleted by the application)
        sa.Column('parent_audit_id', sa.BigInteger(), nullable=True),
    )

    # Entity history ("show all operations on contract 42")
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_name', 'entity_id'])

    # User history and activity summaries
    op.create_index('ix_audit_log_username_timestamp', 'audit_log', ['username', 'timestamp'])

    # Failed operation listing
    op.create_index('ix_audit_log_status_timestamp', 'audit_log', ['status', 'timestamp'])

    # Date range queries and system statistics
    op.create_index('ix_audit_log_timestamp', 'audit_log', ['timestamp'])


def downgrade() -> None:
    """Clean removal of audit_log table."""
    op.drop_index('ix_audit_log_timestamp', table_name='audit_log')
    op.drop_index('ix_audit_log_status_timestamp', table_name='audit_log')
    op.drop_index('ix_audit_log_username_timestamp', table_name='audit_log')
    op.drop_index('ix_audit_log_entity', table_name='audit_log')

    op.drop_table('audit_log')
