"""Create document, extracted_data and document_history tables

Revision ID: 002
Revises: 001
Create Date: 2026-09-28 10:05:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None

DOCUMENT_STATUSES = (
    'uploaded', 'ocr_processing', 'ocr_completed', 'confirmed',
    'rejected', 'reviewed', 'review_rejected',
)

HISTORY_ACTIONS = (
    'uploaded', 'ocr_started', 'ocr_extracted', 'ocr_failed', 'modified',
    'confirmed', 'rejected', 'reviewed', 'review_rejected',
)


def _in_list(values):
    return ", ".join(f"'{v}'" for v in values)


def upgrade():
    # document: one uploaded identity document image
    op.create_table(
        'document',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), server_default=sa.text("'uploaded'"), nullable=False),
        sa.Column('image_object_key', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['user.id'], ondelete='RESTRICT'),
        sa.CheckConstraint("document_type IN ('mynumber_card', 'drivers_license')", name='ck_document_type'),
        sa.CheckConstraint(f"status IN ({_in_list(DOCUMENT_STATUSES)})", name='ck_document_status'),
    )
    op.create_index('ix_document_owner_id', 'document', ['owner_id'])
    # Batch export scans confirmed documents by updated_at window
    op.create_index('ix_document_status_updated_at', 'document', ['status', 'updated_at'])

    op.create_table(
        'extracted_data',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('address', sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column('ocr_executed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('ocr_error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('document_id'),
    )

    op.create_table(
        'document_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('operator_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('changes', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['operator_id'], ['user.id'], ondelete='SET NULL'),
        sa.CheckConstraint(f"action IN ({_in_list(HISTORY_ACTIONS)})", name='ck_document_history_action'),
    )
    op.create_index('ix_document_history_document_created', 'document_history', ['document_id', 'created_at'])

    # History is append-only
    op.execute("""
        CREATE OR REPLACE FUNCTION reject_document_history_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
          RAISE EXCEPTION 'document_history is append-only';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER document_history_append_only
        BEFORE UPDATE OR DELETE ON document_history
        FOR EACH ROW
        EXECUTE FUNCTION reject_document_history_mutation();
    """)

    op.execute("""
        CREATE TRIGGER update_extracted_data_updated_at
        BEFORE UPDATE ON extracted_data
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade():
    op.execute('DROP TRIGGER IF EXISTS update_extracted_data_updated_at ON extracted_data')
    op.execute('DROP TRIGGER IF EXISTS document_history_append_only ON document_history')
    op.execute('DROP FUNCTION IF EXISTS reject_document_history_mutation()')

    op.drop_index('ix_document_history_document_created', table_name='document_history')
    op.drop_table('document_history')
    op.drop_table('extracted_data')
    op.drop_index('ix_document_status_updated_at', table_name='document')
    op.drop_index('ix_document_owner_id', table_name='document')
    op.drop_table('document')
