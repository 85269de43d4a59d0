"""Create batch_export_run and batch_export_item tables

Revision ID: 003
Revises: 002
Create Date: 2026-09-28 10:10:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'batch_export_run',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('executed_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('export_date', sa.Date(), nullable=False),
        sa.Column('csv_object_key', sa.Text(), nullable=True),
        sa.Column('document_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('status', sa.String(16), server_default=sa.text("'success'"), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('success', 'failed')", name='ck_batch_export_run_status'),
    )
    op.create_index('ix_batch_export_run_executed_at', 'batch_export_run', ['executed_at'])

    op.create_table(
        'batch_export_item',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('batch_export_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['batch_export_id'], ['batch_export_run.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='RESTRICT'),
    )
    op.create_index('ix_batch_export_item_run', 'batch_export_item', ['batch_export_id'])

    op.execute("""
        CREATE TRIGGER update_batch_export_run_updated_at
        BEFORE UPDATE ON batch_export_run
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade():
    op.execute('DROP TRIGGER IF EXISTS update_batch_export_run_updated_at ON batch_export_run')
    op.drop_index('ix_batch_export_item_run', table_name='batch_export_item')
    op.drop_table('batch_export_item')
    op.drop_index('ix_batch_export_run_executed_at', table_name='batch_export_run')
    op.drop_table('batch_export_run')
