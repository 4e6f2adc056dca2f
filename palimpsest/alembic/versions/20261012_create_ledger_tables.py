"""create ledger tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-12 09:00:00.000000

Creates content_items, suggestions and change_history. Ledger foreign keys
restrict deletes so history can never be orphaned.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import advanced_alchemy.types


# revision identifiers, used by Alembic.
revision: str = '1a2b3c4d5e6f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('content_items',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('current_content', sa.Text(), nullable=False),
        sa.Column('created_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.Column('updated_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content_items'))
    )

    op.create_table('suggestions',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('content_item_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('proposer_id', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.Enum('correction', 'clarification', 'example', 'other', name='suggestion_kind', native_enum=False, length=32), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('is_applied', sa.Boolean(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('validator_response', sa.Text(), nullable=True),
        sa.Column('processed_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        sa.Column('applied_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        sa.Column('created_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.Column('updated_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['content_item_id'], ['content_items.id'], name=op.f('fk_suggestions_content_item_id_content_items'), ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_suggestions'))
    )
    op.create_index(op.f('ix_suggestions_content_item_id'), 'suggestions', ['content_item_id'], unique=False)
    op.create_index(op.f('ix_suggestions_proposer_id'), 'suggestions', ['proposer_id'], unique=False)
    op.create_index(op.f('ix_suggestions_is_approved'), 'suggestions', ['is_approved'], unique=False)
    op.create_index(op.f('ix_suggestions_processed_at'), 'suggestions', ['processed_at'], unique=False)

    op.create_table('change_history',
        sa.Column('id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('content_item_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('suggestion_id', advanced_alchemy.types.guid.GUID(length=16), nullable=False),
        sa.Column('editor_id', sa.String(length=255), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.Enum('suggestion', 'rollback', 'manual', name='change_type', native_enum=False, length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('diff', sa.Text(), nullable=False),
        sa.Column('before_content', sa.Text(), nullable=False),
        sa.Column('after_content', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('rolled_back_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=True),
        sa.Column('rolled_back_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.Column('updated_at', advanced_alchemy.types.datetime.DateTimeUTC(timezone=True), nullable=False),
        sa.CheckConstraint('is_active OR (rolled_back_at IS NOT NULL AND rolled_back_by IS NOT NULL)', name=op.f('ck_change_history_rollback_marked')),
        sa.ForeignKeyConstraint(['content_item_id'], ['content_items.id'], name=op.f('fk_change_history_content_item_id_content_items'), ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['suggestion_id'], ['suggestions.id'], name=op.f('fk_change_history_suggestion_id_suggestions'), ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_change_history')),
        sa.UniqueConstraint('content_item_id', 'sequence', name='uq_change_history_item_sequence'),
        sa.UniqueConstraint('suggestion_id', name=op.f('uq_change_history_suggestion_id'))
    )
    op.create_index(op.f('ix_change_history_content_item_id'), 'change_history', ['content_item_id'], unique=False)
    op.create_index(op.f('ix_change_history_editor_id'), 'change_history', ['editor_id'], unique=False)
    op.create_index(op.f('ix_change_history_is_active'), 'change_history', ['is_active'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_change_history_is_active'), table_name='change_history')
    op.drop_index(op.f('ix_change_history_editor_id'), table_name='change_history')
    op.drop_index(op.f('ix_change_history_content_item_id'), table_name='change_history')
    op.drop_table('change_history')
    op.drop_index(op.f('ix_suggestions_processed_at'), table_name='suggestions')
    op.drop_index(op.f('ix_suggestions_is_approved'), table_name='suggestions')
    op.drop_index(op.f('ix_suggestions_proposer_id'), table_name='suggestions')
    op.drop_index(op.f('ix_suggestions_content_item_id'), table_name='suggestions')
    op.drop_table('suggestions')
    op.drop_table('content_items')
