"""create_document_table

Revision ID: 3f1d2c9a7b10
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1d2c9a7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the document table holding every collection."""
    op.create_table(
        'document',
        sa.Column('collection', sa.String(), primary_key=True),
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
    )
    op.create_index('ix_document_collection', 'document', ['collection'])


def downgrade() -> None:
    """Drop the document table."""
    op.drop_index('ix_document_collection', table_name='document')
    op.drop_table('document')
