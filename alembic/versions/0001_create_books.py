"""Create the books table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_create_books"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cover_locator", sa.String(length=512), nullable=True),
        sa.Column("file_locator", sa.String(length=512), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_books_owner_id", "books", ["owner_id"])
    op.create_index("ix_books_category", "books", ["category"])
    op.create_index("ix_books_created_at", "books", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_books_created_at", table_name="books")
    op.drop_index("ix_books_category", table_name="books")
    op.drop_index("ix_books_owner_id", table_name="books")
    op.drop_table("books")
