"""create creators, content and duplicate_groups tables

Revision ID: 0001_create_content_tables
Revises:
Create Date: 2026-10-16 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_content_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "creators",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "content",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("creator_id", sa.String(length=36), sa.ForeignKey("creators.id", ondelete="CASCADE"), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("platform_content_id", sa.String(length=512), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_body", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("media_urls", sa.JSON(), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reading_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("engagement_metrics", sa.JSON(), nullable=True),
        sa.Column("reference_type", sa.String(length=16), nullable=False, server_default="none"),
        sa.Column("referenced_content", sa.JSON(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("content_simhash", sa.String(length=16), nullable=True),
        sa.Column("duplicate_group_id", sa.String(length=36), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processing_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("creator_id", "platform", "platform_content_id", name="uq_content_identity"),
    )
    op.create_index("ix_content_content_hash", "content", ["content_hash"])
    op.create_index("ix_content_duplicate_group_id", "content", ["duplicate_group_id"])
    op.create_index("ix_content_processing_status", "content", ["processing_status"])
    op.create_index("ix_content_creator_published", "content", ["creator_id", "published_at"])

    op.create_table(
        "duplicate_groups",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "creator_id",
            sa.String(length=36),
            sa.ForeignKey("creators.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column(
            "primary_content_id",
            sa.Integer(),
            sa.ForeignKey("content.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("duplicate_groups")
    op.drop_index("ix_content_creator_published", table_name="content")
    op.drop_index("ix_content_processing_status", table_name="content")
    op.drop_index("ix_content_duplicate_group_id", table_name="content")
    op.drop_index("ix_content_content_hash", table_name="content")
    op.drop_table("content")
    op.drop_table("creators")
