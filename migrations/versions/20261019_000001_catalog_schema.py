from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    source_variant_enum = sa.Enum("external", "embed", "upload", name="sourcevariant")

    op.create_table(
        "thumbnail_assets",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("storage_key", sa.String(length=2048), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("content_type", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "content_records",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("source_variant", source_variant_enum, nullable=False),
        sa.Column("external_url", sa.Text(), nullable=True),
        sa.Column("embed_markup", sa.Text(), nullable=True),
        sa.Column("uploaded_file_ref", sa.String(length=2048), nullable=True),
        sa.Column("external_id", sa.String(length=32), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=True),
        sa.Column("duration_display", sa.String(length=16), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_new", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "thumbnail_asset_id",
            sa.String(length=64),
            sa.ForeignKey("thumbnail_assets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("external_id", name="uq_content_records_external_id"),
        sa.UniqueConstraint("title", name="uq_content_records_title"),
    )


def downgrade() -> None:
    op.drop_table("content_records")
    op.drop_table("thumbnail_assets")
    sa.Enum(name="sourcevariant").drop(op.get_bind(), checkfirst=True)
