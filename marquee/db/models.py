from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import BIGINT
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marquee.core.db import Base


class SourceVariant(str, enum.Enum):
    external = "external"
    embed = "embed"
    upload = "upload"


class ThumbnailAsset(Base):
    __tablename__ = "thumbnail_assets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    storage_key: Mapped[str] = mapped_column(String(2048), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    size_bytes: Mapped[int | None] = mapped_column(BIGINT, nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    records: Mapped[List["ContentRecord"]] = relationship(back_populates="thumbnail_asset")


class ContentRecord(Base):
    __tablename__ = "content_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_variant: Mapped[SourceVariant] = mapped_column(Enum(SourceVariant), nullable=False)
    external_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    embed_markup: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_file_ref: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Unique at the store level; this is what closes the dedup check-then-act window.
    external_id: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)

    title: Mapped[str | None] = mapped_column(String(500), unique=True, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    duration_display: Mapped[str | None] = mapped_column(String(16), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_new: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    thumbnail_asset_id: Mapped[str | None] = mapped_column(
        ForeignKey("thumbnail_assets.id", ondelete="SET NULL"), nullable=True
    )

    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    categories: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    thumbnail_asset: Mapped[Optional[ThumbnailAsset]] = relationship(back_populates="records", lazy="joined")


__all__ = [
    "SourceVariant",
    "ThumbnailAsset",
    "ContentRecord",
]
