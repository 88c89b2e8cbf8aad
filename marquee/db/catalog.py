from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marquee.core.storage import StoredBlob
from marquee.db.models import ContentRecord, ThumbnailAsset
from marquee.ingest.assembler import RecordFields, RecordSnapshot


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on round-trip; stored timestamps are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def snapshot_from_record(record: ContentRecord) -> RecordSnapshot:
    return RecordSnapshot(
        id=record.id,
        source_variant=record.source_variant,
        external_url=record.external_url,
        embed_markup=record.embed_markup,
        uploaded_file_ref=record.uploaded_file_ref,
        external_id=record.external_id,
        title=record.title,
        description=record.description,
        author=record.author,
        duration_display=record.duration_display,
        published_at=ensure_utc(record.published_at),
        is_new=record.is_new,
        is_public=record.is_public,
        categories=tuple(record.categories or ()),
        thumbnail_asset_id=record.thumbnail_asset_id,
    )


class CatalogStore:
    """Catalog store backed by an async SQLAlchemy session.

    Writes are staged on the session; nothing is visible to other callers
    until ``commit`` succeeds, so one ingestion call is one transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, record_id: str) -> ContentRecord | None:
        return await self.session.get(ContentRecord, record_id)

    async def find_by_external_id(self, external_id: str) -> ContentRecord | None:
        stmt = select(ContentRecord).where(ContentRecord.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_by_title(self, title: str) -> ContentRecord | None:
        stmt = select(ContentRecord).where(ContentRecord.title == title)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    def _attach_thumbnail(self, record: ContentRecord, blob: StoredBlob) -> None:
        asset = ThumbnailAsset(
            id=uuid4().hex,
            storage_key=blob.key,
            url=blob.url,
            size_bytes=blob.size_bytes,
            content_type=blob.content_type,
        )
        self.session.add(asset)
        record.thumbnail_asset = asset

    def insert(self, fields: RecordFields) -> ContentRecord:
        record = ContentRecord(id=uuid4().hex, **fields.column_values())
        if fields.thumbnail is not None:
            self._attach_thumbnail(record, fields.thumbnail)
        self.session.add(record)
        return record

    def update(self, record: ContentRecord, fields: RecordFields) -> ContentRecord:
        values = fields.column_values()
        # The source variant is fixed at creation.
        values.pop("source_variant")
        for name, value in values.items():
            setattr(record, name, value)
        if fields.thumbnail is not None:
            self._attach_thumbnail(record, fields.thumbnail)
        return record

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh(self, record: ContentRecord) -> ContentRecord:
        await self.session.refresh(record)
        return record


__all__ = ["CatalogStore", "ensure_utc", "snapshot_from_record"]
