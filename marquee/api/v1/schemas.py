from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from marquee.db.catalog import ensure_utc
from marquee.db.models import ContentRecord, SourceVariant
from marquee.ingest.classifier import IntakePayload


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IntakeFields(BaseModel):
    external_url: Optional[str] = Field(default=None, json_schema_extra={"example": "https://youtu.be/dQw4w9WgXcQ"})
    embed_markup: Optional[str] = Field(default=None, description="HTML embed code for non-YouTube platforms.")
    uploaded_file_ref: Optional[str] = Field(default=None, description="Blob key returned by POST /v1/uploads.")
    title: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = None
    author: Optional[str] = Field(default=None, max_length=255)
    thumbnail_url: Optional[str] = Field(default=None, description="Remote thumbnail to fetch (embed source only).")
    is_public: Optional[bool] = None
    categories: Optional[List[str]] = None

    def to_payload(self) -> IntakePayload:
        data = self.model_dump(exclude={"source_variant"})
        if data.get("categories") is not None:
            data["categories"] = tuple(data["categories"])
        return IntakePayload(source_variant=getattr(self, "source_variant", None), **data)


class VideoCreateRequest(IntakeFields):
    source_variant: SourceVariant


class VideoUpdateRequest(IntakeFields):
    source_variant: Optional[SourceVariant] = Field(default=None, description="Must match the stored variant when given.")


class ThumbnailPointer(BaseModel):
    url: str
    storage_key: str
    size_bytes: Optional[int]
    content_type: Optional[str]


class VideoResponse(BaseModel):
    id: str
    source_variant: SourceVariant
    external_url: Optional[str]
    embed_markup: Optional[str]
    uploaded_file_ref: Optional[str]
    external_id: Optional[str]
    title: Optional[str]
    description: Optional[str]
    author: Optional[str]
    duration_display: Optional[str]
    published_at: Optional[datetime]
    is_new: bool
    is_public: bool
    categories: List[str] = Field(default_factory=list)
    thumbnail: Optional[ThumbnailPointer] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ContentRecord) -> "VideoResponse":
        asset = record.thumbnail_asset
        return cls(
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
            categories=list(record.categories or []),
            thumbnail=ThumbnailPointer(
                url=asset.url,
                storage_key=asset.storage_key,
                size_bytes=asset.size_bytes,
                content_type=asset.content_type,
            )
            if asset
            else None,
            created_at=ensure_utc(record.created_at),
            updated_at=ensure_utc(record.updated_at),
        )


class IngestionResponse(BaseModel):
    record: VideoResponse
    state: str = Field(default="committed", description="Terminal ingestion state.")
    states: List[str] = Field(default_factory=list, description="States visited, in order.")
    resolution: str = Field(description="skipped | resolved | degraded | passthrough")
    warnings: List[str] = Field(default_factory=list)


class UploadResponse(BaseModel):
    uploaded_file_ref: str
    url: str
    size_bytes: int
    content_type: str
