from __future__ import annotations

from datetime import datetime, timezone

from marquee.core.storage import StoredBlob
from marquee.db.models import SourceVariant
from marquee.ingest.assembler import RecordSnapshot, ResolutionOutcome, ResolutionStatus, assemble_record
from marquee.ingest.classifier import IntakePayload, classify_submission
from marquee.ingest.resolver import ExternalMetadata, build_embed_markup

PUBLISHED = datetime(2024, 1, 1, tzinfo=timezone.utc)
METADATA = ExternalMetadata(
    title="Resolved title",
    description="Resolved description",
    thumbnail_url="https://i.ytimg.com/vi/abcdefghijk/maxresdefault.jpg",
    author="Channel",
    published_at=PUBLISHED,
    duration_raw="PT4M13S",
    embed_markup=build_embed_markup("abcdefghijk"),
)
BLOB = StoredBlob(
    key="thumbnails/youtube-thumbnail-abcdefghijk.jpg",
    url="/media/thumbnails/youtube-thumbnail-abcdefghijk.jpg",
    size_bytes=10,
    content_type="image/jpeg",
)


def _external(**overrides):
    return classify_submission(
        IntakePayload(source_variant="external", external_url="https://youtu.be/abcdefghijk", **overrides)
    )


def _resolved() -> ResolutionOutcome:
    return ResolutionOutcome(
        status=ResolutionStatus.resolved,
        external_id="abcdefghijk",
        metadata=METADATA,
        duration_display="04:13",
        is_new=True,
        thumbnail=BLOB,
    )


def test_resolved_values_fill_unset_user_fields():
    fields = assemble_record(_external(), _resolved())
    assert fields.source_variant is SourceVariant.external
    assert fields.title == "Resolved title"
    assert fields.description == "Resolved description"
    assert fields.author == "Channel"
    assert fields.external_id == "abcdefghijk"
    assert fields.duration_display == "04:13"
    assert fields.published_at == PUBLISHED
    assert fields.is_new is True
    assert "youtube.com/embed/abcdefghijk" in fields.embed_markup
    assert fields.thumbnail == BLOB
    assert fields.is_public is True
    assert fields.categories == ()


def test_user_values_win_over_resolved_values():
    fields = assemble_record(_external(title="Mine", author="Me"), _resolved())
    assert fields.title == "Mine"
    assert fields.author == "Me"
    assert fields.description == "Resolved description"


def test_degraded_create_leaves_system_fields_absent():
    outcome = ResolutionOutcome(external_id="abcdefghijk").degrade("metadata_unavailable")
    fields = assemble_record(_external(title="Manual"), outcome)
    assert fields.title == "Manual"
    assert fields.external_id is None
    assert fields.duration_display is None
    assert fields.published_at is None
    assert fields.embed_markup is None
    assert fields.is_new is False


def test_passthrough_update_keeps_stored_values():
    previous = RecordSnapshot(
        id="rec-1",
        source_variant=SourceVariant.external,
        external_url="https://youtu.be/abcdefghijk",
        embed_markup="<iframe></iframe>",
        external_id="abcdefghijk",
        title="Stored title",
        description="Stored description",
        author="Stored author",
        duration_display="04:13",
        published_at=PUBLISHED,
        is_new=True,
        is_public=False,
        categories=("music",),
    )
    outcome = ResolutionOutcome(status=ResolutionStatus.passthrough)
    fields = assemble_record(_external(description="Edited"), outcome, previous)
    assert fields.title == "Stored title"
    assert fields.description == "Edited"
    assert fields.external_id == "abcdefghijk"
    assert fields.duration_display == "04:13"
    assert fields.is_new is True
    assert fields.is_public is False
    assert fields.categories == ("music",)
    assert fields.thumbnail is None


def test_embed_and_upload_only_set_their_own_source_field():
    embed = classify_submission(
        IntakePayload(source_variant="embed", embed_markup="<iframe></iframe>", external_url="https://youtu.be/x")
    )
    fields = assemble_record(embed, ResolutionOutcome())
    assert fields.embed_markup == "<iframe></iframe>"
    assert fields.external_url is None
    assert fields.uploaded_file_ref is None

    upload = classify_submission(
        IntakePayload(source_variant="upload", uploaded_file_ref="videos/a/b.mp4", is_public=False)
    )
    fields = assemble_record(upload, ResolutionOutcome())
    assert fields.uploaded_file_ref == "videos/a/b.mp4"
    assert fields.embed_markup is None
    assert fields.is_public is False
    assert fields.column_values()["categories"] == []
