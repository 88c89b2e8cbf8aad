"""Record assembly: merge resolver output, user overrides and stored values.

Precedence for user-facing text (title, description, author):
    non-empty user value > resolved value > previously stored value

System-managed fields (external id, duration, publish date, generated embed
markup, freshness) come from the resolver when resolution succeeded and are
otherwise carried over from the stored record, or left absent on create.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from marquee.core.storage import StoredBlob
from marquee.db.models import SourceVariant

from .classifier import EmbedSubmission, ExternalSubmission, Submission, UploadSubmission
from .resolver import ExternalMetadata

__all__ = [
    "ResolutionStatus",
    "ResolutionOutcome",
    "RecordSnapshot",
    "RecordFields",
    "assemble_record",
]


class ResolutionStatus(str, enum.Enum):
    skipped = "skipped"
    resolved = "resolved"
    degraded = "degraded"
    passthrough = "passthrough"


@dataclass(frozen=True, slots=True)
class ResolutionOutcome:
    """Immutable value threaded through the resolution stages."""

    status: ResolutionStatus = ResolutionStatus.skipped
    external_id: Optional[str] = None
    metadata: Optional[ExternalMetadata] = None
    duration_display: Optional[str] = None
    is_new: bool = False
    thumbnail: Optional[StoredBlob] = None
    warnings: tuple[str, ...] = ()

    @property
    def resolved(self) -> bool:
        return self.status is ResolutionStatus.resolved and self.metadata is not None

    def evolve(self, **changes: Any) -> "ResolutionOutcome":
        return replace(self, **changes)

    def degrade(self, warning: str) -> "ResolutionOutcome":
        return replace(self, status=ResolutionStatus.degraded, warnings=self.warnings + (warning,))

    def warn(self, warning: str) -> "ResolutionOutcome":
        return replace(self, warnings=self.warnings + (warning,))


@dataclass(frozen=True, slots=True)
class RecordSnapshot:
    """Previously stored values of a record, detached from the session."""

    id: str
    source_variant: SourceVariant
    external_url: Optional[str] = None
    embed_markup: Optional[str] = None
    uploaded_file_ref: Optional[str] = None
    external_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    duration_display: Optional[str] = None
    published_at: Optional[datetime] = None
    is_new: bool = False
    is_public: bool = True
    categories: tuple[str, ...] = ()
    thumbnail_asset_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RecordFields:
    """Final field set to commit. ``thumbnail`` is a newly stored blob, if any."""

    source_variant: SourceVariant
    external_url: Optional[str] = None
    embed_markup: Optional[str] = None
    uploaded_file_ref: Optional[str] = None
    external_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    duration_display: Optional[str] = None
    published_at: Optional[datetime] = None
    is_new: bool = False
    is_public: bool = True
    categories: tuple[str, ...] = field(default_factory=tuple)
    thumbnail: Optional[StoredBlob] = None

    def column_values(self) -> dict[str, Any]:
        return {
            "source_variant": self.source_variant,
            "external_url": self.external_url,
            "embed_markup": self.embed_markup,
            "uploaded_file_ref": self.uploaded_file_ref,
            "external_id": self.external_id,
            "title": self.title,
            "description": self.description,
            "author": self.author,
            "duration_display": self.duration_display,
            "published_at": self.published_at,
            "is_new": self.is_new,
            "is_public": self.is_public,
            "categories": list(self.categories),
        }


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def assemble_record(
    submission: Submission,
    outcome: ResolutionOutcome,
    previous: RecordSnapshot | None = None,
) -> RecordFields:
    """Merge the stage outputs into the field set to commit. Performs no I/O."""
    overrides = submission.overrides
    metadata = outcome.metadata if outcome.resolved else None

    title = _first(overrides.title, metadata.title if metadata else None, previous.title if previous else None)
    description = _first(
        overrides.description,
        metadata.description if metadata else None,
        previous.description if previous else None,
    )
    author = _first(overrides.author, metadata.author if metadata else None, previous.author if previous else None)

    if overrides.is_public is not None:
        is_public = overrides.is_public
    else:
        is_public = previous.is_public if previous else True

    if overrides.categories is not None:
        categories = tuple(overrides.categories)
    else:
        categories = previous.categories if previous else ()

    common: dict[str, Any] = {
        "source_variant": submission.variant,
        "title": title,
        "description": description,
        "author": author,
        "is_public": is_public,
        "categories": categories,
        "thumbnail": outcome.thumbnail,
    }

    if isinstance(submission, ExternalSubmission):
        if metadata is not None:
            system: dict[str, Any] = {
                "external_id": outcome.external_id,
                "duration_display": outcome.duration_display,
                "published_at": metadata.published_at,
                "embed_markup": metadata.embed_markup,
                "is_new": outcome.is_new,
            }
        elif previous is not None:
            system = {
                "external_id": previous.external_id,
                "duration_display": previous.duration_display,
                "published_at": previous.published_at,
                "embed_markup": previous.embed_markup,
                "is_new": previous.is_new,
            }
        else:
            system = {}
        return RecordFields(external_url=submission.external_url, **system, **common)

    if isinstance(submission, EmbedSubmission):
        return RecordFields(embed_markup=submission.embed_markup, **common)

    if isinstance(submission, UploadSubmission):
        return RecordFields(uploaded_file_ref=submission.uploaded_file_ref, **common)

    raise TypeError(f"Unsupported submission type: {type(submission).__name__}")
