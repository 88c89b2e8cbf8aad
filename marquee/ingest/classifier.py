"""Source classification: turn a raw intake payload into a typed submission.

Each submission arm only carries the fields that are legal for its source
variant. Fields that belong to another variant are dropped here, so later
stages never see a "present but irrelevant" value.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Union

from marquee.db.models import SourceVariant

from .errors import SubmissionValidationError

__all__ = [
    "IntakePayload",
    "UserOverrides",
    "ExternalSubmission",
    "EmbedSubmission",
    "UploadSubmission",
    "Submission",
    "classify_submission",
    "coerce_variant",
]

_MISSING_MESSAGES = {
    SourceVariant.external: "For the external source, the URL is required.",
    SourceVariant.embed: "For the embed source, the embed code is required.",
    SourceVariant.upload: "For the upload source, the uploaded file is required.",
}


@dataclass(frozen=True, slots=True)
class IntakePayload:
    """Raw, loosely-typed submission as received from a caller."""

    source_variant: SourceVariant | str | None = None
    external_url: Optional[str] = None
    embed_markup: Optional[str] = None
    uploaded_file_ref: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_public: Optional[bool] = None
    categories: Optional[tuple[str, ...]] = None

    def with_fallbacks(self, **fallbacks: object) -> "IntakePayload":
        """Return a copy where unset fields take the supplied fallback values."""
        updates = {name: value for name, value in fallbacks.items() if getattr(self, name) is None}
        return replace(self, **updates) if updates else self


@dataclass(frozen=True, slots=True)
class UserOverrides:
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    is_public: Optional[bool] = None
    categories: Optional[tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class ExternalSubmission:
    external_url: str
    overrides: UserOverrides = field(default_factory=UserOverrides)
    variant: SourceVariant = field(default=SourceVariant.external, init=False)


@dataclass(frozen=True, slots=True)
class EmbedSubmission:
    embed_markup: str
    thumbnail_url: Optional[str] = None
    overrides: UserOverrides = field(default_factory=UserOverrides)
    variant: SourceVariant = field(default=SourceVariant.embed, init=False)


@dataclass(frozen=True, slots=True)
class UploadSubmission:
    uploaded_file_ref: str
    overrides: UserOverrides = field(default_factory=UserOverrides)
    variant: SourceVariant = field(default=SourceVariant.upload, init=False)


Submission = Union[ExternalSubmission, EmbedSubmission, UploadSubmission]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def coerce_variant(raw: SourceVariant | str | None) -> SourceVariant | None:
    if isinstance(raw, SourceVariant):
        return raw
    if not raw:
        return None
    try:
        return SourceVariant(str(raw).strip().lower())
    except ValueError:
        return None


def classify_submission(payload: IntakePayload) -> Submission:
    """Validate ``payload`` against its declared variant and return the typed arm.

    Raises:
        SubmissionValidationError: listing every violation; nothing is applied.
    """
    errors: list[str] = []
    variant = coerce_variant(payload.source_variant)
    if variant is None:
        allowed = ", ".join(item.value for item in SourceVariant)
        errors.append(f"A source variant is required (one of: {allowed}).")
        raise SubmissionValidationError(errors)

    source_value = {
        SourceVariant.external: payload.external_url,
        SourceVariant.embed: payload.embed_markup,
        SourceVariant.upload: payload.uploaded_file_ref,
    }[variant]
    source_value = _clean(source_value)
    if source_value is None:
        errors.append(_MISSING_MESSAGES[variant])

    if errors:
        raise SubmissionValidationError(errors)

    overrides = UserOverrides(
        title=_clean(payload.title),
        description=_clean(payload.description),
        author=_clean(payload.author),
        is_public=payload.is_public,
        categories=tuple(payload.categories) if payload.categories is not None else None,
    )

    if variant is SourceVariant.external:
        return ExternalSubmission(external_url=source_value, overrides=overrides)
    if variant is SourceVariant.embed:
        return EmbedSubmission(
            embed_markup=source_value,
            thumbnail_url=_clean(payload.thumbnail_url),
            overrides=overrides,
        )
    return UploadSubmission(uploaded_file_ref=source_value, overrides=overrides)
