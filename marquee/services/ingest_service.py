"""Ingestion orchestration for catalog video records.

Invariants:
- One call is one transaction: fatal failures roll back and leave the catalog untouched.
- Blobs stored by a call that rolls back are deleted again.
- External resolution and thumbnail failures degrade the call; they never abort it.
- Updates that resubmit an unchanged external URL make no external call.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marquee.core.config import Settings
from marquee.core.logging import get_logger
from marquee.core.storage import Storage
from marquee.db.catalog import CatalogStore, snapshot_from_record
from marquee.db.models import ContentRecord, SourceVariant
from marquee.ingest.assembler import RecordFields, RecordSnapshot, ResolutionOutcome, ResolutionStatus, assemble_record
from marquee.ingest.classifier import (
    EmbedSubmission,
    ExternalSubmission,
    IntakePayload,
    Submission,
    classify_submission,
    coerce_variant,
)
from marquee.ingest.dedup import IngestionMode, ensure_unique_external_id
from marquee.ingest.duration import format_duration
from marquee.ingest.errors import (
    DuplicateExternalIdError,
    RecordNotFoundError,
    StoreWriteError,
    SubmissionValidationError,
)
from marquee.ingest.freshness import is_fresh
from marquee.ingest.identifiers import extract_external_id
from marquee.ingest.resolver import YouTubeMetadataClient
from marquee.ingest.thumbnails import acquire_thumbnail, embed_thumbnail_filename, external_thumbnail_filename


class IngestionState(str, enum.Enum):
    intake = "intake"
    validated = "validated"
    resolving = "resolving"
    resolved = "resolved"
    degraded = "degraded"
    assembled = "assembled"
    committed = "committed"
    rejected = "rejected"


@dataclass(slots=True)
class IngestionResult:
    record: ContentRecord
    resolution: ResolutionStatus
    warnings: tuple[str, ...]
    states: tuple[IngestionState, ...]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestService:
    def __init__(
        self,
        settings: Settings,
        storage: Storage,
        session: AsyncSession,
        http_client: httpx.AsyncClient,
        metadata_client: YouTubeMetadataClient | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.storage = storage
        self.store = CatalogStore(session)
        self.http_client = http_client
        self.metadata_client = metadata_client or YouTubeMetadataClient(
            http_client,
            settings.secrets.youtube_api_key,
            base_url=settings.youtube_api_base_url,
        )
        self.clock = clock
        self.logger = get_logger(component="ingest_service")

    async def get_record(self, record_id: str) -> ContentRecord | None:
        return await self.store.get(record_id)

    async def get_record_by_title(self, title: str) -> ContentRecord | None:
        return await self.store.find_by_title(title)

    async def create(self, payload: IntakePayload) -> IngestionResult:
        states = [IngestionState.intake]
        logger = self.logger.bind(mode=IngestionMode.create.value)
        try:
            submission = classify_submission(payload)
            states.append(IngestionState.validated)
            outcome = await self._run_stages(submission, IngestionMode.create, None, states)
        except (SubmissionValidationError, DuplicateExternalIdError) as exc:
            logger.warning("ingestion_rejected", state=IngestionState.rejected.value, reason=str(exc))
            raise

        fields = assemble_record(submission, outcome)
        states.append(IngestionState.assembled)
        record = self.store.insert(fields)
        await self._commit(record, fields)
        states.append(IngestionState.committed)
        logger.info(
            "ingestion_committed",
            record_id=record.id,
            source_variant=record.source_variant.value,
            resolution=outcome.status.value,
            warnings=list(outcome.warnings),
        )
        return IngestionResult(record=record, resolution=outcome.status, warnings=outcome.warnings, states=tuple(states))

    async def update(self, record_id: str, payload: IntakePayload) -> IngestionResult:
        states = [IngestionState.intake]
        logger = self.logger.bind(mode=IngestionMode.update.value, record_id=record_id)
        record = await self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        previous = snapshot_from_record(record)

        try:
            merged = self._merge_with_stored(payload, previous)
            submission = classify_submission(merged)
            states.append(IngestionState.validated)
            outcome = await self._run_stages(submission, IngestionMode.update, previous, states)
        except (SubmissionValidationError, DuplicateExternalIdError) as exc:
            logger.warning("ingestion_rejected", state=IngestionState.rejected.value, reason=str(exc))
            raise

        fields = assemble_record(submission, outcome, previous)
        states.append(IngestionState.assembled)
        self.store.update(record, fields)
        await self._commit(record, fields)
        states.append(IngestionState.committed)
        logger.info(
            "ingestion_committed",
            source_variant=record.source_variant.value,
            resolution=outcome.status.value,
            warnings=list(outcome.warnings),
        )
        return IngestionResult(record=record, resolution=outcome.status, warnings=outcome.warnings, states=tuple(states))

    @staticmethod
    def _merge_with_stored(payload: IntakePayload, previous: RecordSnapshot) -> IntakePayload:
        if payload.source_variant is not None:
            declared = coerce_variant(payload.source_variant)
            if declared is not None and declared is not previous.source_variant:
                raise SubmissionValidationError(["The source variant cannot change after creation."])
            if declared is None:
                # Let the classifier report the unknown variant.
                return payload

        source_field = {
            SourceVariant.external: "external_url",
            SourceVariant.embed: "embed_markup",
            SourceVariant.upload: "uploaded_file_ref",
        }[previous.source_variant]
        return payload.with_fallbacks(
            source_variant=previous.source_variant,
            **{source_field: getattr(previous, source_field)},
        )

    async def _run_stages(
        self,
        submission: Submission,
        mode: IngestionMode,
        previous: RecordSnapshot | None,
        states: list[IngestionState],
    ) -> ResolutionOutcome:
        if isinstance(submission, ExternalSubmission):
            states.append(IngestionState.resolving)
            outcome = await self._resolve_external(submission, mode, previous)
            states.append(IngestionState.degraded if outcome.status is ResolutionStatus.degraded else IngestionState.resolved)
            return outcome
        if isinstance(submission, EmbedSubmission) and submission.thumbnail_url:
            title = submission.overrides.title or (previous.title if previous else None)
            return await self._attach_thumbnail(
                ResolutionOutcome(),
                submission.thumbnail_url,
                embed_thumbnail_filename(title, submission.thumbnail_url),
            )
        return ResolutionOutcome()

    async def _resolve_external(
        self,
        submission: ExternalSubmission,
        mode: IngestionMode,
        previous: RecordSnapshot | None,
    ) -> ResolutionOutcome:
        url = submission.external_url
        if mode is IngestionMode.update and previous is not None and previous.external_url == url:
            return ResolutionOutcome(status=ResolutionStatus.passthrough)

        external_id = extract_external_id(url)
        if external_id is None:
            self.logger.warning("external_id_unresolved", external_url=url)
            return ResolutionOutcome().degrade("external_id_unresolved")

        await ensure_unique_external_id(
            self.store,
            external_id,
            mode=mode,
            new_url=url,
            previous_url=previous.external_url if previous else None,
            record_id=previous.id if previous else None,
        )

        metadata = await self.metadata_client.resolve(external_id)
        if metadata is None:
            return ResolutionOutcome(external_id=external_id).degrade("metadata_unavailable")

        outcome = ResolutionOutcome(
            status=ResolutionStatus.resolved,
            external_id=external_id,
            metadata=metadata,
            duration_display=format_duration(metadata.duration_raw),
        )
        if metadata.thumbnail_url:
            outcome = await self._attach_thumbnail(
                outcome,
                metadata.thumbnail_url,
                external_thumbnail_filename(external_id, metadata.thumbnail_url),
            )
        if metadata.published_at is not None:
            window = timedelta(days=self.settings.freshness_window_days)
            outcome = outcome.evolve(is_new=is_fresh(metadata.published_at, self.clock(), window=window))
        return outcome

    async def _attach_thumbnail(self, outcome: ResolutionOutcome, url: str, filename: str) -> ResolutionOutcome:
        blob = await acquire_thumbnail(
            self.http_client,
            self.storage,
            url,
            filename,
            chunk_size=self.settings.thumbnail_chunk_size,
        )
        if blob is None:
            return outcome.warn("thumbnail_unavailable")
        return outcome.evolve(thumbnail=blob)

    async def _commit(self, record: ContentRecord, fields: RecordFields) -> None:
        # A rollback expires the instance, so read the id up front.
        record_id = record.id
        try:
            await self.store.commit()
        except IntegrityError as exc:
            await self.store.rollback()
            self._discard_thumbnail(fields)
            if fields.external_id:
                holder = await self.store.find_by_external_id(fields.external_id)
                if holder is not None and holder.id != record_id:
                    self.logger.warning("duplicate_external_id_at_commit", external_id=fields.external_id)
                    raise DuplicateExternalIdError(fields.external_id) from exc
            self.logger.error("store_write_failed", record_id=record_id, error=str(exc.orig))
            raise StoreWriteError("store_write_failed") from exc
        except SQLAlchemyError as exc:
            await self.store.rollback()
            self._discard_thumbnail(fields)
            self.logger.error("store_write_failed", record_id=record_id, error=str(exc))
            raise StoreWriteError("store_write_failed") from exc
        await self.store.refresh(record)

    def _discard_thumbnail(self, fields: RecordFields) -> None:
        if fields.thumbnail is None:
            return
        try:
            self.storage.delete(fields.thumbnail.key)
        except OSError as exc:
            self.logger.error("thumbnail_cleanup_failed", key=fields.thumbnail.key, error=str(exc))
            return
        self.logger.info("thumbnail_discarded", key=fields.thumbnail.key)


__all__ = [
    "IngestService",
    "IngestionResult",
    "IngestionState",
]
