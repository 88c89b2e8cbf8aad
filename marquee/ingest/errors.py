"""Failure kinds raised or absorbed by the ingestion pipeline."""

from __future__ import annotations

from typing import Iterable


class IngestionError(Exception):
    """Base class for ingestion failures."""


class SubmissionValidationError(IngestionError):
    """The submission is incomplete for its declared source variant."""

    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class DuplicateExternalIdError(IngestionError):
    def __init__(self, external_id: str):
        self.external_id = external_id
        super().__init__(f"Video with ID {external_id} already exists in the catalog.")


class StoreWriteError(IngestionError):
    """Committing the assembled record to the catalog store failed."""


class RecordNotFoundError(IngestionError, LookupError):
    pass


class ExternalResolutionError(IngestionError):
    """Non-fatal: the metadata API could not resolve an external id."""


class ThumbnailAcquisitionError(IngestionError):
    """Non-fatal: the thumbnail could not be fetched or stored."""


__all__ = [
    "IngestionError",
    "SubmissionValidationError",
    "DuplicateExternalIdError",
    "StoreWriteError",
    "RecordNotFoundError",
    "ExternalResolutionError",
    "ThumbnailAcquisitionError",
]
