from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, HTTPException, status

from marquee.api import deps
from marquee.ingest.errors import (
    DuplicateExternalIdError,
    IngestionError,
    RecordNotFoundError,
    StoreWriteError,
    SubmissionValidationError,
)
from marquee.services.ingest_service import IngestionResult

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])


def _raise_http(exc: IngestionError) -> NoReturn:
    if isinstance(exc, SubmissionValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"errors": exc.messages},
        ) from exc
    if isinstance(exc, DuplicateExternalIdError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="duplicate_external_id") from exc
    if isinstance(exc, RecordNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="record_not_found") from exc
    if isinstance(exc, StoreWriteError):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="store_write_failed") from exc
    raise exc


def _to_response(result: IngestionResult) -> schemas.IngestionResponse:
    return schemas.IngestionResponse(
        record=schemas.VideoResponse.from_record(result.record),
        state=result.states[-1].value,
        states=[state.value for state in result.states],
        resolution=result.resolution.value,
        warnings=list(result.warnings),
    )


@router.post("", response_model=schemas.IngestionResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.IngestServiceDep,
) -> schemas.IngestionResponse:
    try:
        result = await service.create(payload.to_payload())
    except IngestionError as exc:
        _raise_http(exc)
    return _to_response(result)


@router.patch("/{record_id}", response_model=schemas.IngestionResponse)
async def update_video(
    record_id: str,
    payload: schemas.VideoUpdateRequest,
    service: deps.IngestServiceDep,
) -> schemas.IngestionResponse:
    try:
        result = await service.update(record_id, payload.to_payload())
    except IngestionError as exc:
        _raise_http(exc)
    return _to_response(result)


@router.get("/by-title/{title}", response_model=schemas.VideoResponse)
async def get_video_by_title(title: str, service: deps.IngestServiceDep) -> schemas.VideoResponse:
    record = await service.get_record_by_title(title)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="record_not_found")
    return schemas.VideoResponse.from_record(record)


@router.get("/{record_id}", response_model=schemas.VideoResponse)
async def get_video(record_id: str, service: deps.IngestServiceDep) -> schemas.VideoResponse:
    record = await service.get_record(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="record_not_found")
    return schemas.VideoResponse.from_record(record)


__all__ = ["router"]
