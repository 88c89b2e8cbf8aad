from __future__ import annotations

import re
from collections.abc import AsyncIterator
from pathlib import PurePosixPath
from uuid import uuid4

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from marquee.api import deps
from marquee.core.logging import get_logger

from . import schemas


router = APIRouter(prefix="/uploads", tags=["uploads"])
logger = get_logger(component="uploads")

UPLOAD_PREFIX = "videos"
READ_CHUNK_SIZE = 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class UploadTooLarge(Exception):
    pass


def safe_filename(name: str | None) -> str:
    base = PurePosixPath((name or "").replace("\\", "/")).name
    cleaned = _UNSAFE_CHARS.sub("-", base).strip(".-")
    return cleaned or "upload.bin"


async def _read_chunks(upload: UploadFile, limit: int) -> AsyncIterator[bytes]:
    total = 0
    while True:
        chunk = await upload.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise UploadTooLarge()
        yield chunk


@router.post("", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    storage: deps.StorageDep,
    settings: deps.SettingsDep,
    file: UploadFile = File(...),
) -> schemas.UploadResponse:
    key = f"{UPLOAD_PREFIX}/{uuid4().hex}/{safe_filename(file.filename)}"
    try:
        blob = await storage.put_stream(
            _read_chunks(file, settings.max_upload_size_bytes),
            key,
            content_type=file.content_type,
        )
    except UploadTooLarge:
        logger.warning("upload_rejected", key=key, limit=settings.max_upload_size_bytes)
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="upload_too_large")
    finally:
        await file.close()

    logger.info("upload_stored", key=blob.key, size_bytes=blob.size_bytes)
    return schemas.UploadResponse(
        uploaded_file_ref=blob.key,
        url=blob.url,
        size_bytes=blob.size_bytes,
        content_type=blob.content_type,
    )


__all__ = ["router", "safe_filename"]
