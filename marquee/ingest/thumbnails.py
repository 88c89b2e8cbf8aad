from __future__ import annotations

import hashlib
import mimetypes
import re
import unicodedata
from pathlib import PurePosixPath
from typing import AsyncIterator, Optional
from urllib.parse import urlparse
from uuid import uuid4

import httpx

from marquee.core.logging import get_logger
from marquee.core.storage import Storage, StoredBlob

from .errors import ThumbnailAcquisitionError

__all__ = [
    "THUMBNAIL_PREFIX",
    "DEFAULT_EXTENSION",
    "acquire_thumbnail",
    "external_thumbnail_filename",
    "embed_thumbnail_filename",
    "thumbnail_extension",
    "thumbnail_key",
]

THUMBNAIL_PREFIX = "thumbnails"
DEFAULT_EXTENSION = ".jpg"
DEFAULT_CHUNK_SIZE = 64 * 1024

logger = get_logger(component="thumbnail_acquisition")


def thumbnail_extension(url: str) -> str:
    """Return the file extension of the URL path, defaulting to ``.jpg``."""
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_EXTENSION
    suffix = PurePosixPath(path).suffix.lower()
    if not suffix or len(suffix) > 6 or not suffix[1:].isalnum():
        return DEFAULT_EXTENSION
    return suffix


def _slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", ascii_only).strip("-").lower()
    return slug[:80]


def external_thumbnail_filename(external_id: str, url: str) -> str:
    return f"youtube-thumbnail-{external_id}{thumbnail_extension(url)}"


def embed_thumbnail_filename(title: Optional[str], url: str) -> str:
    stem = _slugify(title) if title else ""
    if not stem:
        stem = hashlib.sha1(url.encode("utf-8"), usedforsecurity=False).hexdigest()[:12]
    return f"embed-thumbnail-{stem}{thumbnail_extension(url)}"


def thumbnail_key(filename: str) -> str:
    return f"{THUMBNAIL_PREFIX}/{uuid4().hex}/{filename}"


async def _stream_body(response: httpx.Response, chunk_size: int) -> AsyncIterator[bytes]:
    async for chunk in response.aiter_bytes(chunk_size):
        yield chunk


async def _download(
    http_client: httpx.AsyncClient,
    storage: Storage,
    url: str,
    key: str,
    chunk_size: int,
) -> StoredBlob:
    try:
        async with http_client.stream("GET", url) as response:
            if not response.is_success:
                raise ThumbnailAcquisitionError(f"http_status:{response.status_code}")
            header_type = response.headers.get("content-type", "").split(";")[0].strip()
            content_type = header_type or mimetypes.guess_type(key)[0]
            return await storage.put_stream(_stream_body(response, chunk_size), key, content_type=content_type)
    except httpx.InvalidURL as exc:
        raise ThumbnailAcquisitionError("invalid_url") from exc
    except httpx.HTTPError as exc:
        raise ThumbnailAcquisitionError(f"transport_error:{exc.__class__.__name__}") from exc
    except OSError as exc:
        raise ThumbnailAcquisitionError(f"storage_error:{exc.__class__.__name__}") from exc


async def acquire_thumbnail(
    http_client: httpx.AsyncClient,
    storage: Storage,
    url: str,
    filename: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> StoredBlob | None:
    """Stream ``url`` into the blob store under ``thumbnails/<token>/<filename>``.

    The body is written through chunk by chunk; it is never held in memory as a
    whole. Any failure is logged and reported as ``None`` so ingestion can go on
    without a thumbnail. Each acquisition is stored under a fresh token.
    """
    key = thumbnail_key(filename)
    try:
        blob = await _download(http_client, storage, url, key, chunk_size)
    except ThumbnailAcquisitionError as exc:
        logger.warning("thumbnail_acquisition_failed", url=url, key=key, reason=str(exc))
        return None
    logger.info("thumbnail_acquired", url=url, key=blob.key, size_bytes=blob.size_bytes)
    return blob
