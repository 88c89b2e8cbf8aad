from __future__ import annotations

import asyncio
import mimetypes
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterable

from .config import Settings


@dataclass(slots=True)
class StoredBlob:
    key: str
    url: str
    size_bytes: int
    content_type: str


class Storage(ABC):
    """Blob store contract used by thumbnail acquisition and direct uploads."""

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    @abstractmethod
    def url_for(self, key: str) -> str: ...

    @abstractmethod
    async def put_stream(
        self,
        chunks: AsyncIterable[bytes],
        key: str,
        *,
        content_type: str | None = None,
    ) -> StoredBlob: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class LocalStorage(Storage):
    """Filesystem-backed blob store suitable for development."""

    def __init__(self, base_path: Path, *, public_base_url: str = "/media"):
        self.base_path = base_path.resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, key: str) -> Path:
        if not key or key.startswith("/"):
            raise ValueError(f"Invalid storage key: {key!r}")
        path = (self.base_path / key).resolve()
        if path != self.base_path and self.base_path not in path.parents:
            raise ValueError(f"Storage key escapes the base path: {key!r}")
        return path

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put_stream(
        self,
        chunks: AsyncIterable[bytes],
        key: str,
        *,
        content_type: str | None = None,
    ) -> StoredBlob:
        path = self._resolve(key)
        if path.exists():
            raise FileExistsError(f"Storage key already in use: {key!r}")
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        partial = path.with_name(f"{path.name}.part")
        size = 0
        handle = await asyncio.to_thread(partial.open, "wb")
        try:
            try:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    await asyncio.to_thread(handle.write, chunk)
                    size += len(chunk)
            finally:
                await asyncio.to_thread(handle.close)
            # Stored blobs are never replaced in place.
            await asyncio.to_thread(os.link, partial, path)
            await asyncio.to_thread(partial.unlink)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        resolved_type = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return StoredBlob(key=key, url=self.url_for(key), size_bytes=size, content_type=resolved_type)

    def delete(self, key: str) -> None:
        self._resolve(key).unlink(missing_ok=True)


def get_storage(settings: Settings) -> Storage:
    if settings.storage_backend == "local":
        return LocalStorage(base_path=settings.storage_base_path, public_base_url=settings.public_media_base_url)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "Storage",
    "LocalStorage",
    "StoredBlob",
    "get_storage",
]
