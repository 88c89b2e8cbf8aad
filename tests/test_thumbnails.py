from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

from marquee.core.storage import LocalStorage
from marquee.ingest.thumbnails import (
    acquire_thumbnail,
    embed_thumbnail_filename,
    external_thumbnail_filename,
    thumbnail_extension,
)

from tests.conftest import THUMBNAIL_BYTES, VIDEO_ID, FakeYouTube, thumbnail_url


def _acquire(fake: FakeYouTube, storage: LocalStorage, url: str, filename: str):
    async def _run():
        async with fake.client() as client:
            return await acquire_thumbnail(client, storage, url, filename, chunk_size=16)

    return asyncio.run(_run())


def test_filenames():
    assert thumbnail_extension("https://i.ytimg.com/vi/x/maxresdefault.jpg?v=1") == ".jpg"
    assert thumbnail_extension("https://cdn.example.com/thumb.PNG") == ".png"
    assert thumbnail_extension("https://cdn.example.com/thumb") == ".jpg"
    assert external_thumbnail_filename(VIDEO_ID, thumbnail_url()) == f"youtube-thumbnail-{VIDEO_ID}.jpg"
    assert embed_thumbnail_filename("Café Night Session!", "https://cdn.example.com/a.webp") == (
        "embed-thumbnail-cafe-night-session.webp"
    )


def test_embed_filename_without_title_is_derived_from_url():
    first = embed_thumbnail_filename(None, "https://cdn.example.com/a.png")
    second = embed_thumbnail_filename("", "https://cdn.example.com/b.png")
    assert first.startswith("embed-thumbnail-") and first.endswith(".png")
    assert first != second
    assert first == embed_thumbnail_filename(None, "https://cdn.example.com/a.png")


def test_acquire_streams_into_storage(tmp_path: Path):
    fake = FakeYouTube()
    url = thumbnail_url()
    fake.thumbnails[url] = THUMBNAIL_BYTES
    storage = LocalStorage(tmp_path / "media")

    blob = _acquire(fake, storage, url, external_thumbnail_filename(VIDEO_ID, url))

    assert blob is not None
    assert blob.key.startswith("thumbnails/")
    assert blob.key.endswith(f"/youtube-thumbnail-{VIDEO_ID}.jpg")
    assert blob.url == f"/media/{blob.key}"
    assert blob.size_bytes == len(THUMBNAIL_BYTES)
    assert blob.content_type == "image/jpeg"
    assert (tmp_path / "media" / blob.key).read_bytes() == THUMBNAIL_BYTES


def test_missing_thumbnail_returns_none_and_leaves_no_file(tmp_path: Path):
    fake = FakeYouTube()
    storage = LocalStorage(tmp_path / "media")

    blob = _acquire(fake, storage, thumbnail_url(), "youtube-thumbnail-missing.jpg")

    assert blob is None
    assert fake.thumbnail_calls == [thumbnail_url()]
    assert not list((tmp_path / "media").rglob("*.jpg*"))


def test_transport_failure_returns_none(tmp_path: Path):
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    storage = LocalStorage(tmp_path / "media")

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_boom)) as client:
            return await acquire_thumbnail(client, storage, thumbnail_url(), "youtube-thumbnail-x.jpg")

    assert asyncio.run(_run()) is None


def test_malformed_url_falls_back_to_default_extension():
    assert thumbnail_extension("https://[invalid/x.png") == ".jpg"
    assert embed_thumbnail_filename("Clip", "https://[invalid/x.png") == "embed-thumbnail-clip.jpg"


def test_malformed_url_returns_none(tmp_path: Path):
    storage = LocalStorage(tmp_path / "media")
    assert _acquire(FakeYouTube(), storage, "https://[invalid/x.jpg", "embed-thumbnail-clip.jpg") is None
    assert not [path for path in (tmp_path / "media").rglob("*") if path.is_file()]


def test_each_acquisition_gets_its_own_key(tmp_path: Path):
    fake = FakeYouTube()
    fake.thumbnails["https://cdn.example.com/a.jpg"] = b"A"
    fake.thumbnails["https://cdn.example.com/b.jpg"] = b"B"
    storage = LocalStorage(tmp_path / "media")

    first = _acquire(fake, storage, "https://cdn.example.com/a.jpg", "embed-thumbnail-foo.jpg")
    second = _acquire(fake, storage, "https://cdn.example.com/b.jpg", "embed-thumbnail-foo.jpg")

    assert first.key != second.key
    assert (tmp_path / "media" / first.key).read_bytes() == b"A"
    assert (tmp_path / "media" / second.key).read_bytes() == b"B"
