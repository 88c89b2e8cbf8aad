import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from marquee.api import deps
from marquee.core.config import get_settings
from marquee.core.db import Base, create_engine, create_schema, create_session_factory
from marquee.core.storage import get_storage
from marquee.services.ingest_service import IngestService

VIDEO_ID = "abcdefghijk"
API_BASE_URL = "https://www.googleapis.com/youtube/v3"
FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
THUMBNAIL_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-payload" * 64


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Marquee environment bootstrap fixture for tests that manage their own .env",
    )


def thumbnail_url(video_id: str = VIDEO_ID, size: str = "maxresdefault") -> str:
    return f"https://i.ytimg.com/vi/{video_id}/{size}.jpg"


def video_item(
    video_id: str = VIDEO_ID,
    *,
    title: str = "Never Gonna Give You Up",
    description: str = "The official video.",
    channel: str = "Rick Astley",
    published_at: str = "2024-01-01T00:00:00Z",
    duration: Optional[str] = "PT1H2M3S",
    thumbnails: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    if thumbnails is None:
        thumbnails = {
            "default": {"url": thumbnail_url(video_id, "default")},
            "high": {"url": thumbnail_url(video_id, "hqdefault")},
            "standard": {"url": thumbnail_url(video_id, "sddefault")},
            "maxres": {"url": thumbnail_url(video_id, "maxresdefault")},
        }
    item: dict[str, Any] = {
        "id": video_id,
        "snippet": {
            "title": title,
            "description": description,
            "channelTitle": channel,
            "publishedAt": published_at,
            "thumbnails": thumbnails,
        },
        "contentDetails": {},
    }
    if duration is not None:
        item["contentDetails"]["duration"] = duration
    return item


class FakeYouTube:
    """In-memory stand-in for the metadata API and the thumbnail CDN."""

    def __init__(self) -> None:
        self.videos: dict[str, dict[str, Any]] = {}
        self.thumbnails: dict[str, bytes] = {}
        self.api_status = 200
        self.api_calls: list[httpx.Request] = []
        self.thumbnail_calls: list[str] = []

    def add_video(self, item: dict[str, Any], *, with_thumbnail: bool = True) -> None:
        self.videos[item["id"]] = item
        if with_thumbnail:
            for entry in item["snippet"]["thumbnails"].values():
                self.thumbnails[entry["url"]] = THUMBNAIL_BYTES

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(f"{API_BASE_URL}/videos"):
            self.api_calls.append(request)
            if self.api_status != 200:
                return httpx.Response(self.api_status, json={"error": {"code": self.api_status}})
            item = self.videos.get(request.url.params.get("id"))
            return httpx.Response(200, json={"items": [item] if item else []})

        url = str(request.url)
        self.thumbnail_calls.append(url)
        if url in self.thumbnails:
            return httpx.Response(200, content=self.thumbnails[url], headers={"content-type": "image/jpeg"})
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "marquee_test.db"
    media_root = tmp_path / "media"

    monkeypatch.setenv("MARQUEE_ENVIRONMENT", "test")
    monkeypatch.setenv("MARQUEE_LOG_LEVEL", "debug")
    monkeypatch.setenv("MARQUEE_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("MARQUEE_MEDIA_ROOT", str(media_root))
    monkeypatch.setenv("MARQUEE_STORAGE_BACKEND", "local")
    monkeypatch.setenv("MARQUEE_YOUTUBE_API_KEY", "test-api-key")
    monkeypatch.setenv("MARQUEE_YOUTUBE_API_BASE_URL", API_BASE_URL)

    get_settings.cache_clear()
    settings = get_settings()

    async def _setup() -> None:
        engine = create_engine(settings)
        await create_schema(engine)
        await engine.dispose()

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        engine = create_engine(settings)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def youtube() -> FakeYouTube:
    fake = FakeYouTube()
    fake.add_video(video_item())
    return fake


@pytest.fixture()
def run_service(configure_environment, youtube):
    """Run ``action(service)`` inside a fresh event loop, session and HTTP client."""

    def _run(action: Callable[[IngestService], Awaitable[Any]], *, clock: Callable[[], datetime] = lambda: FIXED_NOW):
        settings = get_settings()
        storage = get_storage(settings)

        async def _go():
            engine = create_engine(settings)
            session_factory = create_session_factory(engine)
            try:
                async with youtube.client() as http_client:
                    async with session_factory() as session:
                        service = IngestService(settings, storage, session, http_client, clock=clock)
                        return await action(service)
            finally:
                await engine.dispose()

        return asyncio.run(_go())

    return _run


@pytest.fixture()
def client(configure_environment, youtube):
    from marquee.main import create_app

    app = create_app()
    http_client = youtube.client()
    app.dependency_overrides[deps.get_http_client] = lambda: http_client
    with TestClient(app) as client:
        yield client
