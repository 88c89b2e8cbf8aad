from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from marquee.api.v1 import get_api_router
from marquee.core.config import get_settings
from marquee.core.db import create_engine, create_session_factory
from marquee.core.logging import configure_logging, get_logger, level_from_name
from marquee.core.storage import LocalStorage, get_storage

logger = get_logger(component="app")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    storage = get_storage(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.http_client = httpx.AsyncClient(timeout=settings.http_timeout_s, follow_redirects=True)
        logger.info("app_started", environment=settings.environment, storage_backend=settings.storage_backend)
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    if isinstance(storage, LocalStorage) and settings.public_media_base_url.startswith("/"):
        app.mount(settings.public_media_base_url, StaticFiles(directory=storage.base_path), name="media")
    return app


app = create_app()


__all__ = ["app", "create_app"]
