from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marquee.core.config import Settings, get_settings
from marquee.core.storage import Storage
from marquee.services.ingest_service import IngestService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> Storage:
    storage: Storage = request.app.state.storage
    return storage


def get_http_client(request: Request) -> httpx.AsyncClient:
    client: httpx.AsyncClient = request.app.state.http_client
    return client


def get_app_settings() -> Settings:
    return get_settings()


async def get_ingest_service(
    session: AsyncSession = Depends(get_session),
    storage: Storage = Depends(get_storage),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[IngestService]:
    service = IngestService(settings, storage, session, http_client)
    yield service


IngestServiceDep = Annotated[IngestService, Depends(get_ingest_service)]
StorageDep = Annotated[Storage, Depends(get_storage)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]


__all__ = [
    "get_session",
    "get_storage",
    "get_http_client",
    "get_app_settings",
    "get_ingest_service",
    "IngestServiceDep",
    "StorageDep",
    "SettingsDep",
]
