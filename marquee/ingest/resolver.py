"""External metadata resolution against the YouTube Data API.

Invariants:
- At most one outbound request per ``resolve`` call; there is no retry.
- Every failure mode degrades to ``None`` with a warning; nothing propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from marquee.core.logging import get_logger

from .errors import ExternalResolutionError

__all__ = [
    "EMBED_BASE_URL",
    "THUMBNAIL_PREFERENCE",
    "ExternalMetadata",
    "YouTubeMetadataClient",
    "build_embed_markup",
    "parse_published_at",
]

EMBED_BASE_URL = "https://www.youtube.com/embed"
THUMBNAIL_PREFERENCE = ("maxres", "standard", "high")

_EMBED_TEMPLATE = (
    '<iframe width="560" height="315" src="{src}" title="YouTube video player" frameborder="0" '
    'allow="accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture; web-share" '
    'referrerpolicy="strict-origin-when-cross-origin" allowfullscreen></iframe>'
)


@dataclass(frozen=True, slots=True)
class ExternalMetadata:
    """Ephemeral bundle produced by the resolver and consumed by the assembler."""

    title: Optional[str]
    description: Optional[str]
    thumbnail_url: Optional[str]
    author: Optional[str]
    published_at: Optional[datetime]
    duration_raw: Optional[str]
    embed_markup: str


def build_embed_markup(external_id: str) -> str:
    return _EMBED_TEMPLATE.format(src=f"{EMBED_BASE_URL}/{external_id}")


def parse_published_at(raw: Any) -> Optional[datetime]:
    if not raw or not isinstance(raw, str):
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _pick_thumbnail(thumbnails: Any) -> Optional[str]:
    if not isinstance(thumbnails, dict):
        return None
    for size in THUMBNAIL_PREFERENCE:
        entry = thumbnails.get(size)
        if isinstance(entry, dict) and entry.get("url") and isinstance(entry["url"], str):
            return entry["url"]
    return None


class YouTubeMetadataClient:
    """Resolver-scoped handle bundling the HTTP client with its API key."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        *,
        base_url: str = "https://www.googleapis.com/youtube/v3",
    ) -> None:
        self.http_client = http_client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger(component="metadata_resolver")

    async def resolve(self, external_id: str) -> ExternalMetadata | None:
        """Return metadata for ``external_id`` or ``None`` when it cannot be resolved."""
        try:
            payload = await self._fetch(external_id)
            metadata = self._parse(external_id, payload)
        except ExternalResolutionError as exc:
            self.logger.warning("metadata_resolution_failed", external_id=external_id, reason=str(exc))
            return None
        self.logger.info("metadata_resolved", external_id=external_id)
        return metadata

    async def _fetch(self, external_id: str) -> dict[str, Any]:
        if not self.api_key:
            raise ExternalResolutionError("api_key_missing")
        try:
            response = await self.http_client.get(
                f"{self.base_url}/videos",
                params={"id": external_id, "key": self.api_key, "part": "snippet,contentDetails"},
            )
        except httpx.HTTPError as exc:
            raise ExternalResolutionError(f"transport_error:{exc.__class__.__name__}") from exc
        if not response.is_success:
            raise ExternalResolutionError(f"http_status:{response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalResolutionError("invalid_json") from exc
        if not isinstance(payload, dict):
            raise ExternalResolutionError("invalid_payload")
        return payload

    def _parse(self, external_id: str, payload: dict[str, Any]) -> ExternalMetadata:
        items = payload.get("items") or []
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise ExternalResolutionError("not_found")
        item = items[0]
        snippet = item.get("snippet") or {}
        details = item.get("contentDetails") or {}
        if not isinstance(snippet, dict) or not isinstance(details, dict):
            raise ExternalResolutionError("invalid_payload")
        duration_raw = details.get("duration")
        if duration_raw is not None and not isinstance(duration_raw, str):
            raise ExternalResolutionError("invalid_payload")
        return ExternalMetadata(
            title=_text(snippet.get("title")),
            description=_text(snippet.get("description")),
            thumbnail_url=_pick_thumbnail(snippet.get("thumbnails")),
            author=_text(snippet.get("channelTitle")),
            published_at=parse_published_at(snippet.get("publishedAt")),
            duration_raw=duration_raw,
            embed_markup=build_embed_markup(external_id),
        )
