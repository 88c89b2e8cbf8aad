from __future__ import annotations

import enum
from typing import Optional, Protocol

from marquee.core.logging import get_logger

from .errors import DuplicateExternalIdError

__all__ = ["IngestionMode", "ExternalIdLookup", "ensure_unique_external_id"]

logger = get_logger(component="dedup_guard")


class IngestionMode(str, enum.Enum):
    create = "create"
    update = "update"


class ExternalIdLookup(Protocol):
    async def find_by_external_id(self, external_id: str) -> Optional[object]: ...


async def ensure_unique_external_id(
    store: ExternalIdLookup,
    external_id: str,
    *,
    mode: IngestionMode,
    new_url: str,
    previous_url: Optional[str] = None,
    record_id: Optional[str] = None,
) -> None:
    """Reject ``external_id`` when another catalog record already holds it.

    Updates that resubmit an unchanged URL skip the lookup entirely. The check
    and the later commit are not atomic; the store's unique constraint on the
    external id is what finally enforces the invariant.
    """
    if mode is IngestionMode.update and previous_url is not None and new_url == previous_url:
        return

    existing = await store.find_by_external_id(external_id)
    if existing is None:
        return
    if record_id is not None and getattr(existing, "id", None) == record_id:
        return

    logger.warning("duplicate_external_id", external_id=external_id, mode=mode.value)
    raise DuplicateExternalIdError(external_id)
