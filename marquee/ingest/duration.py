from __future__ import annotations

import re
from typing import Optional

__all__ = ["UNKNOWN_DURATION", "format_duration"]

UNKNOWN_DURATION = "00:00"

_ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def format_duration(raw: Optional[str]) -> str:
    """Convert an ISO-8601 ``PT#H#M#S`` duration into ``MM:SS`` or ``HH:MM:SS``."""
    if not raw or not isinstance(raw, str):
        return UNKNOWN_DURATION
    match = _ISO_DURATION.search(raw)
    if not match:
        return UNKNOWN_DURATION

    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    prefix = f"{hours:02d}:" if hours > 0 else ""
    return f"{prefix}{minutes:02d}:{seconds:02d}"
