from __future__ import annotations

import re
from typing import Optional

__all__ = ["EXTERNAL_ID_LENGTH", "extract_external_id"]

EXTERNAL_ID_LENGTH = 11

# Greedy prefix: when several shapes occur, the last one in the URL wins.
_URL_SHAPES = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def extract_external_id(url: str) -> Optional[str]:
    """Return the 11-character video id embedded in a platform URL.

    Recognised shapes are ``watch?v=``, ``&v=``, ``youtu.be/``, ``/v/``,
    ``/u/<x>/`` and ``/embed/``. Anything else, or a candidate of the wrong
    length, yields ``None`` so the caller can continue without resolution.
    """
    if not url:
        return None
    match = _URL_SHAPES.match(url.strip())
    if not match:
        return None
    candidate = match.group(2)
    if len(candidate) != EXTERNAL_ID_LENGTH:
        return None
    return candidate
