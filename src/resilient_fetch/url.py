"""Helpers for deriving log-safe request paths."""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_LONG_ID = re.compile(r"[0-9]{13,}")
ID_PLACEHOLDER = "[id]"


def sanitize_path(url: str) -> str:
    """Return the path of ``url`` with long numeric ids masked.

    Used only for error messages and log tags, never for the request itself.
    Falls back to the full URL when it has no meaningful path. Input without
    a scheme and host is already a path and only gets its ids masked.
    """
    path = url
    try:
        if url:
            parts = urlsplit(url)
            if parts.scheme and parts.netloc:
                path = parts.path
    except ValueError:
        logger.warning("Could not parse url for diagnostics: %r", url)
        return url
    if len(path) < 2:
        path = url
    return _LONG_ID.sub(ID_PLACEHOLDER, path)
