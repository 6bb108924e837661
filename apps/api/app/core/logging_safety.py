"""Helpers that keep user identifiers and provider text out of logs and rows verbatim."""

from __future__ import annotations

import hashlib
from typing import Any

_MAX_STORED_MESSAGE_CHARS = 1000


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def clip_message(value: Any, *, fallback: str, limit: int = _MAX_STORED_MESSAGE_CHARS) -> str:
    """Normalize provider-supplied error text before it is stored on a job row."""
    text = " ".join(str(value or "").split())
    if not text:
        return fallback
    return text[:limit]
