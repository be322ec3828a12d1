"""Identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4


def new_id(prefix: str) -> str:
    """Return ``<prefix>-<12 hex chars>``, e.g. ``cmd-3f9a0c1d2b4e``."""
    return f"{prefix}-{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
