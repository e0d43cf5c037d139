"""Identifier generation and ordering helpers."""

import secrets
import threading
import time
from datetime import datetime, timezone

_SUFFIX_BYTES = 6

_lock = threading.Lock()
_last_ms = 0


def _next_millis() -> int:
    """Wall clock in milliseconds, never repeating or going backwards in-process."""
    global _last_ms
    with _lock:
        now = time.time_ns() // 1_000_000
        if now <= _last_ms:
            now = _last_ms + 1
        _last_ms = now
        return now


def new_id(prefix: str) -> str:
    """Build a sortable, collision-resistant id like ``conv_1718000000000_3fa9c1d2e4b5``."""
    return f"{prefix}_{_next_millis():013d}_{secrets.token_hex(_SUFFIX_BYTES)}"


def new_conversation_id() -> str:
    return new_id("conv")


def new_message_id() -> str:
    return new_id("msg")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def not_before(candidate: datetime, floor: datetime) -> datetime:
    """Return ``candidate`` clamped so it never sorts before ``floor``."""
    candidate, floor = as_utc(candidate), as_utc(floor)
    return candidate if candidate >= floor else floor


def derive_title(content: str, max_length: int = 50) -> str:
    cleaned = content.strip().replace("\n", " ")
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length].strip() + "..."
