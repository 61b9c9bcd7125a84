from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_timestamp(value: str | None) -> str:
    """Return ``value`` as a UTC ISO string, or now when it is empty.

    Raises ``ValueError`` for text that is not an ISO-8601 timestamp.
    """
    if value is None or not str(value).strip():
        return to_iso(utc_now())
    parsed = parse_iso(str(value))
    if parsed is None:
        raise ValueError(f"Invalid timestamp: {value}")
    return to_iso(parsed)
