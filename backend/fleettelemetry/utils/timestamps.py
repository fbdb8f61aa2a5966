"""RFC 3339 formatting/parsing and UTC normalization for stored timestamps."""
from __future__ import annotations

from datetime import datetime, timezone


def format_rfc3339(ts: datetime) -> str:
    """Format a datetime as RFC 3339 with second precision.

    Naive datetimes are taken to be UTC. A zero offset is written as ``Z``.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    base = ts.replace(microsecond=0, tzinfo=None).isoformat()
    offset = ts.utcoffset()
    if not offset:
        return base + "Z"
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{base}{sign}{hours:02d}:{minutes:02d}"


def parse_rfc3339(value: str) -> datetime | None:
    """Parse a strict RFC 3339 date-time (``T`` separator and a zone), or return None."""
    value = value.strip()
    if "T" not in value and "t" not in value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    if ts.tzinfo is None:
        return None
    return ts


def to_utc_naive(ts: datetime) -> datetime:
    """Convert to naive UTC, the representation stored in DateTime columns."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def to_stored_ts(ts: datetime) -> datetime:
    """Naive UTC truncated to whole seconds.

    Stored reading timestamps have the same precision as pagination
    cursors and row fingerprints.
    """
    return to_utc_naive(ts).replace(microsecond=0)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
