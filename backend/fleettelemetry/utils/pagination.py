"""Opaque keyset-pagination cursors: base64 of ``"{RFC3339 ts}|{row id}"``."""
from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone

from fleettelemetry.utils.timestamps import format_rfc3339, parse_rfc3339

# Decoded value of an empty cursor: no lower bound
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def encode_cursor(ts: datetime, row_id: int) -> str:
    raw = f"{format_rfc3339(ts)}|{row_id}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """Decode a cursor into (timestamp, row id).

    An empty cursor yields ``(ZERO_TIME, 0)``. Raises ValueError on a malformed cursor.
    """
    if not cursor:
        return ZERO_TIME, 0

    try:
        decoded = base64.b64decode(cursor, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("invalid cursor format") from e

    parts = decoded.split("|")
    if len(parts) != 2:
        raise ValueError("invalid cursor format")

    ts = parse_rfc3339(parts[0])
    if ts is None:
        raise ValueError("invalid timestamp in cursor")

    try:
        row_id = int(parts[1])
    except ValueError as e:
        raise ValueError("invalid id in cursor") from e

    return ts, row_id
