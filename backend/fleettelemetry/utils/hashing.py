"""Content fingerprints used for file- and row-level deduplication."""
from __future__ import annotations

import hashlib
from datetime import datetime

from fleettelemetry.utils.timestamps import format_rfc3339


def sha256_hex(data: bytes) -> str:
    """Hex-encoded SHA-256 digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_row(vessel_id: int, ts: datetime, stream: str, *keys: str) -> str:
    """Fingerprint one reading: sha256 of ``stream|vessel_id|ts|sorted(keys)...``.

    Keys are sorted before joining, so their order does not matter. Each key is
    opaque to the sort: a serialized JSON payload counts as a single key.
    """
    parts = [stream, str(vessel_id), format_rfc3339(ts), *sorted(keys)]
    return sha256_hex("|".join(parts).encode("utf-8"))
