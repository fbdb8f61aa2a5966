"""Fuzzy matching of spreadsheet headers to semantic fields.

Headers are normalized (trimmed, lowercased, spaces and hyphens → underscores)
and looked up first by exact match, then by substring. When several headers
contain the same pattern, the first one declared in the sheet wins.
"""
from __future__ import annotations

TIMESTAMP_PATTERNS: tuple[str, ...] = (
    "timestamp", "ts", "time", "date", "datetime",
    "date_time", "time_stamp", "record_time", "log_time",
    "created_at", "recorded_at", "sample_time", "measurement_time",
    "utc", "local_time", "system_time", "event_time",
)


def normalize_header(header: str) -> str:
    h = header.strip().lower()
    return h.replace(" ", "_").replace("-", "_")


class HeaderMapper:
    """Resolve semantic field names against one sheet's header row."""

    def __init__(self, headers: list[str]):
        # normalized -> original; duplicate normalized forms keep the last original
        self.headers: dict[str, str] = {}
        for h in headers:
            self.headers[normalize_header(h)] = h

    def find(self, *patterns: str) -> str | None:
        """Return the original header matching the first pattern that matches anything."""
        for pattern in patterns:
            if pattern in self.headers:
                return self.headers[pattern]
            for normalized, original in self.headers.items():
                if pattern in normalized:
                    return original
        return None

    def find_timestamp(self) -> str | None:
        return self.find(*TIMESTAMP_PATTERNS)

    def resolve(self, fields: dict[str, tuple[str, ...]]) -> dict[str, str | None]:
        """Map each semantic field name to its source header (or None), in field order."""
        return {field: self.find(*patterns) for field, patterns in fields.items()}
