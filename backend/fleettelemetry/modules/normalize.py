"""Telemetry cell parsing, range validation and unmapped-column capture.

Parsers turn raw cell strings into typed optionals. Validators never reject:
they return warning strings and the sheet processor decides whether a warning
skips the row (engines, fuel, generators) or is only reported (cctv, impact,
location).
"""
from __future__ import annotations

import json
import re
from datetime import datetime, timezone

from fleettelemetry.utils.timestamps import parse_rfc3339


# --- Value parsing ---

# Tried in order after RFC 3339; zone-less results are UTC.
_TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%H:%M:%S",
    "%H:%M",
]

_DIGITS = re.compile(r"\d+")


def parse_float(raw: str) -> float | None:
    """Parse a float cell. Empty → None; unparsable → ValueError."""
    s = raw.strip()
    if not s:
        return None
    return float(s)


def parse_int(raw: str) -> int | None:
    """Parse an integer cell. Empty → None; unparsable → ValueError."""
    s = raw.strip()
    if not s:
        return None
    return int(s)


def parse_timestamp(raw: str) -> datetime:
    """Parse a timestamp cell, trying RFC 3339 then each fallback format.

    Time-only values land on 1900-01-01 (strptime's default date).
    Raises ValueError when the value is empty or no format matches.
    """
    s = raw.strip()
    if not s:
        raise ValueError("empty timestamp")

    ts = parse_rfc3339(s)
    if ts is not None:
        return ts

    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(s, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise ValueError(f"unable to parse timestamp: {s}")


def extract_ordinal(raw: str) -> int | None:
    """First run of digits anywhere in the cell, e.g. "Engine #2 (Port)" → 2."""
    match = _DIGITS.search(raw)
    if match is None:
        return None
    return int(match.group())


def optional_float(raw: str) -> float | None:
    """parse_float for optional fields: unparsable values are left unset."""
    try:
        return parse_float(raw)
    except ValueError:
        return None


def optional_str(raw: str) -> str | None:
    return raw if raw != "" else None


# --- Validators ---

def validate_engine_data(rpm: float | None, temp_c: float | None,
                         oil_pressure: float | None) -> list[str]:
    warnings: list[str] = []
    if rpm is not None and rpm < 0:
        warnings.append("negative rpm")
    if oil_pressure is not None and oil_pressure < 0:
        warnings.append("negative oil pressure")
    return warnings


def validate_fuel_data(level_percent: float | None, volume_liters: float | None,
                       temp_c: float | None) -> list[str]:
    warnings: list[str] = []
    if level_percent is not None and not (0 <= level_percent <= 100):
        warnings.append("invalid fuel level percentage")
    if volume_liters is not None and volume_liters < 0:
        warnings.append("negative fuel volume")
    return warnings


def validate_generator_data(load_kw: float | None, voltage_v: float | None,
                            frequency_hz: float | None, fuel_rate_lph: float | None) -> list[str]:
    warnings: list[str] = []
    if load_kw is not None and load_kw < 0:
        warnings.append("negative generator load")
    if voltage_v is not None and voltage_v < 0:
        warnings.append("negative voltage")
    if frequency_hz is not None and not (45 <= frequency_hz <= 70):
        warnings.append("frequency out of range (45-70 Hz)")
    if fuel_rate_lph is not None and fuel_rate_lph < 0:
        warnings.append("negative fuel rate")
    return warnings


def validate_location_data(latitude: float | None, longitude: float | None,
                           course: float | None, speed: float | None) -> list[str]:
    warnings: list[str] = []
    if latitude is not None and not (-90 <= latitude <= 90):
        warnings.append("latitude out of range (-90 to 90)")
    if longitude is not None and not (-180 <= longitude <= 180):
        warnings.append("longitude out of range (-180 to 180)")
    if course is not None and not (0 <= course <= 360):
        warnings.append("course out of range (0-360 degrees)")
    if speed is not None and speed < 0:
        warnings.append("negative speed")
    return warnings


# --- Extra fields ---

def build_extra_json(row: dict[str, str], mapped_cols: list[str | None]) -> str:
    """Serialize every non-empty column not in mapped_cols.

    Keys are sorted so the payload (and therefore the row fingerprint) does not
    depend on column order. Returns "{}" when nothing is left over.
    """
    mapped = {c for c in mapped_cols if c}
    extra = {col: val for col, val in row.items() if col not in mapped and val != ""}
    if not extra:
        return "{}"
    return json.dumps(extra, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
