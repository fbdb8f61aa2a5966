"""Per-sheet telemetry processors.

Each processor maps one sheet's headers to its stream's fields, parses and
validates every data row, fingerprints it and inserts it with
INSERT ... ON CONFLICT DO NOTHING on (vessel_id, ts, row_hash). A conflict is
a successful dedup, not a warning.

Engines, fuel and generators skip rows that fail validation; cctv, impact and
location store them and report the warning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator

from sqlalchemy.orm import Session

from fleettelemetry.models.base import StreamEnum
from fleettelemetry.models.cctv_status_reading import CCTVStatusReading
from fleettelemetry.models.engine_reading import EngineReading
from fleettelemetry.models.fuel_tank_reading import FuelTankReading
from fleettelemetry.models.generator_reading import GeneratorReading
from fleettelemetry.models.impact_vibration_reading import ImpactVibrationReading
from fleettelemetry.models.location_reading import LocationReading
from fleettelemetry.modules.header_mapper import HeaderMapper
from fleettelemetry.modules.normalize import (
    build_extra_json,
    extract_ordinal,
    optional_float,
    optional_str,
    parse_timestamp,
    validate_engine_data,
    validate_fuel_data,
    validate_generator_data,
    validate_location_data,
)
from fleettelemetry.utils.hashing import hash_row
from fleettelemetry.utils.timestamps import to_stored_ts
from fleettelemetry.utils.upsert import insert_ignore

logger = logging.getLogger(__name__)

READING_CONFLICT_COLS = ("vessel_id", "ts", "row_hash")

ENGINE_FIELDS: dict[str, tuple[str, ...]] = {
    "engine_no": ("engine_no", "engine", "eng_no"),
    "rpm": ("rpm",),
    "temp_c": ("temp", "temperature", "temp_c"),
    "oil_pressure_bar": ("oil_pressure", "pressure", "oil_press"),
    "alarms": ("alarm", "alarms", "alert"),
}

FUEL_FIELDS: dict[str, tuple[str, ...]] = {
    "tank_no": ("tank_no", "tank", "tank_id"),
    # Capacity may be liters or m3
    "capacity": ("capacity", "capacity(m3)", "volume", "volume_liters"),
    "current": ("current", "current_level(m3)", "current_level", "current_volume", "volume_liters"),
    "temp_c": ("temp", "temperature", "temp_c"),
}

GENERATOR_FIELDS: dict[str, tuple[str, ...]] = {
    "gen_no": ("gen_no", "generator", "gen", "generator_no"),
    "load_kw": ("load", "load_kw", "power"),
    "voltage_v": ("voltage", "volt", "voltage_v"),
    "frequency_hz": ("frequency", "freq", "frequency_hz"),
    "fuel_rate_lph": ("fuel_rate", "fuel_rate_lph", "consumption"),
}

CCTV_FIELDS: dict[str, tuple[str, ...]] = {
    "cam_id": ("cam_id", "camera", "camera_id", "cam"),
    "status": ("status", "state"),
    "uptime_percent": ("uptime", "uptime_percent", "availability"),
}

IMPACT_FIELDS: dict[str, tuple[str, ...]] = {
    "sensor_id": ("sensor_id", "sensor", "device_id"),
    "accel_g": ("accel", "acceleration", "accel_g"),
    "shock_g": ("shock", "shock_g", "impact"),
    "notes": ("notes", "note", "comment"),
}

LOCATION_FIELDS: dict[str, tuple[str, ...]] = {
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lon", "lng"),
    "course_degrees": ("course", "heading", "bearing"),
    "speed_knots": ("speed", "speed_knots", "speed(knots)"),
    "status": ("status", "vessel_status", "nav_status"),
}

# Ship Info headers containing any of these are kept out of the location extra_json
_LOCATION_MAPPED_SUBSTRINGS = ("lat", "lon", "course", "speed", "status", "time", "name", "imo")


@dataclass
class SheetResult:
    """Outcome of processing one sheet."""
    inserted: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class _Sheet:
    """A sheet's header row, resolved columns and data rows."""
    headers: list[str]
    mapper: HeaderMapper
    ts_col: str | None
    columns: dict[str, str | None]
    data: list[list[str]]

    @property
    def mapped_cols(self) -> list[str | None]:
        return [self.ts_col, *self.columns.values()]

    def iter_rows(self) -> Iterator[tuple[int, dict[str, str]]]:
        """Yield (1-based sheet row number, header -> cell) for each data row."""
        for i, cells in enumerate(self.data, start=2):
            yield i, dict(zip(self.headers, cells))

    def cell(self, row: dict[str, str], field_name: str) -> str:
        col = self.columns.get(field_name)
        if not col:
            return ""
        return row.get(col, "")

    def timestamp(self, row: dict[str, str], default_ts: datetime) -> datetime:
        """Row timestamp (naive UTC, whole seconds), falling back to the reference timestamp."""
        if self.ts_col:
            try:
                return to_stored_ts(parse_timestamp(row.get(self.ts_col, "")))
            except ValueError:
                pass
        return to_stored_ts(default_ts)


def _open_sheet(rows: list[list[str]], fields: dict[str, tuple[str, ...]]) -> _Sheet:
    headers = rows[0]
    mapper = HeaderMapper(headers)
    return _Sheet(
        headers=headers,
        mapper=mapper,
        ts_col=mapper.find_timestamp(),
        columns=mapper.resolve(fields),
        data=rows[1:],
    )


def _sheet_unreadable(sheet_name: str, rows: list[list[str]] | None) -> SheetResult | None:
    if rows is None or len(rows) < 2:
        logger.warning("Sheet %r has no data rows", sheet_name)
        return SheetResult(warnings=[f"error reading {sheet_name} sheet"])
    return None


def _insert_reading(
    db: Session,
    model,
    stream: StreamEnum,
    vessel_id: int,
    ts: datetime,
    ordinal_key: str | None,
    extra_json: str,
    **fields,
) -> bool:
    keys = [ordinal_key] if ordinal_key else []
    keys.append(extra_json)
    row_hash = hash_row(vessel_id, ts, stream.value, *keys)
    values = dict(vessel_id=vessel_id, ts=ts, row_hash=row_hash, extra_json=extra_json, **fields)
    return insert_ignore(db, model, values, READING_CONFLICT_COLS)


def _row_warning(row_no: int, stream: StreamEnum, warns: list[str]) -> str:
    return f"row {row_no} {stream.value}: {', '.join(warns)}"


def process_engine_sheet(db: Session, sheet_name: str, rows: list[list[str]] | None,
                         vessel_id: int, default_ts: datetime) -> SheetResult:
    failed = _sheet_unreadable(sheet_name, rows)
    if failed:
        return failed

    sheet = _open_sheet(rows, ENGINE_FIELDS)
    if sheet.ts_col is None:
        logger.debug("No timestamp column in engine sheet %r. Headers: %s", sheet_name, sheet.headers)
    result = SheetResult()

    for row_no, row in sheet.iter_rows():
        ts = sheet.timestamp(row, default_ts)
        engine_no = extract_ordinal(sheet.cell(row, "engine_no"))
        rpm = optional_float(sheet.cell(row, "rpm"))
        temp_c = optional_float(sheet.cell(row, "temp_c"))
        oil_pressure = optional_float(sheet.cell(row, "oil_pressure_bar"))
        alarms = optional_str(sheet.cell(row, "alarms"))

        warns = validate_engine_data(rpm, temp_c, oil_pressure)
        if warns:
            result.warnings.append(_row_warning(row_no, StreamEnum.ENGINES, warns))
            continue

        extra_json = build_extra_json(row, sheet.mapped_cols)
        if _insert_reading(
            db, EngineReading, StreamEnum.ENGINES, vessel_id, ts,
            f"engine_no:{engine_no}" if engine_no is not None else None, extra_json,
            engine_no=engine_no, rpm=rpm, temp_c=temp_c,
            oil_pressure_bar=oil_pressure, alarms=alarms,
        ):
            result.inserted += 1

    return result


def _is_m3_header(header: str) -> bool:
    return "m3" in header.lower()


def _liters(row: dict[str, str], col: str | None) -> float | None:
    if not col:
        return None
    value = optional_float(row.get(col, ""))
    if value is not None and _is_m3_header(col):
        value *= 1000.0
    return value


def process_fuel_sheet(db: Session, sheet_name: str, rows: list[list[str]] | None,
                       vessel_id: int, default_ts: datetime) -> SheetResult:
    failed = _sheet_unreadable(sheet_name, rows)
    if failed:
        return failed

    sheet = _open_sheet(rows, FUEL_FIELDS)
    cap_col = sheet.columns["capacity"]
    # Single-volume sheets: the capacity column doubles as the current level
    cur_col = sheet.columns["current"] or cap_col
    result = SheetResult()

    for row_no, row in sheet.iter_rows():
        ts = sheet.timestamp(row, default_ts)
        tank_no = extract_ordinal(sheet.cell(row, "tank_no"))
        cap_liters = _liters(row, cap_col)
        cur_liters = _liters(row, cur_col)
        temp_c = optional_float(sheet.cell(row, "temp_c"))

        level_percent = None
        if cur_liters is not None and cap_liters is not None and cap_liters > 0:
            level_percent = cur_liters / cap_liters * 100.0

        warns = validate_fuel_data(level_percent, cur_liters, temp_c)
        if warns:
            result.warnings.append(_row_warning(row_no, StreamEnum.FUEL, warns))
            continue

        extra_json = build_extra_json(row, sheet.mapped_cols)
        if _insert_reading(
            db, FuelTankReading, StreamEnum.FUEL, vessel_id, ts,
            f"tank_no:{tank_no}" if tank_no is not None else None, extra_json,
            tank_no=tank_no, level_percent=level_percent,
            volume_liters=cur_liters, temp_c=temp_c,
        ):
            result.inserted += 1

    return result


def process_generator_sheet(db: Session, sheet_name: str, rows: list[list[str]] | None,
                            vessel_id: int, default_ts: datetime) -> SheetResult:
    failed = _sheet_unreadable(sheet_name, rows)
    if failed:
        return failed

    sheet = _open_sheet(rows, GENERATOR_FIELDS)
    result = SheetResult()

    for row_no, row in sheet.iter_rows():
        ts = sheet.timestamp(row, default_ts)
        gen_no = extract_ordinal(sheet.cell(row, "gen_no"))
        load_kw = optional_float(sheet.cell(row, "load_kw"))
        voltage_v = optional_float(sheet.cell(row, "voltage_v"))
        frequency_hz = optional_float(sheet.cell(row, "frequency_hz"))
        fuel_rate_lph = optional_float(sheet.cell(row, "fuel_rate_lph"))

        warns = validate_generator_data(load_kw, voltage_v, frequency_hz, fuel_rate_lph)
        if warns:
            result.warnings.append(_row_warning(row_no, StreamEnum.GENERATORS, warns))
            continue

        extra_json = build_extra_json(row, sheet.mapped_cols)
        if _insert_reading(
            db, GeneratorReading, StreamEnum.GENERATORS, vessel_id, ts,
            f"gen_no:{gen_no}" if gen_no is not None else None, extra_json,
            gen_no=gen_no, load_kw=load_kw, voltage_v=voltage_v,
            frequency_hz=frequency_hz, fuel_rate_lph=fuel_rate_lph,
        ):
            result.inserted += 1

    return result


def process_cctv_sheet(db: Session, sheet_name: str, rows: list[list[str]] | None,
                       vessel_id: int, default_ts: datetime) -> SheetResult:
    failed = _sheet_unreadable(sheet_name, rows)
    if failed:
        return failed

    sheet = _open_sheet(rows, CCTV_FIELDS)
    result = SheetResult()

    for _row_no, row in sheet.iter_rows():
        ts = sheet.timestamp(row, default_ts)
        cam_id = optional_str(sheet.cell(row, "cam_id"))
        status = optional_str(sheet.cell(row, "status"))
        uptime_percent = optional_float(sheet.cell(row, "uptime_percent"))

        extra_json = build_extra_json(row, sheet.mapped_cols)
        if _insert_reading(
            db, CCTVStatusReading, StreamEnum.CCTV, vessel_id, ts,
            f"cam_id:{cam_id}" if cam_id is not None else None, extra_json,
            cam_id=cam_id, status=status, uptime_percent=uptime_percent,
        ):
            result.inserted += 1

    return result


def process_impact_sheet(db: Session, sheet_name: str, rows: list[list[str]] | None,
                         vessel_id: int, default_ts: datetime) -> SheetResult:
    failed = _sheet_unreadable(sheet_name, rows)
    if failed:
        return failed

    sheet = _open_sheet(rows, IMPACT_FIELDS)
    result = SheetResult()

    for _row_no, row in sheet.iter_rows():
        ts = sheet.timestamp(row, default_ts)
        sensor_id = optional_str(sheet.cell(row, "sensor_id"))
        accel_g = optional_float(sheet.cell(row, "accel_g"))
        shock_g = optional_float(sheet.cell(row, "shock_g"))
        notes = optional_str(sheet.cell(row, "notes"))

        extra_json = build_extra_json(row, sheet.mapped_cols)
        if _insert_reading(
            db, ImpactVibrationReading, StreamEnum.IMPACT, vessel_id, ts,
            f"sensor_id:{sensor_id}" if sensor_id is not None else None, extra_json,
            sensor_id=sensor_id, accel_g=accel_g, shock_g=shock_g, notes=notes,
        ):
            result.inserted += 1

    return result


def process_location(db: Session, headers: list[str], data: list[str],
                     vessel_id: int, default_ts: datetime) -> SheetResult:
    """Store the position embedded in the Ship Info metadata row (at most one reading).

    Out-of-range values are reported but still stored.
    """
    sheet = _open_sheet([headers, data], LOCATION_FIELDS)
    _, row = next(sheet.iter_rows())
    result = SheetResult()

    ts = sheet.timestamp(row, default_ts)
    latitude = optional_float(sheet.cell(row, "latitude"))
    longitude = optional_float(sheet.cell(row, "longitude"))
    course = optional_float(sheet.cell(row, "course_degrees"))
    speed = optional_float(sheet.cell(row, "speed_knots"))
    status = optional_str(sheet.cell(row, "status"))

    warns = validate_location_data(latitude, longitude, course, speed)
    if warns:
        result.warnings.append(f"location data: {', '.join(warns)}")

    if latitude is None and longitude is None and course is None and speed is None and status is None:
        return result

    mapped_cols = [
        h for h in headers
        if any(s in h.lower() for s in _LOCATION_MAPPED_SUBSTRINGS)
    ]
    extra_json = build_extra_json(row, mapped_cols)
    if _insert_reading(
        db, LocationReading, StreamEnum.LOCATION, vessel_id, ts,
        f"status:{status}" if status is not None else None, extra_json,
        latitude=latitude, longitude=longitude, course_degrees=course,
        speed_knots=speed, status=status,
    ):
        result.inserted = 1

    return result
