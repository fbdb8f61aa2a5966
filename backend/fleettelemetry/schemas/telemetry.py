"""Per-stream reading schemas and the paginated envelope."""
from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, SerializeAsAny

from fleettelemetry.schemas.common import UTCDateTime


class ReadingBase(BaseModel):
    id: int
    vessel_id: int
    ts: UTCDateTime
    row_hash: str
    extra: dict[str, Any] = {}

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, row) -> "ReadingBase":
        out = cls.model_validate(row)
        out.extra = json.loads(row.extra_json or "{}")
        return out


class EngineReadingRead(ReadingBase):
    engine_no: Optional[int] = None
    rpm: Optional[float] = None
    temp_c: Optional[float] = None
    oil_pressure_bar: Optional[float] = None
    alarms: Optional[str] = None


class FuelTankReadingRead(ReadingBase):
    tank_no: Optional[int] = None
    level_percent: Optional[float] = None
    volume_liters: Optional[float] = None
    temp_c: Optional[float] = None


class GeneratorReadingRead(ReadingBase):
    gen_no: Optional[int] = None
    load_kw: Optional[float] = None
    voltage_v: Optional[float] = None
    frequency_hz: Optional[float] = None
    fuel_rate_lph: Optional[float] = None


class CCTVStatusReadingRead(ReadingBase):
    cam_id: Optional[str] = None
    status: Optional[str] = None
    uptime_percent: Optional[float] = None


class ImpactVibrationReadingRead(ReadingBase):
    sensor_id: Optional[str] = None
    accel_g: Optional[float] = None
    shock_g: Optional[float] = None
    notes: Optional[str] = None


class LocationReadingRead(ReadingBase):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    course_degrees: Optional[float] = None
    speed_knots: Optional[float] = None
    status: Optional[str] = None


STREAM_SCHEMAS: dict[str, type[ReadingBase]] = {
    "engines": EngineReadingRead,
    "fuel": FuelTankReadingRead,
    "generators": GeneratorReadingRead,
    "cctv": CCTVStatusReadingRead,
    "impact": ImpactVibrationReadingRead,
    "location": LocationReadingRead,
}


class TelemetryPage(BaseModel):
    stream: str
    items: list[SerializeAsAny[ReadingBase]]
    next_cursor: Optional[str] = None
