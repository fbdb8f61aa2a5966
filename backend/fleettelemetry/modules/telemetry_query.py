"""Read side: keyset-paginated telemetry queries and latest readings per stream."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from fleettelemetry.models.base import StreamEnum
from fleettelemetry.models.cctv_status_reading import CCTVStatusReading
from fleettelemetry.models.engine_reading import EngineReading
from fleettelemetry.models.fuel_tank_reading import FuelTankReading
from fleettelemetry.models.generator_reading import GeneratorReading
from fleettelemetry.models.impact_vibration_reading import ImpactVibrationReading
from fleettelemetry.models.location_reading import LocationReading
from fleettelemetry.utils.pagination import ZERO_TIME, decode_cursor, encode_cursor
from fleettelemetry.utils.timestamps import to_utc_naive

logger = logging.getLogger(__name__)

STREAM_MODELS: dict[str, type] = {
    StreamEnum.ENGINES.value: EngineReading,
    StreamEnum.FUEL.value: FuelTankReading,
    StreamEnum.GENERATORS.value: GeneratorReading,
    StreamEnum.CCTV.value: CCTVStatusReading,
    StreamEnum.IMPACT.value: ImpactVibrationReading,
    StreamEnum.LOCATION.value: LocationReading,
}

# Column each stream can be narrowed by (location has none)
STREAM_FILTERS: dict[str, str] = {
    StreamEnum.ENGINES.value: "engine_no",
    StreamEnum.FUEL.value: "tank_no",
    StreamEnum.GENERATORS.value: "gen_no",
    StreamEnum.CCTV.value: "cam_id",
    StreamEnum.IMPACT.value: "sensor_id",
}


@dataclass
class Page:
    items: list = field(default_factory=list)
    next_cursor: Optional[str] = None


def model_for_stream(stream: str):
    """Raises ValueError for an unknown stream name."""
    try:
        return STREAM_MODELS[stream]
    except KeyError:
        raise ValueError(
            f"unknown stream {stream!r}; expected one of {', '.join(STREAM_MODELS)}"
        ) from None


def _filtered(db: Session, vessel_id: int, stream: str, filters: dict[str, Any] | None):
    model = model_for_stream(stream)
    q = db.query(model).filter(model.vessel_id == vessel_id)
    allowed = STREAM_FILTERS.get(stream)
    for name, value in (filters or {}).items():
        if value is None:
            continue
        if name != allowed:
            raise ValueError(f"filter {name!r} does not apply to stream {stream!r}")
        q = q.filter(getattr(model, name) == value)
    return model, q


def query_telemetry(
    db: Session,
    vessel_id: int,
    stream: str,
    filters: dict[str, Any] | None = None,
    ts_from: datetime | None = None,
    ts_to: datetime | None = None,
    cursor: str = "",
    limit: int = 200,
) -> Page:
    """
    One page of readings ordered by (ts, id) ascending.

    ``cursor`` is the opaque ``next_cursor`` from the previous page; empty
    starts from the beginning. Raises ValueError on a malformed cursor,
    unknown stream or inapplicable filter.
    """
    model, q = _filtered(db, vessel_id, stream, filters)

    if ts_from is not None:
        q = q.filter(model.ts >= to_utc_naive(ts_from))
    if ts_to is not None:
        q = q.filter(model.ts <= to_utc_naive(ts_to))

    after_ts, after_id = decode_cursor(cursor or "")
    if after_ts != ZERO_TIME:
        after_ts = to_utc_naive(after_ts)
        q = q.filter(
            or_(
                model.ts > after_ts,
                and_(model.ts == after_ts, model.id > after_id),
            )
        )

    rows = q.order_by(model.ts.asc(), model.id.asc()).limit(limit + 1).all()

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        last = rows[-1]
        next_cursor = encode_cursor(last.ts, last.id)

    return Page(items=rows, next_cursor=next_cursor)


def latest_reading(db: Session, vessel_id: int, stream: str, filters: dict[str, Any] | None = None):
    """Newest reading by (ts, id), or None."""
    model, q = _filtered(db, vessel_id, stream, filters)
    return q.order_by(model.ts.desc(), model.id.desc()).first()
