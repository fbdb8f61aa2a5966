"""Vessel telemetry workbook ingestion.

One upload is one XLSX workbook: a Ship Info sheet (vessel identity plus an
optional position) and any number of engine, fuel, generator, CCTV and
impact/vibration sheets. Ingestion is idempotent at two levels:

- file: the sha256 of the raw bytes is unique on ``uploads``; re-submitting
  identical bytes returns ``already_ingested`` and does nothing else.
- row: each reading carries a fingerprint and is inserted with
  ON CONFLICT DO NOTHING on (vessel_id, ts, row_hash).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleettelemetry.models.base import IngestStatusEnum, StreamEnum
from fleettelemetry.models.stream_latest import VesselStreamLatest
from fleettelemetry.models.upload import Upload
from fleettelemetry.models.vessel import Vessel
from fleettelemetry.modules.header_mapper import HeaderMapper
from fleettelemetry.modules.sheet_processors import (
    SheetResult,
    process_cctv_sheet,
    process_engine_sheet,
    process_fuel_sheet,
    process_generator_sheet,
    process_impact_sheet,
    process_location,
)
from fleettelemetry.modules.workbook import Workbook, read_workbook
from fleettelemetry.utils.hashing import sha256_hex
from fleettelemetry.utils.timestamps import to_stored_ts, utcnow
from fleettelemetry.utils.upsert import insert_ignore, upsert

logger = logging.getLogger(__name__)

SheetProcessor = Callable[[Session, str, Optional[list[list[str]]], int, datetime], SheetResult]

# Checked in order against the lowercased sheet name
_SHEET_ROUTES: list[tuple[tuple[str, ...], StreamEnum, SheetProcessor]] = [
    (("engine",), StreamEnum.ENGINES, process_engine_sheet),
    (("fuel",), StreamEnum.FUEL, process_fuel_sheet),
    (("generator",), StreamEnum.GENERATORS, process_generator_sheet),
    (("cctv",), StreamEnum.CCTV, process_cctv_sheet),
    (("impact", "vibration"), StreamEnum.IMPACT, process_impact_sheet),
]


@dataclass
class IngestResult:
    """Aggregate outcome returned to the caller of process_file."""
    status: str
    upload_id: int | None = None
    vessel_id: int | None = None
    rows_inserted: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def classify_sheet(sheet_name: str) -> tuple[StreamEnum, SheetProcessor] | None:
    """Return (stream, processor) for a telemetry sheet, or None if the sheet is ignored."""
    lowered = sheet_name.lower()
    for needles, stream, processor in _SHEET_ROUTES:
        if any(n in lowered for n in needles):
            return stream, processor
    return None


def find_ship_info_sheet(sheet_names: list[str]) -> str | None:
    for name in sheet_names:
        lowered = name.lower()
        if "ship" in lowered and "info" in lowered:
            return name
    return None


def process_file(
    db: Session,
    data: bytes,
    filename: str | None,
    imo: str | None = None,
    vessel_name: str | None = None,
    reference_ts: datetime | None = None,
    note: str | None = None,
) -> IngestResult:
    """
    Ingest one telemetry workbook.

    ``reference_ts`` is the timestamp used for rows without a parseable
    timestamp of their own, for the upload record and for the
    latest-per-stream pointers; it defaults to now (UTC).

    Raises ValueError if the workbook cannot be opened or no vessel identity
    (IMO or name) can be resolved. Nothing is persisted in that case.
    """
    imo = (imo or "").strip() or None
    vessel_name = (vessel_name or "").strip() or None

    file_hash = sha256_hex(data)
    existing = db.query(Upload).filter(Upload.file_hash == file_hash).first()
    if existing:
        logger.info("File %s already ingested as upload %d", filename, existing.id)
        return IngestResult(
            status=IngestStatusEnum.ALREADY_INGESTED.value,
            upload_id=existing.id,
            vessel_id=existing.vessel_id,
        )

    ref_ts = to_stored_ts(reference_ts or utcnow())

    try:
        with read_workbook(data) as wb:
            result = _ingest_workbook(db, wb, imo, vessel_name, ref_ts)

        _update_stream_latest(db, result.vessel_id, result.rows_inserted, ref_ts)
        upload = _record_upload(db, result.vessel_id, filename, file_hash, ref_ts, note)
        if upload is None:
            # Lost a race against an identical concurrent upload
            db.commit()
            winner = db.query(Upload).filter(Upload.file_hash == file_hash).first()
            logger.info("File %s ingested concurrently as upload %d", filename, winner.id)
            return IngestResult(
                status=IngestStatusEnum.ALREADY_INGESTED.value,
                upload_id=winner.id,
                vessel_id=winner.vessel_id,
            )
        db.commit()
    except (ValueError, SQLAlchemyError):
        db.rollback()
        raise

    result.upload_id = upload.id
    logger.info(
        "Ingestion complete: upload=%d vessel=%d rows=%s warnings=%d",
        upload.id, result.vessel_id, result.rows_inserted, len(result.warnings),
    )
    return result


def _ingest_workbook(
    db: Session,
    wb: Workbook,
    imo: str | None,
    vessel_name: str | None,
    ref_ts: datetime,
) -> IngestResult:
    sheet_names = wb.sheet_names
    ship_info = find_ship_info_sheet(sheet_names)

    ship_rows: list[list[str]] | None = None
    if ship_info is not None:
        try:
            ship_rows = wb.rows(ship_info)
        except ValueError as e:
            logger.warning("Ship Info sheet unreadable, using request identifiers: %s", e)
        if ship_rows is not None and len(ship_rows) < 2:
            ship_rows = None

    vessel = resolve_vessel(db, ship_rows, imo, vessel_name)

    result = IngestResult(status=IngestStatusEnum.INGESTED.value, vessel_id=vessel.id)

    if ship_rows is not None:
        location = process_location(db, ship_rows[0], ship_rows[1], vessel.id, ref_ts)
        if location.inserted > 0:
            result.rows_inserted[StreamEnum.LOCATION.value] = location.inserted
        result.warnings.extend(location.warnings)

    for sheet_name in sheet_names:
        if sheet_name == ship_info:
            continue
        route = classify_sheet(sheet_name)
        if route is None:
            logger.debug("Ignoring sheet %r", sheet_name)
            continue
        stream, processor = route

        try:
            rows = wb.rows(sheet_name)
        except ValueError as e:
            logger.warning("Cannot read sheet %r: %s", sheet_name, e)
            rows = None

        sheet_result = processor(db, sheet_name, rows, vessel.id, ref_ts)
        result.rows_inserted[stream.value] = result.rows_inserted.get(stream.value, 0) + sheet_result.inserted
        result.warnings.extend(sheet_result.warnings)
        for warning in sheet_result.warnings:
            logger.warning("Sheet %r: %s", sheet_name, warning)

    return result


def _first_value(headers: list[str], data: list[str], col: str | None) -> str | None:
    """First non-empty cell under header ``col`` (headers may repeat)."""
    if col is None:
        return None
    for i, h in enumerate(headers):
        if h == col and i < len(data) and data[i] != "":
            return data[i]
    return None


def resolve_vessel(
    db: Session,
    ship_rows: list[list[str]] | None,
    imo: str | None,
    vessel_name: str | None,
) -> Vessel:
    """Find or create the vessel an upload belongs to.

    Ship Info supplies imo/name/flag/type; an explicit ``imo`` overrides the
    sheet's. The name falls back to ``vessel_name`` then ``Vessel-{imo}``.
    A known IMO updates that vessel's metadata in place.
    """
    resolved_imo = imo
    name = flag = vessel_type = None

    if ship_rows is not None:
        headers, data = ship_rows[0], ship_rows[1]
        mapper = HeaderMapper(headers)
        if resolved_imo is None:
            resolved_imo = _first_value(headers, data, mapper.find("imo"))
        name = _first_value(headers, data, mapper.find("name", "vessel_name", "ship_name"))
        flag = _first_value(headers, data, mapper.find("flag"))
        vessel_type = _first_value(headers, data, mapper.find("type", "vessel_type", "ship_type"))

    if name is None:
        if vessel_name:
            name = vessel_name
        elif resolved_imo:
            name = f"Vessel-{resolved_imo}"
        else:
            raise ValueError("vessel name is required when IMO is not provided")

    if resolved_imo:
        vessel = db.query(Vessel).filter(Vessel.imo == resolved_imo).first()
    else:
        vessel = (
            db.query(Vessel)
            .filter(Vessel.imo.is_(None), Vessel.name == name)
            .first()
        )

    if vessel is not None:
        _update_vessel(vessel, name, flag, vessel_type)
        return vessel

    vessel = Vessel(imo=resolved_imo, name=name, flag=flag, vessel_type=vessel_type)
    try:
        db.add(vessel)
        db.flush()
    except IntegrityError:
        # Another request created the same IMO first
        db.rollback()
        vessel = db.query(Vessel).filter(Vessel.imo == resolved_imo).first()
        if vessel is None:
            raise
        _update_vessel(vessel, name, flag, vessel_type)
        return vessel

    logger.info("Created vessel %d (imo=%s, name=%s)", vessel.id, resolved_imo, name)
    return vessel


def _update_vessel(vessel: Vessel, name: str, flag: str | None, vessel_type: str | None) -> None:
    """Overwrite mutable metadata; absent values keep what is stored."""
    changed = []
    if name and name != vessel.name:
        vessel.name = name
        changed.append("name")
    if flag and flag != vessel.flag:
        vessel.flag = flag
        changed.append("flag")
    if vessel_type and vessel_type != vessel.vessel_type:
        vessel.vessel_type = vessel_type
        changed.append("type")
    if changed:
        logger.info("Updated vessel %d: %s", vessel.id, ", ".join(changed))


def _update_stream_latest(db: Session, vessel_id: int, rows_inserted: dict[str, int],
                          ref_ts: datetime) -> None:
    for stream, count in rows_inserted.items():
        if count > 0:
            upsert(
                db,
                VesselStreamLatest,
                {"vessel_id": vessel_id, "stream": stream, "latest_ts": ref_ts},
                ("vessel_id", "stream"),
            )


def _record_upload(db: Session, vessel_id: int, filename: str | None, file_hash: str,
                   ref_ts: datetime, note: str | None) -> Upload | None:
    """Insert the upload row. Returns None if the hash was inserted concurrently."""
    inserted = insert_ignore(
        db,
        Upload,
        {
            "vessel_id": vessel_id,
            "source_filename": filename,
            "file_hash": file_hash,
            "uploaded_at": ref_ts,
            "note": note,
        },
        ("file_hash",),
    )
    if not inserted:
        return None
    return db.query(Upload).filter(Upload.file_hash == file_hash).one()
