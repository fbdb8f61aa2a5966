import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, selectinload

from fleettelemetry.api.rate_limit import limiter
from fleettelemetry.config import settings
from fleettelemetry.database import get_db
from fleettelemetry.models.base import IngestStatusEnum
from fleettelemetry.models.upload import Upload
from fleettelemetry.models.vessel import Vessel
from fleettelemetry.schemas.ingest import IngestResponse
from fleettelemetry.schemas.telemetry import STREAM_SCHEMAS, TelemetryPage
from fleettelemetry.schemas.upload import UploadRead
from fleettelemetry.schemas.vessel import VesselListResponse, VesselRead
from fleettelemetry.utils.timestamps import parse_rfc3339

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_upload_size(file: UploadFile) -> None:
    """Reject uploads exceeding MAX_UPLOAD_SIZE_MB."""
    file.file.seek(0, 2)  # seek to end
    size_mb = file.file.tell() / (1024 * 1024)
    file.file.seek(0)  # reset
    if size_mb > settings.MAX_UPLOAD_SIZE_MB:
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({size_mb:.1f} MB). Max: {settings.MAX_UPLOAD_SIZE_MB} MB.",
        )


def _parse_ts_param(name: str, value: Optional[str]) -> Optional[datetime]:
    """Parse an optional RFC 3339 query parameter; 400 if malformed."""
    if not value:
        return None
    ts = parse_rfc3339(value)
    if ts is None:
        raise HTTPException(status_code=400, detail=f"invalid {name} format, use RFC 3339")
    return ts


def _get_vessel_or_404(db: Session, vessel_id: int) -> Vessel:
    vessel = (
        db.query(Vessel)
        .options(selectinload(Vessel.stream_latest))
        .filter(Vessel.id == vessel_id)
        .first()
    )
    if not vessel:
        raise HTTPException(status_code=404, detail="Vessel not found")
    return vessel


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

@router.post("/ingest/xlsx", tags=["ingestion"], response_model=IngestResponse)
@limiter.limit(settings.INGEST_RATE_LIMIT)
def ingest_xlsx(
    request: Request,
    file: UploadFile = File(...),
    imo: Optional[str] = Query(None, description="IMO number; takes precedence over the workbook's"),
    vessel_name: Optional[str] = Query(None, description="Used when no IMO is known"),
    period_start: Optional[str] = Query(None, description="RFC 3339 reference timestamp"),
    note: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Ingest one telemetry workbook. 409 if the same bytes were already ingested."""
    from fleettelemetry.modules.ingest import process_file

    imo = (imo or "").strip() or None
    vessel_name = (vessel_name or "").strip() or None
    if not imo and not vessel_name:
        raise HTTPException(status_code=400, detail="either 'imo' or 'vessel_name' parameter is required")
    reference_ts = _parse_ts_param("period_start", period_start)

    _check_upload_size(file)
    data = file.file.read()

    result = process_file(
        db,
        data,
        file.filename,
        imo=imo,
        vessel_name=vessel_name,
        reference_ts=reference_ts,
        note=note,
    )
    body = IngestResponse.model_validate(result)

    if result.status == IngestStatusEnum.ALREADY_INGESTED.value and not settings.ALLOW_UNSAFE_DUPLICATE_INGEST:
        return JSONResponse(status_code=409, content=body.model_dump())
    return body


@router.get("/uploads/{upload_id}", tags=["ingestion"], response_model=UploadRead)
def get_upload(upload_id: int, db: Session = Depends(get_db)):
    upload = db.query(Upload).filter(Upload.id == upload_id).first()
    if not upload:
        raise HTTPException(status_code=404, detail="Upload not found")
    return UploadRead.model_validate(upload)


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------

@router.get("/vessels", tags=["vessels"], response_model=VesselListResponse)
def list_vessels(db: Session = Depends(get_db)):
    """All vessels ordered by name, each with its latest timestamp per stream."""
    vessels = (
        db.query(Vessel)
        .options(selectinload(Vessel.stream_latest))
        .order_by(Vessel.name, Vessel.id)
        .all()
    )
    items = [VesselRead.from_vessel(v) for v in vessels]
    return VesselListResponse(items=items, total=len(items))


@router.get("/vessels/{vessel_id}", tags=["vessels"], response_model=VesselRead)
def get_vessel(vessel_id: int, db: Session = Depends(get_db)):
    return VesselRead.from_vessel(_get_vessel_or_404(db, vessel_id))


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

@router.get("/vessels/{vessel_id}/telemetry", tags=["telemetry"])
def get_telemetry(
    vessel_id: int,
    stream: str = Query(..., description="engines, fuel, generators, cctv, impact or location"),
    cursor: Optional[str] = Query(None, description="next_cursor from the previous page"),
    limit: Optional[int] = Query(None, ge=1),
    ts_from: Optional[str] = Query(None, alias="from", description="RFC 3339 lower bound (inclusive)"),
    ts_to: Optional[str] = Query(None, alias="to", description="RFC 3339 upper bound (inclusive)"),
    engine_no: Optional[int] = None,
    tank_no: Optional[int] = None,
    gen_no: Optional[int] = None,
    cam_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Keyset-paginated readings for one stream, ordered by (ts, id)."""
    from fleettelemetry.modules.telemetry_query import query_telemetry

    if stream not in STREAM_SCHEMAS:
        raise HTTPException(status_code=400, detail=f"invalid stream: {stream}")
    _get_vessel_or_404(db, vessel_id)

    limit = min(limit or settings.DEFAULT_QUERY_LIMIT, settings.MAX_QUERY_LIMIT)
    filters = {
        "engine_no": engine_no,
        "tank_no": tank_no,
        "gen_no": gen_no,
        "cam_id": cam_id,
        "sensor_id": sensor_id,
    }
    try:
        page = query_telemetry(
            db,
            vessel_id,
            stream,
            filters=filters,
            ts_from=_parse_ts_param("from", ts_from),
            ts_to=_parse_ts_param("to", ts_to),
            cursor=cursor or "",
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    schema = STREAM_SCHEMAS[stream]
    return TelemetryPage(
        stream=stream,
        items=[schema.from_row(r) for r in page.items],
        next_cursor=page.next_cursor,
    )


@router.get("/vessels/{vessel_id}/latest", tags=["telemetry"])
def get_latest(
    vessel_id: int,
    stream: str = Query("engines"),
    engine_no: Optional[int] = None,
    tank_no: Optional[int] = None,
    gen_no: Optional[int] = None,
    cam_id: Optional[str] = None,
    sensor_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Newest reading of one stream; 404 when the vessel has none."""
    from fleettelemetry.modules.telemetry_query import latest_reading

    if stream not in STREAM_SCHEMAS:
        raise HTTPException(status_code=400, detail=f"invalid stream: {stream}")
    _get_vessel_or_404(db, vessel_id)

    filters = {
        "engine_no": engine_no,
        "tank_no": tank_no,
        "gen_no": gen_no,
        "cam_id": cam_id,
        "sensor_id": sensor_id,
    }
    try:
        row = latest_reading(db, vessel_id, stream, filters=filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if row is None:
        raise HTTPException(status_code=404, detail=f"no {stream} readings for vessel {vessel_id}")
    return STREAM_SCHEMAS[stream].from_row(row).model_dump(mode="json")
