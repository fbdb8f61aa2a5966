"""Response body of POST /ingest/xlsx."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class IngestResponse(BaseModel):
    status: str  # ingested | already_ingested
    upload_id: Optional[int] = None
    vessel_id: Optional[int] = None
    rows_inserted: dict[str, int] = {}
    warnings: list[str] = []

    model_config = {"from_attributes": True}
