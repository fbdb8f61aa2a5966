from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from fleettelemetry.schemas.common import UTCDateTime


class UploadRead(BaseModel):
    id: int
    vessel_id: int
    source_filename: Optional[str] = None
    file_hash: str
    uploaded_at: UTCDateTime
    note: Optional[str] = None

    model_config = {"from_attributes": True}
