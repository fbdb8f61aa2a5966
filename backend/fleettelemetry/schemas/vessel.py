"""Pydantic schemas for Vessel entity, used by FastAPI for response typing."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from fleettelemetry.schemas.common import UTCDateTime


class VesselRead(BaseModel):
    id: int
    imo: Optional[str] = None
    name: str
    flag: Optional[str] = None
    vessel_type: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None
    # stream name -> reference timestamp of the last upload that added rows
    latest: dict[str, UTCDateTime] = {}

    model_config = {"from_attributes": True}

    @classmethod
    def from_vessel(cls, vessel) -> "VesselRead":
        out = cls.model_validate(vessel)
        out.latest = {s.stream: s.latest_ts for s in vessel.stream_latest}
        return out


class VesselListResponse(BaseModel):
    items: list[VesselRead]
    total: int
