"""VesselStreamLatest: latest ingested timestamp per (vessel, stream)."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleettelemetry.models.base import Base


class VesselStreamLatest(Base):
    __tablename__ = "vessel_stream_latest"

    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.id"), primary_key=True)
    stream: Mapped[str] = mapped_column(String(20), primary_key=True)
    # Reference timestamp of the last ingestion that inserted rows for this stream
    latest_ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="stream_latest")
