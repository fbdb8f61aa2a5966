"""Vessel entity: identity anchor for every upload and reading."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleettelemetry.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Nullable when only a vessel name is known; at most one row per non-null IMO
    imo: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    flag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_type: Mapped[Optional[str]] = mapped_column("type", String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    uploads: Mapped[list["Upload"]] = relationship("Upload", back_populates="vessel")
    stream_latest: Mapped[list["VesselStreamLatest"]] = relationship(
        "VesselStreamLatest", back_populates="vessel", order_by="VesselStreamLatest.stream"
    )
