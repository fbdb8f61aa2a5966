"""CCTVStatusReading entity: per-camera status/uptime rows."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, Text, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from fleettelemetry.models.base import Base


class CCTVStatusReading(Base):
    __tablename__ = "cctv_status_readings"
    __table_args__ = (
        UniqueConstraint("vessel_id", "ts", "row_hash", name="uq_cctv_vessel_ts_hash"),
        Index("ix_cctv_vessel_ts", "vessel_id", "ts"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.id"), nullable=False)
    cam_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # e.g. OK, OFFLINE
    uptime_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    row_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    extra_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
