"""GeneratorReading entity: diesel generator electrical output rows."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, Text, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from fleettelemetry.models.base import Base


class GeneratorReading(Base):
    __tablename__ = "generator_readings"
    __table_args__ = (
        UniqueConstraint("vessel_id", "ts", "row_hash", name="uq_gen_vessel_ts_hash"),
        Index("ix_gen_vessel_ts", "vessel_id", "ts"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.id"), nullable=False)
    gen_no: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    load_kw: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    voltage_v: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    frequency_hz: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fuel_rate_lph: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    row_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    extra_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
