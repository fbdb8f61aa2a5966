"""Upload entity: one record per distinct workbook content."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleettelemetry.models.base import Base


class Upload(Base):
    __tablename__ = "uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.id"), nullable=False, index=True)
    source_filename: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # sha256 of the raw file bytes, the file-level idempotency key
    file_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="uploads")
