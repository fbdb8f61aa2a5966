"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class StreamEnum(str, enum.Enum):
    """Telemetry stream names, as used in API queries and vessel_stream_latest."""
    ENGINES = "engines"
    FUEL = "fuel"
    GENERATORS = "generators"
    CCTV = "cctv"
    IMPACT = "impact"
    LOCATION = "location"


class IngestStatusEnum(str, enum.Enum):
    INGESTED = "ingested"
    ALREADY_INGESTED = "already_ingested"
