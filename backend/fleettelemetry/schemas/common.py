"""Shared field types for response schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import PlainSerializer

from fleettelemetry.utils.timestamps import format_rfc3339

# Stored timestamps are naive UTC; serialize them as RFC 3339 with a Z suffix
UTCDateTime = Annotated[datetime, PlainSerializer(format_rfc3339, return_type=str)]
