"""Import all models to register them with SQLAlchemy metadata."""
from fleettelemetry.models.base import Base
from fleettelemetry.models.vessel import Vessel
from fleettelemetry.models.upload import Upload
from fleettelemetry.models.engine_reading import EngineReading
from fleettelemetry.models.fuel_tank_reading import FuelTankReading
from fleettelemetry.models.generator_reading import GeneratorReading
from fleettelemetry.models.cctv_status_reading import CCTVStatusReading
from fleettelemetry.models.impact_vibration_reading import ImpactVibrationReading
from fleettelemetry.models.location_reading import LocationReading
from fleettelemetry.models.stream_latest import VesselStreamLatest

__all__ = [
    "Base",
    "Vessel",
    "Upload",
    "EngineReading",
    "FuelTankReading",
    "GeneratorReading",
    "CCTVStatusReading",
    "ImpactVibrationReading",
    "LocationReading",
    "VesselStreamLatest",
]
