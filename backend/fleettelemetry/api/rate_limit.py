from slowapi import Limiter
from slowapi.util import get_remote_address

from fleettelemetry.config import settings

# Per-client-IP limits; enforced app-wide by SlowAPIMiddleware in main.py
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.DEFAULT_RATE_LIMIT])
