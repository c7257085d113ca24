"""
api/limiter.py -- Per-app slowapi rate limiter.

create_app() calls build_limiter(settings) once and stores the result on
app.state.limiter, where SlowAPIMiddleware looks for it. Route limits are
registered here against the route functions instead of with module-level
@limiter.limit() decorators, so the login limit comes from the Settings the
app was built with and two apps never share counters.

SlowAPIMiddleware resolves the matched endpoint and looks up its limits by
"<module>.<function>" name, which is exactly what limit() registers below.
The wrapper limit() returns is not needed and is discarded.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from api.routes.v1 import auth, locations, users
from core.config import Settings

FILTER_PREVIEW_LIMIT = "60/minute"
LISTING_LIMIT = "120/minute"
ADD_LOCATION_LIMIT = "30/minute"


def build_limiter(settings: Settings) -> Limiter:
    """Return a limiter with its own in-memory counters and every route limit registered."""
    limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
    limiter.limit(settings.login_rate_limit)(auth.login)
    limiter.limit(FILTER_PREVIEW_LIMIT)(locations.parse_location_filter)
    limiter.limit(LISTING_LIMIT)(locations.list_locations)
    limiter.limit(ADD_LOCATION_LIMIT)(locations.add_location)
    limiter.limit(LISTING_LIMIT)(users.list_users)
    return limiter
