"""
api/limiter.py -- slowapi rate limiter construction.

create_app() builds one Limiter per app and hands it to both the
SlowAPIMiddleware (via app.state.limiter) and create_router() in
api/routes/v1/auth.py, which wraps the login handler with it. Each app
therefore owns its counters and its enabled flag; building a second app
never changes rate limiting for the first.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

LOGIN_RATE_LIMIT = "10/minute"


def create_limiter(enabled: bool = True) -> Limiter:
    """Return a fresh in-memory limiter keyed by client IP."""
    return Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=enabled)
