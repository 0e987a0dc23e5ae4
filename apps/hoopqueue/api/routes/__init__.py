"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from hoopqueue.services.errors import NotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Shared error mapping
# ---------------------------------------------------------------------------
def http_error(e: Exception, action: str) -> HTTPException:
    """Translate a service exception into the HTTPException a route raises."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from hoopqueue.api.routes.game_sets import router as game_sets_router  # noqa: E402
from hoopqueue.api.routes.checkins import router as checkins_router  # noqa: E402
from hoopqueue.api.routes.games import router as games_router  # noqa: E402
from hoopqueue.api.routes.users import router as users_router  # noqa: E402

router = APIRouter()
router.include_router(game_sets_router)
router.include_router(checkins_router)
router.include_router(games_router)
router.include_router(users_router)
