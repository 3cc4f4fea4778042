"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

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
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from backend.api.routes.leagues import router as leagues_router  # noqa: E402
from backend.api.routes.players import router as players_router  # noqa: E402
from backend.api.routes.weeks import router as weeks_router  # noqa: E402
from backend.api.routes.courses import router as courses_router  # noqa: E402
from backend.api.routes.teams import router as teams_router  # noqa: E402
from backend.api.routes.matches import router as matches_router  # noqa: E402
from backend.api.routes.scores import router as scores_router  # noqa: E402
from backend.api.routes.handicaps import router as handicaps_router  # noqa: E402
from backend.api.routes.admin import router as admin_router  # noqa: E402
from backend.api.routes.calc import router as calc_router  # noqa: E402

router = APIRouter()
router.include_router(leagues_router)
router.include_router(players_router)
router.include_router(weeks_router)
router.include_router(courses_router)
router.include_router(teams_router)
router.include_router(matches_router)
router.include_router(scores_router)
router.include_router(handicaps_router)
router.include_router(admin_router)
router.include_router(calc_router)
