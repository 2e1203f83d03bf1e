"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Email or password is incorrect"
)
PENDING_APPROVAL_RESPONSE = HTTPException(
    status_code=403, detail="Your account is pending approval"
)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from rinkside.api.routes.auth import router as auth_router  # noqa: E402
from rinkside.api.routes.users import router as users_router  # noqa: E402
from rinkside.api.routes.leagues import router as leagues_router  # noqa: E402
from rinkside.api.routes.teams import router as teams_router  # noqa: E402
from rinkside.api.routes.invitations import router as invitations_router  # noqa: E402
from rinkside.api.routes.admin import router as admin_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(leagues_router)
router.include_router(teams_router)
router.include_router(invitations_router)
router.include_router(admin_router)
