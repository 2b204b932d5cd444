"""API v1 router aggregator.

All v1 endpoint routers are included here under the /api/v1 prefix.
"""

from fastapi import APIRouter

from workradar.api.v1 import account, auth

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(account.router, prefix=_AUTH_PREFIX, tags=["account"])
