"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from fitleague.services.errors import (
    AlreadyGradedError,
    ConflictError,
    DuplicateSubmissionError,
    InvalidSubmissionError,
    LeagueEngineError,
    NotAMemberError,
    NotFoundError,
    PermissionDeniedError,
    ScopeMismatchError,
    SelfValidationError,
    StorageUnavailableError,
)

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
# Domain error -> HTTP status
# ---------------------------------------------------------------------------
ERROR_STATUS_CODES = (
    (NotAMemberError, 403),
    (PermissionDeniedError, 403),
    (SelfValidationError, 403),
    (AlreadyGradedError, 409),
    (ConflictError, 409),
    (DuplicateSubmissionError, 409),
    (NotFoundError, 404),
    (ScopeMismatchError, 400),
    (InvalidSubmissionError, 400),
    (StorageUnavailableError, 503),
)


def status_code_for(error: LeagueEngineError) -> int:
    for error_cls, code in ERROR_STATUS_CODES:
        if isinstance(error, error_cls):
            return code
    return 500


def to_http_exception(error: LeagueEngineError) -> HTTPException:
    """Map a domain failure to the HTTPException a route should raise."""
    return HTTPException(status_code=status_code_for(error), detail=str(error))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from fitleague.api.routes.submissions import router as submissions_router
from fitleague.api.routes.challenges import router as challenges_router
from fitleague.api.routes.leaderboards import router as leaderboards_router
from fitleague.api.routes.cron import router as cron_router
from fitleague.api.routes.health import router as health_router

router = APIRouter()
router.include_router(submissions_router)
router.include_router(challenges_router)
router.include_router(leaderboards_router)
router.include_router(cron_router)
router.include_router(health_router)
