"""
Authentication dependencies for FastAPI routes.

Token issuance lives outside this service. The app is given a verifier
callable on ``app.state.verify_token`` that maps a bearer token to a user
id (or None); routes only ever see the resulting user id.
"""

import inspect
import os
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

security = HTTPBearer()


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> int:
    """
    Dependency to get the acting user's id from the bearer token.

    Raises:
        HTTPException: If no verifier is configured or the token is invalid
    """
    verify_token = getattr(request.app.state, "verify_token", None)
    if verify_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication is not configured",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = verify_token(credentials.credentials)
    if inspect.isawaitable(user_id):
        user_id = await user_id

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return int(user_id)


async def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Guard for scheduler-triggered endpoints.

    When CRON_SECRET is set, the request must carry ``Authorization: Bearer <CRON_SECRET>``.
    """
    cron_secret = os.getenv("CRON_SECRET")
    if cron_secret and authorization != f"Bearer {cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
