"""Challenge submission and validation route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.api.auth_dependencies import get_current_user_id
from fitleague.api.routes import limiter, to_http_exception
from fitleague.database.db import get_db_session
from fitleague.models.schemas import (
    ChallengeSubmissionCreate,
    ChallengeSubmissionResponse,
    ValidateSubmissionRequest,
)
from fitleague.services import entry_service, validation_service
from fitleague.services.errors import LeagueEngineError
from fitleague.services.submission_store import SubmissionKind

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/api/leagues/{league_id}/challenges/{challenge_id}/submissions",
    response_model=ChallengeSubmissionResponse,
)
@limiter.limit("30/minute")
async def submit_challenge(
    request: Request,
    league_id: int,
    challenge_id: int,
    payload: ChallengeSubmissionCreate,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Submit proof for a challenge (one submission per member)."""
    try:
        return await entry_service.submit_challenge(
            session,
            user_id,
            league_id,
            challenge_id,
            proof_url=payload.proof_url,
            sub_team_id=payload.sub_team_id,
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting challenge {challenge_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error submitting challenge")


@router.post(
    "/api/challenge-submissions/{submission_id}/validate",
    response_model=ChallengeSubmissionResponse,
)
async def validate_challenge_submission(
    submission_id: int,
    payload: ValidateSubmissionRequest,
    league_id: Optional[int] = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Approve or reject a challenge submission.

    Approval awards ``awarded_points`` (0..total_points) or the challenge's
    total_points by default; rejection clears the award.
    """
    try:
        return await validation_service.validate_submission(
            session,
            user_id,
            submission_id,
            payload.status,
            rejection_reason=payload.rejection_reason,
            awarded_points=payload.awarded_points,
            kind=SubmissionKind.CHALLENGE,
            league_id=league_id,
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error validating challenge submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error validating challenge submission")
