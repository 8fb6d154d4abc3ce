"""Effort entry intake, reupload and validation route handlers."""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.api.auth_dependencies import get_current_user_id
from fitleague.api.routes import limiter, to_http_exception
from fitleague.database.db import get_db_session
from fitleague.models.schemas import (
    EffortEntryCreate,
    EffortEntryResponse,
    ReuploadRequest,
    SubmissionQueueResponse,
    ValidateSubmissionRequest,
)
from fitleague.services import entry_service, review_service, validation_service
from fitleague.services.errors import LeagueEngineError
from fitleague.services.submission_store import SubmissionKind

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/leagues/{league_id}/entries", response_model=EffortEntryResponse)
@limiter.limit("30/minute")
async def submit_entry(
    request: Request,
    league_id: int,
    payload: EffortEntryCreate,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Submit today's (or a past day's) workout or rest entry."""
    try:
        return await entry_service.submit_effort_entry(
            session,
            user_id,
            league_id,
            entry_date=payload.date,
            entry_type=payload.type,
            workout_type=payload.workout_type,
            duration=payload.duration,
            distance=payload.distance,
            steps=payload.steps,
            holes=payload.holes,
            proof_url=payload.proof_url,
            notes=payload.notes,
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting entry for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error submitting entry")


@router.post("/api/submissions/{submission_id}/reupload", response_model=EffortEntryResponse)
async def reupload_submission(
    submission_id: int,
    payload: ReuploadRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Resubmit a rejected entry; creates a new pending entry linked to the old one."""
    try:
        return await entry_service.reupload_entry(
            session, user_id, submission_id, proof_url=payload.proof_url, notes=payload.notes
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reuploading submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error reuploading submission")


@router.post("/api/submissions/{submission_id}/validate", response_model=EffortEntryResponse)
async def validate_entry(
    submission_id: int,
    payload: ValidateSubmissionRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Approve or reject an effort entry.

    Host/governor may change any entry; captains may grade pending entries
    of their own team, but never their own.
    """
    try:
        return await validation_service.validate_submission(
            session,
            user_id,
            submission_id,
            payload.status,
            rejection_reason=payload.rejection_reason,
            kind=SubmissionKind.EFFORT_ENTRY,
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error validating submission {submission_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error validating submission")


QueueStatus = Optional[Literal["pending", "approved", "rejected"]]


@router.get("/api/leagues/{league_id}/submissions", response_model=SubmissionQueueResponse)
async def list_league_submissions(
    league_id: int,
    status: QueueStatus = Query(None),
    team_id: Optional[int] = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Every entry in the league, for host and governor review."""
    try:
        return await review_service.list_league_submissions(
            session, user_id, league_id, status=status, team_id=team_id
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing submissions for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error listing submissions")


@router.get(
    "/api/leagues/{league_id}/my-team/submissions", response_model=SubmissionQueueResponse
)
async def list_team_submissions(
    league_id: int,
    status: QueueStatus = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Entries of the caller's team, for captain review."""
    try:
        return await review_service.list_team_submissions(session, user_id, league_id, status=status)
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing team submissions for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error listing team submissions")


@router.get("/api/leagues/{league_id}/my-submissions", response_model=SubmissionQueueResponse)
async def list_my_submissions(
    league_id: int,
    status: QueueStatus = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's own entries in the league."""
    try:
        return await review_service.list_my_submissions(
            session, user_id, league_id, status=status, start_date=start_date, end_date=end_date
        )
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing own submissions for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error listing submissions")
