"""League and challenge leaderboard route handlers."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.api.auth_dependencies import get_current_user_id
from fitleague.api.routes import to_http_exception
from fitleague.database.db import get_db_session
from fitleague.models.schemas import LeaderboardResponse, RankingRowResponse
from fitleague.services import leaderboard_service
from fitleague.services.errors import InvalidSubmissionError, LeagueEngineError
from fitleague.utils.constants import INDIVIDUAL_LEADERBOARD_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/leagues/{league_id}/leaderboard", response_model=LeaderboardResponse)
async def get_league_leaderboard(
    league_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    normalize: Optional[bool] = Query(None),
    full: bool = Query(False),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Team, individual and sub-team standings with the pending window.

    Individual lists are capped at the top 50 unless ``full=true``.
    """
    try:
        if start_date and end_date and start_date > end_date:
            raise InvalidSubmissionError("start_date must be on or before end_date")

        data = await leaderboard_service.compute_leaderboard(
            session, league_id, start_date=start_date, end_date=end_date, normalize=normalize
        )
        result = data.to_dict()
        if not full:
            for key in ("individuals", "challenge_individuals"):
                result[key] = result[key][:INDIVIDUAL_LEADERBOARD_LIMIT]
        return result
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error computing leaderboard for league {league_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error computing leaderboard")


@router.get(
    "/api/leagues/{league_id}/challenges/{challenge_id}/leaderboard",
    response_model=List[RankingRowResponse],
)
async def get_challenge_leaderboard(
    league_id: int,
    challenge_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
):
    """Ranked approved submissions of one challenge (league members only)."""
    try:
        rows = await leaderboard_service.compute_challenge_leaderboard(
            session, challenge_id, league_id=league_id, viewer_user_id=user_id
        )
        return [
            {"id": row.id, "name": row.name, "score": row.score, "rank": row.rank}
            for row in rows
        ]
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error computing leaderboard for challenge {challenge_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error computing challenge leaderboard")
