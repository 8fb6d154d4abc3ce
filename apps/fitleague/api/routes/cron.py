"""Scheduler-triggered job route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.api.auth_dependencies import require_cron_secret
from fitleague.api.routes import to_http_exception
from fitleague.database.db import get_db_session
from fitleague.models.schemas import BackfillResponse
from fitleague.services.errors import LeagueEngineError
from fitleague.services.rest_day_service import run_rest_day_backfill

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/api/cron/auto-rest-day",
    response_model=BackfillResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def trigger_rest_day_backfill(session: AsyncSession = Depends(get_db_session)):
    """Run the rest-day backfill now (safe to repeat on the same day)."""
    try:
        result = await run_rest_day_backfill(session)
        return {
            "success": True,
            "message": f"Auto-assigned {result.assigned} rest days",
            **result.to_dict(),
        }
    except LeagueEngineError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error running rest-day backfill: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error running rest-day backfill")
