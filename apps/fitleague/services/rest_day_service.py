"""
Rest-day backfill: auto-approve a rest day for members who missed yesterday.

For every league with auto rest days enabled, each active member with no
entry for (league-local) yesterday and rest-day quota left gets an approved
rest entry. Runs once a day from RestDayBackfillWorker, and can be triggered
manually through the cron route. Re-running for the same day is harmless:
the one-live-entry-per-day index rejects the second insert and it is skipped.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database import db
from fitleague.database.models import LeagueStatus
from fitleague.services import submission_store
from fitleague.services.errors import DuplicateSubmissionError
from fitleague.utils.datetime_utils import league_yesterday, utcnow, weeks_in_span

logger = logging.getLogger(__name__)

BACKFILL_LEAGUE_STATUSES = [LeagueStatus.ACTIVE.value, LeagueStatus.LAUNCHED.value]


@dataclass
class BackfillResult:
    processed: int = 0
    assigned: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "assigned": self.assigned, "failed": self.failed}


def rest_day_quota(league: Dict) -> int:
    """Total rest days a member may use over the league (partial weeks count as whole)."""
    return weeks_in_span(league["start_date"], league["end_date"]) * (league["rest_days"] or 0)


async def _backfill_member(
    session: AsyncSession, league_member_id: int, yesterday: date, total_allowed: int
) -> bool:
    """Insert yesterday's rest entry for one member if eligible. Returns True if inserted."""
    if await submission_store.has_entry_for_date(session, league_member_id, yesterday):
        return False

    used = await submission_store.count_approved_rest_days(session, league_member_id)
    if total_allowed - used <= 0:
        return False

    await submission_store.insert_rest_entry(session, league_member_id, yesterday)
    await session.commit()
    return True


async def run_rest_day_backfill(
    session: AsyncSession, now: Optional[datetime] = None
) -> BackfillResult:
    """
    Run the backfill across all eligible leagues.

    Each inserted rest entry is committed on its own, so one member's
    failure never rolls back another's rest day.

    Args:
        session: Database session
        now: Current instant (UTC); defaults to the wall clock

    Returns:
        BackfillResult with members processed, rest days assigned and member failures
    """
    now = now or utcnow()
    result = BackfillResult()

    leagues = await submission_store.list_backfill_leagues(session, BACKFILL_LEAGUE_STATUSES)
    logger.info(f"Rest-day backfill: {len(leagues)} eligible league(s)")

    for league in leagues:
        league_id = league["id"]
        yesterday = league_yesterday(league["timezone"], now)
        total_allowed = rest_day_quota(league)

        try:
            members = await submission_store.list_league_members(
                session, league_id, active_only=True
            )
        except Exception as e:
            logger.error(f"Error fetching members for league {league_id}: {e}", exc_info=True)
            await session.rollback()
            continue

        assigned_before = result.assigned
        for member in members:
            member_id = member["id"]
            result.processed += 1
            try:
                if await _backfill_member(session, member_id, yesterday, total_allowed):
                    result.assigned += 1
                    logger.info(
                        f"Auto-assigned rest day for {yesterday.isoformat()} "
                        f"to member {member_id} in league {league_id}"
                    )
            except DuplicateSubmissionError:
                logger.info(
                    f"Member {member_id} already has an entry for {yesterday.isoformat()}, skipping"
                )
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Error assigning rest day to member {member_id} in league {league_id}: {e}",
                    exc_info=True,
                )
                await session.rollback()

        logger.info(
            f"League {league_id}: {result.assigned - assigned_before} rest day(s) "
            f"assigned for {yesterday.isoformat()}"
        )

    logger.info(
        f"Rest-day backfill completed: {result.assigned} assigned out of "
        f"{result.processed} members processed ({result.failed} failed)"
    )
    return result


class RestDayBackfillWorker:
    """Background worker that runs the rest-day backfill once per UTC day."""

    def __init__(self, hour_utc: Optional[int] = None, minute_utc: Optional[int] = None):
        self.hour_utc = hour_utc if hour_utc is not None else int(
            os.getenv("REST_DAY_BACKFILL_HOUR_UTC", "23")
        )
        self.minute_utc = minute_utc if minute_utc is not None else int(
            os.getenv("REST_DAY_BACKFILL_MINUTE_UTC", "59")
        )
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._last_run_date: Optional[date] = None

    def start(self) -> None:
        """Start the background worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._run_loop())
            logger.info(
                f"Rest-day backfill worker started (daily at "
                f"{self.hour_utc:02d}:{self.minute_utc:02d} UTC)"
            )

    def stop(self) -> None:
        """Stop the background worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Rest-day backfill worker stopped")

    def seconds_until_next_run(self, now: datetime) -> float:
        """Seconds from ``now`` to the next scheduled HH:MM UTC."""
        target = now.replace(hour=self.hour_utc, minute=self.minute_utc, second=0, microsecond=0)
        if target <= now:
            target += timedelta(days=1)
        return (target - now).total_seconds()

    async def run_once(self) -> BackfillResult:
        """Run the backfill in a fresh session, at most once per UTC day."""
        today = utcnow().date()
        if self._last_run_date == today:
            logger.info("Rest-day backfill already ran today, skipping")
            return BackfillResult()

        async with db.AsyncSessionLocal() as session:
            result = await run_rest_day_backfill(session)
        self._last_run_date = today
        return result

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.seconds_until_next_run(utcnow())
                )
                # stop_event was set
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in rest-day backfill worker: {e}", exc_info=True)


# Global worker instance
_rest_day_worker: Optional[RestDayBackfillWorker] = None


def get_rest_day_worker() -> RestDayBackfillWorker:
    """Get the global rest-day backfill worker."""
    global _rest_day_worker
    if _rest_day_worker is None:
        _rest_day_worker = RestDayBackfillWorker()
    return _rest_day_worker
