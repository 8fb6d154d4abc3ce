"""
Review queues: the lists graders and members work from.

- league queue: every entry in the league (host / governor)
- team queue: entries of the caller's own team, with who graded them (captain, or host / governor on a team)
- my submissions: the caller's own entries (any member)

Access mirrors validation_service: whoever may grade a submission may list it.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import LeagueRole, SubmissionStatus
from fitleague.services import submission_store
from fitleague.services.errors import InvalidSubmissionError, PermissionDeniedError
from fitleague.services.membership_service import (
    OVERRIDE_ROLES,
    can_override,
    has_any_role,
    resolve_membership,
)

logger = logging.getLogger(__name__)

# Highest-ranking role wins when a grader holds several
GRADER_ROLE_PRIORITY = (
    LeagueRole.HOST.value,
    LeagueRole.GOVERNOR.value,
    LeagueRole.CAPTAIN.value,
    LeagueRole.PLAYER.value,
)


def _check_status_filter(status: Optional[str]) -> None:
    if status is not None and status not in {s.value for s in SubmissionStatus}:
        raise InvalidSubmissionError(
            "Invalid status filter. Must be 'pending', 'approved' or 'rejected'"
        )


def queue_stats(submissions: Iterable[Dict]) -> Dict[str, int]:
    """Total and per-status counts of a list of submissions."""
    stats = {
        "total": 0,
        SubmissionStatus.PENDING.value: 0,
        SubmissionStatus.APPROVED.value: 0,
        SubmissionStatus.REJECTED.value: 0,
    }
    for sub in submissions:
        stats["total"] += 1
        stats[sub["status"]] += 1
    return stats


def graded_by_role(
    modified_by: Optional[int], status: str, roles_by_user: Dict[int, List[str]]
) -> Optional[str]:
    """
    Role of whoever last graded a submission.

    None while pending or when nobody graded it (auto rest days); a grader
    with no role rows in the league counts as a player.
    """
    if modified_by is None or status == SubmissionStatus.PENDING.value:
        return None
    held = set(roles_by_user.get(modified_by, []))
    for role in GRADER_ROLE_PRIORITY:
        if role in held:
            return role
    return LeagueRole.PLAYER.value


async def list_league_submissions(
    session: AsyncSession,
    actor_user_id: int,
    league_id: int,
    status: Optional[str] = None,
    team_id: Optional[int] = None,
) -> Dict:
    """
    All effort entries of a league, optionally filtered by status and team.

    Raises:
        PermissionDeniedError: Actor is not host or governor of the league
        InvalidSubmissionError: Unknown status filter
    """
    _check_status_filter(status)
    if not await can_override(session, actor_user_id, league_id):
        raise PermissionDeniedError("Only host or governor can view all submissions")

    submissions = await submission_store.list_league_entries(
        session, league_id, team_id=team_id, status=status
    )
    teams = await submission_store.list_league_teams(session, league_id)

    return {
        "submissions": submissions,
        "stats": queue_stats(submissions),
        "teams": teams,
    }


async def list_team_submissions(
    session: AsyncSession,
    actor_user_id: int,
    league_id: int,
    status: Optional[str] = None,
) -> Dict:
    """
    Effort entries of the caller's team, each tagged with ``graded_by_role``.

    The caller's own entries are included for visibility; validate_submission
    still refuses self-validation.

    Raises:
        NotAMemberError: Caller is not in the league
        PermissionDeniedError: Caller has no team, or is not its captain (or host / governor)
        InvalidSubmissionError: Unknown status filter
    """
    _check_status_filter(status)
    membership = await resolve_membership(session, actor_user_id, league_id)
    if membership.team_id is None:
        raise PermissionDeniedError("You are not assigned to a team")
    if not has_any_role(membership.roles, LeagueRole.CAPTAIN, *OVERRIDE_ROLES):
        raise PermissionDeniedError("Only team captain can validate team submissions")

    submissions = await submission_store.list_league_entries(
        session, league_id, team_id=membership.team_id, status=status
    )

    grader_ids = sorted({s["modified_by"] for s in submissions if s["modified_by"] is not None})
    roles_by_user = await submission_store.find_roles_for_users(session, league_id, grader_ids)
    for sub in submissions:
        sub["graded_by_role"] = graded_by_role(sub["modified_by"], sub["status"], roles_by_user)

    return {
        "submissions": submissions,
        "stats": queue_stats(submissions),
        "team_id": membership.team_id,
    }


async def list_my_submissions(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Dict:
    """
    The caller's own effort entries in a league.

    Raises:
        NotAMemberError: Caller is not in the league
        InvalidSubmissionError: Unknown status filter
    """
    _check_status_filter(status)
    membership = await resolve_membership(session, user_id, league_id)

    submissions = await submission_store.list_league_entries(
        session,
        league_id,
        league_member_id=membership.league_member_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )

    return {
        "submissions": submissions,
        "stats": queue_stats(submissions),
        "league_member_id": membership.league_member_id,
        "team_id": membership.team_id,
    }
