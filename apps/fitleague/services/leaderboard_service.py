"""
Leaderboard assembly: loads one read snapshot for a league and hands it to
ranking_service.

Nothing here is cached or written back; standings are recomputed on every
request so late approvals show up immediately.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import ChallengeType
from fitleague.services import ranking_service, submission_store
from fitleague.services.errors import NotFoundError, ScopeMismatchError
from fitleague.services.membership_service import resolve_membership
from fitleague.services.ranking_service import RankingRow
from fitleague.utils.constants import PENDING_WINDOW_DAYS
from fitleague.utils.datetime_utils import league_today

logger = logging.getLogger(__name__)


@dataclass
class LeaderboardData:
    league: Dict
    date_range: Dict
    teams: List[ranking_service.TeamStanding] = field(default_factory=list)
    individuals: List[ranking_service.IndividualStanding] = field(default_factory=list)
    sub_teams: List[ranking_service.SubTeamStanding] = field(default_factory=list)
    challenge_teams: List[ranking_service.ChallengeTeamStanding] = field(default_factory=list)
    challenge_individuals: List[ranking_service.ChallengeIndividualStanding] = field(
        default_factory=list
    )
    pending_window: Dict = field(default_factory=dict)
    stats: Dict = field(default_factory=dict)
    normalization: ranking_service.NormalizationInfo = field(
        default_factory=ranking_service.NormalizationInfo
    )

    def to_dict(self) -> Dict:
        return asdict(self)


async def _begin_snapshot(session: AsyncSession) -> None:
    # A single REPEATABLE READ transaction keeps individual and team
    # aggregates consistent with each other on PostgreSQL.
    if session.get_bind().dialect.name == "postgresql" and not session.in_transaction():
        await session.connection(execution_options={"isolation_level": "REPEATABLE READ"})


async def compute_leaderboard(
    session: AsyncSession,
    league_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    normalize: Optional[bool] = None,
    today: Optional[date] = None,
) -> LeaderboardData:
    """
    Compute team, individual and sub-team standings plus the pending window.

    challenge_teams and challenge_individuals rank by challenge points alone
    and leave out anyone with none. Every member counts, active or not, both
    in the individual standings and in a team's member_count.

    The settled range is [start_date, end_date] (default: the league's span)
    cut off before the pending window; the pending window is today and
    yesterday in league-local time, reported per team and per day.

    Args:
        session: Database session
        league_id: League to rank
        start_date: Optional range start; also enables challenge date filtering
        end_date: Optional range end; also enables challenge date filtering
        normalize: Force team-size normalization on/off; None uses the league setting
        today: League-local "today"; defaults to the clock at call start

    Raises:
        NotFoundError: League does not exist
    """
    await _begin_snapshot(session)

    league = await submission_store.get_league(session, league_id)
    if league is None:
        raise NotFoundError(f"League {league_id} not found")

    today = today or league_today(league["timezone"])
    pending_dates = [today - timedelta(days=i) for i in range(PENDING_WINDOW_DAYS)]

    range_start = start_date or league["start_date"]
    range_end = end_date or league["end_date"]
    settled_end = min(range_end, pending_dates[-1] - timedelta(days=1))

    entries = await submission_store.list_approved_entries(
        session,
        league_id,
        min(range_start, pending_dates[-1]),
        max(settled_end, today),
    )
    settled_entries = [e for e in entries if range_start <= e["date"] <= settled_end]
    pending_set = set(pending_dates)
    pending_entries = [e for e in entries if e["date"] in pending_set]

    members = await submission_store.list_league_members(session, league_id)
    teams = await submission_store.list_league_teams(session, league_id)
    team_names = {t["id"]: t["team_name"] for t in teams}

    challenges = await submission_store.list_league_challenges(session, league_id)
    challenges = {
        cid: c
        for cid, c in challenges.items()
        if ranking_service.challenge_in_range(c, start_date, end_date)
    }
    submissions = [
        s
        for s in await submission_store.list_league_approved_challenge_submissions(session, league_id)
        if s["league_challenge_id"] in challenges
    ]
    sub_team_ids = sorted({s["sub_team_id"] for s in submissions if s["sub_team_id"] is not None})
    sub_teams = await submission_store.list_sub_teams(session, sub_team_ids)

    team_bonus, member_bonus = ranking_service.attribute_challenge_bonus(
        submissions,
        challenges,
        member_team={m["id"]: m["team_id"] for m in members},
        sub_team_parent={sid: info["team_id"] for sid, info in sub_teams.items()},
    )

    team_rows = ranking_service.rank_teams(teams, members, settled_entries, team_bonus)
    pending_rows = ranking_service.build_pending_window(teams, members, pending_entries, pending_dates)

    enabled = league["normalize_points_by_team_size"] if normalize is None else normalize
    info = ranking_service.normalization_info(team_rows, enabled)
    team_rows, pending_rows = ranking_service.apply_normalization(team_rows, pending_rows, info)

    stats = await submission_store.count_entries_by_status(
        session, league_id, range_start, settled_end
    )

    logger.debug(
        f"Leaderboard for league {league_id}: {len(team_rows)} teams, "
        f"{len(members)} members, {len(entries)} approved entries"
    )

    return LeaderboardData(
        league={
            "id": league["id"],
            "name": league["name"],
            "start_date": league["start_date"],
            "end_date": league["end_date"],
            "normalize_points_by_team_size": league["normalize_points_by_team_size"],
        },
        date_range={
            "start_date": range_start,
            "end_date": settled_end,
            "pending_dates": pending_dates,
        },
        teams=team_rows,
        individuals=ranking_service.rank_individuals(members, settled_entries, team_names, member_bonus),
        sub_teams=ranking_service.rank_sub_teams(submissions, challenges, sub_teams),
        challenge_teams=ranking_service.rank_challenge_teams(team_rows, team_bonus),
        challenge_individuals=ranking_service.rank_challenge_individuals(
            members, team_names, member_bonus
        ),
        pending_window={
            "dates": pending_dates,
            "teams": pending_rows,
        },
        stats=stats,
        normalization=info,
    )


async def compute_challenge_leaderboard(
    session: AsyncSession,
    challenge_id: int,
    league_id: Optional[int] = None,
    viewer_user_id: Optional[int] = None,
) -> List[RankingRow]:
    """
    Rank the approved submissions of one challenge.

    When ``viewer_user_id`` is given the viewer must be a member of
    ``league_id``; the check runs inside the snapshot.

    Raises:
        NotAMemberError: Viewer is not in the league
        NotFoundError: Challenge does not exist
        ScopeMismatchError: Challenge is not part of ``league_id``
    """
    await _begin_snapshot(session)

    if viewer_user_id is not None and league_id is not None:
        await resolve_membership(session, viewer_user_id, league_id)

    challenge = await submission_store.get_challenge(session, challenge_id)
    if challenge is None:
        raise NotFoundError(f"Challenge {challenge_id} not found")
    if league_id is not None and challenge["league_id"] != league_id:
        raise ScopeMismatchError("Challenge does not belong to this league")

    submissions = await submission_store.list_approved_challenge_submissions(session, challenge_id)

    challenge_type = challenge["challenge_type"]
    if challenge_type == ChallengeType.TEAM.value:
        teams = await submission_store.list_league_teams(session, challenge["league_id"])
        names = {t["id"]: t["team_name"] for t in teams}
    elif challenge_type == ChallengeType.SUB_TEAM.value:
        sub_team_ids = sorted({s["sub_team_id"] for s in submissions if s["sub_team_id"] is not None})
        sub_teams = await submission_store.list_sub_teams(session, sub_team_ids)
        names = {sid: info["name"] for sid, info in sub_teams.items()}
    else:
        names = {s["league_member_id"]: s["username"] for s in submissions}

    return ranking_service.rank_challenge_submissions(submissions, challenge, names)
