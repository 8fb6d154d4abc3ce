"""
Pure ranking functions: approved entries and challenge submissions in,
ranked standings out. No database access; leaderboard_service loads the
snapshot and calls these.

Points: every approved effort entry is worth POINTS_PER_APPROVED_ENTRY.
Team total = effort points (optionally normalized by team size) + challenge bonus.
Ties are broken by id so ranks are always 1..N with no gaps.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from fitleague.database.models import ChallengeType, EntryType
from fitleague.utils.constants import POINTS_PER_APPROVED_ENTRY


@dataclass
class RankingRow:
    id: int
    name: str
    score: float
    rank: int = 0


@dataclass
class IndividualStanding:
    league_member_id: int
    user_id: int
    username: str
    team_id: Optional[int]
    team_name: Optional[str]
    points: int = 0
    avg_rr: float = 0.0
    submission_count: int = 0
    challenge_bonus: float = 0.0
    rank: int = 0


@dataclass
class TeamStanding:
    team_id: int
    team_name: str
    member_count: int = 0
    points: int = 0
    challenge_bonus: float = 0.0
    total_points: float = 0.0
    avg_rr: float = 0.0
    submission_count: int = 0
    rank: int = 0


@dataclass
class SubTeamStanding:
    sub_team_id: int
    name: str
    team_id: Optional[int]
    team_name: Optional[str]
    points: float = 0.0
    submission_count: int = 0
    rank: int = 0


@dataclass
class ChallengeTeamStanding:
    team_id: int
    team_name: str
    member_count: int = 0
    points: float = 0.0
    rank: int = 0


@dataclass
class ChallengeIndividualStanding:
    league_member_id: int
    user_id: int
    username: str
    team_id: Optional[int]
    team_name: Optional[str]
    points: float = 0.0
    rank: int = 0


@dataclass
class PendingWindowTeam:
    team_id: int
    team_name: str
    points_by_date: Dict[str, int] = field(default_factory=dict)
    rank: int = 0


@dataclass
class NormalizationInfo:
    active: bool = False
    has_variance: bool = False
    avg_size: float = 0.0
    min_size: int = 0
    max_size: int = 0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def assign_ranks(rows: List, sort_key: Callable) -> List:
    """Sort rows by ``sort_key`` and set ``rank`` to 1..N in that order."""
    ordered = sorted(rows, key=sort_key)
    for index, row in enumerate(ordered, start=1):
        row.rank = index
    return ordered


def _mean_rr(rr_values: Sequence[float]) -> float:
    if not rr_values:
        return 0.0
    return round(sum(rr_values) / len(rr_values), 2)


def _workout_rr(entries: Iterable[Dict]) -> List[float]:
    return [
        float(e["rr_value"])
        for e in entries
        if e["type"] == EntryType.WORKOUT.value and e["rr_value"] is not None
    ]


def challenge_points(submission: Dict, challenge: Dict) -> float:
    """Awarded points, or the challenge default when none were recorded."""
    if submission["awarded_points"] is not None:
        return float(submission["awarded_points"])
    return float(challenge["total_points"] or 0)


def challenge_in_range(
    challenge: Dict, start_date: Optional[date], end_date: Optional[date]
) -> bool:
    """
    Whether a challenge's bonus belongs to a date-filtered leaderboard.

    A challenge is placed on its end_date (falling back to start_date);
    undated challenges always count.
    """
    if start_date is None and end_date is None:
        return True
    anchor = challenge["end_date"] or challenge["start_date"]
    if anchor is None:
        return True
    if start_date is not None and anchor < start_date:
        return False
    if end_date is not None and anchor > end_date:
        return False
    return True


def _scored_submissions(
    submissions: Iterable[Dict], challenges: Dict[int, Dict]
) -> Iterable:
    for sub in submissions:
        challenge = challenges.get(sub["league_challenge_id"])
        if challenge is None:
            continue
        points = challenge_points(sub, challenge)
        if points <= 0:
            continue
        yield sub, challenge, points


def attribute_challenge_bonus(
    submissions: Iterable[Dict],
    challenges: Dict[int, Dict],
    member_team: Dict[int, Optional[int]],
    sub_team_parent: Dict[int, Optional[int]],
):
    """
    Split approved challenge points into per-team and per-member bonuses.

    - team challenges credit the submission's team_id
    - individual challenges credit the member, and the member's team
    - sub_team challenges credit the sub-team's parent team

    Returns:
        (team_bonus, member_bonus) dicts keyed by team_id / league_member_id
    """
    team_bonus: Dict[int, float] = defaultdict(float)
    member_bonus: Dict[int, float] = defaultdict(float)

    for sub, challenge, points in _scored_submissions(submissions, challenges):
        challenge_type = challenge["challenge_type"]
        if challenge_type == ChallengeType.TEAM.value:
            team_id = sub["team_id"]
        elif challenge_type == ChallengeType.SUB_TEAM.value:
            team_id = sub_team_parent.get(sub["sub_team_id"])
        else:
            member_bonus[sub["league_member_id"]] += points
            team_id = member_team.get(sub["league_member_id"])

        if team_id is not None:
            team_bonus[team_id] += points

    return dict(team_bonus), dict(member_bonus)


def rank_individuals(
    members: Sequence[Dict],
    entries: Sequence[Dict],
    team_names: Dict[int, str],
    member_bonus: Optional[Dict[int, float]] = None,
) -> List[IndividualStanding]:
    """Every member with their approved-entry points, ranked by points then member id."""
    member_bonus = member_bonus or {}
    by_member: Dict[int, List[Dict]] = defaultdict(list)
    for entry in entries:
        by_member[entry["league_member_id"]].append(entry)

    rows = []
    for member in members:
        member_entries = by_member.get(member["id"], [])
        rows.append(
            IndividualStanding(
                league_member_id=member["id"],
                user_id=member["user_id"],
                username=member["username"],
                team_id=member["team_id"],
                team_name=team_names.get(member["team_id"]),
                points=len(member_entries) * POINTS_PER_APPROVED_ENTRY,
                avg_rr=_mean_rr(_workout_rr(member_entries)),
                submission_count=len(member_entries),
                challenge_bonus=member_bonus.get(member["id"], 0.0),
            )
        )
    return assign_ranks(rows, lambda r: (-r.points, r.league_member_id))


def rank_teams(
    teams: Sequence[Dict],
    members: Sequence[Dict],
    entries: Sequence[Dict],
    team_bonus: Optional[Dict[int, float]] = None,
) -> List[TeamStanding]:
    """Team standings from member entries plus challenge bonus, ranked by total points then team id."""
    team_bonus = team_bonus or {}
    member_team = {m["id"]: m["team_id"] for m in members}

    standings = {
        t["id"]: TeamStanding(
            team_id=t["id"],
            team_name=t["team_name"],
            member_count=sum(1 for m in members if m["team_id"] == t["id"]),
        )
        for t in teams
    }

    rr_by_team: Dict[int, List[float]] = defaultdict(list)
    for entry in entries:
        standing = standings.get(member_team.get(entry["league_member_id"]))
        if standing is None:
            continue
        standing.points += POINTS_PER_APPROVED_ENTRY
        standing.submission_count += 1
        rr_by_team[standing.team_id].extend(_workout_rr([entry]))

    for standing in standings.values():
        standing.challenge_bonus = team_bonus.get(standing.team_id, 0.0)
        standing.total_points = standing.points + standing.challenge_bonus
        standing.avg_rr = _mean_rr(rr_by_team[standing.team_id])

    return rerank_teams(list(standings.values()))


def rerank_teams(teams: List[TeamStanding]) -> List[TeamStanding]:
    return assign_ranks(teams, lambda t: (-t.total_points, t.team_id))


def rank_sub_teams(
    submissions: Iterable[Dict],
    challenges: Dict[int, Dict],
    sub_teams: Dict[int, Dict],
) -> List[SubTeamStanding]:
    """Sub-team standings from approved sub_team challenge submissions."""
    standings: Dict[int, SubTeamStanding] = {}
    for sub, challenge, points in _scored_submissions(submissions, challenges):
        sub_team_id = sub["sub_team_id"]
        if challenge["challenge_type"] != ChallengeType.SUB_TEAM.value or sub_team_id is None:
            continue
        standing = standings.get(sub_team_id)
        if standing is None:
            info = sub_teams.get(sub_team_id, {})
            standing = standings[sub_team_id] = SubTeamStanding(
                sub_team_id=sub_team_id,
                name=info.get("name") or f"Sub-team {sub_team_id}",
                team_id=info.get("team_id"),
                team_name=info.get("team_name"),
            )
        standing.points += points
        standing.submission_count += 1

    return assign_ranks(list(standings.values()), lambda s: (-s.points, s.sub_team_id))


def rank_challenge_teams(
    team_rows: Sequence[TeamStanding], team_bonus: Dict[int, float]
) -> List[ChallengeTeamStanding]:
    """Teams ranked by challenge points alone; teams without any are left out."""
    rows = [
        ChallengeTeamStanding(
            team_id=t.team_id,
            team_name=t.team_name,
            member_count=t.member_count,
            points=team_bonus.get(t.team_id, 0.0),
        )
        for t in team_rows
        if team_bonus.get(t.team_id, 0.0) > 0
    ]
    return assign_ranks(rows, lambda r: (-r.points, r.team_id))


def rank_challenge_individuals(
    members: Sequence[Dict],
    team_names: Dict[int, str],
    member_bonus: Dict[int, float],
) -> List[ChallengeIndividualStanding]:
    """Members ranked by individual-challenge points alone; members without any are left out."""
    rows = [
        ChallengeIndividualStanding(
            league_member_id=m["id"],
            user_id=m["user_id"],
            username=m["username"],
            team_id=m["team_id"],
            team_name=team_names.get(m["team_id"]),
            points=member_bonus.get(m["id"], 0.0),
        )
        for m in members
        if member_bonus.get(m["id"], 0.0) > 0
    ]
    return assign_ranks(rows, lambda r: (-r.points, r.league_member_id))


def build_pending_window(
    teams: Sequence[Dict],
    members: Sequence[Dict],
    entries: Sequence[Dict],
    dates: Sequence[date],
) -> List[PendingWindowTeam]:
    """
    Per-team points for each day of the pending window.

    ``dates`` is newest first; ranks use only ``dates[0]``'s points, ties by team id.
    """
    member_team = {m["id"]: m["team_id"] for m in members}
    keys = [d.isoformat() for d in dates]
    window = {
        t["id"]: PendingWindowTeam(
            team_id=t["id"], team_name=t["team_name"], points_by_date={k: 0 for k in keys}
        )
        for t in teams
    }

    for entry in entries:
        row = window.get(member_team.get(entry["league_member_id"]))
        key = entry["date"].isoformat()
        if row is None or key not in row.points_by_date:
            continue
        row.points_by_date[key] += POINTS_PER_APPROVED_ENTRY

    return rerank_pending_window(list(window.values()), keys[0] if keys else None)


def rerank_pending_window(
    rows: List[PendingWindowTeam], latest_key: Optional[str]
) -> List[PendingWindowTeam]:
    return assign_ranks(
        rows, lambda r: (-r.points_by_date.get(latest_key, 0), r.team_id)
    )


def normalization_info(teams: Sequence[TeamStanding], enabled: bool) -> NormalizationInfo:
    """Team-size spread over teams that have members; active only when sizes differ."""
    sizes = [t.member_count for t in teams if t.member_count > 0]
    if not sizes:
        return NormalizationInfo()
    info = NormalizationInfo(
        has_variance=max(sizes) != min(sizes),
        avg_size=round(sum(sizes) / len(sizes), 2),
        min_size=min(sizes),
        max_size=max(sizes),
    )
    info.active = bool(enabled and info.has_variance and info.max_size > 0)
    return info


def normalize_points(points: int, member_count: int, max_size: int) -> int:
    """Scale a team's points up to what a max-size team would have scored."""
    return round_half_up(points * max_size / max(1, member_count))


def apply_normalization(
    teams: List[TeamStanding],
    pending_window: List[PendingWindowTeam],
    info: NormalizationInfo,
):
    """
    Rescale team and pending-window points by team size and re-rank both.

    No-op unless ``info.active``.
    """
    if not info.active:
        return teams, pending_window

    sizes = {t.team_id: t.member_count for t in teams}
    for team in teams:
        team.points = normalize_points(team.points, team.member_count, info.max_size)
        team.total_points = team.points + team.challenge_bonus

    latest_key = None
    for row in pending_window:
        keys = list(row.points_by_date)
        latest_key = keys[0] if keys else latest_key
        row.points_by_date = {
            k: normalize_points(v, sizes.get(row.team_id, 0), info.max_size)
            for k, v in row.points_by_date.items()
        }

    return rerank_teams(teams), rerank_pending_window(pending_window, latest_key)


def rank_challenge_submissions(
    submissions: Iterable[Dict],
    challenge: Dict,
    names: Dict[int, str],
) -> List[RankingRow]:
    """
    Rank one challenge's approved submissions.

    Grouped by league_member_id, team_id or sub_team_id according to the
    challenge type; submissions without a grouping key are left out.
    """
    challenge_type = challenge["challenge_type"]
    if challenge_type == ChallengeType.TEAM.value:
        key_field = "team_id"
    elif challenge_type == ChallengeType.SUB_TEAM.value:
        key_field = "sub_team_id"
    else:
        key_field = "league_member_id"

    scores: Dict[int, float] = defaultdict(float)
    for sub in submissions:
        key = sub[key_field]
        if key is None:
            continue
        scores[key] += challenge_points(sub, challenge)

    rows = [
        RankingRow(id=key, name=names.get(key) or str(key), score=score)
        for key, score in scores.items()
    ]
    return assign_ranks(rows, lambda r: (-r.score, r.id))
