"""
Storage adapter over effort entries, challenge submissions and the league
rows they hang off.

Every function takes the caller's AsyncSession and returns plain dicts or
small dataclasses, so callers can keep using results after a rollback.
Constraint violations surface as DuplicateSubmissionError / ConflictError;
connection problems and timeouts surface as StorageUnavailableError.
"""

import asyncio
import enum
import functools
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import (
    ChallengeSubmission,
    EffortEntry,
    EntryType,
    League,
    LeagueChallenge,
    LeagueMember,
    RoleAssignment,
    SubmissionStatus,
    SubTeam,
    SubTeamMember,
    Team,
    User,
)
from fitleague.services.errors import (
    ConflictError,
    DuplicateSubmissionError,
    StorageUnavailableError,
)
from fitleague.utils.constants import AUTO_REST_DAY_NOTE, REST_DAY_RR
from fitleague.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class SubmissionKind(str, enum.Enum):
    """Which table a submission id refers to."""

    EFFORT_ENTRY = "effort_entry"
    CHALLENGE = "challenge_submission"


@dataclass
class SubmissionRecord:
    """A submission joined with its owner (and challenge, for challenge submissions)."""

    kind: SubmissionKind
    id: int
    status: str
    league_member_id: int
    league_id: int
    owner_user_id: int
    owner_team_id: Optional[int]
    league_challenge_id: Optional[int] = None
    challenge_league_id: Optional[int] = None
    challenge_type: Optional[str] = None
    challenge_total_points: Optional[float] = None
    team_id: Optional[int] = None


def storage_call(fn):
    """Translate driver/connection failures into StorageUnavailableError.

    IntegrityError is left alone so callers can map it to a domain error.
    """

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except IntegrityError:
            raise
        except (OperationalError, DBAPIError, asyncio.TimeoutError) as e:
            logger.error(f"Storage failure in {fn.__name__}: {e}")
            raise StorageUnavailableError(f"Storage unavailable: {fn.__name__}") from e

    return wrapper


def _value(column_value):
    """Plain string for Enum column values (None passes through)."""
    return getattr(column_value, "value", column_value)


def _entry_to_dict(entry: EffortEntry) -> Dict:
    return {
        "id": entry.id,
        "league_member_id": entry.league_member_id,
        "date": entry.date,
        "type": _value(entry.type),
        "workout_type": entry.workout_type,
        "duration": entry.duration,
        "distance": entry.distance,
        "steps": entry.steps,
        "holes": entry.holes,
        "rr_value": entry.rr_value,
        "status": _value(entry.status),
        "proof_url": entry.proof_url,
        "notes": entry.notes,
        "rejection_reason": entry.rejection_reason,
        "reupload_of": entry.reupload_of,
        "created_by": entry.created_by,
        "created_date": entry.created_date,
        "modified_by": entry.modified_by,
        "modified_date": entry.modified_date,
    }


def _challenge_submission_to_dict(sub: ChallengeSubmission) -> Dict:
    return {
        "id": sub.id,
        "league_challenge_id": sub.league_challenge_id,
        "league_member_id": sub.league_member_id,
        "team_id": sub.team_id,
        "sub_team_id": sub.sub_team_id,
        "proof_url": sub.proof_url,
        "status": _value(sub.status),
        "awarded_points": sub.awarded_points,
        "rejection_reason": sub.rejection_reason,
        "created_at": sub.created_at,
        "modified_by": sub.modified_by,
        "modified_date": sub.modified_date,
    }


def _league_to_dict(league: League) -> Dict:
    return {
        "id": league.id,
        "name": league.name,
        "start_date": league.start_date,
        "end_date": league.end_date,
        "status": _value(league.status),
        "is_active": league.is_active,
        "rest_days": league.rest_days,
        "auto_rest_day_enabled": league.auto_rest_day_enabled,
        "normalize_points_by_team_size": league.normalize_points_by_team_size,
        "timezone": league.timezone,
    }


def _challenge_to_dict(challenge: LeagueChallenge) -> Dict:
    return {
        "id": challenge.id,
        "league_id": challenge.league_id,
        "name": challenge.name,
        "challenge_type": _value(challenge.challenge_type),
        "total_points": challenge.total_points,
        "start_date": challenge.start_date,
        "end_date": challenge.end_date,
        "status": _value(challenge.status),
    }


# ============================================================================
# Membership
# ============================================================================

@storage_call
async def find_membership(session: AsyncSession, user_id: int, league_id: int) -> Optional[Dict]:
    """Return the user's LeagueMember row in the league as a dict, or None."""
    result = await session.execute(
        select(LeagueMember).where(
            LeagueMember.user_id == user_id, LeagueMember.league_id == league_id
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        return None
    return {
        "id": member.id,
        "user_id": member.user_id,
        "league_id": member.league_id,
        "team_id": member.team_id,
        "is_active": member.is_active,
    }


@storage_call
async def find_roles(session: AsyncSession, user_id: int, league_id: int) -> List[str]:
    """
    Return every role name the user holds in the league.

    Users routinely hold several roles (captain + player), so this always
    reads all rows rather than expecting a single one.
    """
    result = await session.execute(
        select(RoleAssignment.role).where(
            RoleAssignment.user_id == user_id, RoleAssignment.league_id == league_id
        )
    )
    return [_value(role) for role in result.scalars().all()]


@storage_call
async def is_on_team(session: AsyncSession, user_id: int, league_id: int, team_id: int) -> bool:
    """True if the user is a member of the given team in the league."""
    result = await session.execute(
        select(LeagueMember.id)
        .where(
            LeagueMember.user_id == user_id,
            LeagueMember.league_id == league_id,
            LeagueMember.team_id == team_id,
        )
        .limit(1)
    )
    return result.first() is not None


@storage_call
async def list_league_members(
    session: AsyncSession, league_id: int, active_only: bool = False
) -> List[Dict]:
    """List league members with username and team assignment, ordered by member id."""
    query = (
        select(LeagueMember, User.username)
        .outerjoin(User, User.id == LeagueMember.user_id)
        .where(LeagueMember.league_id == league_id)
        .order_by(LeagueMember.id)
    )
    if active_only:
        query = query.where(LeagueMember.is_active == True)  # noqa: E712
    result = await session.execute(query)
    return [
        {
            "id": member.id,
            "user_id": member.user_id,
            "username": username or "Unknown",
            "team_id": member.team_id,
            "is_active": member.is_active,
        }
        for member, username in result.all()
    ]


@storage_call
async def list_league_teams(session: AsyncSession, league_id: int) -> List[Dict]:
    """List the league's teams ordered by id."""
    result = await session.execute(
        select(Team).where(Team.league_id == league_id).order_by(Team.id)
    )
    return [{"id": t.id, "team_name": t.team_name} for t in result.scalars().all()]


@storage_call
async def find_member_sub_team(
    session: AsyncSession, league_member_id: int, league_challenge_id: int
) -> Optional[int]:
    """Return the sub-team id the member is rostered on for a challenge, if any."""
    result = await session.execute(
        select(SubTeam.id)
        .join(SubTeamMember, SubTeamMember.sub_team_id == SubTeam.id)
        .where(
            SubTeamMember.league_member_id == league_member_id,
            SubTeam.league_challenge_id == league_challenge_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


@storage_call
async def list_sub_teams(session: AsyncSession, sub_team_ids: List[int]) -> Dict[int, Dict]:
    """Map sub-team id -> {name, team_id, team_name} for display."""
    if not sub_team_ids:
        return {}
    result = await session.execute(
        select(SubTeam, Team.team_name)
        .outerjoin(Team, Team.id == SubTeam.team_id)
        .where(SubTeam.id.in_(sub_team_ids))
    )
    return {
        sub_team.id: {
            "name": sub_team.name,
            "team_id": sub_team.team_id,
            "team_name": team_name,
        }
        for sub_team, team_name in result.all()
    }


# ============================================================================
# Leagues & challenges
# ============================================================================

@storage_call
async def get_league(session: AsyncSession, league_id: int) -> Optional[Dict]:
    """Get a league by id."""
    result = await session.execute(select(League).where(League.id == league_id))
    league = result.scalar_one_or_none()
    return _league_to_dict(league) if league else None


@storage_call
async def list_backfill_leagues(session: AsyncSession, statuses: List[str]) -> List[Dict]:
    """Leagues with auto rest days enabled, active, and in one of the given statuses."""
    result = await session.execute(
        select(League)
        .where(
            League.auto_rest_day_enabled == True,  # noqa: E712
            League.is_active == True,  # noqa: E712
            League.status.in_(statuses),
        )
        .order_by(League.id)
    )
    return [_league_to_dict(league) for league in result.scalars().all()]


@storage_call
async def get_challenge(session: AsyncSession, challenge_id: int) -> Optional[Dict]:
    """Get a league challenge by id."""
    result = await session.execute(
        select(LeagueChallenge).where(LeagueChallenge.id == challenge_id)
    )
    challenge = result.scalar_one_or_none()
    return _challenge_to_dict(challenge) if challenge else None


@storage_call
async def list_league_challenges(session: AsyncSession, league_id: int) -> Dict[int, Dict]:
    """Map challenge id -> challenge dict for every challenge in the league."""
    result = await session.execute(
        select(LeagueChallenge).where(LeagueChallenge.league_id == league_id)
    )
    return {c.id: _challenge_to_dict(c) for c in result.scalars().all()}


# ============================================================================
# Submissions
# ============================================================================

@storage_call
async def get_submission(
    session: AsyncSession, submission_id: int, kind: SubmissionKind
) -> Optional[SubmissionRecord]:
    """Load a submission with its owner (and challenge) joined in."""
    if kind == SubmissionKind.EFFORT_ENTRY:
        result = await session.execute(
            select(EffortEntry, LeagueMember)
            .join(LeagueMember, LeagueMember.id == EffortEntry.league_member_id)
            .where(EffortEntry.id == submission_id)
        )
        row = result.first()
        if row is None:
            return None
        entry, member = row
        return SubmissionRecord(
            kind=kind,
            id=entry.id,
            status=_value(entry.status),
            league_member_id=member.id,
            league_id=member.league_id,
            owner_user_id=member.user_id,
            owner_team_id=member.team_id,
        )

    result = await session.execute(
        select(ChallengeSubmission, LeagueMember, LeagueChallenge)
        .join(LeagueMember, LeagueMember.id == ChallengeSubmission.league_member_id)
        .join(LeagueChallenge, LeagueChallenge.id == ChallengeSubmission.league_challenge_id)
        .where(ChallengeSubmission.id == submission_id)
    )
    row = result.first()
    if row is None:
        return None
    sub, member, challenge = row
    return SubmissionRecord(
        kind=kind,
        id=sub.id,
        status=_value(sub.status),
        league_member_id=member.id,
        league_id=member.league_id,
        owner_user_id=member.user_id,
        owner_team_id=member.team_id,
        league_challenge_id=challenge.id,
        challenge_league_id=challenge.league_id,
        challenge_type=_value(challenge.challenge_type),
        challenge_total_points=challenge.total_points,
        team_id=sub.team_id,
    )


@storage_call
async def update_submission_status(
    session: AsyncSession,
    submission_id: int,
    kind: SubmissionKind,
    expected_status: str,
    values: Dict,
) -> Dict:
    """
    Compare-and-swap a submission's status.

    The UPDATE only matches while the row still has ``expected_status``, so
    of two concurrent graders exactly one wins.

    Raises:
        ConflictError: If the status changed underneath us
        DuplicateSubmissionError: If the new status collides with another live entry that day
    """
    model = EffortEntry if kind == SubmissionKind.EFFORT_ENTRY else ChallengeSubmission
    try:
        result = await session.execute(
            update(model)
            .where(model.id == submission_id, model.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateSubmissionError(
            "Another live entry already exists for this member and date"
        ) from e

    if result.rowcount == 0:
        raise ConflictError(
            f"Submission {submission_id} was modified concurrently; reload and retry"
        )

    refreshed = await session.execute(
        select(model).where(model.id == submission_id).execution_options(populate_existing=True)
    )
    row = refreshed.scalar_one()
    if kind == SubmissionKind.EFFORT_ENTRY:
        return _entry_to_dict(row)
    return _challenge_submission_to_dict(row)


@storage_call
async def list_approved_entries(
    session: AsyncSession, league_id: int, start_date: date, end_date: date
) -> List[Dict]:
    """Approved effort entries of the league's members within [start_date, end_date]."""
    result = await session.execute(
        select(EffortEntry)
        .join(LeagueMember, LeagueMember.id == EffortEntry.league_member_id)
        .where(
            LeagueMember.league_id == league_id,
            EffortEntry.status == SubmissionStatus.APPROVED.value,
            EffortEntry.date >= start_date,
            EffortEntry.date <= end_date,
        )
        .order_by(EffortEntry.id)
    )
    return [_entry_to_dict(e) for e in result.scalars().all()]


@storage_call
async def count_entries_by_status(
    session: AsyncSession, league_id: int, start_date: date, end_date: date
) -> Dict:
    """Per-status counts for the league's entries in range, plus total approved RR."""
    result = await session.execute(
        select(
            EffortEntry.status,
            func.count(EffortEntry.id),
            func.coalesce(func.sum(EffortEntry.rr_value), 0.0),
        )
        .join(LeagueMember, LeagueMember.id == EffortEntry.league_member_id)
        .where(
            LeagueMember.league_id == league_id,
            EffortEntry.date >= start_date,
            EffortEntry.date <= end_date,
        )
        .group_by(EffortEntry.status)
    )
    summary = {
        "total_submissions": 0,
        SubmissionStatus.APPROVED.value: 0,
        SubmissionStatus.PENDING.value: 0,
        SubmissionStatus.REJECTED.value: 0,
        "total_rr": 0.0,
    }
    for status, count, rr_sum in result.all():
        status = _value(status)
        summary["total_submissions"] += count
        summary[status] = count
        if status == SubmissionStatus.APPROVED.value:
            summary["total_rr"] = round(float(rr_sum or 0.0), 2)
    return summary


@storage_call
async def list_approved_challenge_submissions(
    session: AsyncSession, challenge_id: int
) -> List[Dict]:
    """Approved submissions for one challenge, with the submitter's username."""
    result = await session.execute(
        select(ChallengeSubmission, LeagueMember.user_id, User.username)
        .join(LeagueMember, LeagueMember.id == ChallengeSubmission.league_member_id)
        .outerjoin(User, User.id == LeagueMember.user_id)
        .where(
            ChallengeSubmission.league_challenge_id == challenge_id,
            ChallengeSubmission.status == SubmissionStatus.APPROVED.value,
        )
        .order_by(ChallengeSubmission.id)
    )
    rows = []
    for sub, user_id, username in result.all():
        row = _challenge_submission_to_dict(sub)
        row["user_id"] = user_id
        row["username"] = username or "Unknown"
        rows.append(row)
    return rows


@storage_call
async def list_league_approved_challenge_submissions(
    session: AsyncSession, league_id: int
) -> List[Dict]:
    """Approved submissions across every challenge of the league."""
    result = await session.execute(
        select(ChallengeSubmission)
        .join(LeagueChallenge, LeagueChallenge.id == ChallengeSubmission.league_challenge_id)
        .where(
            LeagueChallenge.league_id == league_id,
            ChallengeSubmission.status == SubmissionStatus.APPROVED.value,
        )
        .order_by(ChallengeSubmission.id)
    )
    return [_challenge_submission_to_dict(s) for s in result.scalars().all()]


# ============================================================================
# Effort entry writes
# ============================================================================

@storage_call
async def has_entry_for_date(session: AsyncSession, league_member_id: int, entry_date: date) -> bool:
    """True if the member has any entry (any type, any status) on the date."""
    result = await session.execute(
        select(EffortEntry.id)
        .where(EffortEntry.league_member_id == league_member_id, EffortEntry.date == entry_date)
        .limit(1)
    )
    return result.first() is not None


@storage_call
async def list_entries_for_date(
    session: AsyncSession, league_member_id: int, entry_date: date
) -> List[Dict]:
    """All entries of the member on a date, newest first."""
    result = await session.execute(
        select(EffortEntry)
        .where(EffortEntry.league_member_id == league_member_id, EffortEntry.date == entry_date)
        .order_by(EffortEntry.id.desc())
    )
    return [_entry_to_dict(e) for e in result.scalars().all()]


@storage_call
async def list_league_entries(
    session: AsyncSession,
    league_id: int,
    team_id: Optional[int] = None,
    league_member_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Dict]:
    """
    Effort entries of the league's members with the owner's user and team
    attached under ``member``, newest date first.

    Every filter is optional; ``team_id`` and ``league_member_id`` narrow
    the rows to one team or one member.
    """
    query = (
        select(EffortEntry, LeagueMember.user_id, User.username, LeagueMember.team_id, Team.team_name)
        .join(LeagueMember, LeagueMember.id == EffortEntry.league_member_id)
        .outerjoin(User, User.id == LeagueMember.user_id)
        .outerjoin(Team, Team.id == LeagueMember.team_id)
        .where(LeagueMember.league_id == league_id)
        .order_by(EffortEntry.date.desc(), EffortEntry.id.desc())
    )
    if team_id is not None:
        query = query.where(LeagueMember.team_id == team_id)
    if league_member_id is not None:
        query = query.where(EffortEntry.league_member_id == league_member_id)
    if status is not None:
        query = query.where(EffortEntry.status == status)
    if start_date is not None:
        query = query.where(EffortEntry.date >= start_date)
    if end_date is not None:
        query = query.where(EffortEntry.date <= end_date)

    result = await session.execute(query)
    rows = []
    for entry, user_id, username, member_team_id, team_name in result.all():
        row = _entry_to_dict(entry)
        row["member"] = {
            "user_id": user_id,
            "username": username or "Unknown",
            "team_id": member_team_id,
            "team_name": team_name,
        }
        rows.append(row)
    return rows


@storage_call
async def find_roles_for_users(
    session: AsyncSession, league_id: int, user_ids: List[int]
) -> Dict[int, List[str]]:
    """Map user id -> role names held in the league, for every user in ``user_ids``."""
    if not user_ids:
        return {}
    result = await session.execute(
        select(RoleAssignment.user_id, RoleAssignment.role).where(
            RoleAssignment.league_id == league_id, RoleAssignment.user_id.in_(user_ids)
        )
    )
    roles: Dict[int, List[str]] = {}
    for user_id, role in result.all():
        roles.setdefault(user_id, []).append(_value(role))
    return roles


@storage_call
async def get_entry(session: AsyncSession, entry_id: int) -> Optional[Dict]:
    """Get an effort entry joined with its owner's user and league ids."""
    result = await session.execute(
        select(EffortEntry, LeagueMember.user_id, LeagueMember.league_id)
        .join(LeagueMember, LeagueMember.id == EffortEntry.league_member_id)
        .where(EffortEntry.id == entry_id)
    )
    row = result.first()
    if row is None:
        return None
    entry, user_id, league_id = row
    data = _entry_to_dict(entry)
    data["owner_user_id"] = user_id
    data["league_id"] = league_id
    return data


@storage_call
async def count_approved_rest_days(session: AsyncSession, league_member_id: int) -> int:
    """Number of approved rest entries the member has used."""
    result = await session.execute(
        select(func.count(EffortEntry.id)).where(
            and_(
                EffortEntry.league_member_id == league_member_id,
                EffortEntry.type == EntryType.REST.value,
                EffortEntry.status == SubmissionStatus.APPROVED.value,
            )
        )
    )
    return result.scalar() or 0


async def _insert(session: AsyncSession, obj, duplicate_message: str):
    session.add(obj)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateSubmissionError(duplicate_message) from e
    return obj


@storage_call
async def insert_rest_entry(session: AsyncSession, league_member_id: int, entry_date: date) -> Dict:
    """
    Insert a system-generated, already-approved rest entry.

    Raises:
        DuplicateSubmissionError: If the member already has a live entry that day
    """
    now = utcnow()
    entry = EffortEntry(
        league_member_id=league_member_id,
        date=entry_date,
        type=EntryType.REST.value,
        status=SubmissionStatus.APPROVED.value,
        rr_value=REST_DAY_RR,
        created_by=None,
        modified_by=None,
        created_date=now,
        modified_date=now,
        notes=AUTO_REST_DAY_NOTE,
    )
    await _insert(
        session,
        entry,
        f"Member {league_member_id} already has an entry for {entry_date.isoformat()}",
    )
    return _entry_to_dict(entry)


@storage_call
async def insert_effort_entry(session: AsyncSession, **fields) -> Dict:
    """Insert a member-submitted effort entry (pending)."""
    now = utcnow()
    entry = EffortEntry(created_date=now, modified_date=now, **fields)
    await _insert(
        session,
        entry,
        f"An entry for {fields.get('date')} already exists. You can only resubmit if it was rejected.",
    )
    return _entry_to_dict(entry)


@storage_call
async def replace_rejected_entry(
    session: AsyncSession, entry_id: int, modified_by: int, **fields
) -> Dict:
    """Overwrite a rejected entry in place with a fresh pending submission."""
    values = dict(fields)
    values.update(
        status=SubmissionStatus.PENDING.value,
        rejection_reason=None,
        modified_by=modified_by,
        modified_date=utcnow(),
    )
    return await update_submission_status(
        session,
        entry_id,
        SubmissionKind.EFFORT_ENTRY,
        expected_status=SubmissionStatus.REJECTED.value,
        values=values,
    )


@storage_call
async def insert_challenge_submission(session: AsyncSession, **fields) -> Dict:
    """
    Insert a challenge submission.

    Raises:
        DuplicateSubmissionError: If the member already submitted for this challenge
    """
    now = utcnow()
    sub = ChallengeSubmission(created_at=now, modified_date=now, **fields)
    await _insert(session, sub, "You already submitted for this challenge")
    return _challenge_submission_to_dict(sub)
