"""
Effort entry and challenge submission intake.

Entries are created pending (except auto rest days, see rest_day_service)
and only change status through validation_service.
"""

import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import (
    ChallengeStatus,
    ChallengeType,
    EntryType,
    SubmissionStatus,
)
from fitleague.services import submission_store
from fitleague.services.errors import (
    DuplicateSubmissionError,
    InvalidSubmissionError,
    NotFoundError,
    PermissionDeniedError,
    ScopeMismatchError,
)
from fitleague.services.membership_service import resolve_membership
from fitleague.utils.constants import (
    BASE_DURATION_MINUTES,
    CYCLING_DISTANCE_KM,
    GOLF_HOLES,
    MAX_RR,
    MAX_STEPS,
    MIN_STEPS,
    MIN_WORKOUT_RR,
    REST_DAY_RR,
    RUN_DISTANCE_KM,
)
from fitleague.utils.datetime_utils import league_today

logger = logging.getLogger(__name__)


def calculate_rr(
    entry_type: str,
    workout_type: Optional[str] = None,
    duration: Optional[float] = None,
    distance: Optional[float] = None,
    steps: Optional[int] = None,
    holes: Optional[int] = None,
) -> float:
    """
    Effort score for an entry, capped at MAX_RR.

    - rest: 1.0
    - steps: 0 below MIN_STEPS, then linear up to MAX_STEPS
    - golf: holes / 9
    - run/cardio: best of duration / 45 min and distance / 4 km
    - cycling: best of duration / 45 min and distance / 10 km
    - anything else: duration / 45 min, or 1.0 without a duration
    """
    if entry_type == EntryType.REST.value:
        return REST_DAY_RR

    kind = (workout_type or "").lower()

    if kind == "steps":
        if not steps or steps < MIN_STEPS:
            return 0.0
        capped = min(steps, MAX_STEPS)
        rr = 1 + (capped - MIN_STEPS) / (MAX_STEPS - MIN_STEPS)
    elif kind == "golf":
        rr = (holes or 0) / GOLF_HOLES
    elif kind in ("run", "cardio", "cycling"):
        km_per_rr = CYCLING_DISTANCE_KM if kind == "cycling" else RUN_DISTANCE_KM
        rr = max((duration or 0) / BASE_DURATION_MINUTES, (distance or 0) / km_per_rr)
    elif duration:
        rr = duration / BASE_DURATION_MINUTES
    else:
        rr = 1.0

    return round(min(rr, MAX_RR), 2)


async def submit_effort_entry(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    entry_date: date,
    entry_type: str,
    workout_type: Optional[str] = None,
    duration: Optional[float] = None,
    distance: Optional[float] = None,
    steps: Optional[int] = None,
    holes: Optional[int] = None,
    proof_url: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict:
    """
    Create a pending effort entry for the user's membership in a league.

    A member gets one entry per day. If every existing entry for that day
    was rejected, the most recent one is overwritten in place.

    Raises:
        NotAMemberError: User is not in the league
        InvalidSubmissionError: Workout below minimum RR or missing proof
        DuplicateSubmissionError: A live entry already exists for the date
    """
    if entry_type not in (EntryType.WORKOUT.value, EntryType.REST.value):
        raise InvalidSubmissionError("Entry type must be 'workout' or 'rest'")

    membership = await resolve_membership(session, user_id, league_id)

    rr_value = calculate_rr(entry_type, workout_type, duration, distance, steps, holes)
    if entry_type == EntryType.WORKOUT.value:
        if rr_value < MIN_WORKOUT_RR:
            raise InvalidSubmissionError(
                f"Workout does not meet the minimum effort (RR {rr_value:.2f} < {MIN_WORKOUT_RR:.1f})"
            )
        if not proof_url:
            raise InvalidSubmissionError("Workout entries require a proof_url")

    fields = {
        "type": entry_type,
        "workout_type": workout_type if entry_type == EntryType.WORKOUT.value else None,
        "duration": duration,
        "distance": distance,
        "steps": steps,
        "holes": holes,
        "rr_value": rr_value,
        "proof_url": proof_url,
        "notes": notes,
    }

    existing = await submission_store.list_entries_for_date(
        session, membership.league_member_id, entry_date
    )
    if existing:
        if any(e["status"] != SubmissionStatus.REJECTED.value for e in existing):
            raise DuplicateSubmissionError(
                f"An entry for {entry_date.isoformat()} already exists. "
                "You can only resubmit if it was rejected."
            )
        entry = await submission_store.replace_rejected_entry(
            session, existing[0]["id"], modified_by=user_id, **fields
        )
        logger.info(f"Replaced rejected entry {entry['id']} for member {membership.league_member_id}")
        return entry

    entry = await submission_store.insert_effort_entry(
        session,
        league_member_id=membership.league_member_id,
        date=entry_date,
        status=SubmissionStatus.PENDING.value,
        created_by=user_id,
        modified_by=user_id,
        **fields,
    )
    logger.info(f"Created {entry_type} entry {entry['id']} for member {membership.league_member_id}")
    return entry


async def reupload_entry(
    session: AsyncSession,
    user_id: int,
    entry_id: int,
    proof_url: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict:
    """
    Resubmit a rejected entry as a new pending entry that references it.

    Raises:
        NotFoundError: Entry does not exist
        PermissionDeniedError: Caller does not own the entry
        InvalidSubmissionError: Entry is not rejected
        DuplicateSubmissionError: Another live entry exists for that day
    """
    original = await submission_store.get_entry(session, entry_id)
    if original is None:
        raise NotFoundError(f"Entry {entry_id} not found")

    if original["owner_user_id"] != user_id:
        raise PermissionDeniedError("You can only reupload your own submissions")

    if original["status"] != SubmissionStatus.REJECTED.value:
        raise InvalidSubmissionError("Only rejected submissions can be reuploaded")

    entry = await submission_store.insert_effort_entry(
        session,
        league_member_id=original["league_member_id"],
        date=original["date"],
        type=original["type"],
        workout_type=original["workout_type"],
        duration=original["duration"],
        distance=original["distance"],
        steps=original["steps"],
        holes=original["holes"],
        rr_value=original["rr_value"],
        proof_url=proof_url or original["proof_url"],
        notes=notes if notes is not None else original["notes"],
        status=SubmissionStatus.PENDING.value,
        reupload_of=entry_id,
        created_by=user_id,
        modified_by=user_id,
    )
    logger.info(f"Entry {entry['id']} reuploaded from rejected entry {entry_id}")
    return entry


async def submit_challenge(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    challenge_id: int,
    proof_url: str,
    sub_team_id: Optional[int] = None,
) -> Dict:
    """
    Submit proof for a league challenge.

    Team-type submissions carry the member's team; sub_team-type submissions
    carry the member's sub-team for that challenge (or the one given).

    Raises:
        NotAMemberError: User is not in the league
        NotFoundError: Challenge does not exist
        ScopeMismatchError: Challenge belongs to another league
        InvalidSubmissionError: Missing proof, closed or ended challenge
        DuplicateSubmissionError: The member already submitted for this challenge
    """
    if not proof_url:
        raise InvalidSubmissionError("proof_url is required")

    membership = await resolve_membership(session, user_id, league_id)

    challenge = await submission_store.get_challenge(session, challenge_id)
    if challenge is None:
        raise NotFoundError(f"Challenge {challenge_id} not found")
    if challenge["league_id"] != league_id:
        raise ScopeMismatchError("Challenge does not belong to this league")
    if challenge["status"] != ChallengeStatus.ACTIVE.value:
        raise InvalidSubmissionError("Challenge is closed")

    league = await submission_store.get_league(session, league_id)
    today = league_today(league["timezone"] if league else None)
    if challenge["end_date"] is not None and today > challenge["end_date"]:
        raise InvalidSubmissionError("Challenge has ended")

    team_id = None
    if challenge["challenge_type"] == ChallengeType.TEAM.value:
        team_id = membership.team_id
    elif challenge["challenge_type"] == ChallengeType.SUB_TEAM.value:
        rostered = await submission_store.find_member_sub_team(
            session, membership.league_member_id, challenge_id
        )
        if sub_team_id is not None and rostered != sub_team_id:
            raise InvalidSubmissionError("You are not on that sub-team")
        sub_team_id = rostered

    sub = await submission_store.insert_challenge_submission(
        session,
        league_challenge_id=challenge_id,
        league_member_id=membership.league_member_id,
        team_id=team_id,
        sub_team_id=sub_team_id if challenge["challenge_type"] == ChallengeType.SUB_TEAM.value else None,
        proof_url=proof_url,
        status=SubmissionStatus.PENDING.value,
    )
    logger.info(f"Challenge submission {sub['id']} created for challenge {challenge_id}")
    return sub
