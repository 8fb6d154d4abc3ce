"""
Validation state machine for effort entries and challenge submissions.

Transitions:
    pending  -> approved | rejected   (captain of the owner's team, host, governor)
    approved <-> rejected             (host / governor override only)

Captains grade once; only host/governor can change a graded submission.
Nobody without override rights may grade their own submission.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import ChallengeType, SubmissionStatus
from fitleague.services import submission_store
from fitleague.services.errors import (
    AlreadyGradedError,
    InvalidSubmissionError,
    NotFoundError,
    PermissionDeniedError,
    ScopeMismatchError,
    SelfValidationError,
)
from fitleague.services.membership_service import can_override, is_captain_of_team
from fitleague.services.submission_store import SubmissionKind, SubmissionRecord
from fitleague.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

GRADED_STATUSES = (SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value)


def _resolve_awarded_points(
    record: SubmissionRecord, awarded_points: Optional[float]
) -> float:
    total_points = float(record.challenge_total_points or 0)
    if awarded_points is None:
        return total_points
    if awarded_points < 0 or awarded_points > total_points:
        raise InvalidSubmissionError(
            f"Awarded points must be between 0 and {total_points:g}"
        )
    return float(awarded_points)


def _build_update(
    record: SubmissionRecord,
    actor_user_id: int,
    target_status: str,
    rejection_reason: Optional[str],
    awarded_points: Optional[float],
) -> Dict:
    values = {
        "status": target_status,
        "modified_by": actor_user_id,
        "modified_date": utcnow(),
    }

    if target_status == SubmissionStatus.REJECTED.value and rejection_reason:
        values["rejection_reason"] = rejection_reason

    if record.kind == SubmissionKind.CHALLENGE:
        if target_status == SubmissionStatus.APPROVED.value:
            values["awarded_points"] = _resolve_awarded_points(record, awarded_points)
            if (
                record.challenge_type == ChallengeType.TEAM.value
                and record.team_id is None
                and record.owner_team_id is not None
            ):
                values["team_id"] = record.owner_team_id
        else:
            values["awarded_points"] = None

    return values


async def validate_submission(
    session: AsyncSession,
    actor_user_id: int,
    submission_id: int,
    target_status: str,
    rejection_reason: Optional[str] = None,
    awarded_points: Optional[float] = None,
    kind: SubmissionKind = SubmissionKind.EFFORT_ENTRY,
    league_id: Optional[int] = None,
) -> Dict:
    """
    Approve or reject a submission on behalf of ``actor_user_id``.

    Args:
        session: Database session
        actor_user_id: User performing the validation
        submission_id: Effort entry or challenge submission id (see ``kind``)
        target_status: "approved" or "rejected"
        rejection_reason: Stored when rejecting
        awarded_points: Challenge submissions only; defaults to the challenge's total_points
        kind: Which table ``submission_id`` refers to
        league_id: League from the request path; when given, the submission
            (and its challenge) must belong to it

    Returns:
        The updated submission as a dict

    Raises:
        InvalidSubmissionError: Unknown target status or awarded points out of range
        NotFoundError: Submission does not exist
        ScopeMismatchError: Submission or challenge is outside ``league_id``
        PermissionDeniedError: Actor is neither host/governor nor captain of the owner's team
        AlreadyGradedError: Captain tried to re-grade a graded submission
        SelfValidationError: Non-overriding actor tried to grade their own submission
        ConflictError: The status changed concurrently
    """
    status_value = getattr(target_status, "value", target_status)
    if status_value not in GRADED_STATUSES:
        raise InvalidSubmissionError(
            "Invalid status. Must be 'approved' or 'rejected'"
        )

    record = await submission_store.get_submission(session, submission_id, kind)
    if record is None:
        raise NotFoundError(f"Submission {submission_id} not found")

    if league_id is not None:
        if record.league_id != league_id:
            raise ScopeMismatchError("Submission does not belong to this league")
        if kind == SubmissionKind.CHALLENGE and record.challenge_league_id != league_id:
            raise ScopeMismatchError("Challenge does not belong to this league")

    owning_league_id = record.league_id

    override = await can_override(session, actor_user_id, owning_league_id)
    captain = await is_captain_of_team(
        session, actor_user_id, owning_league_id, record.owner_team_id
    )

    if not (override or captain):
        raise PermissionDeniedError(
            "Only host, governor, or the team's captain can validate submissions"
        )

    if not override and record.status != SubmissionStatus.PENDING.value:
        raise AlreadyGradedError(
            "Captains can only validate pending submissions. "
            "This submission has already been validated."
        )

    if not override and record.owner_user_id == actor_user_id:
        raise SelfValidationError("You cannot validate your own submission")

    values = _build_update(record, actor_user_id, status_value, rejection_reason, awarded_points)
    updated = await submission_store.update_submission_status(
        session,
        submission_id,
        kind,
        expected_status=record.status,
        values=values,
    )

    logger.info(
        f"{kind.value} {submission_id}: {record.status} -> {status_value} "
        f"by user {actor_user_id}{' (override)' if override else ''}"
    )
    return updated
