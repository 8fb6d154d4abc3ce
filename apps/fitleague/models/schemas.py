"""
Pydantic models for API request/response validation.
"""

from datetime import date, datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class ValidateSubmissionRequest(BaseModel):
    """Approve or reject a submission."""

    status: Literal["approved", "rejected"]
    rejection_reason: Optional[str] = None
    awarded_points: Optional[float] = Field(default=None, ge=0)


class EffortEntryCreate(BaseModel):
    """Daily workout or rest-day submission."""

    date: date
    type: Literal["workout", "rest"]
    workout_type: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0)
    distance: Optional[float] = Field(default=None, ge=0)
    steps: Optional[int] = Field(default=None, ge=0)
    holes: Optional[int] = Field(default=None, ge=0)
    proof_url: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_workout_fields(self):
        if self.type == "workout" and not self.workout_type:
            raise ValueError("workout_type is required for workout entries")
        return self


class ReuploadRequest(BaseModel):
    """New proof for a rejected entry."""

    proof_url: Optional[str] = None
    notes: Optional[str] = None


class ChallengeSubmissionCreate(BaseModel):
    """Proof for a league challenge."""

    proof_url: str = Field(min_length=1)
    sub_team_id: Optional[int] = None


class EffortEntryResponse(BaseModel):
    """Effort entry as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    league_member_id: int
    date: date
    type: str
    workout_type: Optional[str] = None
    duration: Optional[float] = None
    distance: Optional[float] = None
    steps: Optional[int] = None
    holes: Optional[int] = None
    rr_value: Optional[float] = None
    status: str
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reupload_of: Optional[int] = None
    created_by: Optional[int] = None
    created_date: Optional[datetime] = None
    modified_by: Optional[int] = None
    modified_date: Optional[datetime] = None


class ChallengeSubmissionResponse(BaseModel):
    """Challenge submission as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    league_challenge_id: int
    league_member_id: int
    team_id: Optional[int] = None
    sub_team_id: Optional[int] = None
    proof_url: str
    status: str
    awarded_points: Optional[float] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_by: Optional[int] = None
    modified_date: Optional[datetime] = None


class RankingRowResponse(BaseModel):
    """One ranked row of a challenge leaderboard."""

    id: int
    name: str
    score: float
    rank: int


class TeamStandingResponse(BaseModel):
    team_id: int
    team_name: str
    member_count: int
    points: int
    challenge_bonus: float
    total_points: float
    avg_rr: float
    submission_count: int
    rank: int


class IndividualStandingResponse(BaseModel):
    league_member_id: int
    user_id: int
    username: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    points: int
    avg_rr: float
    submission_count: int
    challenge_bonus: float
    rank: int


class SubTeamStandingResponse(BaseModel):
    sub_team_id: int
    name: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    points: float
    submission_count: int
    rank: int


class ChallengeTeamStandingResponse(BaseModel):
    team_id: int
    team_name: str
    member_count: int
    points: float
    rank: int


class ChallengeIndividualStandingResponse(BaseModel):
    league_member_id: int
    user_id: int
    username: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    points: float
    rank: int


class PendingWindowTeamResponse(BaseModel):
    team_id: int
    team_name: str
    points_by_date: Dict[str, int]
    rank: int


class PendingWindowResponse(BaseModel):
    """Per-team points for today and yesterday; ranked by today's points."""

    dates: List[date]
    teams: List[PendingWindowTeamResponse]


class NormalizationResponse(BaseModel):
    active: bool
    has_variance: bool
    avg_size: float
    min_size: int
    max_size: int


class LeaderboardStats(BaseModel):
    total_submissions: int
    approved: int
    pending: int
    rejected: int
    total_rr: float


class LeaderboardResponse(BaseModel):
    """Full league leaderboard."""

    league: dict
    date_range: dict
    teams: List[TeamStandingResponse]
    individuals: List[IndividualStandingResponse]
    sub_teams: List[SubTeamStandingResponse]
    challenge_teams: List[ChallengeTeamStandingResponse] = []
    challenge_individuals: List[ChallengeIndividualStandingResponse] = []
    pending_window: PendingWindowResponse
    stats: LeaderboardStats
    normalization: NormalizationResponse


class BackfillResponse(BaseModel):
    """Result of a rest-day backfill run."""

    success: bool = True
    message: str
    processed: int
    assigned: int
    failed: int


class SubmissionMemberResponse(BaseModel):
    user_id: int
    username: str
    team_id: Optional[int] = None
    team_name: Optional[str] = None


class QueuedEntryResponse(EffortEntryResponse):
    """Effort entry in a review queue, with its owner attached."""

    member: SubmissionMemberResponse
    graded_by_role: Optional[str] = None


class QueueStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class SubmissionQueueResponse(BaseModel):
    """
    A review queue.

    ``teams`` is filled for the league queue, ``team_id`` for the team queue
    and ``league_member_id`` for a member's own list.
    """

    submissions: List[QueuedEntryResponse]
    stats: QueueStats
    teams: Optional[List[Dict]] = None
    team_id: Optional[int] = None
    league_member_id: Optional[int] = None
