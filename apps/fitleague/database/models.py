"""
SQLAlchemy ORM models for the fitness league system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Enum,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fitleague.database.db import Base


class LeagueRole(str, enum.Enum):
    """Roles a user can hold within a league. A user may hold several at once."""

    HOST = "host"
    GOVERNOR = "governor"
    CAPTAIN = "captain"
    PLAYER = "player"


class LeagueStatus(str, enum.Enum):
    """League lifecycle status."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    LAUNCHED = "launched"
    ENDED = "ended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntryType(str, enum.Enum):
    """Effort entry type."""

    WORKOUT = "workout"
    REST = "rest"


class SubmissionStatus(str, enum.Enum):
    """Validation status shared by effort entries and challenge submissions."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChallengeType(str, enum.Enum):
    """Challenge scope, which decides how submissions are grouped for ranking."""

    INDIVIDUAL = "individual"
    TEAM = "team"
    SUB_TEAM = "sub_team"


class ChallengeStatus(str, enum.Enum):
    """League challenge status."""

    ACTIVE = "active"
    CLOSED = "closed"


class User(Base):
    """User accounts (identity is issued elsewhere; only the display name lives here)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    memberships = relationship("LeagueMember", back_populates="user")


class League(Base):
    """Competitive fitness league."""

    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        Enum(LeagueStatus, values_callable=lambda x: [e.value for e in x]),
        default=LeagueStatus.SCHEDULED,
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    rest_days = Column(Integer, default=1, nullable=False)  # allowed rest days per week
    auto_rest_day_enabled = Column(Boolean, default=False, nullable=False)
    normalize_points_by_team_size = Column(Boolean, default=False, nullable=False)
    timezone = Column(String, nullable=True)  # "Asia/Kolkata", "UTC+5:30", "IST"; NULL means UTC
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    teams = relationship("Team", back_populates="league", cascade="all, delete-orphan")
    members = relationship("LeagueMember", back_populates="league", cascade="all, delete-orphan")
    challenges = relationship("LeagueChallenge", back_populates="league", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("rest_days >= 0 AND rest_days <= 7", name="check_league_rest_days"),
        Index("idx_leagues_auto_rest", "auto_rest_day_enabled", "is_active"),
    )


class Team(Base):
    """Team participating in a league."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    team_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    league = relationship("League", back_populates="teams")
    members = relationship("LeagueMember", back_populates="team")

    __table_args__ = (Index("idx_teams_league", "league_id"),)


class LeagueMember(Base):
    """Join table (User ↔ League) with optional team assignment."""

    __tablename__ = "league_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)  # NULL = awaiting allocation
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    league = relationship("League", back_populates="members")
    user = relationship("User", back_populates="memberships")
    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "league_id", name="uq_league_members_user_league"),
        Index("idx_league_members_league", "league_id"),
        Index("idx_league_members_team", "team_id"),
    )


class RoleAssignment(Base):
    """Role held by a user within a league (one row per role)."""

    __tablename__ = "role_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(LeagueRole, values_callable=lambda x: [e.value for e in x]), nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", "role", name="uq_role_assignments_league_user_role"),
        Index("idx_role_assignments_user_league", "user_id", "league_id"),
    )


class EffortEntry(Base):
    """Daily workout or rest-day submission."""

    __tablename__ = "effort_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_member_id = Column(Integer, ForeignKey("league_members.id"), nullable=False)
    date = Column(Date, nullable=False)
    type = Column(Enum(EntryType, values_callable=lambda x: [e.value for e in x]), nullable=False)
    workout_type = Column(String, nullable=True)  # 'run', 'cycling', 'steps', 'golf', 'gym', ...
    duration = Column(Float, nullable=True)  # minutes
    distance = Column(Float, nullable=True)  # km
    steps = Column(Integer, nullable=True)
    holes = Column(Integer, nullable=True)
    rr_value = Column(Float, nullable=True)
    status = Column(
        Enum(SubmissionStatus, values_callable=lambda x: [e.value for e in x]),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )
    proof_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reupload_of = Column(Integer, ForeignKey("effort_entries.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL = system generated
    created_date = Column(DateTime(timezone=True), server_default=func.now())
    modified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    modified_date = Column(DateTime(timezone=True), server_default=func.now())

    member = relationship("LeagueMember")

    __table_args__ = (
        CheckConstraint("rr_value IS NULL OR rr_value >= 0", name="check_entry_rr_non_negative"),
        # One live entry per member per day; rejected entries stay as history
        Index(
            "uq_effort_entries_member_date_live",
            "league_member_id",
            "date",
            unique=True,
            postgresql_where=text("status <> 'rejected'"),
            sqlite_where=text("status <> 'rejected'"),
        ),
        Index("idx_effort_entries_date", "date"),
        Index("idx_effort_entries_status", "status"),
        Index("idx_effort_entries_reupload_of", "reupload_of"),
    )


class LeagueChallenge(Base):
    """Challenge activated within a league."""

    __tablename__ = "league_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    name = Column(String, nullable=True)
    challenge_type = Column(
        Enum(ChallengeType, values_callable=lambda x: [e.value for e in x]),
        default=ChallengeType.INDIVIDUAL,
        nullable=False,
    )
    total_points = Column(Float, default=0, nullable=False)  # default award on approval
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(
        Enum(ChallengeStatus, values_callable=lambda x: [e.value for e in x]),
        default=ChallengeStatus.ACTIVE,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    league = relationship("League", back_populates="challenges")
    sub_teams = relationship("SubTeam", back_populates="challenge", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_league_challenges_league", "league_id"),
    )


class SubTeam(Base):
    """Sub-team scoped to one (team, challenge) pair."""

    __tablename__ = "sub_teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_challenge_id = Column(Integer, ForeignKey("league_challenges.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    challenge = relationship("LeagueChallenge", back_populates="sub_teams")
    team = relationship("Team")
    members = relationship("SubTeamMember", back_populates="sub_team", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_sub_teams_challenge", "league_challenge_id"),
        Index("idx_sub_teams_team", "team_id"),
    )


class SubTeamMember(Base):
    """Roster row of a sub-team (subset of the parent team's members)."""

    __tablename__ = "sub_team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sub_team_id = Column(Integer, ForeignKey("sub_teams.id"), nullable=False)
    league_member_id = Column(Integer, ForeignKey("league_members.id"), nullable=False)

    sub_team = relationship("SubTeam", back_populates="members")

    __table_args__ = (
        UniqueConstraint("sub_team_id", "league_member_id", name="uq_sub_team_members"),
    )


class ChallengeSubmission(Base):
    """Proof submitted by a member for a league challenge."""

    __tablename__ = "challenge_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_challenge_id = Column(Integer, ForeignKey("league_challenges.id"), nullable=False)
    league_member_id = Column(Integer, ForeignKey("league_members.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    sub_team_id = Column(Integer, ForeignKey("sub_teams.id"), nullable=True)
    proof_url = Column(String, nullable=False)
    status = Column(
        Enum(SubmissionStatus, values_callable=lambda x: [e.value for e in x]),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )
    awarded_points = Column(Float, nullable=True)  # set on approval
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    modified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    modified_date = Column(DateTime(timezone=True), server_default=func.now())

    challenge = relationship("LeagueChallenge")
    member = relationship("LeagueMember")

    __table_args__ = (
        UniqueConstraint(
            "league_challenge_id", "league_member_id", name="uq_challenge_submissions_member"
        ),
        Index("idx_challenge_submissions_challenge_status", "league_challenge_id", "status"),
        Index("idx_challenge_submissions_team", "team_id"),
        Index("idx_challenge_submissions_sub_team", "sub_team_id"),
    )
