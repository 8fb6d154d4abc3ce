"""
Typed failures raised by the validation, intake, backfill and leaderboard services.

Routes translate these into HTTP responses; services never raise bare
Exceptions for domain outcomes.
"""


class LeagueEngineError(Exception):
    """Base class for all domain failures."""


class NotAMemberError(LeagueEngineError):
    """Raised when the user has no membership row in the league."""


class PermissionDeniedError(LeagueEngineError):
    """Raised when the actor holds no role allowing the action."""


class AlreadyGradedError(LeagueEngineError):
    """Raised when a captain tries to grade a submission that is no longer pending."""


class SelfValidationError(LeagueEngineError):
    """Raised when a non-overriding actor tries to validate their own submission."""


class ScopeMismatchError(LeagueEngineError):
    """Raised when a submission or challenge does not belong to the league in the request."""


class NotFoundError(LeagueEngineError):
    """Raised when a submission, league or challenge does not exist."""


class ConflictError(LeagueEngineError):
    """Raised when a concurrent update changed the submission status first."""


class DuplicateSubmissionError(LeagueEngineError):
    """Raised when a uniqueness constraint rejects a new entry or challenge submission."""


class InvalidSubmissionError(LeagueEngineError, ValueError):
    """Raised for malformed input (bad status, points out of range, closed challenge)."""


class StorageUnavailableError(LeagueEngineError):
    """Raised when the database cannot be reached or a statement times out."""
