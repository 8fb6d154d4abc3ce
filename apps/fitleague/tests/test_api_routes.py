"""
Unit tests for the API routes.

Services are monkeypatched; these tests cover request parsing, auth, and the
mapping of domain errors to HTTP status codes.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from fitleague.api.main import app
from fitleague.api.routes import cron as cron_routes
from fitleague.services import (
    entry_service,
    leaderboard_service,
    review_service,
    validation_service,
)
from fitleague.services import ranking_service as rs
from fitleague.services.errors import (
    AlreadyGradedError,
    ConflictError,
    DuplicateSubmissionError,
    InvalidSubmissionError,
    NotAMemberError,
    NotFoundError,
    PermissionDeniedError,
    ScopeMismatchError,
    SelfValidationError,
    StorageUnavailableError,
)
from fitleague.services.leaderboard_service import LeaderboardData
from fitleague.services.rest_day_service import BackfillResult
from fitleague.services.submission_store import SubmissionKind

HEADERS = {"Authorization": "Bearer dummy"}


def _entry(**overrides):
    entry = {
        "id": 1,
        "league_member_id": 10,
        "date": "2025-01-10",
        "type": "workout",
        "workout_type": "run",
        "rr_value": 1.2,
        "status": "approved",
        "proof_url": "https://proof.example/a.jpg",
        "modified_by": 7,
    }
    entry.update(overrides)
    return entry


def _challenge_submission(**overrides):
    sub = {
        "id": 3,
        "league_challenge_id": 2,
        "league_member_id": 10,
        "team_id": None,
        "sub_team_id": None,
        "proof_url": "https://proof.example/c.jpg",
        "status": "approved",
        "awarded_points": 5.0,
    }
    sub.update(overrides)
    return sub


@pytest.fixture
def client(monkeypatch):
    """Test client whose bearer token always resolves to user 7."""
    monkeypatch.setattr(app.state, "verify_token", lambda token: 7, raising=False)
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requires_bearer_token():
    response = TestClient(app).post("/api/submissions/1/validate", json={"status": "approved"})
    assert response.status_code in (401, 403)


def test_invalid_token_is_401(monkeypatch):
    monkeypatch.setattr(app.state, "verify_token", lambda token: None, raising=False)
    response = TestClient(app).post(
        "/api/submissions/1/validate", json={"status": "approved"}, headers=HEADERS
    )
    assert response.status_code == 401


def test_validate_entry_passes_actor_and_payload(client, monkeypatch):
    calls = {}

    async def fake_validate(session, actor_user_id, submission_id, target_status, **kwargs):
        calls.update(actor=actor_user_id, id=submission_id, status=target_status, **kwargs)
        return _entry(status=target_status)

    monkeypatch.setattr(validation_service, "validate_submission", fake_validate)

    response = client.post(
        "/api/submissions/1/validate",
        json={"status": "rejected", "rejection_reason": "blurry"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert calls["actor"] == 7
    assert calls["id"] == 1
    assert calls["rejection_reason"] == "blurry"
    assert calls["kind"] == SubmissionKind.EFFORT_ENTRY


def test_validate_rejects_unknown_status_value(client):
    response = client.post(
        "/api/submissions/1/validate", json={"status": "maybe"}, headers=HEADERS
    )
    assert response.status_code == 422


@pytest.mark.parametrize(
    "error,status_code",
    [
        (PermissionDeniedError("nope"), 403),
        (SelfValidationError("self"), 403),
        (NotAMemberError("outsider"), 403),
        (AlreadyGradedError("graded"), 409),
        (ConflictError("race"), 409),
        (DuplicateSubmissionError("dup"), 409),
        (NotFoundError("missing"), 404),
        (ScopeMismatchError("wrong league"), 400),
        (InvalidSubmissionError("bad"), 400),
        (StorageUnavailableError("db down"), 503),
    ],
)
def test_domain_errors_map_to_status_codes(client, monkeypatch, error, status_code):
    async def fake_validate(*args, **kwargs):
        raise error

    monkeypatch.setattr(validation_service, "validate_submission", fake_validate)

    response = client.post(
        "/api/submissions/1/validate", json={"status": "approved"}, headers=HEADERS
    )

    assert response.status_code == status_code
    assert response.json()["detail"] == str(error)


def test_unexpected_error_is_500(client, monkeypatch):
    async def fake_validate(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(validation_service, "validate_submission", fake_validate)

    response = client.post(
        "/api/submissions/1/validate", json={"status": "approved"}, headers=HEADERS
    )

    assert response.status_code == 500


def test_validate_challenge_submission(client, monkeypatch):
    calls = {}

    async def fake_validate(session, actor_user_id, submission_id, target_status, **kwargs):
        calls.update(kwargs)
        return _challenge_submission(awarded_points=kwargs["awarded_points"])

    monkeypatch.setattr(validation_service, "validate_submission", fake_validate)

    response = client.post(
        "/api/challenge-submissions/3/validate?league_id=4",
        json={"status": "approved", "awarded_points": 5},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["awarded_points"] == 5.0
    assert calls["kind"] == SubmissionKind.CHALLENGE
    assert calls["league_id"] == 4


def test_negative_awarded_points_rejected_by_schema(client):
    response = client.post(
        "/api/challenge-submissions/3/validate",
        json={"status": "approved", "awarded_points": -1},
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_submit_entry(client, monkeypatch):
    calls = {}

    async def fake_submit(session, user_id, league_id, **kwargs):
        calls.update(user_id=user_id, league_id=league_id, **kwargs)
        return _entry(status="pending", date=kwargs["entry_date"].isoformat())

    monkeypatch.setattr(entry_service, "submit_effort_entry", fake_submit)

    response = client.post(
        "/api/leagues/4/entries",
        json={
            "date": "2025-01-10",
            "type": "workout",
            "workout_type": "run",
            "duration": 50,
            "proof_url": "https://proof.example/a.jpg",
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert calls["entry_date"] == date(2025, 1, 10)
    assert calls["league_id"] == 4
    assert calls["duration"] == 50


def test_submit_workout_without_type_is_422(client):
    response = client.post(
        "/api/leagues/4/entries",
        json={"date": "2025-01-10", "type": "workout"},
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_reupload(client, monkeypatch):
    async def fake_reupload(session, user_id, entry_id, proof_url=None, notes=None):
        return _entry(id=2, status="pending", reupload_of=entry_id, proof_url=proof_url)

    monkeypatch.setattr(entry_service, "reupload_entry", fake_reupload)

    response = client.post(
        "/api/submissions/1/reupload",
        json={"proof_url": "https://proof.example/b.jpg"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["reupload_of"] == 1


def test_duplicate_challenge_submission_is_409(client, monkeypatch):
    async def fake_submit(*args, **kwargs):
        raise DuplicateSubmissionError("You already submitted for this challenge")

    monkeypatch.setattr(entry_service, "submit_challenge", fake_submit)

    response = client.post(
        "/api/leagues/4/challenges/2/submissions",
        json={"proof_url": "https://proof.example/c.jpg"},
        headers=HEADERS,
    )

    assert response.status_code == 409


def _leaderboard(individual_count):
    return LeaderboardData(
        league={"id": 4, "name": "L", "start_date": date(2025, 1, 1), "end_date": date(2025, 1, 31),
                "normalize_points_by_team_size": False},
        date_range={"start_date": date(2025, 1, 1), "end_date": date(2025, 1, 18),
                    "pending_dates": [date(2025, 1, 20), date(2025, 1, 19)]},
        teams=[rs.TeamStanding(team_id=1, team_name="Red", member_count=2, points=3,
                               total_points=3.0, rank=1)],
        individuals=[
            rs.IndividualStanding(league_member_id=i, user_id=i, username=f"u{i}", team_id=1,
                                  team_name="Red", rank=i)
            for i in range(1, individual_count + 1)
        ],
        challenge_teams=[rs.ChallengeTeamStanding(team_id=1, team_name="Red", member_count=2,
                                                  points=10.0, rank=1)],
        challenge_individuals=[
            rs.ChallengeIndividualStanding(league_member_id=i, user_id=i, username=f"u{i}",
                                           team_id=1, team_name="Red", points=float(100 - i), rank=i)
            for i in range(1, individual_count + 1)
        ],
        pending_window={
            "dates": [date(2025, 1, 20), date(2025, 1, 19)],
            "teams": [rs.PendingWindowTeam(team_id=1, team_name="Red",
                                           points_by_date={"2025-01-20": 1, "2025-01-19": 0}, rank=1)],
        },
        stats={"total_submissions": 3, "approved": 3, "pending": 0, "rejected": 0, "total_rr": 3.0},
    )


def test_leaderboard_limits_individuals_unless_full(client, monkeypatch):
    calls = []

    async def fake_compute(session, league_id, start_date=None, end_date=None, normalize=None):
        calls.append((league_id, start_date, end_date, normalize))
        return _leaderboard(60)

    monkeypatch.setattr(leaderboard_service, "compute_leaderboard", fake_compute)

    limited = client.get("/api/leagues/4/leaderboard", headers=HEADERS)
    full = client.get(
        "/api/leagues/4/leaderboard?full=true&normalize=true&start_date=2025-01-01&end_date=2025-01-10",
        headers=HEADERS,
    )

    assert limited.status_code == 200
    assert len(limited.json()["individuals"]) == 50
    assert len(full.json()["individuals"]) == 60
    assert len(limited.json()["challenge_individuals"]) == 50
    assert len(full.json()["challenge_individuals"]) == 60
    assert limited.json()["challenge_teams"][0]["points"] == 10.0
    assert limited.json()["pending_window"]["teams"][0]["points_by_date"]["2025-01-20"] == 1
    assert calls[1] == (4, date(2025, 1, 1), date(2025, 1, 10), True)


def test_leaderboard_rejects_inverted_range(client):
    response = client.get(
        "/api/leagues/4/leaderboard?start_date=2025-02-01&end_date=2025-01-01", headers=HEADERS
    )
    assert response.status_code == 400


def test_challenge_leaderboard_requires_membership(client, monkeypatch):
    async def fake_compute(session, challenge_id, league_id=None, viewer_user_id=None):
        raise NotAMemberError("not a member")

    monkeypatch.setattr(leaderboard_service, "compute_challenge_leaderboard", fake_compute)

    response = client.get("/api/leagues/4/challenges/2/leaderboard", headers=HEADERS)

    assert response.status_code == 403


def test_challenge_leaderboard(client, monkeypatch):
    calls = []

    async def fake_compute(session, challenge_id, league_id=None, viewer_user_id=None):
        calls.append((challenge_id, league_id, viewer_user_id))
        return [rs.RankingRow(id=1, name="Red", score=20, rank=1), rs.RankingRow(id=2, name="Blue", score=5, rank=2)]

    monkeypatch.setattr(leaderboard_service, "compute_challenge_leaderboard", fake_compute)

    response = client.get("/api/leagues/4/challenges/2/leaderboard", headers=HEADERS)

    assert response.status_code == 200
    assert [row["rank"] for row in response.json()] == [1, 2]
    assert response.json()[0]["name"] == "Red"
    assert calls == [(2, 4, 7)]


def test_cron_requires_secret_when_configured(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")

    async def fake_backfill(session):
        return BackfillResult(processed=4, assigned=2, failed=0)

    monkeypatch.setattr(cron_routes, "run_rest_day_backfill", fake_backfill)
    client = TestClient(app)

    denied = client.post("/api/cron/auto-rest-day")
    allowed = client.post("/api/cron/auto-rest-day", headers={"Authorization": "Bearer s3cret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert allowed.json() == {
        "success": True,
        "message": "Auto-assigned 2 rest days",
        "processed": 4,
        "assigned": 2,
        "failed": 0,
    }


def _queued(**overrides):
    entry = _entry(**overrides)
    entry["member"] = {"user_id": 8, "username": "ana", "team_id": 1, "team_name": "Red"}
    return entry


def test_league_submissions_passes_filters(client, monkeypatch):
    calls = {}

    async def fake_list(session, actor_user_id, league_id, status=None, team_id=None):
        calls.update(actor=actor_user_id, league=league_id, status=status, team=team_id)
        return {
            "submissions": [_queued(status="pending")],
            "stats": {"total": 1, "pending": 1, "approved": 0, "rejected": 0},
            "teams": [{"id": 1, "team_name": "Red"}],
        }

    monkeypatch.setattr(review_service, "list_league_submissions", fake_list)

    response = client.get("/api/leagues/4/submissions?status=pending&team_id=1", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["submissions"][0]["member"]["username"] == "ana"
    assert body["stats"]["pending"] == 1
    assert body["teams"] == [{"id": 1, "team_name": "Red"}]
    assert calls == {"actor": 7, "league": 4, "status": "pending", "team": 1}


def test_league_submissions_forbidden_for_players(client, monkeypatch):
    async def fake_list(session, actor_user_id, league_id, status=None, team_id=None):
        raise PermissionDeniedError("Only host or governor can view all submissions")

    monkeypatch.setattr(review_service, "list_league_submissions", fake_list)

    response = client.get("/api/leagues/4/submissions", headers=HEADERS)

    assert response.status_code == 403


def test_submission_queue_rejects_unknown_status_filter(client):
    response = client.get("/api/leagues/4/my-team/submissions?status=maybe", headers=HEADERS)
    assert response.status_code == 422


def test_team_submissions_carry_grader_role(client, monkeypatch):
    async def fake_list(session, actor_user_id, league_id, status=None):
        return {
            "submissions": [_queued(graded_by_role="captain")],
            "stats": {"total": 1, "pending": 0, "approved": 1, "rejected": 0},
            "team_id": 1,
        }

    monkeypatch.setattr(review_service, "list_team_submissions", fake_list)

    response = client.get("/api/leagues/4/my-team/submissions", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["team_id"] == 1
    assert response.json()["submissions"][0]["graded_by_role"] == "captain"


def test_my_submissions_passes_date_range(client, monkeypatch):
    calls = {}

    async def fake_list(session, user_id, league_id, status=None, start_date=None, end_date=None):
        calls.update(user=user_id, start=start_date, end=end_date)
        return {
            "submissions": [],
            "stats": {"total": 0, "pending": 0, "approved": 0, "rejected": 0},
            "league_member_id": 10,
            "team_id": None,
        }

    monkeypatch.setattr(review_service, "list_my_submissions", fake_list)

    response = client.get(
        "/api/leagues/4/my-submissions?start_date=2025-01-01&end_date=2025-01-31", headers=HEADERS
    )

    assert response.status_code == 200
    assert response.json()["league_member_id"] == 10
    assert calls == {"user": 7, "start": date(2025, 1, 1), "end": date(2025, 1, 31)}
