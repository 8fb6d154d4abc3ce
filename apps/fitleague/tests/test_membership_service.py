"""
Tests for membership and role resolution.
"""

import pytest

from fitleague.database.models import LeagueRole
from fitleague.services.errors import NotAMemberError
from fitleague.services.membership_service import (
    can_override,
    find_membership_or_none,
    has_any_role,
    is_captain_of_team,
    resolve_membership,
)


@pytest.mark.asyncio
async def test_resolve_membership_reads_all_roles(db_session, seed):
    """A captain who is also a player resolves to both roles, not a lookup error."""
    league = await seed.league()
    team = await seed.team(league, "Red")
    member = await seed.member(league, team, "cap", roles=("captain", "player"))

    membership = await resolve_membership(db_session, member.user_id, league.id)

    assert membership.league_member_id == member.id
    assert membership.team_id == team.id
    assert membership.roles == frozenset({LeagueRole.CAPTAIN, LeagueRole.PLAYER})


@pytest.mark.asyncio
async def test_resolve_membership_without_roles_is_player(db_session, seed):
    league = await seed.league()
    member = await seed.member(league, None, "plain")

    membership = await resolve_membership(db_session, member.user_id, league.id)

    assert membership.team_id is None
    assert membership.roles == frozenset({LeagueRole.PLAYER})


@pytest.mark.asyncio
async def test_captain_is_implicitly_player(db_session, seed):
    league = await seed.league()
    team = await seed.team(league)
    member = await seed.member(league, team, "cap", roles=("captain",))

    membership = await resolve_membership(db_session, member.user_id, league.id)

    assert LeagueRole.PLAYER in membership.roles
    assert LeagueRole.CAPTAIN in membership.roles


@pytest.mark.asyncio
async def test_resolve_membership_not_a_member(db_session, seed):
    league = await seed.league()
    outsider = await seed.user("outsider")

    with pytest.raises(NotAMemberError):
        await resolve_membership(db_session, outsider.id, league.id)

    assert await find_membership_or_none(db_session, outsider.id, league.id) is None


@pytest.mark.asyncio
async def test_membership_is_scoped_to_league(db_session, seed):
    league_a = await seed.league(name="A")
    league_b = await seed.league(name="B")
    member = await seed.member(league_a, None, "a-only", roles=("host",))

    with pytest.raises(NotAMemberError):
        await resolve_membership(db_session, member.user_id, league_b.id)
    assert await can_override(db_session, member.user_id, league_b.id) is False


@pytest.mark.asyncio
async def test_can_override_for_host_and_governor(db_session, seed):
    league = await seed.league()
    host = await seed.member(league, None, "host", roles=("host",))
    governor = await seed.member(league, None, "gov", roles=("governor", "player"))
    player = await seed.member(league, None, "player", roles=("player",))

    assert await can_override(db_session, host.user_id, league.id) is True
    assert await can_override(db_session, governor.user_id, league.id) is True
    assert await can_override(db_session, player.user_id, league.id) is False


@pytest.mark.asyncio
async def test_is_captain_of_team_requires_team_and_role(db_session, seed):
    league = await seed.league()
    red = await seed.team(league, "Red")
    blue = await seed.team(league, "Blue")
    captain = await seed.member(league, red, "cap", roles=("captain", "player"))
    teammate = await seed.member(league, red, "mate", roles=("player",))

    assert await is_captain_of_team(db_session, captain.user_id, league.id, red.id) is True
    # on the team but not a captain
    assert await is_captain_of_team(db_session, teammate.user_id, league.id, red.id) is False
    # captain, but of another team
    assert await is_captain_of_team(db_session, captain.user_id, league.id, blue.id) is False
    assert await is_captain_of_team(db_session, captain.user_id, league.id, None) is False


def test_has_any_role():
    roles = frozenset({LeagueRole.CAPTAIN, LeagueRole.PLAYER})
    assert has_any_role(roles, LeagueRole.HOST, LeagueRole.CAPTAIN)
    assert not has_any_role(roles, LeagueRole.HOST, LeagueRole.GOVERNOR)
    assert not has_any_role(frozenset(), LeagueRole.PLAYER)
