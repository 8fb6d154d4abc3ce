"""
Membership and role resolution for a (user, league) pair.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitleague.database.models import LeagueRole
from fitleague.services import submission_store
from fitleague.services.errors import NotAMemberError

logger = logging.getLogger(__name__)

OVERRIDE_ROLES = frozenset({LeagueRole.HOST, LeagueRole.GOVERNOR})


@dataclass(frozen=True)
class Membership:
    league_member_id: int
    user_id: int
    league_id: int
    team_id: Optional[int]
    roles: FrozenSet[LeagueRole]


def _parse_roles(role_names: Iterable[str]) -> FrozenSet[LeagueRole]:
    roles = set()
    for name in role_names:
        try:
            roles.add(LeagueRole(name))
        except ValueError:
            logger.warning(f"Ignoring unknown league role: {name!r}")
    return frozenset(roles)


async def resolve_membership(session: AsyncSession, user_id: int, league_id: int) -> Membership:
    """
    Resolve the user's membership and full role set in a league.

    Every RoleAssignment row is read; a member with no role rows, or one who
    is a captain, also counts as a player.

    Raises:
        NotAMemberError: If the user has no LeagueMember row in the league
    """
    member = await submission_store.find_membership(session, user_id, league_id)
    if member is None:
        raise NotAMemberError(f"User {user_id} is not a member of league {league_id}")

    roles = set(_parse_roles(await submission_store.find_roles(session, user_id, league_id)))
    if not roles or LeagueRole.CAPTAIN in roles:
        roles.add(LeagueRole.PLAYER)

    return Membership(
        league_member_id=member["id"],
        user_id=user_id,
        league_id=league_id,
        team_id=member["team_id"],
        roles=frozenset(roles),
    )


async def find_membership_or_none(
    session: AsyncSession, user_id: int, league_id: int
) -> Optional[Membership]:
    """Like resolve_membership, but returns None for non-members."""
    try:
        return await resolve_membership(session, user_id, league_id)
    except NotAMemberError:
        return None


def has_any_role(roles: Iterable[LeagueRole], *wanted: LeagueRole) -> bool:
    """True if any of ``wanted`` is in ``roles``."""
    held = set(roles)
    return any(role in held for role in wanted)


async def can_override(session: AsyncSession, user_id: int, league_id: int) -> bool:
    """Host or governor in the league (membership row not required)."""
    roles = _parse_roles(await submission_store.find_roles(session, user_id, league_id))
    return has_any_role(roles, *OVERRIDE_ROLES)


async def is_captain_of_team(
    session: AsyncSession, user_id: int, league_id: int, team_id: Optional[int]
) -> bool:
    """
    True if the user is on ``team_id`` and holds the captain role in the league.

    Two separate lookups: being on a team does not make someone its captain,
    and the role lookup must see every role row the user holds.
    """
    if team_id is None:
        return False

    if not await submission_store.is_on_team(session, user_id, league_id, team_id):
        return False

    roles = _parse_roles(await submission_store.find_roles(session, user_id, league_id))
    return LeagueRole.CAPTAIN in roles
