"""
Access evaluation for the League -> Division -> Team -> Member hierarchy.

Every check is computed from the current membership rows; nothing is cached
between calls, so deleting a LeagueUser or TeamMember row revokes the derived
capability on the very next check. League admins implicitly administer every
active team in their league, without a TeamMember row.
"""

import logging
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.models import (
    Division,
    League,
    LeagueRole,
    LeagueUser,
    Team,
    TeamMember,
    TeamRole,
    User,
)

logger = logging.getLogger(__name__)


class UnauthenticatedError(ValueError):
    """Raised when no valid session identifies the caller."""


class UnauthorizedError(ValueError):
    """Raised when a valid caller lacks the required capability."""


class NotFoundError(ValueError):
    """Raised when a resource does not exist or is inactive."""


async def get_active_team(session: AsyncSession, team_id: int) -> Optional[Team]:
    """
    Load an active team, validating its division belongs to its league.

    A team whose division points at another league is a data-integrity
    violation: it is logged and treated as if the team did not exist.

    Returns:
        The Team ORM instance, or None if missing, inactive, or inconsistent
    """
    result = await session.execute(
        select(Team, Division.league_id)
        .outerjoin(Division, Division.id == Team.division_id)
        .where(Team.id == team_id, Team.is_active.is_(True))
    )
    row = result.first()
    if row is None:
        return None

    team, division_league_id = row
    if team.division_id is not None and division_league_id != team.league_id:
        logger.error(
            "Data integrity violation: team %d has division %s from league %s but belongs to league %s",
            team.id,
            team.division_id,
            division_league_id,
            team.league_id,
        )
        return None
    return team


async def is_league_admin(session: AsyncSession, user_id: int, league_id: int) -> bool:
    """True iff a LeagueUser row with role LEAGUE_ADMIN exists for this exact pair."""
    result = await session.execute(
        select(LeagueUser.id)
        .where(
            LeagueUser.user_id == user_id,
            LeagueUser.league_id == league_id,
            LeagueUser.role == LeagueRole.LEAGUE_ADMIN.value,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def is_team_member(session: AsyncSession, user_id: int, team_id: int) -> bool:
    """True iff a TeamMember row exists for the pair (any role)."""
    result = await session.execute(
        select(TeamMember.id)
        .where(TeamMember.user_id == user_id, TeamMember.team_id == team_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def is_team_admin(session: AsyncSession, user_id: int, team_id: int) -> bool:
    """True iff a TeamMember row with role ADMIN exists for the pair."""
    result = await session.execute(
        select(TeamMember.id)
        .where(
            TeamMember.user_id == user_id,
            TeamMember.team_id == team_id,
            TeamMember.role == TeamRole.ADMIN.value,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_user_team_role(session: AsyncSession, user_id: int, team_id: int) -> Optional[str]:
    """
    Get the user's role in a team.

    Returns:
        "ADMIN", "MEMBER", or None if the user is not on the team
    """
    result = await session.execute(
        select(TeamMember.role).where(TeamMember.user_id == user_id, TeamMember.team_id == team_id)
    )
    return result.scalar_one_or_none()


async def has_team_access(session: AsyncSession, user_id: int, team_id: int) -> bool:
    """
    Check read access to a team.

    Granted to direct members of an active team, and to league admins of the
    team's league.
    """
    team = await get_active_team(session, team_id)
    if team is None:
        return False

    if await is_team_member(session, user_id, team_id):
        return True

    if team.league_id is not None:
        return await is_league_admin(session, user_id, team.league_id)
    return False


async def has_team_admin_access(session: AsyncSession, user_id: int, team_id: int) -> bool:
    """
    Check administrative access to a team.

    Granted to ADMIN members of an active team, and to league admins of the
    team's league.
    """
    team = await get_active_team(session, team_id)
    if team is None:
        return False

    if await is_team_admin(session, user_id, team_id):
        return True

    if team.league_id is not None:
        return await is_league_admin(session, user_id, team.league_id)
    return False


async def require_team_member(session: AsyncSession, user_id: Optional[int], team_id: int) -> int:
    """
    Gate read/RSVP-type operations on a team.

    Returns:
        The user id

    Raises:
        UnauthenticatedError: If no user id is given
        UnauthorizedError: If the user has no access to the team
    """
    if user_id is None:
        raise UnauthenticatedError("Authentication required")
    if not await has_team_access(session, user_id, team_id):
        logger.info("Denied team access: user %d, team %d", user_id, team_id)
        raise UnauthorizedError("Unauthorized: You are not a member of this team")
    return user_id


async def require_team_admin(session: AsyncSession, user_id: Optional[int], team_id: int) -> int:
    """
    Gate roster/event mutation on a team.

    Returns:
        The user id

    Raises:
        UnauthenticatedError: If no user id is given
        UnauthorizedError: If the user has no admin access to the team
    """
    if user_id is None:
        raise UnauthenticatedError("Authentication required")
    if not await has_team_admin_access(session, user_id, team_id):
        logger.info("Denied team admin access: user %d, team %d", user_id, team_id)
        raise UnauthorizedError("Unauthorized: Only team admins can perform this action")
    return user_id


async def require_league_admin(session: AsyncSession, user_id: Optional[int], league_id: int) -> int:
    """
    Gate league-level mutation (roles, divisions, league teams).

    Raises:
        UnauthenticatedError: If no user id is given
        UnauthorizedError: If the user is not LEAGUE_ADMIN of the league
    """
    if user_id is None:
        raise UnauthenticatedError("Authentication required")
    if not await is_league_admin(session, user_id, league_id):
        logger.info("Denied league admin access: user %d, league %d", user_id, league_id)
        raise UnauthorizedError("Unauthorized: League admin access required")
    return user_id


async def is_system_admin(session: AsyncSession, user_id: int) -> bool:
    """
    Check platform-wide admin status.

    Derived, not stored: a user holding LEAGUE_ADMIN in any league is a
    system admin.
    """
    result = await session.execute(
        select(LeagueUser.id)
        .where(LeagueUser.user_id == user_id, LeagueUser.role == LeagueRole.LEAGUE_ADMIN.value)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def is_user_approved(session: AsyncSession, user_id: int) -> bool:
    """True if the account exists and has been approved."""
    result = await session.execute(select(User.approved).where(User.id == user_id))
    return bool(result.scalar_one_or_none())


async def can_create_league_games(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    league_role: Optional[str] = None,
) -> bool:
    """
    Check whether a user may schedule inter-team games in a league.

    League and team admins (by league role) always can; otherwise the user
    must be ADMIN of at least one active team in the league.

    Args:
        session: Database session
        user_id: User to check
        league_id: League the games belong to
        league_role: Optional already-known league role, skips a lookup
    """
    if league_role in (LeagueRole.LEAGUE_ADMIN.value, LeagueRole.TEAM_ADMIN.value):
        return True

    result = await session.execute(
        select(TeamMember.id)
        .join(Team, Team.id == TeamMember.team_id)
        .where(
            and_(
                TeamMember.user_id == user_id,
                TeamMember.role == TeamRole.ADMIN.value,
                Team.league_id == league_id,
                Team.is_active.is_(True),
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_active_league(session: AsyncSession, league_id: int) -> Optional[League]:
    """Load an active league or None."""
    result = await session.execute(
        select(League).where(League.id == league_id, League.is_active.is_(True))
    )
    return result.scalar_one_or_none()
