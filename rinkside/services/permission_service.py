"""
League access levels and the permission matrix built on top of them.
"""

import enum
import logging
from typing import List, Optional, FrozenSet, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.models import League, LeagueRole, LeagueUser, Team, TeamMember, TeamRole
from rinkside.services.access_service import UnauthorizedError

logger = logging.getLogger(__name__)


class LeagueAccessLevel(int, enum.Enum):
    """Ordered access levels a user can hold within a league."""

    NONE = 0
    MEMBER = 1
    TEAM_ADMIN = 2
    LEAGUE_ADMIN = 3


class Permission(str, enum.Enum):
    """Operations gated by the permission matrix."""

    # League management
    CREATE_LEAGUE = "create_league"
    UPDATE_LEAGUE = "update_league"
    DELETE_LEAGUE = "delete_league"
    VIEW_LEAGUE = "view_league"

    # Team management
    CREATE_TEAM = "create_team"
    UPDATE_TEAM = "update_team"
    DELETE_TEAM = "delete_team"
    VIEW_TEAM = "view_team"
    MIGRATE_TEAM = "migrate_team"

    # Division management
    CREATE_DIVISION = "create_division"
    UPDATE_DIVISION = "update_division"
    DELETE_DIVISION = "delete_division"
    ASSIGN_TEAM_TO_DIVISION = "assign_team_to_division"

    # Player management
    ADD_PLAYER = "add_player"
    UPDATE_PLAYER = "update_player"
    REMOVE_PLAYER = "remove_player"
    TRANSFER_PLAYER = "transfer_player"
    VIEW_PLAYER_DETAILS = "view_player_details"
    VIEW_EMERGENCY_CONTACTS = "view_emergency_contacts"

    # Event management
    CREATE_EVENT = "create_event"
    UPDATE_EVENT = "update_event"
    DELETE_EVENT = "delete_event"
    CREATE_INTER_TEAM_GAME = "create_inter_team_game"

    # Communication
    SEND_LEAGUE_MESSAGE = "send_league_message"
    SEND_LEAGUE_ANNOUNCEMENT = "send_league_announcement"
    SEND_TEAM_MESSAGE = "send_team_message"

    # User management
    ASSIGN_LEAGUE_ROLE = "assign_league_role"
    ASSIGN_TEAM_ROLE = "assign_team_role"
    INVITE_USER = "invite_user"

    # Reporting and data
    EXPORT_LEAGUE_DATA = "export_league_data"
    EXPORT_TEAM_DATA = "export_team_data"
    VIEW_LEAGUE_REPORTS = "view_league_reports"
    VIEW_FINANCIAL_REPORTS = "view_financial_reports"


_MEMBER_PERMISSIONS = frozenset(
    {
        Permission.VIEW_LEAGUE,
        Permission.VIEW_TEAM,
        Permission.VIEW_PLAYER_DETAILS,
    }
)

_TEAM_ADMIN_PERMISSIONS = _MEMBER_PERMISSIONS | frozenset(
    {
        Permission.UPDATE_TEAM,
        Permission.ADD_PLAYER,
        Permission.UPDATE_PLAYER,
        Permission.REMOVE_PLAYER,
        Permission.VIEW_EMERGENCY_CONTACTS,
        Permission.CREATE_EVENT,
        Permission.UPDATE_EVENT,
        Permission.DELETE_EVENT,
        Permission.SEND_TEAM_MESSAGE,
        Permission.INVITE_USER,
        Permission.EXPORT_TEAM_DATA,
    }
)

PERMISSION_MATRIX: Dict[LeagueAccessLevel, FrozenSet[Permission]] = {
    LeagueAccessLevel.NONE: frozenset(),
    LeagueAccessLevel.MEMBER: _MEMBER_PERMISSIONS,
    LeagueAccessLevel.TEAM_ADMIN: _TEAM_ADMIN_PERMISSIONS,
    LeagueAccessLevel.LEAGUE_ADMIN: frozenset(Permission),
}

# Permissions that, when checked against a specific team, also require admin
# rights on that team (league admins pass for every team in their league).
TEAM_SPECIFIC_PERMISSIONS = frozenset(
    {
        Permission.UPDATE_TEAM,
        Permission.DELETE_TEAM,
        Permission.ADD_PLAYER,
        Permission.UPDATE_PLAYER,
        Permission.REMOVE_PLAYER,
        Permission.CREATE_EVENT,
        Permission.UPDATE_EVENT,
        Permission.DELETE_EVENT,
        Permission.SEND_TEAM_MESSAGE,
        Permission.EXPORT_TEAM_DATA,
    }
)

_ROLE_TO_LEVEL = {
    LeagueRole.LEAGUE_ADMIN.value: LeagueAccessLevel.LEAGUE_ADMIN,
    LeagueRole.TEAM_ADMIN.value: LeagueAccessLevel.TEAM_ADMIN,
    LeagueRole.MEMBER.value: LeagueAccessLevel.MEMBER,
}


async def get_league_access_level(
    session: AsyncSession, user_id: int, league_id: int
) -> LeagueAccessLevel:
    """
    Resolve a user's access level within an active league.

    An explicit league role wins. Without one, admins of any active team in
    the league count as TEAM_ADMIN and members of any such team as MEMBER.
    """
    result = await session.execute(
        select(LeagueUser.role)
        .join(League, League.id == LeagueUser.league_id)
        .where(
            LeagueUser.user_id == user_id,
            LeagueUser.league_id == league_id,
            League.is_active.is_(True),
        )
    )
    role = result.scalar_one_or_none()
    if role in _ROLE_TO_LEVEL:
        return _ROLE_TO_LEVEL[role]

    team_roles = await session.execute(
        select(TeamMember.role)
        .distinct()
        .join(Team, Team.id == TeamMember.team_id)
        .where(
            TeamMember.user_id == user_id,
            Team.league_id == league_id,
            Team.is_active.is_(True),
        )
    )
    roles = set(team_roles.scalars().all())
    if TeamRole.ADMIN.value in roles:
        return LeagueAccessLevel.TEAM_ADMIN
    if roles:
        return LeagueAccessLevel.MEMBER
    return LeagueAccessLevel.NONE


async def has_permission(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    permission: Permission,
    team_id: Optional[int] = None,
) -> bool:
    """
    Check a permission for a user within a league.

    When team_id is given and the permission is team-specific, the user must
    additionally be ADMIN of that team (inside the league) unless they are a
    league admin.
    """
    access_level = await get_league_access_level(session, user_id, league_id)
    if permission not in PERMISSION_MATRIX[access_level]:
        return False

    if team_id is None or permission not in TEAM_SPECIFIC_PERMISSIONS:
        return True

    if access_level == LeagueAccessLevel.LEAGUE_ADMIN:
        return True

    result = await session.execute(
        select(TeamMember.id)
        .join(Team, Team.id == TeamMember.team_id)
        .where(
            TeamMember.user_id == user_id,
            TeamMember.team_id == team_id,
            TeamMember.role == TeamRole.ADMIN.value,
            Team.league_id == league_id,
            Team.is_active.is_(True),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def require_permission(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    permission: Permission,
    team_id: Optional[int] = None,
) -> None:
    """
    Raise UnauthorizedError unless the user holds the permission.
    """
    if not await has_permission(session, user_id, league_id, permission, team_id):
        logger.info(
            "Permission denied: user %d, league %d, team %s, permission %s",
            user_id,
            league_id,
            team_id,
            permission.value,
        )
        raise UnauthorizedError(f"Permission denied: {permission.value}")


async def get_user_permissions(
    session: AsyncSession, user_id: int, league_id: int
) -> List[Permission]:
    """All permissions the user holds in the league, sorted by name."""
    access_level = await get_league_access_level(session, user_id, league_id)
    return sorted(PERMISSION_MATRIX[access_level], key=lambda p: p.value)
