"""
Membership store operations: leagues, divisions, teams and the role-carrying
membership edges between users and leagues/teams.

The (user, league) and (user, team) pairs are unique at the database level.
A duplicate insert, including one that loses a race against a concurrent
insert, surfaces as AlreadyMemberError rather than a silent duplicate.
"""

import logging
from typing import Optional, Dict, List

from sqlalchemy import select, update, delete, func, case
from sqlalchemy.exc import IntegrityError
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
from rinkside.services import access_service, audit_service
from rinkside.services.access_service import NotFoundError, UnauthorizedError
from rinkside.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)


class AlreadyMemberError(ValueError):
    """Raised when a membership row already exists for the pair."""


class DivisionLeagueMismatchError(ValueError):
    """Raised when a team would be placed in a division of another league."""


class LastAdminError(ValueError):
    """Raised when a change would leave a league or team without an admin."""


class TeamAlreadyInLeagueError(ValueError):
    """Raised when migrating a team that already belongs to a league."""


# ---------------------------------------------------------------------------
# Leagues and divisions
# ---------------------------------------------------------------------------


async def create_league(
    session: AsyncSession,
    creator_user_id: int,
    name: str,
    sport: str,
    contact_email: Optional[str] = None,
    contact_phone: Optional[str] = None,
) -> Dict:
    """
    Create a league and make its creator LEAGUE_ADMIN.

    Args:
        session: Database session
        creator_user_id: User creating the league
        name: League name
        sport: Sport played in the league
        contact_email: Optional league contact email
        contact_phone: Optional league contact phone

    Returns:
        League dictionary
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("League name cannot be empty")

    league = League(
        name=name,
        sport=sport,
        contact_email=contact_email,
        contact_phone=contact_phone,
        is_active=True,
    )
    session.add(league)
    await session.flush()

    session.add(
        LeagueUser(
            user_id=creator_user_id,
            league_id=league.id,
            role=LeagueRole.LEAGUE_ADMIN.value,
        )
    )
    audit_service.log_audit_event(
        session,
        audit_service.LEAGUE_CREATED,
        user_id=creator_user_id,
        league_id=league.id,
        resource_type="league",
        resource_id=league.id,
        details={"name": name},
    )
    await session.commit()
    await session.refresh(league)

    logger.info("League %d created by user %d", league.id, creator_user_id)
    return _league_to_dict(league)


async def get_league(session: AsyncSession, league_id: int) -> Dict:
    """
    Get an active league with its divisions.

    Raises:
        NotFoundError: If the league does not exist or is inactive
    """
    league = await access_service.get_active_league(session, league_id)
    if league is None:
        raise NotFoundError("League not found")

    divisions = await list_divisions(session, league_id)
    return {**_league_to_dict(league), "divisions": divisions}


async def create_division(
    session: AsyncSession,
    actor_user_id: int,
    league_id: int,
    name: str,
    age_group: Optional[str] = None,
    skill_level: Optional[str] = None,
) -> Dict:
    """
    Create a division within an active league.

    Raises:
        NotFoundError: If the league does not exist or is inactive
        ValueError: If the name is empty or already used in this league
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Division name cannot be empty")

    if await access_service.get_active_league(session, league_id) is None:
        raise NotFoundError("League not found")

    division = Division(
        league_id=league_id,
        name=name,
        age_group=age_group,
        skill_level=skill_level,
        is_active=True,
    )
    session.add(division)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ValueError(f"A division named '{name}' already exists in this league")

    audit_service.log_audit_event(
        session,
        audit_service.DIVISION_CREATED,
        user_id=actor_user_id,
        league_id=league_id,
        resource_type="division",
        resource_id=division.id,
        details={"name": name},
    )
    await session.commit()
    await session.refresh(division)
    return _division_to_dict(division)


async def list_divisions(session: AsyncSession, league_id: int) -> List[Dict]:
    """Active divisions of a league, by name."""
    result = await session.execute(
        select(Division)
        .where(Division.league_id == league_id, Division.is_active.is_(True))
        .order_by(Division.name)
    )
    return [_division_to_dict(division) for division in result.scalars().all()]


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


async def _validate_division_for_league(
    session: AsyncSession, division_id: Optional[int], league_id: Optional[int]
) -> None:
    """Refuse a division that does not belong to the team's league."""
    if division_id is None:
        return
    if league_id is None:
        raise DivisionLeagueMismatchError("A team without a league cannot be placed in a division")

    result = await session.execute(select(Division.league_id).where(Division.id == division_id))
    division_league_id = result.scalar_one_or_none()
    if division_league_id is None:
        raise NotFoundError("Division not found")
    if division_league_id != league_id:
        raise DivisionLeagueMismatchError("Division does not belong to the team's league")


async def create_team(
    session: AsyncSession,
    creator_user_id: int,
    name: str,
    sport: str,
    season: str,
    league_id: Optional[int] = None,
    division_id: Optional[int] = None,
) -> Dict:
    """
    Create a team, standalone or inside a league.

    The creator of a standalone team is granted an ADMIN membership, since
    nobody else could ever reach the team. League teams are administered by
    the league's admins through inheritance and get no creator row.

    Raises:
        NotFoundError: If the league or division does not exist
        DivisionLeagueMismatchError: If the division belongs to another league
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Team name cannot be empty")

    if league_id is not None:
        if await access_service.get_active_league(session, league_id) is None:
            raise NotFoundError("League not found")
    await _validate_division_for_league(session, division_id, league_id)

    team = Team(
        name=name,
        sport=sport,
        season=season,
        league_id=league_id,
        division_id=division_id,
        is_active=True,
    )
    session.add(team)
    await session.flush()

    if league_id is None:
        session.add(
            TeamMember(user_id=creator_user_id, team_id=team.id, role=TeamRole.ADMIN.value)
        )

    audit_service.log_audit_event(
        session,
        audit_service.TEAM_CREATED,
        user_id=creator_user_id,
        league_id=league_id,
        team_id=team.id,
        resource_type="team",
        resource_id=team.id,
        details={"name": name},
    )
    await session.commit()
    await session.refresh(team)

    logger.info("Team %d created by user %d (league %s)", team.id, creator_user_id, league_id)
    return _team_to_dict(team)


async def get_team(session: AsyncSession, team_id: int) -> Dict:
    """
    Get an active team.

    Raises:
        NotFoundError: If the team does not exist or is inactive
    """
    result = await session.execute(
        select(Team).where(Team.id == team_id, Team.is_active.is_(True))
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError("Team not found")
    return _team_to_dict(team)


async def assign_team_division(
    session: AsyncSession,
    actor_user_id: int,
    team_id: int,
    division_id: Optional[int],
) -> Dict:
    """
    Place a team in a division of its league, or unassign it (division_id None).

    Raises:
        NotFoundError: If the team or division does not exist
        DivisionLeagueMismatchError: If the division belongs to another league
    """
    result = await session.execute(
        select(Team).where(Team.id == team_id, Team.is_active.is_(True))
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError("Team not found")

    await _validate_division_for_league(session, division_id, team.league_id)

    previous_division_id = team.division_id
    await session.execute(
        update(Team).where(Team.id == team_id).values(division_id=division_id, updated_at=func.now())
    )
    audit_service.log_audit_event(
        session,
        audit_service.TEAM_DIVISION_ASSIGNED,
        user_id=actor_user_id,
        league_id=team.league_id,
        team_id=team_id,
        resource_type="team",
        resource_id=team_id,
        details={"from_division_id": previous_division_id, "to_division_id": division_id},
    )
    await session.commit()
    await session.refresh(team)
    return _team_to_dict(team)


async def migrate_team_to_league(
    session: AsyncSession,
    actor_user_id: int,
    team_id: int,
    name: str,
    sport: str,
    contact_email: Optional[str] = None,
    contact_phone: Optional[str] = None,
) -> Dict:
    """
    Turn a standalone team into the first team of a new league.

    The league is created, the caller becomes its LEAGUE_ADMIN and the team
    is moved into it, all in one transaction. From then on the team is covered
    by league-admin inheritance.

    Args:
        session: Database session
        actor_user_id: ADMIN of the team
        team_id: Standalone team to migrate
        name: New league name
        sport: New league sport
        contact_email: Optional league contact email
        contact_phone: Optional league contact phone

    Returns:
        Dictionary with "league" and "team"

    Raises:
        UnauthorizedError: If the caller is not an ADMIN of the team
        TeamAlreadyInLeagueError: If the team already belongs to a league
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("League name cannot be empty")

    if not await access_service.is_team_admin(session, actor_user_id, team_id):
        raise UnauthorizedError("Unauthorized: You must be an admin of this team")
    team = await access_service.get_active_team(session, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    if team.league_id is not None:
        raise TeamAlreadyInLeagueError("Team is already part of a league")

    league = League(
        name=name,
        sport=sport,
        contact_email=contact_email,
        contact_phone=contact_phone,
        is_active=True,
    )
    session.add(league)
    await session.flush()

    # Conditional on league_id still being NULL; a concurrent migration wins
    moved = await session.execute(
        update(Team)
        .where(Team.id == team_id, Team.league_id.is_(None))
        .values(league_id=league.id, updated_at=func.now())
    )
    if moved.rowcount == 0:
        await session.rollback()
        raise TeamAlreadyInLeagueError("Team is already part of a league")

    session.add(
        LeagueUser(
            user_id=actor_user_id,
            league_id=league.id,
            role=LeagueRole.LEAGUE_ADMIN.value,
        )
    )
    audit_service.log_audit_event(
        session,
        audit_service.TEAM_MIGRATED,
        user_id=actor_user_id,
        league_id=league.id,
        team_id=team_id,
        resource_type="team",
        resource_id=team_id,
        details={"league_name": name},
    )
    await session.commit()
    await session.refresh(league)
    await session.refresh(team)

    logger.info("Team %d migrated into new league %d by user %d", team_id, league.id, actor_user_id)
    return {"league": _league_to_dict(league), "team": _team_to_dict(team)}


# ---------------------------------------------------------------------------
# League membership
# ---------------------------------------------------------------------------


async def _require_user_exists(session: AsyncSession, user_id: int) -> None:
    result = await session.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("User not found")


# LEAGUE_ADMIN, then TEAM_ADMIN, then MEMBER
_LEAGUE_ROLE_RANK = case(
    {
        LeagueRole.LEAGUE_ADMIN.value: 0,
        LeagueRole.TEAM_ADMIN.value: 1,
        LeagueRole.MEMBER.value: 2,
    },
    value=LeagueUser.role,
    else_=3,
)


async def _count_league_admins(session: AsyncSession, league_id: int) -> int:
    result = await session.execute(
        select(func.count(LeagueUser.id)).where(
            LeagueUser.league_id == league_id,
            LeagueUser.role == LeagueRole.LEAGUE_ADMIN.value,
        )
    )
    return result.scalar_one()


async def add_league_user(
    session: AsyncSession,
    user_id: int,
    league_id: int,
    role: str = LeagueRole.MEMBER.value,
) -> Dict:
    """
    Insert a LeagueUser row.

    Raises:
        AlreadyMemberError: If the user already belongs to the league
    """
    membership = LeagueUser(user_id=user_id, league_id=league_id, role=LeagueRole(role).value)
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AlreadyMemberError("User is already a member of this league")
    await session.commit()
    return _league_user_to_dict(membership)


async def assign_league_role(
    session: AsyncSession,
    actor_user_id: int,
    target_user_id: int,
    league_id: int,
    role: str,
) -> Dict:
    """
    Set a user's role in a league, creating the membership if needed.

    Raises:
        NotFoundError: If the target user does not exist
        LastAdminError: If this would demote the league's only LEAGUE_ADMIN
        AlreadyMemberError: If a concurrent request created the membership first
    """
    role = LeagueRole(role).value
    await _require_user_exists(session, target_user_id)

    result = await session.execute(
        select(LeagueUser).where(
            LeagueUser.user_id == target_user_id, LeagueUser.league_id == league_id
        )
    )
    membership = result.scalar_one_or_none()

    if membership is None:
        membership = LeagueUser(user_id=target_user_id, league_id=league_id, role=role)
        session.add(membership)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            raise AlreadyMemberError("User is already a member of this league")
    else:
        if (
            membership.role == LeagueRole.LEAGUE_ADMIN.value
            and role != LeagueRole.LEAGUE_ADMIN.value
            and await _count_league_admins(session, league_id) <= 1
        ):
            raise LastAdminError("Cannot remove the last league admin")
        membership.role = role

    audit_service.log_audit_event(
        session,
        audit_service.LEAGUE_ROLE_ASSIGNED,
        user_id=actor_user_id,
        league_id=league_id,
        resource_type="user",
        resource_id=target_user_id,
        details={"target_user_id": target_user_id, "role": role},
    )
    await session.commit()
    await session.refresh(membership)
    return _league_user_to_dict(membership)


async def remove_league_user(
    session: AsyncSession,
    actor_user_id: int,
    target_user_id: int,
    league_id: int,
) -> None:
    """
    Delete a user's league membership, revoking any inherited capability.

    Raises:
        NotFoundError: If the user is not a member of the league
        LastAdminError: If the user is the league's only LEAGUE_ADMIN
    """
    result = await session.execute(
        select(LeagueUser.role).where(
            LeagueUser.user_id == target_user_id, LeagueUser.league_id == league_id
        )
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise NotFoundError("User is not a member of this league")
    if role == LeagueRole.LEAGUE_ADMIN.value and await _count_league_admins(session, league_id) <= 1:
        raise LastAdminError("Cannot remove the last league admin")

    await session.execute(
        delete(LeagueUser).where(
            LeagueUser.user_id == target_user_id, LeagueUser.league_id == league_id
        )
    )
    audit_service.log_audit_event(
        session,
        audit_service.LEAGUE_ROLE_REMOVED,
        user_id=actor_user_id,
        league_id=league_id,
        resource_type="user",
        resource_id=target_user_id,
        details={"target_user_id": target_user_id, "previous_role": role},
    )
    await session.commit()


async def list_league_users(session: AsyncSession, league_id: int) -> List[Dict]:
    """League members with their roles, admins first, then by name."""
    result = await session.execute(
        select(LeagueUser, User.email, User.name)
        .join(User, User.id == LeagueUser.user_id)
        .where(LeagueUser.league_id == league_id)
        .order_by(_LEAGUE_ROLE_RANK, User.name, User.email)
    )
    return [
        {**_league_user_to_dict(membership), "email": email, "name": name}
        for membership, email, name in result.all()
    ]


# ---------------------------------------------------------------------------
# Team membership
# ---------------------------------------------------------------------------


async def _count_team_admins(session: AsyncSession, team_id: int) -> int:
    result = await session.execute(
        select(func.count(TeamMember.id)).where(
            TeamMember.team_id == team_id,
            TeamMember.role == TeamRole.ADMIN.value,
        )
    )
    return result.scalar_one()


async def add_team_member(
    session: AsyncSession,
    user_id: int,
    team_id: int,
    role: str = TeamRole.MEMBER.value,
    commit: bool = True,
) -> Dict:
    """
    Insert a TeamMember row.

    Args:
        session: Database session
        user_id: User joining the team
        team_id: Team being joined
        role: "ADMIN" or "MEMBER"
        commit: Commit immediately; pass False to join a larger transaction

    Raises:
        AlreadyMemberError: If the user is already on the team
    """
    membership = TeamMember(user_id=user_id, team_id=team_id, role=TeamRole(role).value)
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AlreadyMemberError("User is already a member of this team")
    if commit:
        await session.commit()
    return _team_member_to_dict(membership)


async def set_team_member_role(
    session: AsyncSession,
    actor_user_id: int,
    team_id: int,
    target_user_id: int,
    role: str,
) -> Dict:
    """
    Change a team member's role.

    Raises:
        NotFoundError: If the user is not on the team
        LastAdminError: If this would demote a standalone team's only ADMIN
    """
    role = TeamRole(role).value
    result = await session.execute(
        select(TeamMember).where(
            TeamMember.user_id == target_user_id, TeamMember.team_id == team_id
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise NotFoundError("User is not a member of this team")

    if membership.role == TeamRole.ADMIN.value and role != TeamRole.ADMIN.value:
        await _guard_last_team_admin(session, team_id)

    membership.role = role
    audit_service.log_audit_event(
        session,
        audit_service.TEAM_ROLE_ASSIGNED,
        user_id=actor_user_id,
        team_id=team_id,
        resource_type="user",
        resource_id=target_user_id,
        details={"target_user_id": target_user_id, "role": role},
    )
    await session.commit()
    await session.refresh(membership)
    return _team_member_to_dict(membership)


async def remove_team_member(
    session: AsyncSession,
    actor_user_id: int,
    team_id: int,
    target_user_id: int,
) -> None:
    """
    Remove a user from a team.

    Raises:
        NotFoundError: If the user is not on the team
        LastAdminError: If the user is a standalone team's only ADMIN
    """
    role = await session.execute(
        select(TeamMember.role).where(
            TeamMember.user_id == target_user_id, TeamMember.team_id == team_id
        )
    )
    current_role = role.scalar_one_or_none()
    if current_role is None:
        raise NotFoundError("User is not a member of this team")
    if current_role == TeamRole.ADMIN.value:
        await _guard_last_team_admin(session, team_id)

    await session.execute(
        delete(TeamMember).where(
            TeamMember.user_id == target_user_id, TeamMember.team_id == team_id
        )
    )
    audit_service.log_audit_event(
        session,
        audit_service.TEAM_MEMBER_REMOVED,
        user_id=actor_user_id,
        team_id=team_id,
        resource_type="user",
        resource_id=target_user_id,
        details={"target_user_id": target_user_id, "previous_role": current_role},
    )
    await session.commit()


async def _guard_last_team_admin(session: AsyncSession, team_id: int) -> None:
    # League teams stay administrable through their league admins
    league_result = await session.execute(select(Team.league_id).where(Team.id == team_id))
    if league_result.scalar_one_or_none() is not None:
        return
    if await _count_team_admins(session, team_id) <= 1:
        raise LastAdminError("Cannot remove the last team admin")


async def list_team_members(session: AsyncSession, team_id: int) -> List[Dict]:
    """Team roster with roles, admins first, then by name."""
    result = await session.execute(
        select(TeamMember, User.email, User.name)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.role, User.name, User.email)
    )
    return [
        {**_team_member_to_dict(membership), "email": email, "name": name}
        for membership, email, name in result.all()
    ]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _league_to_dict(league: League) -> Dict:
    return {
        "id": league.id,
        "name": league.name,
        "sport": league.sport,
        "contact_email": league.contact_email,
        "contact_phone": league.contact_phone,
        "is_active": league.is_active,
        "created_at": isoformat_or_none(league.created_at),
    }


def _division_to_dict(division: Division) -> Dict:
    return {
        "id": division.id,
        "league_id": division.league_id,
        "name": division.name,
        "age_group": division.age_group,
        "skill_level": division.skill_level,
    }


def _team_to_dict(team: Team) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "sport": team.sport,
        "season": team.season,
        "league_id": team.league_id,
        "division_id": team.division_id,
        "is_active": team.is_active,
        "created_at": isoformat_or_none(team.created_at),
    }


def _league_user_to_dict(membership: LeagueUser) -> Dict:
    return {
        "user_id": membership.user_id,
        "league_id": membership.league_id,
        "role": membership.role,
        "joined_at": isoformat_or_none(membership.joined_at),
    }


def _team_member_to_dict(membership: TeamMember) -> Dict:
    return {
        "user_id": membership.user_id,
        "team_id": membership.team_id,
        "role": membership.role,
        "joined_at": isoformat_or_none(membership.joined_at),
    }
