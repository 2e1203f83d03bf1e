"""
League mode vs. single-team mode resolution.

A user is in league mode when they belong to at least one active league.
Both membership lists are always returned; the mode flag is derived from the
league list and never stored.
"""

import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.models import League, LeagueUser, Team, TeamMember

logger = logging.getLogger(__name__)

LEAGUE_NAVIGATION = [
    {"label": "Dashboard", "path": "/", "icon": "Dashboard"},
    {"label": "Teams", "path": "/teams", "icon": "Groups"},
    {"label": "Schedule", "path": "/schedule", "icon": "CalendarMonth"},
    {"label": "Roster", "path": "/roster", "icon": "People"},
    {"label": "Settings", "path": "/settings", "icon": "Settings"},
]

TEAM_NAVIGATION = [
    {"label": "Dashboard", "path": "/", "icon": "Dashboard"},
    {"label": "Roster", "path": "/roster", "icon": "People"},
    {"label": "Calendar", "path": "/calendar", "icon": "CalendarMonth"},
    {"label": "Events", "path": "/events", "icon": "Event"},
]


async def get_user_mode(session: AsyncSession, user_id: int) -> Dict:
    """
    Determine whether a user is in league mode or single-team mode.

    Args:
        session: Database session
        user_id: User to resolve

    Returns:
        Dict with is_league_mode, leagues (active, most recently joined first)
        and teams (active, most recently joined first)
    """
    league_result = await session.execute(
        select(League.id, League.name, League.sport, LeagueUser.role)
        .join(LeagueUser, LeagueUser.league_id == League.id)
        .where(LeagueUser.user_id == user_id, League.is_active.is_(True))
        .order_by(LeagueUser.joined_at.desc(), LeagueUser.id.desc())
    )
    leagues = [
        {"id": row.id, "name": row.name, "sport": row.sport, "role": row.role}
        for row in league_result.all()
    ]

    team_result = await session.execute(
        select(Team.id, Team.name, Team.sport, Team.season, Team.league_id, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id, Team.is_active.is_(True))
        .order_by(TeamMember.joined_at.desc(), TeamMember.id.desc())
    )
    teams = [
        {
            "id": row.id,
            "name": row.name,
            "sport": row.sport,
            "season": row.season,
            "league_id": row.league_id,
            "role": row.role,
        }
        for row in team_result.all()
    ]

    return {
        "is_league_mode": len(leagues) > 0,
        "leagues": leagues,
        "teams": teams,
    }


async def get_user_primary_context(session: AsyncSession, user_id: int) -> Dict:
    """
    Pick the context a user lands in.

    League mode: the most recently joined league. Otherwise the most recently
    joined standalone team, falling back to the most recently joined team of
    any kind. With no memberships the context type is "none".
    """
    mode = await get_user_mode(session, user_id)

    if mode["is_league_mode"]:
        league = mode["leagues"][0]
        return {"type": "league", "id": league["id"], "name": league["name"]}

    if mode["teams"]:
        standalone = [team for team in mode["teams"] if team["league_id"] is None]
        team = standalone[0] if standalone else mode["teams"][0]
        return {"type": "team", "id": team["id"], "name": team["name"]}

    return {"type": "none", "id": None, "name": None}


def get_navigation_items(mode: Dict) -> List[Dict]:
    """Navigation entries for the resolved mode."""
    items = LEAGUE_NAVIGATION if mode.get("is_league_mode") else TEAM_NAVIGATION
    return [dict(item) for item in items]
