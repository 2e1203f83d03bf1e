"""
Row builders shared by the service tests.

Each helper commits, so the rows are visible to every other session opened
on the test engine.
"""

from datetime import timedelta

from rinkside.database.models import (
    Division,
    Invitation,
    InvitationStatus,
    League,
    LeagueUser,
    Team,
    TeamMember,
    User,
)
from rinkside.utils.datetime_utils import utcnow


async def make_user(session, email, approved=True, name=None):
    """Create a user, return its id."""
    user = User(email=email, password_hash="hash", name=name, approved=approved)
    session.add(user)
    await session.commit()
    return user.id


async def make_league(session, name="Metro Hockey League", sport="hockey", is_active=True):
    """Create a league, return its id."""
    league = League(name=name, sport=sport, is_active=is_active)
    session.add(league)
    await session.commit()
    return league.id


async def make_division(session, league_id, name="U12 A"):
    """Create a division, return its id."""
    division = Division(league_id=league_id, name=name)
    session.add(division)
    await session.commit()
    return division.id


async def make_team(
    session, name="Ice Hawks", league_id=None, division_id=None, is_active=True, season="2026"
):
    """Create a team, return its id."""
    team = Team(
        name=name,
        sport="hockey",
        season=season,
        league_id=league_id,
        division_id=division_id,
        is_active=is_active,
    )
    session.add(team)
    await session.commit()
    return team.id


async def add_league_role(session, user_id, league_id, role):
    session.add(LeagueUser(user_id=user_id, league_id=league_id, role=role))
    await session.commit()


async def add_team_role(session, user_id, team_id, role):
    session.add(TeamMember(user_id=user_id, team_id=team_id, role=role))
    await session.commit()


async def make_invitation(
    session,
    team_id,
    email,
    token,
    expires_at=None,
    status=InvitationStatus.PENDING.value,
    invited_by_user_id=None,
):
    """Create an invitation row, return its id."""
    invitation = Invitation(
        token=token,
        email=email,
        team_id=team_id,
        invited_by_user_id=invited_by_user_id,
        status=status,
        expires_at=expires_at or utcnow() + timedelta(days=7),
    )
    session.add(invitation)
    await session.commit()
    return invitation.id
