"""
Tests for the access evaluator.

Covers direct membership checks, league-admin inheritance, standalone teams,
immediate revocation, inactive teams and division/league integrity.
"""

import pytest
import pytest_asyncio
from sqlalchemy import delete

from rinkside.database.models import LeagueUser, LeagueRole, TeamRole
from rinkside.services import access_service
from rinkside.services.access_service import UnauthenticatedError, UnauthorizedError
from rinkside.tests.factories import (
    make_user,
    make_league,
    make_division,
    make_team,
    add_league_role,
    add_team_role,
)


@pytest_asyncio.fixture
async def world(db_session):
    """Two leagues, a league team in each, a standalone team and a few users."""
    l1 = await make_league(db_session, "League One")
    l2 = await make_league(db_session, "League Two")
    t1 = await make_team(db_session, "L1 Team", league_id=l1)
    t3 = await make_team(db_session, "L2 Team", league_id=l2)
    t2 = await make_team(db_session, "Standalone")

    alice = await make_user(db_session, "alice@example.com")
    bob = await make_user(db_session, "bob@example.com")
    carol = await make_user(db_session, "carol@example.com")
    return {"l1": l1, "l2": l2, "t1": t1, "t2": t2, "t3": t3, "alice": alice, "bob": bob, "carol": carol}


# ──────────────────────────────────────────────────────────────
# is_league_admin
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_league_admin_only_for_exact_league(db_session, world):
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    assert await access_service.is_league_admin(db_session, world["alice"], world["l1"]) is True
    assert await access_service.is_league_admin(db_session, world["alice"], world["l2"]) is False


@pytest.mark.asyncio
async def test_other_league_roles_are_not_admin(db_session, world):
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.TEAM_ADMIN.value)
    await add_league_role(db_session, world["bob"], world["l1"], LeagueRole.MEMBER.value)

    assert await access_service.is_league_admin(db_session, world["alice"], world["l1"]) is False
    assert await access_service.is_league_admin(db_session, world["bob"], world["l1"]) is False


@pytest.mark.asyncio
async def test_revoking_league_role_takes_effect_immediately(db_session, world):
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)
    assert await access_service.has_team_admin_access(db_session, world["alice"], world["t1"]) is True

    await db_session.execute(
        delete(LeagueUser).where(
            LeagueUser.user_id == world["alice"], LeagueUser.league_id == world["l1"]
        )
    )
    await db_session.commit()

    assert await access_service.is_league_admin(db_session, world["alice"], world["l1"]) is False
    assert await access_service.has_team_admin_access(db_session, world["alice"], world["t1"]) is False
    assert await access_service.has_team_access(db_session, world["alice"], world["t1"]) is False


# ──────────────────────────────────────────────────────────────
# Team access and inheritance
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_league_admin_inherits_team_admin_without_membership(db_session, world):
    """League admin of L1 administers T1 with no TeamMember row."""
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    assert await access_service.is_team_member(db_session, world["alice"], world["t1"]) is False
    assert await access_service.has_team_access(db_session, world["alice"], world["t1"]) is True
    assert await access_service.has_team_admin_access(db_session, world["alice"], world["t1"]) is True


@pytest.mark.asyncio
async def test_league_admin_does_not_reach_other_leagues_or_standalone_teams(db_session, world):
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    assert await access_service.has_team_access(db_session, world["alice"], world["t3"]) is False
    assert await access_service.has_team_access(db_session, world["alice"], world["t2"]) is False
    assert await access_service.has_team_admin_access(db_session, world["alice"], world["t2"]) is False


@pytest.mark.asyncio
async def test_standalone_team_member_is_not_admin(db_session, world):
    """MEMBER of a standalone team can read it but not administer it."""
    await add_team_role(db_session, world["bob"], world["t2"], TeamRole.MEMBER.value)

    assert await access_service.has_team_access(db_session, world["bob"], world["t2"]) is True
    assert await access_service.has_team_admin_access(db_session, world["bob"], world["t2"]) is False


@pytest.mark.asyncio
async def test_standalone_team_without_membership_is_closed(db_session, world):
    for user in ("alice", "bob", "carol"):
        assert await access_service.has_team_access(db_session, world[user], world["t2"]) is False


@pytest.mark.asyncio
async def test_team_admin_role(db_session, world):
    await add_team_role(db_session, world["carol"], world["t1"], TeamRole.ADMIN.value)

    assert await access_service.is_team_admin(db_session, world["carol"], world["t1"]) is True
    assert await access_service.has_team_admin_access(db_session, world["carol"], world["t1"]) is True
    assert await access_service.get_user_team_role(db_session, world["carol"], world["t1"]) == "ADMIN"
    assert await access_service.get_user_team_role(db_session, world["carol"], world["t2"]) is None


@pytest.mark.asyncio
async def test_league_member_role_grants_no_team_access(db_session, world):
    await add_league_role(db_session, world["bob"], world["l1"], LeagueRole.MEMBER.value)

    assert await access_service.has_team_access(db_session, world["bob"], world["t1"]) is False


@pytest.mark.asyncio
async def test_inactive_team_denies_everyone(db_session, world):
    inactive = await make_team(db_session, "Folded", league_id=world["l1"], is_active=False)
    await add_team_role(db_session, world["bob"], inactive, TeamRole.ADMIN.value)
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    assert await access_service.has_team_access(db_session, world["bob"], inactive) is False
    assert await access_service.has_team_admin_access(db_session, world["alice"], inactive) is False


@pytest.mark.asyncio
async def test_missing_team_denies(db_session, world):
    assert await access_service.has_team_access(db_session, world["alice"], 99999) is False


@pytest.mark.asyncio
async def test_division_from_other_league_is_treated_as_missing(db_session, world, caplog):
    """A team pointing at another league's division is logged and denied."""
    foreign_division = await make_division(db_session, world["l2"], "Foreign")
    broken = await make_team(
        db_session, "Broken", league_id=world["l1"], division_id=foreign_division
    )
    await add_team_role(db_session, world["bob"], broken, TeamRole.ADMIN.value)

    with caplog.at_level("ERROR"):
        assert await access_service.has_team_access(db_session, world["bob"], broken) is False
    assert "Data integrity violation" in caplog.text


@pytest.mark.asyncio
async def test_division_from_same_league_is_fine(db_session, world):
    division = await make_division(db_session, world["l1"], "Bantam")
    team = await make_team(db_session, "Bantam A", league_id=world["l1"], division_id=division)
    await add_team_role(db_session, world["bob"], team, TeamRole.MEMBER.value)

    assert await access_service.has_team_access(db_session, world["bob"], team) is True


# ──────────────────────────────────────────────────────────────
# require_* gates
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_require_team_member(db_session, world):
    await add_team_role(db_session, world["bob"], world["t2"], TeamRole.MEMBER.value)

    assert await access_service.require_team_member(db_session, world["bob"], world["t2"]) == world["bob"]
    with pytest.raises(UnauthorizedError):
        await access_service.require_team_member(db_session, world["carol"], world["t2"])
    with pytest.raises(UnauthenticatedError):
        await access_service.require_team_member(db_session, None, world["t2"])


@pytest.mark.asyncio
async def test_require_team_admin(db_session, world):
    await add_team_role(db_session, world["bob"], world["t2"], TeamRole.MEMBER.value)
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    with pytest.raises(UnauthorizedError):
        await access_service.require_team_admin(db_session, world["bob"], world["t2"])
    assert await access_service.require_team_admin(db_session, world["alice"], world["t1"]) == world["alice"]


@pytest.mark.asyncio
async def test_require_league_admin(db_session, world):
    await add_league_role(db_session, world["alice"], world["l1"], LeagueRole.LEAGUE_ADMIN.value)

    assert await access_service.require_league_admin(db_session, world["alice"], world["l1"]) == world["alice"]
    with pytest.raises(UnauthorizedError):
        await access_service.require_league_admin(db_session, world["alice"], world["l2"])


# ──────────────────────────────────────────────────────────────
# System admin, approval, league games
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_system_admin_is_league_admin_anywhere(db_session, world):
    await add_league_role(db_session, world["alice"], world["l2"], LeagueRole.LEAGUE_ADMIN.value)
    await add_league_role(db_session, world["bob"], world["l1"], LeagueRole.TEAM_ADMIN.value)

    assert await access_service.is_system_admin(db_session, world["alice"]) is True
    assert await access_service.is_system_admin(db_session, world["bob"]) is False
    assert await access_service.is_system_admin(db_session, world["carol"]) is False


@pytest.mark.asyncio
async def test_is_user_approved(db_session):
    approved = await make_user(db_session, "yes@example.com", approved=True)
    pending = await make_user(db_session, "no@example.com", approved=False)

    assert await access_service.is_user_approved(db_session, approved) is True
    assert await access_service.is_user_approved(db_session, pending) is False
    assert await access_service.is_user_approved(db_session, 424242) is False


@pytest.mark.asyncio
async def test_can_create_league_games(db_session, world):
    await add_team_role(db_session, world["bob"], world["t1"], TeamRole.ADMIN.value)
    await add_team_role(db_session, world["carol"], world["t1"], TeamRole.MEMBER.value)

    assert await access_service.can_create_league_games(db_session, world["bob"], world["l1"]) is True
    assert await access_service.can_create_league_games(db_session, world["carol"], world["l1"]) is False
    assert await access_service.can_create_league_games(db_session, world["bob"], world["l2"]) is False
    assert (
        await access_service.can_create_league_games(
            db_session, world["carol"], world["l1"], league_role=LeagueRole.TEAM_ADMIN.value
        )
        is True
    )
