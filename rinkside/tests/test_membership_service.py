"""
Tests for leagues, divisions, teams and membership edges.
"""

import asyncio

import pytest
from sqlalchemy import select

from rinkside.database.models import AuditLog, LeagueRole, LeagueUser, TeamMember, TeamRole
from rinkside.services import membership_service, access_service, audit_service
from rinkside.services.access_service import NotFoundError, UnauthorizedError
from rinkside.services.membership_service import (
    AlreadyMemberError,
    DivisionLeagueMismatchError,
    LastAdminError,
    TeamAlreadyInLeagueError,
)
from rinkside.tests.factories import (
    make_user,
    make_league,
    make_division,
    make_team,
    add_league_role,
    add_team_role,
)


# ──────────────────────────────────────────────────────────────
# Leagues and divisions
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_league_makes_creator_admin(db_session):
    creator = await make_user(db_session, "founder@example.com")

    league = await membership_service.create_league(db_session, creator, "  Valley League ", "hockey")

    assert league["name"] == "Valley League"
    assert await access_service.is_league_admin(db_session, creator, league["id"]) is True
    entries = await audit_service.get_audit_log(db_session, league_id=league["id"])
    assert [e["action"] for e in entries] == [audit_service.LEAGUE_CREATED]


@pytest.mark.asyncio
async def test_create_league_requires_name(db_session):
    creator = await make_user(db_session, "founder@example.com")
    with pytest.raises(ValueError):
        await membership_service.create_league(db_session, creator, "   ", "hockey")


@pytest.mark.asyncio
async def test_create_division_and_get_league(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)

    division = await membership_service.create_division(
        db_session, admin, league, "U14", age_group="U14", skill_level="A"
    )
    details = await membership_service.get_league(db_session, league)

    assert division["league_id"] == league
    assert [d["name"] for d in details["divisions"]] == ["U14"]


@pytest.mark.asyncio
async def test_duplicate_division_name_rejected(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    await membership_service.create_division(db_session, admin, league, "U14")

    with pytest.raises(ValueError, match="already exists"):
        await membership_service.create_division(db_session, admin, league, "U14")


@pytest.mark.asyncio
async def test_get_inactive_league_is_not_found(db_session):
    league = await make_league(db_session, is_active=False)
    with pytest.raises(NotFoundError):
        await membership_service.get_league(db_session, league)


# ──────────────────────────────────────────────────────────────
# Teams
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_standalone_team_creator_becomes_admin(db_session):
    creator = await make_user(db_session, "coach@example.com")

    team = await membership_service.create_team(db_session, creator, "Ice Hawks", "hockey", "2026")

    assert team["league_id"] is None
    assert await access_service.is_team_admin(db_session, creator, team["id"]) is True


@pytest.mark.asyncio
async def test_league_team_gets_no_creator_row(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    await add_league_role(db_session, admin, league, LeagueRole.LEAGUE_ADMIN.value)

    team = await membership_service.create_team(
        db_session, admin, "Sharks", "hockey", "2026", league_id=league
    )

    assert await access_service.is_team_member(db_session, admin, team["id"]) is False
    assert await access_service.has_team_admin_access(db_session, admin, team["id"]) is True


@pytest.mark.asyncio
async def test_create_team_with_foreign_division_refused(db_session):
    admin = await make_user(db_session, "admin@example.com")
    l1 = await make_league(db_session, "One")
    l2 = await make_league(db_session, "Two")
    foreign = await make_division(db_session, l2, "Other")

    with pytest.raises(DivisionLeagueMismatchError):
        await membership_service.create_team(
            db_session, admin, "Sharks", "hockey", "2026", league_id=l1, division_id=foreign
        )


@pytest.mark.asyncio
async def test_standalone_team_cannot_have_division(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    division = await make_division(db_session, league)

    with pytest.raises(DivisionLeagueMismatchError):
        await membership_service.create_team(
            db_session, admin, "Loners", "hockey", "2026", division_id=division
        )


@pytest.mark.asyncio
async def test_assign_team_division(db_session):
    admin = await make_user(db_session, "admin@example.com")
    l1 = await make_league(db_session, "One")
    l2 = await make_league(db_session, "Two")
    own = await make_division(db_session, l1, "Own")
    foreign = await make_division(db_session, l2, "Foreign")
    team = await make_team(db_session, "Sharks", league_id=l1)

    updated = await membership_service.assign_team_division(db_session, admin, team, own)
    assert updated["division_id"] == own

    with pytest.raises(DivisionLeagueMismatchError):
        await membership_service.assign_team_division(db_session, admin, team, foreign)

    cleared = await membership_service.assign_team_division(db_session, admin, team, None)
    assert cleared["division_id"] is None


@pytest.mark.asyncio
async def test_migrate_standalone_team_into_new_league(db_session):
    coach = await make_user(db_session, "coach@example.com")
    assistant = await make_user(db_session, "assistant@example.com")
    team = await make_team(db_session)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)
    await add_team_role(db_session, assistant, team, TeamRole.MEMBER.value)

    result = await membership_service.migrate_team_to_league(
        db_session, coach, team, "Northside Hockey", "hockey", contact_email="info@northside.example"
    )

    league = result["league"]["id"]
    assert result["team"]["league_id"] == league
    assert result["league"]["name"] == "Northside Hockey"
    assert await access_service.is_league_admin(db_session, coach, league)
    assert not await access_service.is_league_admin(db_session, assistant, league)

    # The new league admin administers the team through the league
    await membership_service.remove_team_member(db_session, coach, team, coach)
    assert await access_service.has_team_admin_access(db_session, coach, team)

    entries = await audit_service.get_audit_log(db_session, league_id=league)
    assert audit_service.TEAM_MIGRATED in [e["action"] for e in entries]


@pytest.mark.asyncio
async def test_migrate_team_already_in_league_refused(db_session):
    coach = await make_user(db_session, "coach@example.com")
    league = await make_league(db_session)
    team = await make_team(db_session, league_id=league)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)

    with pytest.raises(TeamAlreadyInLeagueError):
        await membership_service.migrate_team_to_league(db_session, coach, team, "Second League", "hockey")

    rows = await db_session.execute(select(LeagueUser.id).where(LeagueUser.user_id == coach))
    assert rows.scalars().all() == []


@pytest.mark.asyncio
async def test_migrate_team_requires_team_admin(db_session):
    player = await make_user(db_session, "player@example.com")
    team = await make_team(db_session)
    await add_team_role(db_session, player, team, TeamRole.MEMBER.value)

    with pytest.raises(UnauthorizedError):
        await membership_service.migrate_team_to_league(db_session, player, team, "My League", "hockey")

    assert (await membership_service.get_team(db_session, team))["league_id"] is None


# ──────────────────────────────────────────────────────────────
# League membership
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_second_league_user_row_is_already_a_member(db_session):
    user = await make_user(db_session, "a@example.com")
    league = await make_league(db_session)

    await membership_service.add_league_user(db_session, user, league)
    with pytest.raises(AlreadyMemberError):
        await membership_service.add_league_user(db_session, user, league, LeagueRole.LEAGUE_ADMIN.value)

    rows = await db_session.execute(select(LeagueUser.role).where(LeagueUser.user_id == user))
    assert rows.scalars().all() == ["MEMBER"]


@pytest.mark.asyncio
async def test_concurrent_league_joins_exactly_one_wins(db_session, session_maker):
    """Two simultaneous inserts of one (user, league) pair: one row, one AlreadyMember."""
    user = await make_user(db_session, "race@example.com")
    league = await make_league(db_session)

    async def join():
        async with session_maker() as session:
            try:
                return await membership_service.add_league_user(session, user, league)
            except AlreadyMemberError as e:
                return e

    results = await asyncio.gather(join(), join())

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if isinstance(r, AlreadyMemberError)]
    assert len(successes) == 1
    assert len(failures) == 1

    rows = await db_session.execute(select(LeagueUser.id).where(LeagueUser.user_id == user))
    assert len(rows.scalars().all()) == 1



@pytest.mark.asyncio
async def test_second_team_member_row_is_already_a_member(db_session):
    user = await make_user(db_session, "a@example.com")
    team = await make_team(db_session)

    await membership_service.add_team_member(db_session, user, team)
    with pytest.raises(AlreadyMemberError):
        await membership_service.add_team_member(db_session, user, team, TeamRole.ADMIN.value)

    rows = await db_session.execute(select(TeamMember.role).where(TeamMember.user_id == user))
    assert rows.scalars().all() == ["MEMBER"]


@pytest.mark.asyncio
async def test_assign_league_role_creates_then_updates(db_session):
    admin = await make_user(db_session, "admin@example.com")
    user = await make_user(db_session, "b@example.com")
    league = await make_league(db_session)
    await add_league_role(db_session, admin, league, LeagueRole.LEAGUE_ADMIN.value)

    created = await membership_service.assign_league_role(
        db_session, admin, user, league, LeagueRole.MEMBER.value
    )
    updated = await membership_service.assign_league_role(
        db_session, admin, user, league, LeagueRole.TEAM_ADMIN.value
    )

    assert created["role"] == "MEMBER"
    assert updated["role"] == "TEAM_ADMIN"
    rows = await db_session.execute(select(LeagueUser.id).where(LeagueUser.user_id == user))
    assert len(rows.all()) == 1


@pytest.mark.asyncio
async def test_assign_league_role_unknown_user(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    with pytest.raises(NotFoundError):
        await membership_service.assign_league_role(db_session, admin, 9999, league, "MEMBER")


@pytest.mark.asyncio
async def test_last_league_admin_cannot_be_demoted_or_removed(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    await add_league_role(db_session, admin, league, LeagueRole.LEAGUE_ADMIN.value)

    with pytest.raises(LastAdminError):
        await membership_service.assign_league_role(db_session, admin, admin, league, "MEMBER")
    with pytest.raises(LastAdminError):
        await membership_service.remove_league_user(db_session, admin, admin, league)

    assert await access_service.is_league_admin(db_session, admin, league) is True


@pytest.mark.asyncio
async def test_admin_can_leave_when_another_admin_remains(db_session):
    first = await make_user(db_session, "first@example.com")
    second = await make_user(db_session, "second@example.com")
    league = await make_league(db_session)
    team = await make_team(db_session, league_id=league)
    await add_league_role(db_session, first, league, LeagueRole.LEAGUE_ADMIN.value)
    await add_league_role(db_session, second, league, LeagueRole.LEAGUE_ADMIN.value)

    await membership_service.remove_league_user(db_session, first, first, league)

    assert await access_service.is_league_admin(db_session, first, league) is False
    assert await access_service.has_team_admin_access(db_session, first, team) is False
    entries = await audit_service.get_audit_log(db_session, league_id=league)
    assert entries[0]["action"] == audit_service.LEAGUE_ROLE_REMOVED
    assert entries[0]["details"]["previous_role"] == "LEAGUE_ADMIN"


@pytest.mark.asyncio
async def test_remove_non_member_is_not_found(db_session):
    admin = await make_user(db_session, "admin@example.com")
    league = await make_league(db_session)
    with pytest.raises(NotFoundError):
        await membership_service.remove_league_user(db_session, admin, admin, league)


@pytest.mark.asyncio
async def test_list_league_users(db_session):
    admin = await make_user(db_session, "admin@example.com", name="Ann")
    member = await make_user(db_session, "member@example.com", name="Ben")
    coach = await make_user(db_session, "coach@example.com", name="Cal")
    league = await make_league(db_session)
    await add_league_role(db_session, member, league, LeagueRole.MEMBER.value)
    await add_league_role(db_session, coach, league, LeagueRole.TEAM_ADMIN.value)
    await add_league_role(db_session, admin, league, LeagueRole.LEAGUE_ADMIN.value)

    users = await membership_service.list_league_users(db_session, league)

    assert [(u["name"], u["role"]) for u in users] == [
        ("Ann", "LEAGUE_ADMIN"),
        ("Cal", "TEAM_ADMIN"),
        ("Ben", "MEMBER"),
    ]


# ──────────────────────────────────────────────────────────────
# Team membership
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_set_team_member_role(db_session):
    coach = await make_user(db_session, "coach@example.com")
    player = await make_user(db_session, "player@example.com")
    team = await make_team(db_session)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)
    await add_team_role(db_session, player, team, TeamRole.MEMBER.value)

    updated = await membership_service.set_team_member_role(db_session, coach, team, player, "ADMIN")

    assert updated["role"] == "ADMIN"
    assert await access_service.is_team_admin(db_session, player, team) is True


@pytest.mark.asyncio
async def test_last_standalone_team_admin_is_kept(db_session):
    coach = await make_user(db_session, "coach@example.com")
    team = await make_team(db_session)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)

    with pytest.raises(LastAdminError):
        await membership_service.set_team_member_role(db_session, coach, team, coach, "MEMBER")
    with pytest.raises(LastAdminError):
        await membership_service.remove_team_member(db_session, coach, team, coach)


@pytest.mark.asyncio
async def test_league_team_admin_can_be_removed(db_session):
    """League teams stay administered by the league, so no last-admin guard."""
    league_admin = await make_user(db_session, "league@example.com")
    coach = await make_user(db_session, "coach@example.com")
    league = await make_league(db_session)
    team = await make_team(db_session, league_id=league)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)

    await membership_service.remove_team_member(db_session, league_admin, team, coach)

    assert await access_service.is_team_member(db_session, coach, team) is False


@pytest.mark.asyncio
async def test_remove_team_member_and_roster(db_session):
    coach = await make_user(db_session, "coach@example.com", name="Coach")
    player = await make_user(db_session, "player@example.com", name="Player")
    team = await make_team(db_session)
    await add_team_role(db_session, coach, team, TeamRole.ADMIN.value)
    await add_team_role(db_session, player, team, TeamRole.MEMBER.value)

    roster = await membership_service.list_team_members(db_session, team)
    assert [(m["name"], m["role"]) for m in roster] == [("Coach", "ADMIN"), ("Player", "MEMBER")]

    await membership_service.remove_team_member(db_session, coach, team, player)

    assert await access_service.has_team_access(db_session, player, team) is False
    audit = await db_session.execute(select(AuditLog.action).where(AuditLog.team_id == team))
    assert audit.scalars().all() == [audit_service.TEAM_MEMBER_REMOVED]


@pytest.mark.asyncio
async def test_remove_unknown_team_member(db_session):
    coach = await make_user(db_session, "coach@example.com")
    team = await make_team(db_session)
    with pytest.raises(NotFoundError):
        await membership_service.remove_team_member(db_session, coach, team, 777)
