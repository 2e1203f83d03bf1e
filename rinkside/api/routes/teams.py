"""Team and team-membership route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.db import get_db_session
from rinkside.services import access_service, membership_service
from rinkside.api.auth_dependencies import (
    require_user,
    make_require_team_member,
    make_require_team_admin,
)
from rinkside.models.schemas import (
    TeamCreate,
    TeamResponse,
    TeamMemberResponse,
    TeamRoleUpdate,
    TeamDivisionUpdate,
    TeamMigrateRequest,
    TeamMigrateResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams", response_model=TeamResponse)
async def create_team(
    payload: TeamCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a team.

    Standalone teams make their creator ADMIN. Teams inside a league can only
    be created by that league's admins.
    """
    try:
        if payload.league_id is not None:
            await access_service.require_league_admin(session, user["id"], payload.league_id)
        return await membership_service.create_team(
            session,
            user["id"],
            payload.name,
            payload.sport,
            payload.season,
            league_id=payload.league_id,
            division_id=payload.division_id,
        )
    except access_service.UnauthorizedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/teams/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: int,
    user: dict = Depends(make_require_team_member()),
    session: AsyncSession = Depends(get_db_session),
):
    """Team details for members and league admins."""
    try:
        return await membership_service.get_team(session, team_id)
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/api/teams/{team_id}/members", response_model=List[TeamMemberResponse])
async def list_team_members(
    team_id: int,
    user: dict = Depends(make_require_team_member()),
    session: AsyncSession = Depends(get_db_session),
):
    """Team roster with roles."""
    return await membership_service.list_team_members(session, team_id)


@router.put("/api/teams/{team_id}/members/{user_id}/role", response_model=TeamMemberResponse)
async def set_team_member_role(
    team_id: int,
    user_id: int,
    payload: TeamRoleUpdate,
    user: dict = Depends(make_require_team_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Promote or demote a team member."""
    try:
        return await membership_service.set_team_member_role(
            session, user["id"], team_id, user_id, payload.role
        )
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.LastAdminError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/teams/{team_id}/members/{user_id}")
async def remove_team_member(
    team_id: int,
    user_id: int,
    user: dict = Depends(make_require_team_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a member from the team."""
    try:
        await membership_service.remove_team_member(session, user["id"], team_id, user_id)
        return {"status": "success", "message": "Member removed from team"}
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.LastAdminError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/api/teams/{team_id}/division", response_model=TeamResponse)
async def assign_team_division(
    team_id: int,
    payload: TeamDivisionUpdate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Place a league team in one of its league's divisions (league admin only)."""
    team = await access_service.get_active_team(session, team_id)
    if team is None:
        raise HTTPException(status_code=403, detail="Unauthorized")
    if team.league_id is None:
        raise HTTPException(status_code=400, detail="Team does not belong to a league")

    try:
        await access_service.require_league_admin(session, user["id"], team.league_id)
        return await membership_service.assign_team_division(
            session, user["id"], team_id, payload.division_id
        )
    except access_service.UnauthorizedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.DivisionLeagueMismatchError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/api/teams/{team_id}/migrate", response_model=TeamMigrateResponse)
async def migrate_team_to_league(
    team_id: int,
    payload: TeamMigrateRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Start a league around a standalone team.

    The caller must be an ADMIN of the team and becomes LEAGUE_ADMIN of the
    new league.
    """
    try:
        return await membership_service.migrate_team_to_league(
            session,
            user["id"],
            team_id,
            payload.name,
            payload.sport,
            contact_email=payload.contact_email,
            contact_phone=payload.contact_phone,
        )
    except access_service.UnauthorizedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except access_service.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.TeamAlreadyInLeagueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
