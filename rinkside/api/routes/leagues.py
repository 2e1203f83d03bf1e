"""League, division and league-membership route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.db import get_db_session
from rinkside.services import audit_service, membership_service, permission_service
from rinkside.services.access_service import NotFoundError
from rinkside.services.permission_service import LeagueAccessLevel
from rinkside.api.auth_dependencies import require_user, make_require_league_admin
from rinkside.models.schemas import (
    LeagueCreate,
    LeagueResponse,
    LeagueUserResponse,
    LeagueRoleUpdate,
    DivisionCreate,
    DivisionResponse,
    PermissionsResponse,
    AuditLogEntryResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/leagues", response_model=LeagueResponse)
async def create_league(
    payload: LeagueCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a league; the creator becomes its LEAGUE_ADMIN."""
    try:
        return await membership_service.create_league(
            session,
            user["id"],
            payload.name,
            payload.sport,
            contact_email=payload.contact_email,
            contact_phone=payload.contact_phone,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/leagues/{league_id}", response_model=LeagueResponse)
async def get_league(
    league_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """League details with divisions, for anyone with a role in the league."""
    level = await permission_service.get_league_access_level(session, user["id"], league_id)
    if level == LeagueAccessLevel.NONE:
        raise HTTPException(status_code=403, detail="League membership required")
    try:
        return await membership_service.get_league(session, league_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/api/leagues/{league_id}/users", response_model=List[LeagueUserResponse])
async def list_league_users(
    league_id: int,
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """League members and their roles (league admin only)."""
    return await membership_service.list_league_users(session, league_id)


@router.put("/api/leagues/{league_id}/users/{user_id}/role", response_model=LeagueUserResponse)
async def set_league_role(
    league_id: int,
    user_id: int,
    payload: LeagueRoleUpdate,
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Assign a league role, adding the user to the league if needed."""
    try:
        return await membership_service.assign_league_role(
            session, user["id"], user_id, league_id, payload.role
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.AlreadyMemberError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except membership_service.LastAdminError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/api/leagues/{league_id}/users/{user_id}")
async def remove_league_user(
    league_id: int,
    user_id: int,
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a user from the league, revoking inherited team access."""
    try:
        await membership_service.remove_league_user(session, user["id"], user_id, league_id)
        return {"status": "success", "message": "User removed from league"}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except membership_service.LastAdminError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/api/leagues/{league_id}/divisions", response_model=DivisionResponse)
async def create_division(
    league_id: int,
    payload: DivisionCreate,
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a division in the league."""
    try:
        return await membership_service.create_division(
            session,
            user["id"],
            league_id,
            payload.name,
            age_group=payload.age_group,
            skill_level=payload.skill_level,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/api/leagues/{league_id}/permissions", response_model=PermissionsResponse)
async def get_my_league_permissions(
    league_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """The current user's access level and permissions in the league."""
    level = await permission_service.get_league_access_level(session, user["id"], league_id)
    permissions = await permission_service.get_user_permissions(session, user["id"], league_id)
    return PermissionsResponse(
        league_id=league_id,
        access_level=level.name,
        permissions=[permission.value for permission in permissions],
    )


@router.get("/api/leagues/{league_id}/audit-log", response_model=List[AuditLogEntryResponse])
async def get_league_audit_log(
    league_id: int,
    team_id: Optional[int] = None,
    action: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Audit entries recorded against the league, newest first (league admin only)."""
    return await audit_service.get_audit_log(
        session,
        league_id=league_id,
        team_id=team_id,
        action=action,
        severity=severity,
        limit=limit,
        offset=offset,
    )


@router.get("/api/leagues/{league_id}/audit-log/actions", response_model=List[str])
async def get_league_audit_actions(
    league_id: int,
    user: dict = Depends(make_require_league_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """Distinct audit actions seen in the league, for filtering."""
    return await audit_service.list_audit_actions(session, league_id)
