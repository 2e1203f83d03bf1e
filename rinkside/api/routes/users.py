"""Current-user route handlers: mode and primary context."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.db import get_db_session
from rinkside.services import mode_service
from rinkside.api.auth_dependencies import require_user
from rinkside.models.schemas import UserModeResponse, PrimaryContextResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/me/mode", response_model=UserModeResponse)
async def get_my_mode(
    user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    """League/team memberships of the current user and the resulting mode."""
    try:
        mode = await mode_service.get_user_mode(session, user["id"])
        return {**mode, "navigation": mode_service.get_navigation_items(mode)}
    except Exception as e:
        logger.error(f"Error resolving mode for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error resolving user mode")


@router.get("/api/users/me/context", response_model=PrimaryContextResponse)
async def get_my_context(
    user: dict = Depends(require_user), session: AsyncSession = Depends(get_db_session)
):
    """The league or team the current user lands in."""
    try:
        return await mode_service.get_user_primary_context(session, user["id"])
    except Exception as e:
        logger.error(f"Error resolving context for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error resolving user context")
