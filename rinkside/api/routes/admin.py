"""Admin route handlers: account approval."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.db import get_db_session
from rinkside.services import user_service
from rinkside.api.auth_dependencies import require_system_admin
from rinkside.models.schemas import UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/admin/users/pending", response_model=List[UserResponse])
async def list_pending_users(
    user: dict = Depends(require_system_admin), session: AsyncSession = Depends(get_db_session)
):
    """Accounts awaiting approval, newest first."""
    return await user_service.list_pending_users(session)


@router.post("/api/admin/users/{user_id}/approve")
async def approve_user(
    user_id: int,
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve an account so it can sign in."""
    try:
        newly_approved = await user_service.approve_user(session, user_id, actor_user_id=user["id"])
    except user_service.UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if newly_approved:
        logger.info("User %d approved by %d", user_id, user["id"])
    return {"status": "success", "user_id": user_id, "approved": True, "changed": newly_approved}


@router.delete("/api/admin/users/{user_id}")
async def reject_user(
    user_id: int,
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Reject (delete) an account that is still pending approval."""
    try:
        await user_service.reject_user(session, user_id, actor_user_id=user["id"])
        return {"status": "success", "message": "User rejected"}
    except user_service.UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except user_service.UserAlreadyApprovedError as e:
        raise HTTPException(status_code=400, detail=str(e))
