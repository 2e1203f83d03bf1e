"""Team invitation route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.db import get_db_session
from rinkside.services import access_service, invitation_service, membership_service
from rinkside.api.auth_dependencies import require_user, make_require_team_admin
from rinkside.models.schemas import InvitationCreate, InvitationDetailsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _invitation_http_error(e: ValueError) -> HTTPException:
    if isinstance(e, invitation_service.InvitationNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, invitation_service.InvitationExpiredError):
        return HTTPException(status_code=410, detail=str(e))
    if isinstance(
        e,
        (
            invitation_service.InvitationAlreadyConsumedError,
            invitation_service.InvitationAlreadyPendingError,
            membership_service.AlreadyMemberError,
        ),
    ):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (invitation_service.InvitationEmailMismatchError, access_service.UnauthorizedError)):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("/api/teams/{team_id}/invitations")
async def create_invitation(
    team_id: int,
    payload: InvitationCreate,
    user: dict = Depends(make_require_team_admin()),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Invite an email address to the team.

    Existing accounts are added directly; new addresses receive an email
    with a single-use link valid for seven days.
    """
    try:
        return await invitation_service.create_invitation(session, user["id"], team_id, payload.email)
    except ValueError as e:
        raise _invitation_http_error(e)


@router.get("/api/invitations/{token}", response_model=InvitationDetailsResponse)
async def get_invitation(token: str, session: AsyncSession = Depends(get_db_session)):
    """Public lookup for the invitation accept page."""
    try:
        return await invitation_service.get_invitation_details(session, token)
    except ValueError as e:
        raise _invitation_http_error(e)


@router.post("/api/invitations/{token}/accept")
async def accept_invitation(
    token: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept an invitation as the signed-in user it was addressed to."""
    try:
        joined = await invitation_service.accept_invitation(session, token, user)
        return {"status": "success", **joined}
    except ValueError as e:
        raise _invitation_http_error(e)
