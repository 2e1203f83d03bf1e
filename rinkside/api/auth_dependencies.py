"""
Authentication and access dependencies for FastAPI routes.
"""

import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from rinkside.services import auth_service, user_service, access_service
from rinkside.database.db import get_db_session

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def resolve_session(session: AsyncSession, token: Optional[str]) -> Optional[dict]:
    """
    Resolve a bearer token to an approved user.

    Args:
        session: Database session
        token: Raw JWT, or None when no credential was presented

    Returns:
        User dictionary, or None for missing/invalid/expired tokens, unknown
        users and users still awaiting approval
    """
    if not token:
        return None

    payload = auth_service.verify_token(token)
    if payload is None:
        return None

    user_id = payload.get("user_id")
    if user_id is None:
        return None

    user = await user_service.get_user_by_id(session, user_id)
    if user is None or not user.get("approved"):
        return None
    return user


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Raises:
        HTTPException: 401 if the credential is missing or does not resolve to
            an approved user
    """
    if credentials is None:
        raise _unauthenticated("Not authenticated")

    user = await resolve_session(session, credentials.credentials)
    if user is None:
        raise _unauthenticated("Invalid authentication token")
    return user


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated, approved user."""
    return user


async def require_system_admin(
    user: dict = Depends(get_current_user), session: AsyncSession = Depends(get_db_session)
) -> dict:
    """Require platform-wide admin (LEAGUE_ADMIN of any league)."""
    if not await access_service.is_system_admin(session, user["id"]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def make_require_team_member():
    """
    Require read access to the team in the path.

    Missing and inaccessible teams both answer 403 so team ids cannot be guessed.
    """

    async def _dep(
        team_id: int,
        user: dict = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        try:
            await access_service.require_team_member(session, user["id"], team_id)
        except access_service.UnauthenticatedError as e:
            raise _unauthenticated(str(e))
        except access_service.UnauthorizedError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        return user

    return _dep


def make_require_team_admin():
    """Require administrative access (direct or inherited) to the team in the path."""

    async def _dep(
        team_id: int,
        user: dict = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        try:
            await access_service.require_team_admin(session, user["id"], team_id)
        except access_service.UnauthenticatedError as e:
            raise _unauthenticated(str(e))
        except access_service.UnauthorizedError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        return user

    return _dep


def make_require_league_admin():
    """Require LEAGUE_ADMIN of the league in the path."""

    async def _dep(
        league_id: int,
        user: dict = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        try:
            await access_service.require_league_admin(session, user["id"], league_id)
        except access_service.UnauthorizedError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="League admin access required"
            )
        return user

    return _dep
