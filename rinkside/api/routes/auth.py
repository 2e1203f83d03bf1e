"""Authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE, PENDING_APPROVAL_RESPONSE
from rinkside.database.db import get_db_session
from rinkside.services import auth_service, user_service, invitation_service
from rinkside.api.auth_dependencies import get_current_user
from rinkside.models.schemas import (
    SignupRequest,
    SignupResponse,
    LoginRequest,
    AuthResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _validate_password(password: str) -> None:
    if len(password) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters long")
    if not any(char.isdigit() for char in password):
        raise HTTPException(status_code=400, detail="Password must include at least one number")


@router.post("/api/auth/signup", response_model=SignupResponse)
@limiter.limit("10/minute")
async def signup(
    request: Request, payload: SignupRequest, session: AsyncSession = Depends(get_db_session)
):
    """
    Create an account.

    Plain signups wait for admin approval. A signup carrying a valid
    invitation token is approved immediately and joins the invited team.
    """
    try:
        email = auth_service.normalize_email(payload.email)
        _validate_password(payload.password)
        name = payload.name.strip() if payload.name and payload.name.strip() else None
        password_hash = auth_service.hash_password(payload.password)

        if payload.invitation_token:
            user_id = await invitation_service.register_invited_user(
                session, payload.invitation_token, email, password_hash, name
            )
            return SignupResponse(
                status="success",
                message="Account created. You can sign in now.",
                user_id=user_id,
                approved=True,
            )

        user_id = await user_service.create_user(session, email, password_hash, name=name)
        logger.info("User %d signed up, awaiting approval", user_id)
        return SignupResponse(
            status="success",
            message="Account created. An administrator will review your request.",
            user_id=user_id,
            approved=False,
        )
    except HTTPException:
        raise
    except invitation_service.InvitationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except invitation_service.InvitationExpiredError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except invitation_service.InvitationAlreadyConsumedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except invitation_service.InvitationEmailMismatchError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error during signup: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error during signup")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)
):
    """Login with email and password. Unapproved accounts are refused."""
    try:
        email = auth_service.normalize_email(payload.email)
        user = await user_service.get_user_by_email(session, email)
        if not user:
            raise INVALID_CREDENTIALS_RESPONSE

        if not auth_service.verify_password(payload.password, user["password_hash"]):
            raise INVALID_CREDENTIALS_RESPONSE

        if not user["approved"]:
            raise PENDING_APPROVAL_RESPONSE

        access_token = auth_service.create_access_token(data={"user_id": user["id"]})
        return AuthResponse(
            access_token=access_token,
            token_type="bearer",
            user_id=user["id"],
            email=user["email"],
        )
    except HTTPException:
        raise
    except ValueError:
        raise INVALID_CREDENTIALS_RESPONSE
    except Exception as e:
        logger.error(f"Error during login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error during login")


@router.get("/api/auth/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse(
        id=current_user["id"],
        email=current_user["email"],
        name=current_user.get("name"),
        approved=current_user["approved"],
        created_at=current_user.get("created_at"),
    )
