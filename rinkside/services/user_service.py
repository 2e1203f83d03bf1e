"""
User service layer for account creation, lookup and admin approval.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from rinkside.database.models import AuditSeverity, User
from rinkside.services import audit_service
from rinkside.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


class UserNotFoundError(ValueError):
    """Raised when a user id does not match any account."""


class UserAlreadyApprovedError(ValueError):
    """Raised when rejecting a user that has already been approved."""


async def create_user(
    session: AsyncSession,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    approved: bool = False,
    commit: bool = True,
) -> int:
    """
    Create a new user account.

    New accounts are unapproved unless created through a valid invitation.

    Args:
        session: Database session
        email: Normalized (lower-cased) email address
        password_hash: Required hashed password
        name: Optional display name
        approved: Whether the account may sign in immediately
        commit: Commit immediately; pass False to join a larger transaction

    Returns:
        User ID of the created user

    Raises:
        ValueError: If a user with this email already exists
    """
    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValueError("An account with this email already exists")

    new_user = User(email=email, password_hash=password_hash, name=name, approved=approved)
    session.add(new_user)
    try:
        await session.flush()
    except IntegrityError:
        # Concurrent signup with the same email won the insert
        await session.rollback()
        raise ValueError("An account with this email already exists")
    user_id = new_user.id
    if commit:
        await session.commit()

    return user_id


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email address.

    Args:
        session: Database session
        email: Email address (will be normalized to lowercase)

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(select(User).where(func.lower(User.email) == email).limit(1))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def list_pending_users(session: AsyncSession) -> List[Dict]:
    """Unapproved accounts, newest first."""
    result = await session.execute(
        select(User).where(User.approved.is_(False)).order_by(User.created_at.desc(), User.id.desc())
    )
    return [_user_to_dict(user) for user in result.scalars().all()]


async def approve_user(
    session: AsyncSession, user_id: int, actor_user_id: Optional[int] = None
) -> bool:
    """
    Approve a user account so it can sign in.

    Approval is one-way: an already approved user is left untouched.

    Returns:
        True if the user was newly approved, False if already approved

    Raises:
        UserNotFoundError: If the user does not exist
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.approved.is_(False))
        .values(approved=True, updated_at=func.now())
    )
    if result.rowcount > 0:
        audit_service.log_audit_event(
            session,
            audit_service.USER_APPROVED,
            user_id=actor_user_id,
            resource_type="user",
            resource_id=user_id,
        )
        await session.commit()
        logger.info("Approved user %d", user_id)
        return True

    existing = await session.execute(select(User.id).where(User.id == user_id))
    if existing.scalar_one_or_none() is None:
        raise UserNotFoundError("User not found")
    return False


async def reject_user(
    session: AsyncSession, user_id: int, actor_user_id: Optional[int] = None
) -> None:
    """
    Delete a pending (unapproved) user account.

    The delete is conditional on the account still being unapproved, so an
    approval that lands first always wins.

    Raises:
        UserNotFoundError: If the user does not exist
        UserAlreadyApprovedError: If the user has already been approved
    """
    result = await session.execute(
        delete(User).where(User.id == user_id, User.approved.is_(False))
    )
    if result.rowcount == 0:
        existing = await session.execute(select(User.id).where(User.id == user_id))
        if existing.scalar_one_or_none() is None:
            raise UserNotFoundError("User not found")
        raise UserAlreadyApprovedError("Cannot reject an already approved user")

    audit_service.log_audit_event(
        session,
        audit_service.USER_REJECTED,
        user_id=actor_user_id,
        resource_type="user",
        resource_id=user_id,
        severity=AuditSeverity.WARNING.value,
    )
    await session.commit()
    logger.info("Rejected pending user %d", user_id)


def _user_to_dict(user: User) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance

    Returns:
        User dictionary
    """
    return {
        "id": user.id,
        "email": user.email,
        "password_hash": user.password_hash,
        "name": user.name,
        "approved": bool(user.approved),
        "created_at": isoformat_or_none(user.created_at),
        "updated_at": isoformat_or_none(user.updated_at),
    }
