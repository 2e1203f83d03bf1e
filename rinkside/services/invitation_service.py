"""
Team invitations: creation, lookup and at-most-once consumption.

An invitation is a single-use token bound to an email address and a team.
Consumption is one conditional UPDATE (pending, matching token, not expired)
issued as the first statement of its transaction. Whichever consumer's UPDATE
matches the row wins; every other concurrent consumer matches zero rows and
gets a diagnosed error instead.
"""

import os
import logging
import secrets
from datetime import timedelta
from typing import Optional, Dict

from dotenv import load_dotenv
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.models import Invitation, InvitationStatus, Team, TeamRole, User
from rinkside.services import audit_service, email_service, user_service
from rinkside.services.access_service import get_active_team, require_team_admin, NotFoundError
from rinkside.services.auth_service import normalize_email
from rinkside.services.membership_service import add_team_member
from rinkside.utils.datetime_utils import utcnow, ensure_utc, isoformat_or_none

load_dotenv()

logger = logging.getLogger(__name__)

INVITATION_EXPIRE_DAYS = int(os.getenv("INVITATION_EXPIRE_DAYS", "7"))


class InvitationNotFoundError(ValueError):
    """Raised when no invitation matches the token."""


class InvitationExpiredError(ValueError):
    """Raised when the invitation's validity window has passed."""


class InvitationAlreadyConsumedError(ValueError):
    """Raised when the invitation has already been accepted."""


class InvitationAlreadyPendingError(ValueError):
    """Raised when a live invitation already exists for the email and team."""


class InvitationEmailMismatchError(ValueError):
    """Raised when the accepting account's email differs from the invited one."""


def generate_invitation_token() -> str:
    """64 hex characters from 32 random bytes."""
    return secrets.token_hex(32)


async def create_invitation(
    session: AsyncSession,
    inviter_user_id: int,
    team_id: int,
    email: str,
) -> Dict:
    """
    Invite an email address to a team.

    An email that already belongs to an account is added to the team directly
    as MEMBER and notified; no invitation row is stored.

    Args:
        session: Database session
        inviter_user_id: Team admin (or league admin of the team's league)
        team_id: Team being joined
        email: Invitee email address

    Returns:
        {"status": "added", "user_id", "team_id"} for existing accounts, or
        {"status": "invited", "invitation": {...}} for new ones

    Raises:
        UnauthorizedError: If the inviter lacks admin access to the team
        AlreadyMemberError: If the account is already on the team
        InvitationAlreadyPendingError: If a live invitation already exists
        ValueError: If the email is invalid
    """
    await require_team_admin(session, inviter_user_id, team_id)
    email = normalize_email(email)

    team = await get_active_team(session, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    team_name = team.name

    inviter = await user_service.get_user_by_id(session, inviter_user_id)
    inviter_name = (inviter or {}).get("name")

    existing_user = await user_service.get_user_by_email(session, email)
    if existing_user:
        await add_team_member(
            session, existing_user["id"], team_id, TeamRole.MEMBER.value, commit=False
        )
        audit_service.log_audit_event(
            session,
            audit_service.INVITATION_SENT,
            user_id=inviter_user_id,
            league_id=team.league_id,
            team_id=team_id,
            resource_type="user",
            resource_id=existing_user["id"],
            details={"email": email, "added_directly": True},
        )
        await session.commit()
        logger.info("User %d added directly to team %d", existing_user["id"], team_id)

        await email_service.send_added_to_team_email(email, team_name, inviter_name)
        return {"status": "added", "user_id": existing_user["id"], "team_id": team_id}

    now = utcnow()
    pending = await session.execute(
        select(Invitation.id)
        .where(
            Invitation.email == email,
            Invitation.team_id == team_id,
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at > now,
        )
        .limit(1)
    )
    if pending.scalar_one_or_none() is not None:
        raise InvitationAlreadyPendingError("An invitation has already been sent to this email")

    invitation = Invitation(
        token=generate_invitation_token(),
        email=email,
        team_id=team_id,
        invited_by_user_id=inviter_user_id,
        status=InvitationStatus.PENDING.value,
        expires_at=now + timedelta(days=INVITATION_EXPIRE_DAYS),
    )
    session.add(invitation)
    await session.flush()

    audit_service.log_audit_event(
        session,
        audit_service.INVITATION_SENT,
        user_id=inviter_user_id,
        league_id=team.league_id,
        team_id=team_id,
        resource_type="invitation",
        resource_id=invitation.id,
        details={"email": email},
    )
    await session.commit()
    await session.refresh(invitation)
    logger.info("Invitation %d created for team %d", invitation.id, team_id)

    await email_service.send_invitation_email(
        email, team_name, invitation.token, inviter_name, INVITATION_EXPIRE_DAYS
    )
    return {"status": "invited", "invitation": _invitation_to_dict(invitation)}


async def get_invitation_details(session: AsyncSession, token: str) -> Dict:
    """
    Look up a pending invitation for the accept page.

    Returns:
        Dict with email, team_id, team_name, inviter_name, status, expires_at

    Raises:
        InvitationNotFoundError: If no invitation matches the token
        InvitationExpiredError: If the invitation has expired
        InvitationAlreadyConsumedError: If it was already accepted
    """
    result = await session.execute(
        select(Invitation, Team.name, User.name)
        .join(Team, Team.id == Invitation.team_id)
        .outerjoin(User, User.id == Invitation.invited_by_user_id)
        .where(Invitation.token == token)
    )
    row = result.first()
    if row is None:
        raise InvitationNotFoundError("Invitation not found")

    invitation, team_name, inviter_name = row
    _raise_for_unusable(invitation.status, invitation.expires_at)

    return {
        **_invitation_to_dict(invitation),
        "team_name": team_name,
        "inviter_name": inviter_name,
    }


async def consume_invitation(
    session: AsyncSession,
    token: str,
    accepted_by_user_id: Optional[int] = None,
    email: Optional[str] = None,
    commit: bool = True,
) -> Dict:
    """
    Atomically mark a pending, unexpired invitation as accepted.

    Args:
        session: Database session; the UPDATE must be the transaction's first statement
        token: Invitation token
        accepted_by_user_id: Account recorded as the acceptor
        email: When given, the invitation must be addressed to this email
        commit: Commit immediately; pass False to join a larger transaction

    Returns:
        {"id", "team_id", "email"} of the consumed invitation

    Raises:
        InvitationNotFoundError: If no invitation matches the token
        InvitationExpiredError: If the invitation has expired
        InvitationAlreadyConsumedError: If another consumer got there first
        InvitationEmailMismatchError: If the email does not match
    """
    now = utcnow()
    conditions = [
        Invitation.token == token,
        Invitation.status == InvitationStatus.PENDING.value,
        Invitation.expires_at > now,
    ]
    if email is not None:
        conditions.append(Invitation.email == email.strip().lower())

    result = await session.execute(
        update(Invitation)
        .where(*conditions)
        .values(
            status=InvitationStatus.ACCEPTED.value,
            accepted_at=now,
            accepted_by_user_id=accepted_by_user_id,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 1:
        consumed = await session.execute(
            select(Invitation.id, Invitation.team_id, Invitation.email).where(
                Invitation.token == token
            )
        )
        row = consumed.one()
        if commit:
            await session.commit()
        logger.info("Invitation %d consumed for team %d", row.id, row.team_id)
        return {"id": row.id, "team_id": row.team_id, "email": row.email}

    # Nothing matched: work out why
    diagnosis = await session.execute(
        select(Invitation.id, Invitation.status, Invitation.expires_at, Invitation.email).where(
            Invitation.token == token
        )
    )
    row = diagnosis.first()
    if row is None:
        raise InvitationNotFoundError("Invitation not found")

    if row.status == InvitationStatus.PENDING.value and ensure_utc(row.expires_at) <= now:
        await session.execute(
            update(Invitation)
            .where(Invitation.id == row.id, Invitation.status == InvitationStatus.PENDING.value)
            .values(status=InvitationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        logger.info("Invitation %d expired", row.id)
        raise InvitationExpiredError("Invitation has expired")

    _raise_for_unusable(row.status, row.expires_at)
    raise InvitationEmailMismatchError("This invitation was sent to a different email address")


async def register_invited_user(
    session: AsyncSession,
    token: str,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
) -> int:
    """
    Create an account through an invitation.

    The invitation is consumed, the account is created already approved, and
    it joins the invitation's team as MEMBER, all in one transaction.

    Returns:
        The new user id

    Raises:
        Invitation*Error: If the token cannot be consumed for this email
        ValueError: If the email is already registered
    """
    email = normalize_email(email)
    try:
        consumed = await consume_invitation(session, token, email=email, commit=False)
        user_id = await user_service.create_user(
            session, email, password_hash, name=name, approved=True, commit=False
        )
        await session.execute(
            update(Invitation)
            .where(Invitation.id == consumed["id"])
            .values(accepted_by_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        await add_team_member(session, user_id, consumed["team_id"], commit=False)
        audit_service.log_audit_event(
            session,
            audit_service.INVITATION_ACCEPTED,
            user_id=user_id,
            team_id=consumed["team_id"],
            resource_type="invitation",
            resource_id=consumed["id"],
            details={"email": email, "signup": True},
        )
        await session.commit()
    except ValueError:
        await session.rollback()
        raise

    logger.info("User %d signed up through invitation %d", user_id, consumed["id"])
    return user_id


async def accept_invitation(session: AsyncSession, token: str, user: Dict) -> Dict:
    """
    Accept an invitation as a signed-in user.

    The invitation must be addressed to the user's email. Accepting joins the
    user to the team as MEMBER.

    Returns:
        {"team_id", "team_name"} of the joined team

    Raises:
        Invitation*Error: If the token cannot be consumed by this user
        AlreadyMemberError: If the user is already on the team
    """
    try:
        consumed = await consume_invitation(
            session, token, accepted_by_user_id=user["id"], email=user["email"], commit=False
        )
        await add_team_member(session, user["id"], consumed["team_id"], commit=False)
        audit_service.log_audit_event(
            session,
            audit_service.INVITATION_ACCEPTED,
            user_id=user["id"],
            team_id=consumed["team_id"],
            resource_type="invitation",
            resource_id=consumed["id"],
            details={"email": consumed["email"]},
        )
        await session.commit()
    except ValueError:
        # Leaves the invitation pending when the user is already on the team
        await session.rollback()
        raise

    team = await session.execute(select(Team.name).where(Team.id == consumed["team_id"]))
    logger.info("User %d accepted invitation %d", user["id"], consumed["id"])
    return {"team_id": consumed["team_id"], "team_name": team.scalar_one_or_none()}


def _raise_for_unusable(status: str, expires_at) -> None:
    if status == InvitationStatus.ACCEPTED.value:
        raise InvitationAlreadyConsumedError("Invitation has already been used")
    if status == InvitationStatus.EXPIRED.value or ensure_utc(expires_at) <= utcnow():
        raise InvitationExpiredError("Invitation has expired")


def _invitation_to_dict(invitation: Invitation) -> Dict:
    return {
        "id": invitation.id,
        "token": invitation.token,
        "email": invitation.email,
        "team_id": invitation.team_id,
        "invited_by_user_id": invitation.invited_by_user_id,
        "status": invitation.status,
        "expires_at": isoformat_or_none(ensure_utc(invitation.expires_at)),
        "accepted_at": isoformat_or_none(ensure_utc(invitation.accepted_at)),
        "created_at": isoformat_or_none(invitation.created_at),
    }
