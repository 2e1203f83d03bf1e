"""
Audit log service.

Records role changes, approvals and invitation activity. Entries are added to
the caller's transaction, so an entry is persisted exactly when the change it
records is committed.
"""

import json
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rinkside.database.models import AuditLog, AuditSeverity, User
from rinkside.utils.datetime_utils import isoformat_or_none

logger = logging.getLogger(__name__)

# Audit actions
USER_APPROVED = "user_approved"
USER_REJECTED = "user_rejected"
LEAGUE_CREATED = "league_created"
TEAM_CREATED = "team_created"
DIVISION_CREATED = "division_created"
TEAM_DIVISION_ASSIGNED = "team_division_assigned"
TEAM_MIGRATED = "team_migrated"
LEAGUE_ROLE_ASSIGNED = "league_role_assigned"
LEAGUE_ROLE_REMOVED = "league_role_removed"
TEAM_ROLE_ASSIGNED = "team_role_assigned"
TEAM_MEMBER_REMOVED = "team_member_removed"
INVITATION_SENT = "invitation_sent"
INVITATION_ACCEPTED = "invitation_accepted"


def log_audit_event(
    session: AsyncSession,
    action: str,
    user_id: Optional[int],
    league_id: Optional[int] = None,
    team_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict] = None,
    severity: str = AuditSeverity.INFO.value,
) -> None:
    """
    Add an audit entry to the session.

    The entry is not committed here.
    """
    entry = AuditLog(
        action=action,
        user_id=user_id,
        league_id=league_id,
        team_id=team_id,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=json.dumps(details) if details is not None else None,
        severity=severity,
    )
    session.add(entry)
    logger.debug("Audit event %s by user %s", action, user_id)


async def get_audit_log(
    session: AsyncSession,
    league_id: Optional[int] = None,
    team_id: Optional[int] = None,
    action: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict]:
    """
    Most recent audit entries, newest first, with the acting user's email and name.

    Args:
        session: Database session
        league_id: Only entries recorded against this league
        team_id: Only entries recorded against this team
        action: Only entries with this action
        severity: Only entries with this severity
        limit: Page size
        offset: Entries to skip

    Returns:
        List of audit entry dictionaries
    """
    query = select(AuditLog, User.email, User.name).outerjoin(User, User.id == AuditLog.user_id)
    if league_id is not None:
        query = query.where(AuditLog.league_id == league_id)
    if team_id is not None:
        query = query.where(AuditLog.team_id == team_id)
    if action:
        query = query.where(AuditLog.action == action)
    if severity:
        query = query.where(AuditLog.severity == severity)
    query = query.order_by(AuditLog.id.desc()).offset(offset).limit(limit)

    result = await session.execute(query)
    return [
        {
            "id": entry.id,
            "action": entry.action,
            "user_id": entry.user_id,
            "user_email": email,
            "user_name": name,
            "league_id": entry.league_id,
            "team_id": entry.team_id,
            "resource_type": entry.resource_type,
            "resource_id": entry.resource_id,
            "details": json.loads(entry.details) if entry.details else None,
            "severity": entry.severity,
            "created_at": isoformat_or_none(entry.created_at),
        }
        for entry, email, name in result.all()
    ]


async def list_audit_actions(session: AsyncSession, league_id: int) -> List[str]:
    """Distinct actions recorded for a league, alphabetically."""
    result = await session.execute(
        select(AuditLog.action)
        .where(AuditLog.league_id == league_id)
        .distinct()
        .order_by(AuditLog.action)
    )
    return list(result.scalars().all())
