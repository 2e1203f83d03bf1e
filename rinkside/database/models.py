"""
SQLAlchemy ORM models for the Rinkside league and team management system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from rinkside.database.db import Base
from rinkside.utils.datetime_utils import utcnow


class LeagueRole(str, enum.Enum):
    """Role a user holds within a league."""

    LEAGUE_ADMIN = "LEAGUE_ADMIN"
    TEAM_ADMIN = "TEAM_ADMIN"
    MEMBER = "MEMBER"


class TeamRole(str, enum.Enum):
    """Role a user holds within a team."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class InvitationStatus(str, enum.Enum):
    """Team invitation status enum."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"


class AuditSeverity(str, enum.Enum):
    """Audit log severity enum."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class User(Base):
    """User accounts with email/password authentication and admin approval."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)  # stored lower-cased
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league_users = relationship("LeagueUser", back_populates="user", cascade="all, delete-orphan")
    team_members = relationship("TeamMember", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_users_approved", "approved"),)


class League(Base):
    """Top-level organization owning divisions and teams."""

    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    sport = Column(String, nullable=False)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    divisions = relationship("Division", back_populates="league")
    teams = relationship("Team", back_populates="league")
    league_users = relationship("LeagueUser", back_populates="league", cascade="all, delete-orphan")


class Division(Base):
    """Named grouping of teams within a league (age group / skill bracket)."""

    __tablename__ = "divisions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    age_group = Column(String, nullable=True)
    skill_level = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="divisions")
    teams = relationship("Team", back_populates="division")

    __table_args__ = (
        UniqueConstraint("league_id", "name", name="uq_divisions_league_name"),
        Index("idx_divisions_league_id", "league_id"),
    )


class Team(Base):
    """Roster-bearing unit, optionally under a league and division."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    sport = Column(String, nullable=False)
    season = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=True)
    # Must reference a division of the same league when set
    division_id = Column(Integer, ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="teams")
    division = relationship("Division", back_populates="teams")
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    invitations = relationship("Invitation", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_teams_league_id", "league_id"),
        Index("idx_teams_division_id", "division_id"),
    )


class LeagueUser(Base):
    """Membership edge between a user and a league, carrying a league role."""

    __tablename__ = "league_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    role = Column(String, nullable=False, default=LeagueRole.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="league_users")
    league = relationship("League", back_populates="league_users")

    __table_args__ = (
        UniqueConstraint("user_id", "league_id", name="uq_league_users_user_league"),
        Index("idx_league_users_league_role", "league_id", "role"),
    )


class TeamMember(Base):
    """Membership edge between a user and a team, carrying a team role."""

    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    role = Column(String, nullable=False, default=TeamRole.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="team_members")
    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_team_members_user_team"),
        Index("idx_team_members_team_id", "team_id"),
    )


class Invitation(Base):
    """Single-use, expiring token granting team membership to an email address."""

    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(128), nullable=False, unique=True)
    email = Column(String, nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    invited_by_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    status = Column(String, nullable=False, default=InvitationStatus.PENDING.value)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    team = relationship("Team", back_populates="invitations")

    __table_args__ = (
        Index("idx_invitations_email_team_status", "email", "team_id", "status"),
    )


class AuditLog(Base):
    """Audit trail for role changes, approvals and invitation activity."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    league_id = Column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    resource_type = Column(String, nullable=True)
    resource_id = Column(String, nullable=True)
    details = Column(Text, nullable=True)  # JSON string
    severity = Column(String, nullable=False, default=AuditSeverity.INFO.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_audit_logs_user_id", "user_id"),
        Index("idx_audit_logs_league_id", "league_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_created_at", "created_at"),
    )
