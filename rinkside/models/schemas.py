"""
Pydantic models for API request/response validation.
"""

from typing import Any, Dict, Optional, List
from pydantic import BaseModel, Field, field_validator

from rinkside.database.models import LeagueRole, TeamRole


class SignupRequest(BaseModel):
    """Request to sign up a new user, optionally through an invitation."""

    email: str
    password: str
    name: Optional[str] = None
    invitation_token: Optional[str] = None


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Authentication response with JWT token."""

    access_token: str
    token_type: str = "bearer"
    user_id: int
    email: str


class SignupResponse(BaseModel):
    """Signup result; approved is True only for invited signups."""

    status: str
    message: str
    user_id: int
    approved: bool


class UserResponse(BaseModel):
    """User information response."""

    id: int
    email: str
    name: Optional[str] = None
    approved: bool
    created_at: Optional[str] = None


class LeagueMembership(BaseModel):
    id: int
    name: str
    sport: str
    role: str


class TeamMembership(BaseModel):
    id: int
    name: str
    sport: str
    season: str
    league_id: Optional[int] = None
    role: str


class NavigationItem(BaseModel):
    label: str
    path: str
    icon: str


class UserModeResponse(BaseModel):
    """League mode vs. single-team mode for the current user."""

    is_league_mode: bool
    leagues: List[LeagueMembership]
    teams: List[TeamMembership]
    navigation: List[NavigationItem]


class PrimaryContextResponse(BaseModel):
    type: str
    id: Optional[int] = None
    name: Optional[str] = None


class LeagueCreate(BaseModel):
    """Request to create a league."""

    name: str = Field(min_length=1)
    sport: str = Field(min_length=1)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class DivisionCreate(BaseModel):
    """Request to create a division."""

    name: str = Field(min_length=1)
    age_group: Optional[str] = None
    skill_level: Optional[str] = None


class DivisionResponse(BaseModel):
    id: int
    league_id: int
    name: str
    age_group: Optional[str] = None
    skill_level: Optional[str] = None


class LeagueResponse(BaseModel):
    """League data."""

    id: int
    name: str
    sport: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_active: bool
    created_at: Optional[str] = None
    divisions: List[DivisionResponse] = []


class LeagueRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in {role.value for role in LeagueRole}:
            raise ValueError("role must be one of LEAGUE_ADMIN, TEAM_ADMIN, MEMBER")
        return v


class LeagueUserResponse(BaseModel):
    user_id: int
    league_id: int
    role: str
    joined_at: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class TeamCreate(BaseModel):
    """Request to create a team, standalone or in a league."""

    name: str = Field(min_length=1)
    sport: str = Field(min_length=1)
    season: str = Field(min_length=1)
    league_id: Optional[int] = None
    division_id: Optional[int] = None


class TeamResponse(BaseModel):
    """Team data."""

    id: int
    name: str
    sport: str
    season: str
    league_id: Optional[int] = None
    division_id: Optional[int] = None
    is_active: bool
    created_at: Optional[str] = None


class TeamRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in {role.value for role in TeamRole}:
            raise ValueError("role must be ADMIN or MEMBER")
        return v


class TeamDivisionUpdate(BaseModel):
    """Division to place the team in; null unassigns."""

    division_id: Optional[int] = None


class TeamMigrateRequest(BaseModel):
    """New league that a standalone team becomes the first team of."""

    name: str = Field(min_length=1)
    sport: str = Field(min_length=1)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class TeamMigrateResponse(BaseModel):
    league: LeagueResponse
    team: TeamResponse


class TeamMemberResponse(BaseModel):
    user_id: int
    team_id: int
    role: str
    joined_at: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class InvitationCreate(BaseModel):
    email: str


class InvitationDetailsResponse(BaseModel):
    """What the accept page shows before the invitee signs up or signs in."""

    email: str
    team_id: int
    team_name: str
    inviter_name: Optional[str] = None
    status: str
    expires_at: Optional[str] = None


class PermissionsResponse(BaseModel):
    league_id: int
    access_level: str
    permissions: List[str]


class AuditLogEntryResponse(BaseModel):
    id: int
    action: str
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    league_id: Optional[int] = None
    team_id: Optional[int] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    severity: str
    created_at: Optional[str] = None
