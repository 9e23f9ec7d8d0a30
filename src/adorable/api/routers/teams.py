"""Teams router.

Endpoints for shared team workspaces:
- Team CRUD
- Member management and ownership transfer
- Invite codes (create, list, revoke, join)
- Moving projects and kits in and out of a team

``/join`` is declared before the ``/{team_id}`` routes so it is never
captured as a team id.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from adorable.api.deps import CurrentUser, DBSession, TeamAdmin, TeamMembership, TeamOwner
from adorable.api.exceptions import BadRequestError
from adorable.api.schemas import (
    CamelRequest,
    ProjectResponse,
    SuccessResponse,
    project_to_response,
)
from adorable.models.team import InviteState, MemberRole, Team, TeamInvite, TeamMember
from adorable.models.user import User
from adorable.services.kit_service import row_to_kit
from adorable.services.team_service import TeamService, TeamSummary

router = APIRouter()


# =============================================================================
# Pydantic Schemas
# =============================================================================


class TeamCreate(CamelRequest):
    """Request to create a new team."""

    name: str = Field("", max_length=100, description="Team display name")


class TeamUpdate(CamelRequest):
    """Request to rename a team."""

    name: str = Field("", max_length=100)


class TeamResponse(BaseModel):
    """Team information."""

    id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime


class TeamListItem(TeamResponse):
    my_role: MemberRole
    member_count: int
    project_count: int
    kit_count: int


class TeamListResponse(BaseModel):
    teams: list[TeamListItem]


class MemberUser(BaseModel):
    id: str
    name: Optional[str]
    email: str


class MemberResponse(BaseModel):
    """Team member information."""

    id: str
    team_id: str
    user_id: str
    role: MemberRole
    joined_at: datetime
    invited_by_id: Optional[str] = None
    user: Optional[MemberUser] = None


class TeamDetail(TeamListItem):
    members: list[MemberResponse]


class TeamDetailResponse(BaseModel):
    team: TeamDetail
    my_role: MemberRole


class TeamMutationResponse(SuccessResponse):
    team: TeamResponse


class MemberListResponse(BaseModel):
    members: list[MemberResponse]


class MemberRoleUpdate(CamelRequest):
    """Request to change a member's role (admin or member)."""

    role: Optional[str] = None


class MemberMutationResponse(SuccessResponse):
    member: MemberResponse


class TransferOwnershipRequest(CamelRequest):
    user_id: Optional[str] = None


class InviteCreate(CamelRequest):
    """Request to create an invite code."""

    email: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = None
    expires_at: Optional[datetime] = None


class InviteResponse(BaseModel):
    """Invite code information."""

    id: str
    team_id: str
    code: str
    email: Optional[str]
    role: MemberRole
    state: InviteState
    created_by: Optional[str]
    used_by: Optional[str]
    used_at: Optional[datetime]
    revoked_at: Optional[datetime]
    expires_at: Optional[datetime]
    created_at: datetime


class InviteMutationResponse(SuccessResponse):
    invite: InviteResponse


class InviteListResponse(BaseModel):
    invites: list[InviteResponse]


class JoinRequest(CamelRequest):
    code: str = ""


class JoinResponse(SuccessResponse):
    team: TeamResponse
    role: MemberRole


class ProjectMoveResponse(SuccessResponse):
    project: ProjectResponse


class KitMoveResponse(SuccessResponse):
    kit: dict[str, Any]


# =============================================================================
# Helper Functions
# =============================================================================


def _team_to_response(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        slug=team.slug,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


def _summary_fields(summary: TeamSummary) -> dict[str, Any]:
    return {
        **_team_to_response(summary.team).model_dump(),
        "my_role": summary.my_role,
        "member_count": summary.member_count,
        "project_count": summary.project_count,
        "kit_count": summary.kit_count,
    }


def _member_to_response(member: TeamMember, user: Optional[User] = None) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        team_id=member.team_id,
        user_id=member.user_id,
        role=member.role,
        joined_at=member.joined_at,
        invited_by_id=member.invited_by_id,
        user=MemberUser(id=user.id, name=user.name, email=user.email) if user else None,
    )


def _invite_to_response(invite: TeamInvite) -> InviteResponse:
    return InviteResponse(
        id=invite.id,
        team_id=invite.team_id,
        code=invite.code,
        email=invite.email,
        role=invite.role,
        state=invite.state(),
        created_by=invite.created_by,
        used_by=invite.used_by,
        used_at=invite.used_at,
        revoked_at=invite.revoked_at,
        expires_at=invite.expires_at,
        created_at=invite.created_at,
    )


# =============================================================================
# Team Endpoints
# =============================================================================


@router.post(
    "",
    response_model=TeamMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new team",
    description="Create a team with the authenticated user as its owner. "
    "The slug is derived from the name and made unique.",
)
async def create_team(request: TeamCreate, user: CurrentUser, db: DBSession) -> TeamMutationResponse:
    service = TeamService(db)
    try:
        team = await service.create_team(request.name, user.id)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return TeamMutationResponse(team=_team_to_response(team))


@router.get(
    "",
    response_model=TeamListResponse,
    summary="List user's teams",
)
async def list_teams(user: CurrentUser, db: DBSession) -> TeamListResponse:
    """List teams the current user belongs to, with role and counts."""
    summaries = await TeamService(db).list_user_teams(user.id)
    return TeamListResponse(teams=[TeamListItem(**_summary_fields(s)) for s in summaries])


@router.post(
    "/join",
    response_model=JoinResponse,
    summary="Join a team with an invite code",
)
async def join_team(request: JoinRequest, user: CurrentUser, db: DBSession) -> JoinResponse:
    service = TeamService(db)
    try:
        team, member = await service.redeem_invite(request.code, user)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return JoinResponse(team=_team_to_response(team), role=member.role)


@router.get(
    "/{team_id}",
    response_model=TeamDetailResponse,
    summary="Get team details",
)
async def get_team(ctx: TeamMembership, db: DBSession) -> TeamDetailResponse:
    """Team with its members and resource counts."""
    service = TeamService(db)
    summary = await service.get_team_summary(ctx.team, ctx.role)
    members = await service.list_members(ctx.team.id)
    detail = TeamDetail(
        **_summary_fields(summary),
        members=[_member_to_response(m, u) for m, u in members],
    )
    return TeamDetailResponse(team=detail, my_role=ctx.role)


@router.put(
    "/{team_id}",
    response_model=TeamMutationResponse,
    summary="Rename team",
)
async def update_team(request: TeamUpdate, ctx: TeamAdmin, db: DBSession) -> TeamMutationResponse:
    try:
        team = await TeamService(db).update_team(ctx.team, request.name)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return TeamMutationResponse(team=_team_to_response(team))


@router.delete(
    "/{team_id}",
    response_model=SuccessResponse,
    summary="Delete team",
    description="Owner only. Projects become personal again and kits are handed "
    "to the deleting owner; nothing but the team itself is deleted.",
)
async def delete_team(ctx: TeamOwner, user: CurrentUser, db: DBSession) -> SuccessResponse:
    await TeamService(db).delete_team(ctx.team, user.id)
    return SuccessResponse()


# =============================================================================
# Member Endpoints
# =============================================================================


@router.get(
    "/{team_id}/members",
    response_model=MemberListResponse,
    summary="List team members",
)
async def list_members(ctx: TeamMembership, db: DBSession) -> MemberListResponse:
    members = await TeamService(db).list_members(ctx.team.id)
    return MemberListResponse(members=[_member_to_response(m, u) for m, u in members])


@router.put(
    "/{team_id}/members/{member_id}/role",
    response_model=MemberMutationResponse,
    summary="Change member role",
)
async def change_member_role(
    member_id: str,
    request: MemberRoleUpdate,
    ctx: TeamOwner,
    db: DBSession,
) -> MemberMutationResponse:
    try:
        member = await TeamService(db).change_member_role(ctx.team.id, member_id, request.role)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return MemberMutationResponse(member=_member_to_response(member))


@router.delete(
    "/{team_id}/members/{member_id}",
    response_model=SuccessResponse,
    summary="Remove member or leave team",
)
async def remove_member(member_id: str, ctx: TeamMembership, db: DBSession) -> SuccessResponse:
    """Owners and admins remove others; anyone may remove themselves."""
    await TeamService(db).remove_member(ctx.team.id, member_id, ctx.member)
    return SuccessResponse()


@router.post(
    "/{team_id}/transfer-ownership",
    response_model=SuccessResponse,
    summary="Transfer team ownership",
)
async def transfer_ownership(
    request: TransferOwnershipRequest,
    ctx: TeamOwner,
    db: DBSession,
) -> SuccessResponse:
    try:
        await TeamService(db).transfer_ownership(ctx.team.id, ctx.member, request.user_id)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return SuccessResponse()


# =============================================================================
# Invite Endpoints
# =============================================================================


@router.post(
    "/{team_id}/invites",
    response_model=InviteMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create invite code",
)
async def create_invite(
    request: InviteCreate,
    ctx: TeamAdmin,
    user: CurrentUser,
    db: DBSession,
) -> InviteMutationResponse:
    try:
        invite = await TeamService(db).create_invite(
            ctx.team.id,
            created_by=user.id,
            email=request.email,
            role=request.role,
            expires_at=request.expires_at,
        )
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return InviteMutationResponse(invite=_invite_to_response(invite))


@router.get(
    "/{team_id}/invites",
    response_model=InviteListResponse,
    summary="List invites",
)
async def list_invites(ctx: TeamAdmin, db: DBSession) -> InviteListResponse:
    invites = await TeamService(db).list_invites(ctx.team.id)
    return InviteListResponse(invites=[_invite_to_response(i) for i in invites])


@router.delete(
    "/{team_id}/invites/{invite_id}",
    response_model=InviteMutationResponse,
    summary="Revoke invite",
)
async def revoke_invite(invite_id: str, ctx: TeamAdmin, db: DBSession) -> InviteMutationResponse:
    try:
        invite = await TeamService(db).revoke_invite(ctx.team.id, invite_id)
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    return InviteMutationResponse(invite=_invite_to_response(invite))


# =============================================================================
# Resource Endpoints
# =============================================================================


@router.post(
    "/{team_id}/projects/{project_id}",
    response_model=ProjectMoveResponse,
    summary="Move a personal project into the team",
)
async def move_project_in(
    project_id: str,
    ctx: TeamAdmin,
    user: CurrentUser,
    db: DBSession,
) -> ProjectMoveResponse:
    project = await TeamService(db).move_project_in(ctx.team.id, project_id, user.id)
    return ProjectMoveResponse(project=project_to_response(project))


@router.delete(
    "/{team_id}/projects/{project_id}",
    response_model=ProjectMoveResponse,
    summary="Move a project out of the team",
)
async def move_project_out(
    project_id: str,
    ctx: TeamAdmin,
    user: CurrentUser,
    db: DBSession,
) -> ProjectMoveResponse:
    project = await TeamService(db).move_project_out(ctx.team.id, project_id, user.id)
    return ProjectMoveResponse(project=project_to_response(project))


@router.post(
    "/{team_id}/kits/{kit_id}",
    response_model=KitMoveResponse,
    summary="Move a personal kit into the team",
)
async def move_kit_in(
    kit_id: str,
    ctx: TeamAdmin,
    user: CurrentUser,
    db: DBSession,
) -> KitMoveResponse:
    kit = await TeamService(db).move_kit_in(ctx.team.id, kit_id, user.id)
    return KitMoveResponse(kit=row_to_kit(kit).model_dump(mode="json"))


@router.delete(
    "/{team_id}/kits/{kit_id}",
    response_model=KitMoveResponse,
    summary="Move a kit out of the team",
)
async def move_kit_out(
    kit_id: str,
    ctx: TeamAdmin,
    user: CurrentUser,
    db: DBSession,
) -> KitMoveResponse:
    kit = await TeamService(db).move_kit_out(ctx.team.id, kit_id, user.id)
    return KitMoveResponse(kit=row_to_kit(kit).model_dump(mode="json"))
