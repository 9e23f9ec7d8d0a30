"""FastAPI dependencies for dependency injection.

Provides reusable dependencies for authentication, database sessions,
team role checks and the services that touch the outside world
(filesystem, git, GitHub), so tests can override them.
"""

from dataclasses import dataclass
from typing import Annotated, Callable

from fastapi import Depends, Path
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adorable.api.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from adorable.core.security import decode_access_token
from adorable.models.database import get_session
from adorable.models.team import MemberRole, Team, TeamMember
from adorable.models.user import User
from adorable.services.git_service import GitService
from adorable.services.github_sync import GitHubSyncService
from adorable.services.project_fs import ProjectFsService

# Security scheme
security = HTTPBearer(auto_error=False)

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DBSession,
) -> User:
    """Get the current authenticated user from the bearer JWT.

    Raises:
        UnauthorizedError: Missing, invalid or expired token, or unknown/inactive user
    """
    if credentials is None:
        raise UnauthorizedError("Missing authentication token")

    payload = decode_access_token(credentials.credentials)
    if payload is None or not payload.get("sub"):
        raise UnauthorizedError("Invalid or expired token")

    user = await db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# Team membership
# =============================================================================


@dataclass
class TeamContext:
    """The team addressed by the path and the caller's membership in it."""

    team: Team
    member: TeamMember

    @property
    def role(self) -> MemberRole:
        return self.member.role


async def load_team_member(
    team_id: Annotated[str, Path()],
    user: CurrentUser,
    db: DBSession,
) -> TeamContext:
    """Resolve the path team and require the caller to be a member.

    Raises:
        NotFoundError: Team doesn't exist
        ForbiddenError: Caller is not a member
    """
    team = await db.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team")

    result = await db.execute(
        select(TeamMember).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user.id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise ForbiddenError("Not a member of this team")
    return TeamContext(team=team, member=member)


def require_team_role(*roles: MemberRole) -> Callable:
    """Dependency factory: the caller's role must be one of ``roles``.

    Membership is checked first, so non-members still get "Not a member".
    """
    allowed = frozenset(roles)

    async def dependency(
        ctx: Annotated[TeamContext, Depends(load_team_member)],
    ) -> TeamContext:
        if ctx.member.role not in allowed:
            raise ForbiddenError("Insufficient team permissions")
        return ctx

    return dependency


TeamMembership = Annotated[TeamContext, Depends(load_team_member)]
TeamAdmin = Annotated[TeamContext, Depends(require_team_role(MemberRole.OWNER, MemberRole.ADMIN))]
TeamOwner = Annotated[TeamContext, Depends(require_team_role(MemberRole.OWNER))]


# =============================================================================
# External collaborators
# =============================================================================


def get_project_fs() -> ProjectFsService:
    return ProjectFsService()


def get_git_service() -> GitService:
    return GitService()


def get_github_sync() -> GitHubSyncService:
    return GitHubSyncService()


ProjectFs = Annotated[ProjectFsService, Depends(get_project_fs)]
Git = Annotated[GitService, Depends(get_git_service)]
GitHubSync = Annotated[GitHubSyncService, Depends(get_github_sync)]
