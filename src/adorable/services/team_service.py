"""Team management service.

Provides business logic for team operations:
- Team CRUD with slug derivation
- Member management and ownership transfer
- Invite codes with single-use redemption
- Moving projects and kits between personal and team ownership

Role checks for the calling member happen in the API layer
(``load_team_member`` / ``require_team_role``); the service enforces the
rules that depend on the target row.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adorable.core.security import generate_invite_code
from adorable.models.database import utcnow
from adorable.models.kit import KitRecord
from adorable.models.project import Project
from adorable.models.team import (
    InviteState,
    MemberRole,
    Team,
    TeamInvite,
    TeamMember,
)
from adorable.models.user import User

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 48
SLUG_SUFFIX_BASE_LENGTH = 44
SLUG_FALLBACK = "team"
INVITE_CODE_ATTEMPTS = 5

# Roles that can be granted by invite or role change; owner only moves by transfer
ASSIGNABLE_ROLES = (MemberRole.ADMIN, MemberRole.MEMBER)


class TeamServiceError(Exception):
    """Base exception for team service errors."""
    pass


class TeamNotFoundError(TeamServiceError):
    """Team not found."""
    pass


class MemberNotFoundError(TeamServiceError):
    """Team member not found."""
    pass


class InviteNotFoundError(TeamServiceError):
    """Invitation not found."""
    pass


class ResourceNotFoundError(TeamServiceError):
    """Project or kit not found (or not in the expected team)."""
    pass


class PermissionDeniedError(TeamServiceError):
    """User lacks required permission."""
    pass


class InviteUsedError(TeamServiceError):
    """Invite code was already redeemed."""
    pass


class InviteExpiredError(TeamServiceError):
    """Invite code is past its expiry."""
    pass


class InviteRevokedError(TeamServiceError):
    """Invite code was revoked by a team admin."""
    pass


class InviteEmailMismatchError(TeamServiceError):
    """Invite is bound to a different email address."""
    pass


class AlreadyMemberError(TeamServiceError):
    """User already belongs to the team."""
    pass


class OwnerProtectedError(TeamServiceError):
    """Operation would remove or demote the team owner."""
    pass


class OwnershipInvariantError(TeamServiceError):
    """A team ended up with zero or several owners."""
    pass


class SlugTakenError(TeamServiceError):
    """Slug was claimed concurrently by another team."""
    pass


def slugify(name: str) -> str:
    """Derive the URL-safe base slug for a team name.

    Lower-cases, collapses runs of anything outside ``[a-z0-9]`` into a single
    hyphen, trims hyphens at both ends and truncates to 48 characters.
    """
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    base = base[:SLUG_MAX_LENGTH]
    return base or SLUG_FALLBACK


def parse_role(
    role: "MemberRole | str | None",
    allowed: tuple[MemberRole, ...],
    label: str = "Role",
) -> MemberRole:
    """Coerce a role string, rejecting anything outside ``allowed``."""
    try:
        parsed = MemberRole(role)
    except ValueError:
        parsed = None
    if parsed not in allowed:
        choices = " or ".join(f'"{r.value}"' for r in allowed)
        raise ValueError(f"{label} must be {choices}")
    return parsed


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to the naive UTC form stored in the DB."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


@dataclass
class TeamSummary:
    """Team with the caller's role and resource counts."""

    team: Team
    my_role: MemberRole
    member_count: int = 0
    project_count: int = 0
    kit_count: int = 0


class TeamService:
    """Service for managing teams, their members and invites."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Slugs
    # =========================================================================

    async def generate_unique_slug(
        self,
        name: str,
        exclude_team_id: Optional[str] = None,
    ) -> str:
        """Find a free slug for ``name``, appending -2, -3, ... on collision.

        Args:
            name: Team display name
            exclude_team_id: Team whose current slug does not count as taken (rename)
        """
        base = slugify(name)
        slug = base
        suffix = 2
        while await self._slug_taken(slug, exclude_team_id):
            slug = f"{base[:SLUG_SUFFIX_BASE_LENGTH]}-{suffix}"
            suffix += 1
        return slug

    async def _slug_taken(self, slug: str, exclude_team_id: Optional[str]) -> bool:
        query = select(Team.id).where(Team.slug == slug)
        if exclude_team_id:
            query = query.where(Team.id != exclude_team_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    # =========================================================================
    # Team CRUD
    # =========================================================================

    async def create_team(self, name: str, owner_user_id: str) -> Team:
        """Create a new team with the given user as its owner.

        Args:
            name: Team display name
            owner_user_id: User ID who will be the team owner

        Returns:
            Created team

        Raises:
            ValueError: If the name is blank
            SlugTakenError: If the derived slug was taken concurrently
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Team name is required")

        slug = await self.generate_unique_slug(name)
        team = Team(id=str(uuid.uuid4()), name=name, slug=slug)
        self.db.add(team)
        self.db.add(
            TeamMember(
                id=str(uuid.uuid4()),
                team_id=team.id,
                user_id=owner_user_id,
                role=MemberRole.OWNER,
            )
        )

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise SlugTakenError(f"Team slug '{slug}' is already taken") from e

        logger.info(f"Team {team.id} ('{slug}') created by {owner_user_id}")
        return team

    async def get_team(self, team_id: str) -> Team:
        """Get team by ID.

        Raises:
            TeamNotFoundError: If team doesn't exist
        """
        team = await self.db.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError("Team not found")
        return team

    async def list_user_teams(self, user_id: str) -> list[TeamSummary]:
        """List all teams a user belongs to, with their role and counts."""
        result = await self.db.execute(
            select(Team, TeamMember.role)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.name)
        )
        rows = result.all()
        team_ids = [team.id for team, _ in rows]

        members = await self._count_by_team(TeamMember, team_ids)
        projects = await self._count_by_team(Project, team_ids)
        kits = await self._count_by_team(KitRecord, team_ids)

        return [
            TeamSummary(
                team=team,
                my_role=role,
                member_count=members.get(team.id, 0),
                project_count=projects.get(team.id, 0),
                kit_count=kits.get(team.id, 0),
            )
            for team, role in rows
        ]

    async def get_team_summary(self, team: Team, my_role: MemberRole) -> TeamSummary:
        """Counts for a single team."""
        members = await self._count_by_team(TeamMember, [team.id])
        projects = await self._count_by_team(Project, [team.id])
        kits = await self._count_by_team(KitRecord, [team.id])
        return TeamSummary(
            team=team,
            my_role=my_role,
            member_count=members.get(team.id, 0),
            project_count=projects.get(team.id, 0),
            kit_count=kits.get(team.id, 0),
        )

    async def _count_by_team(self, model, team_ids: list[str]) -> dict[str, int]:
        if not team_ids:
            return {}
        result = await self.db.execute(
            select(model.team_id, func.count())
            .where(model.team_id.in_(team_ids))
            .group_by(model.team_id)
        )
        return {team_id: count for team_id, count in result.all()}

    async def update_team(self, team: Team, name: str) -> Team:
        """Rename a team, re-deriving its slug.

        The team's own slug does not count as a collision, so renaming to a
        name with the same base keeps the slug.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Team name is required")

        team.slug = await self.generate_unique_slug(name, exclude_team_id=team.id)
        team.name = name
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise SlugTakenError(f"Team slug '{team.slug}' is already taken") from e
        await self.db.refresh(team)
        return team

    async def delete_team(self, team: Team, actor_user_id: str) -> None:
        """Delete a team without deleting its resources.

        In one transaction: projects lose their team link, kits are handed to
        the deleting user, then invites, members and the team row go.
        """
        team_id = team.id
        try:
            await self.db.execute(
                update(Project)
                .where(Project.team_id == team_id)
                .values(team_id=None)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                update(KitRecord)
                .where(KitRecord.team_id == team_id)
                .values(team_id=None, user_id=actor_user_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(delete(TeamInvite).where(TeamInvite.team_id == team_id))
            await self.db.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
            await self.db.execute(delete(Team).where(Team.id == team_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        self.db.expunge_all()
        logger.info(f"Team {team_id} deleted by {actor_user_id}")

    # =========================================================================
    # Member Management
    # =========================================================================

    async def list_members(self, team_id: str) -> list[tuple[TeamMember, User]]:
        """Members of a team with their user rows, oldest first."""
        result = await self.db.execute(
            select(TeamMember, User)
            .join(User, User.id == TeamMember.user_id)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at)
        )
        return [(member, user) for member, user in result.all()]

    async def change_member_role(
        self,
        team_id: str,
        member_id: str,
        role: "MemberRole | str",
    ) -> TeamMember:
        """Change a member's role to admin or member.

        Raises:
            ValueError: If the role is not admin or member
            MemberNotFoundError: If the member is not in this team
            OwnerProtectedError: If the target is the owner
        """
        new_role = parse_role(role, ASSIGNABLE_ROLES)
        target = await self._get_member_by_id(team_id, member_id)
        if target.role == MemberRole.OWNER:
            raise OwnerProtectedError(
                "Cannot change the owner's role. Use transfer-ownership instead."
            )

        target.role = new_role
        try:
            await self.db.flush()
            await self._assert_single_owner(team_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return target

    async def remove_member(
        self,
        team_id: str,
        member_id: str,
        actor: TeamMember,
    ) -> None:
        """Remove a member, or let a member leave.

        Owners and admins may remove anyone but the owner; everyone else may
        only remove themselves.
        """
        target = await self._get_member_by_id(team_id, member_id)
        if target.role == MemberRole.OWNER:
            raise OwnerProtectedError("Owner cannot be removed. Transfer ownership first.")

        is_self = target.user_id == actor.user_id
        if not is_self and not actor.can_manage:
            raise PermissionDeniedError("Insufficient team permissions")

        await self.db.execute(delete(TeamMember).where(TeamMember.id == target.id))
        await self.db.commit()
        logger.info(f"Member {target.user_id} removed from team {team_id} by {actor.user_id}")

    async def transfer_ownership(
        self,
        team_id: str,
        actor: TeamMember,
        new_owner_user_id: str,
    ) -> TeamMember:
        """Swap ownership: the caller becomes admin, the target becomes owner.

        Raises:
            ValueError: If no target is given or the target is the caller
            PermissionDeniedError: If the caller is not the owner
            MemberNotFoundError: If the target is not a member
            OwnershipInvariantError: If the swap would not leave exactly one owner
        """
        if not new_owner_user_id:
            raise ValueError("userId of the new owner is required")
        if actor.role != MemberRole.OWNER:
            raise PermissionDeniedError("Only the owner can transfer ownership")
        if new_owner_user_id == actor.user_id:
            raise ValueError("You are already the owner")

        new_owner = await self._find_member(team_id, new_owner_user_id)
        if new_owner is None:
            raise MemberNotFoundError("Target user is not a member of this team")

        try:
            # Demote first so the single-owner index never sees two owners
            actor.role = MemberRole.ADMIN
            await self.db.flush()
            new_owner.role = MemberRole.OWNER
            await self.db.flush()
            await self._assert_single_owner(team_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Ownership of team {team_id} transferred from {actor.user_id} to {new_owner_user_id}"
        )
        return new_owner

    # =========================================================================
    # Invitation Flow
    # =========================================================================

    async def create_invite(
        self,
        team_id: str,
        created_by: str,
        email: Optional[str] = None,
        role: "MemberRole | str | None" = MemberRole.MEMBER,
        expires_at: Optional[datetime] = None,
    ) -> TeamInvite:
        """Create an invite code for a team.

        Args:
            team_id: Team UUID
            created_by: User creating the invite
            email: Restrict redemption to this address
            role: Role granted on redemption (admin or member)
            expires_at: Optional expiry

        Returns:
            Created invite with its 8 hex character code
        """
        granted = parse_role(role or MemberRole.MEMBER, ASSIGNABLE_ROLES, label="Invite role")
        invite = TeamInvite(
            id=str(uuid.uuid4()),
            team_id=team_id,
            code=await self._unique_invite_code(),
            email=email.strip().lower() if email else None,
            role=granted,
            created_by=created_by,
            expires_at=to_naive_utc(expires_at),
        )
        self.db.add(invite)
        await self.db.commit()
        await self.db.refresh(invite)
        return invite

    async def _unique_invite_code(self) -> str:
        for _ in range(INVITE_CODE_ATTEMPTS):
            code = generate_invite_code()
            result = await self.db.execute(
                select(TeamInvite.id).where(TeamInvite.code == code)
            )
            if result.scalar_one_or_none() is None:
                return code
        raise TeamServiceError("Could not allocate a unique invite code")

    async def list_invites(self, team_id: str) -> list[TeamInvite]:
        """All invites of a team, newest first."""
        result = await self.db.execute(
            select(TeamInvite)
            .where(TeamInvite.team_id == team_id)
            .order_by(TeamInvite.created_at.desc())
        )
        return list(result.scalars().all())

    async def revoke_invite(self, team_id: str, invite_id: str) -> TeamInvite:
        """Revoke a pending invite.

        Raises:
            InviteNotFoundError: If the invite is not in this team
            InviteUsedError: If it was already redeemed
            ValueError: If it already expired or was revoked
        """
        invite = await self.db.get(
            TeamInvite, invite_id, with_for_update=True, populate_existing=True
        )
        if invite is None or invite.team_id != team_id:
            raise InviteNotFoundError("Invite not found")

        state = invite.state()
        if state == InviteState.REDEEMED:
            raise InviteUsedError("Invite code has already been used")
        if state != InviteState.PENDING:
            raise ValueError(f"Invite is already {state.value}")

        invite.revoked_at = utcnow()
        await self.db.commit()
        return invite

    async def redeem_invite(self, code: str, user: User) -> tuple[Team, TeamMember]:
        """Join a team with an invite code.

        The invite row is locked for the rest of the transaction and claimed
        with a conditional update, so a code can only ever produce one
        membership. The claim and the membership insert commit together.

        Returns:
            The joined team and the new membership

        Raises:
            ValueError: If no code is given
            InviteNotFoundError: Unknown code
            InviteUsedError / InviteRevokedError / InviteExpiredError: Code not redeemable
            InviteEmailMismatchError: Code bound to another email
            AlreadyMemberError: Caller already in the team
        """
        code = (code or "").strip().lower()
        if not code:
            raise ValueError("Invite code is required")

        now = utcnow()
        try:
            result = await self.db.execute(
                select(TeamInvite)
                .where(TeamInvite.code == code)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            invite = result.scalar_one_or_none()
            if invite is None:
                raise InviteNotFoundError("Invalid invite code")

            self._check_redeemable(invite, user, now)

            if await self._find_member(invite.team_id, user.id) is not None:
                raise AlreadyMemberError("You are already a member of this team")

            if not await self._claim_invite(invite.id, user.id, now):
                raise InviteUsedError("Invite code has already been used")

            member = TeamMember(
                id=str(uuid.uuid4()),
                team_id=invite.team_id,
                user_id=user.id,
                role=invite.role,
                invited_by_id=invite.created_by,
            )
            self.db.add(member)
            await self.db.flush()
            team = await self.get_team(invite.team_id)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyMemberError("You are already a member of this team") from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user.id} joined team {team.id} as {member.role.value} via invite")
        return team, member

    @staticmethod
    def _check_redeemable(invite: TeamInvite, user: User, now: datetime) -> None:
        state = invite.state(now)
        if state == InviteState.REDEEMED:
            raise InviteUsedError("Invite code has already been used")
        if state == InviteState.REVOKED:
            raise InviteRevokedError("Invite code has been revoked")
        if state == InviteState.EXPIRED:
            raise InviteExpiredError("Invite code has expired")
        if invite.email and invite.email != (user.email or "").lower():
            raise InviteEmailMismatchError("This invite is for a different email address")

    async def _claim_invite(self, invite_id: str, user_id: str, now: datetime) -> bool:
        """Stamp the invite as used unless someone else already did."""
        result = await self.db.execute(
            update(TeamInvite)
            .where(
                TeamInvite.id == invite_id,
                TeamInvite.used_by.is_(None),
                TeamInvite.used_at.is_(None),
                TeamInvite.revoked_at.is_(None),
            )
            .values(used_by=user_id, used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # =========================================================================
    # Resource Re-assignment
    # =========================================================================

    async def move_project_in(self, team_id: str, project_id: str, actor_user_id: str) -> Project:
        """Move one of the caller's personal projects into the team."""
        project = await self.db.get(Project, project_id)
        if project is None:
            raise ResourceNotFoundError("Project not found")
        if project.user_id != actor_user_id:
            raise PermissionDeniedError("You can only move your own projects into a team")

        project.team_id = team_id
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def move_project_out(self, team_id: str, project_id: str, actor_user_id: str) -> Project:
        """Make a team project personal again."""
        project = await self.db.get(Project, project_id)
        if project is None or project.team_id != team_id:
            raise ResourceNotFoundError("Project not found in this team")

        project.team_id = None
        if project.user_id is None:
            project.user_id = actor_user_id
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def move_kit_in(self, team_id: str, kit_id: str, actor_user_id: str) -> KitRecord:
        """Move one of the caller's kits into the team; the personal owner is cleared."""
        kit = await self.db.get(KitRecord, kit_id)
        if kit is None:
            raise ResourceNotFoundError("Kit not found")
        if kit.user_id != actor_user_id:
            raise PermissionDeniedError("You can only move your own kits into a team")

        kit.team_id = team_id
        kit.user_id = None
        await self.db.commit()
        await self.db.refresh(kit)
        return kit

    async def move_kit_out(self, team_id: str, kit_id: str, actor_user_id: str) -> KitRecord:
        """Hand a team kit to the acting user."""
        kit = await self.db.get(KitRecord, kit_id)
        if kit is None or kit.team_id != team_id:
            raise ResourceNotFoundError("Kit not found in this team")

        kit.user_id = actor_user_id
        kit.team_id = None
        await self.db.commit()
        await self.db.refresh(kit)
        return kit

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _find_member(self, team_id: str, user_id: str) -> Optional[TeamMember]:
        result = await self.db.execute(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_member_by_id(self, team_id: str, member_id: str) -> TeamMember:
        """Get a membership row by its ID, scoped to the team."""
        member = await self.db.get(TeamMember, member_id)
        if member is None or member.team_id != team_id:
            raise MemberNotFoundError("Member not found")
        return member

    async def _assert_single_owner(self, team_id: str) -> None:
        result = await self.db.execute(
            select(func.count())
            .select_from(TeamMember)
            .where(TeamMember.team_id == team_id, TeamMember.role == MemberRole.OWNER)
        )
        owners = result.scalar_one()
        if owners != 1:
            raise OwnershipInvariantError(
                f"Team {team_id} must have exactly one owner, found {owners}"
            )

    async def get_user_role_in_team(
        self,
        team_id: str,
        user_id: str,
    ) -> Optional[MemberRole]:
        """Get a user's role in a team, or None if not a member."""
        member = await self._find_member(team_id, user_id)
        return member.role if member else None

    async def team_ids_for_user(self, user_id: str) -> list[str]:
        """IDs of every team the user belongs to."""
        result = await self.db.execute(
            select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        )
        return list(result.scalars().all())


__all__ = [
    "TeamService",
    "TeamSummary",
    "slugify",
    "parse_role",
    "TeamServiceError",
    "TeamNotFoundError",
    "MemberNotFoundError",
    "InviteNotFoundError",
    "ResourceNotFoundError",
    "PermissionDeniedError",
    "InviteUsedError",
    "InviteExpiredError",
    "InviteRevokedError",
    "InviteEmailMismatchError",
    "AlreadyMemberError",
    "OwnerProtectedError",
    "OwnershipInvariantError",
    "SlugTakenError",
]
