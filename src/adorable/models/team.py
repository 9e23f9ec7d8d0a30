"""Team, membership and invite models."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    Column, String, DateTime, ForeignKey, Index,
    UniqueConstraint, Enum as SQLEnum, text
)
from sqlalchemy.orm import relationship, Mapped

from adorable.models.database import Base, utcnow

if TYPE_CHECKING:
    from adorable.models.user import User


class MemberRole(str, Enum):
    """Roles within a team."""
    OWNER = "owner"         # Exactly one per team; may delete the team
    ADMIN = "admin"         # Manage members, invites, team resources
    MEMBER = "member"       # Access to team projects and kits


class InviteState(str, Enum):
    """Lifecycle of an invite code.

    pending -> redeemed | expired | revoked. The three end states are final.
    """
    PENDING = "pending"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    REVOKED = "revoked"


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Team(Base):
    """Organization grouping shared projects and kits."""
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(100), nullable=False)
    slug = Column(String(64), nullable=False, unique=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    members: Mapped[List["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invites: Mapped[List["TeamInvite"]] = relationship(
        "TeamInvite",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TeamMember(Base):
    """Team membership junction table."""
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
        # At most one owner per team
        Index(
            "uq_team_single_owner",
            "team_id",
            unique=True,
            postgresql_where=text("role = 'owner'"),
            sqlite_where=text("role = 'owner'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    role = Column(
        SQLEnum(MemberRole, name="memberrole", values_callable=_enum_values),
        default=MemberRole.MEMBER,
        nullable=False,
    )

    joined_at = Column(DateTime, default=utcnow, nullable=False)
    invited_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    team: Mapped["Team"] = relationship("Team", back_populates="members")
    user: Mapped["User"] = relationship(
        "User",
        foreign_keys=[user_id],
        back_populates="team_memberships"
    )

    @property
    def can_manage(self) -> bool:
        """Owners and admins manage membership and team resources."""
        return self.role in (MemberRole.OWNER, MemberRole.ADMIN)


class TeamInvite(Base):
    """Single-use invite code granting a role on redemption."""
    __tablename__ = "team_invites"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)

    code = Column(String(16), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)  # Only this address may redeem
    role = Column(
        SQLEnum(MemberRole, name="memberrole", values_callable=_enum_values),
        default=MemberRole.MEMBER,
        nullable=False,
    )

    # Tracking
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    used_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    used_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    # Lifecycle
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Relationships
    team: Mapped["Team"] = relationship("Team", back_populates="invites")

    def state(self, now: Optional[datetime] = None) -> InviteState:
        """Current lifecycle state of the invite."""
        if self.used_at is not None or self.used_by is not None:
            return InviteState.REDEEMED
        if self.revoked_at is not None:
            return InviteState.REVOKED
        now = now or utcnow()
        if self.expires_at is not None and self.expires_at < now:
            return InviteState.EXPIRED
        return InviteState.PENDING
