"""Database models for Adorable.

SQLAlchemy models for:
- Users
- Teams, memberships and invites
- Projects and their GitHub webhooks
- Kits (plus the pydantic kit schema stored in their config blob)
"""

from .database import (
    Base,
    close_db,
    create_all,
    get_engine,
    get_session,
    init_db,
    session_scope,
    utcnow,
)
from .kit import Kit, KitConfig, KitRecord, KitResource, KitTemplate
from .project import GitHubWebhook, Project
from .team import InviteState, MemberRole, Team, TeamInvite, TeamMember
from .user import User

__all__ = [
    # Database
    "Base",
    "init_db",
    "get_session",
    "get_engine",
    "session_scope",
    "create_all",
    "close_db",
    "utcnow",
    # User
    "User",
    # Teams
    "Team",
    "TeamMember",
    "TeamInvite",
    "MemberRole",
    "InviteState",
    # Projects
    "Project",
    "GitHubWebhook",
    # Kits
    "KitRecord",
    "Kit",
    "KitConfig",
    "KitTemplate",
    "KitResource",
]
