"""User model.

Stores credentials, the linked GitHub account and the legacy settings blob.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base, utcnow

if TYPE_CHECKING:
    from .team import TeamMember


class User(Base):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Legacy JSON blob; older clients stored their kits here
    settings: Mapped[str | None] = mapped_column(Text, nullable=True)

    # GitHub account link
    github_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    github_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    team_memberships: Mapped[list[TeamMember]] = relationship(
        "TeamMember",
        back_populates="user",
        foreign_keys="TeamMember.user_id",
        passive_deletes=True,
    )

    def load_settings(self) -> dict[str, Any]:
        """Parse the settings blob, returning an empty dict when unset."""
        if not self.settings:
            return {}
        return json.loads(self.settings)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
